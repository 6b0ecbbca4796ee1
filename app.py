"""
Multilingual Health Triage Assistant — Gradio Application.

A thin web adapter over the triage core:
  - Multilingual chat (explicit language or script detection)
  - Structured symptom assessment with advisory results
  - Hand-off to a human health worker on escalation
  - Live session / assessment / model gateway status panel
"""

import logging
from dataclasses import dataclass

import gradio as gr

import config
from database.session_store import SessionStore
from triage.assessment import SymptomAssessmentMachine
from triage.classifier import IntentClassifier
from triage.errors import SessionClosedError, SessionNotFoundError, TriageError
from triage.escalation import EscalationEngine
from triage.language_service import GeminiLanguageService
from triage.languages import Language
from triage.llm_engine import LLMEngine
from triage.model_gateway import GeminiProvider, ModelGateway
from triage.responses import INTENT_RESPONSES
from triage.session_manager import SessionManager
from triage.states import PHASE_LABELS, STATUS_LABELS
from triage.workers import WorkerDirectory

logger = logging.getLogger(__name__)

# ── Custom CSS ─────────────────────────────────────────────────────────────

CUSTOM_CSS = """
.gradio-container { max-width: 1320px !important; }

.header-banner {
    background: linear-gradient(120deg, #1e3a8a, #0ea5e9);
    color: #f8fafc;
    border-radius: 14px;
    padding: 22px 30px;
    margin-bottom: 16px;
}
.header-banner h1 { margin: 0 0 4px 0; font-size: 26px; }
.header-banner p { margin: 0; font-size: 14px; opacity: 0.85; }

.status-panel {
    background: #f1f5f9;
    border: 1px solid #cbd5e1;
    border-radius: 12px;
    padding: 16px;
}
.status-panel h3 {
    color: #1e3a8a;
    font-size: 12px;
    letter-spacing: 0.08em;
    text-transform: uppercase;
    margin: 10px 0 4px 0;
}

.send-btn { min-height: 44px !important; font-weight: 600 !important; }

.footer-note { text-align: center; font-size: 12px; color: #94a3b8; padding: 10px; }
"""

AUTO_LANGUAGE = "Auto-detect"
LANGUAGE_CHOICES = [AUTO_LANGUAGE] + [f"{lang.native_name} ({lang.value})" for lang in Language]

SETUP_MESSAGE = (
    "⚠️ **Setup Required**: Please set your `GOOGLE_API_KEY` in the `.env` file.\n\n"
    "1. Copy `.env.example` to `.env`\n"
    "2. Add your Gemini API key from [Google AI Studio](https://aistudio.google.com/apikey)\n"
    "3. Restart the application"
)


# ── Initialize Core Components ─────────────────────────────────────────────

@dataclass
class Services:
    manager: SessionManager
    gateway: ModelGateway
    store: SessionStore


def build_services() -> Services:
    """Construct the service graph once per process."""
    gateway = ModelGateway(GeminiProvider())
    gateway.start_reset_timer()

    language_service = GeminiLanguageService(gateway)
    store = SessionStore()
    manager = SessionManager(
        classifier=IntentClassifier(language_service),
        assessment=SymptomAssessmentMachine(),
        escalation=EscalationEngine(WorkerDirectory()),
        llm=LLMEngine(gateway),
        language_service=language_service,
        store=store,
    )
    return Services(manager=manager, gateway=gateway, store=store)


def _parse_language_choice(choice: str | None) -> Language | None:
    if not choice or choice == AUTO_LANGUAGE:
        return None
    return Language.from_code(choice.rsplit("(", 1)[1].rstrip(")"))


def _gateway_summary(gateway: ModelGateway) -> str:
    status = gateway.status()
    failed = ", ".join(status["failed_models"]) or "none"
    return f"{len(status['available_models'])}/{status['total_models']} models available  \nFailed: {failed}"


def _greeting() -> str:
    return (
        f"👋 **{INTENT_RESPONSES['greeting']['text']}**\n\n"
        "Describe how you are feeling in your own language and I will ask a few "
        "follow-up questions.\n\n"
        "⚠️ *In an emergency, call **108** or go to the nearest hospital immediately.*"
    )


# ── Build Gradio App ───────────────────────────────────────────────────────

def create_app():
    """Build and return the Gradio application."""
    try:
        services = build_services()
    except ValueError as e:
        logger.error("[INIT ERROR] %s", e)
        services = None

    # ── Event Handlers ─────────────────────────────────────────────────

    def respond(message, chat_history, session_id, language_choice):
        """Process one user message and return updated displays."""
        if not message or not message.strip():
            return chat_history, session_id, gr.update(), gr.update(), gr.update(), gr.update(), ""

        chat_history.append({"role": "user", "content": message})
        if services is None:
            chat_history.append({"role": "assistant", "content": SETUP_MESSAGE})
            return chat_history, session_id, "⚠️ Setup Required", "", "", "", ""

        try:
            result = services.manager.handle_turn(
                session_id,
                user_id="web-user",
                text=message,
                language=_parse_language_choice(language_choice),
            )
        except (SessionClosedError, SessionNotFoundError) as e:
            logger.info("[App] %s", e)
            chat_history.append({
                "role": "assistant",
                "content": "This conversation has ended. Please click **🔄 New Conversation** to start again.",
            })
            return chat_history, session_id, gr.update(), gr.update(), gr.update(), gr.update(), ""
        except TriageError as e:
            logger.error("[App] Turn failed: %s", e)
            chat_history.append({"role": "assistant", "content": f"⚠️ {e}"})
            return chat_history, session_id, gr.update(), gr.update(), gr.update(), gr.update(), ""

        session = result.session
        content = result.turn.content
        if result.quick_replies:
            content += "\n\n" + " • ".join(f"`{q}`" for q in result.quick_replies)
        chat_history.append({"role": "assistant", "content": content})

        phase = SymptomAssessmentMachine.phase(session.context.assessment)
        if result.assessment_complete:
            phase_label = "📋 Assessment Complete"
        else:
            phase_label = PHASE_LABELS[phase]
        if session.worker_id:
            worker = f"Worker #{session.worker_id}"
        elif result.escalated:
            worker = "*No worker available*"
        else:
            worker = "*Not escalated*"

        return (
            chat_history,
            session.id,
            STATUS_LABELS[session.status],
            f"{session.language.native_name} ({session.language.display_name})",
            phase_label,
            worker,
            "",  # Clear input textbox
        )

    def reset_conversation(session_id):
        """End the current session and start over."""
        if services is not None and session_id:
            try:
                services.manager.end_session(session_id)
            except SessionNotFoundError as e:
                logger.info("[App] Nothing to end: %s", e)
        history = [{"role": "assistant", "content": _greeting() if services else SETUP_MESSAGE}]
        return history, None, "👋 Welcome", "*Not detected yet*", PHASE_LABELS[SymptomAssessmentMachine.phase(None)], "*Not escalated*"

    def refresh_gateway():
        return _gateway_summary(services.gateway) if services else "*Unavailable*"

    # ── Build UI ───────────────────────────────────────────────────────

    with gr.Blocks(
        css=CUSTOM_CSS,
        title=config.APP_TITLE,
        theme=gr.themes.Soft(
            primary_hue=gr.themes.colors.blue,
            secondary_hue=gr.themes.colors.sky,
            neutral_hue=gr.themes.colors.gray,
            font=gr.themes.GoogleFont("Inter"),
        ),
    ) as app:

        session_state = gr.State(None)

        gr.HTML(f"""
        <div class="header-banner">
            <h1>{config.APP_TITLE}</h1>
            <p>{config.APP_DESCRIPTION}</p>
        </div>
        """)

        with gr.Row():

            # ── Main Chat Column ───────────────────────────────────────
            with gr.Column(scale=3):
                chatbot = gr.Chatbot(
                    value=[{"role": "assistant", "content": _greeting() if services else SETUP_MESSAGE}],
                    height=520,
                )

                with gr.Row():
                    msg = gr.Textbox(
                        placeholder="Describe your symptoms or health question...",
                        show_label=False,
                        scale=5,
                        container=False,
                        autofocus=True,
                    )
                    send_btn = gr.Button("Send ➤", variant="primary", scale=1, elem_classes=["send-btn"], min_width=100)

                with gr.Row():
                    language_dropdown = gr.Dropdown(
                        choices=LANGUAGE_CHOICES, value=AUTO_LANGUAGE, label="Language", scale=2,
                    )
                    clear_btn = gr.Button("🔄 New Conversation", variant="secondary", size="sm", scale=1)

                gr.Examples(
                    examples=[
                        "hi",
                        "I have had a fever for 2 days, feeling very hot with chills",
                        "मुझे सिरदर्द है",
                        "When should my baby get the measles vaccine?",
                        "I have chest pain and difficulty breathing",
                    ],
                    inputs=msg,
                    label="💡 Try these examples:",
                    examples_per_page=5,
                )

            # ── Sidebar: Session Status Panel ──────────────────────────
            with gr.Column(scale=1, min_width=280):
                with gr.Group(elem_classes=["status-panel"]):
                    gr.HTML("<h3>📊 Session</h3>")
                    status_display = gr.Markdown("👋 Welcome")

                    gr.HTML("<h3>🌐 Language</h3>")
                    language_display = gr.Markdown("*Not detected yet*")

                    gr.HTML("<h3>🩺 Assessment</h3>")
                    phase_display = gr.Markdown(PHASE_LABELS[SymptomAssessmentMachine.phase(None)])

                    gr.HTML("<h3>🧑‍⚕️ Health Worker</h3>")
                    worker_display = gr.Markdown("*Not escalated*")

                    gr.HTML("<h3>🤖 Models</h3>")
                    gateway_display = gr.Markdown(refresh_gateway())
                    refresh_btn = gr.Button("Refresh", size="sm")

        gr.HTML("""
        <div class="footer-note">
            ⚠️ <strong>Disclaimer:</strong> This assistant gives general health guidance only.
            It does not diagnose or prescribe. Always consult a qualified health professional.
            In emergencies, call <strong>108</strong> immediately.
        </div>
        """)

        # ── Event Bindings ─────────────────────────────────────────────
        inputs = [msg, chatbot, session_state, language_dropdown]
        outputs = [chatbot, session_state, status_display, language_display, phase_display, worker_display, msg]

        msg.submit(respond, inputs=inputs, outputs=outputs).then(refresh_gateway, outputs=gateway_display)
        send_btn.click(respond, inputs=inputs, outputs=outputs).then(refresh_gateway, outputs=gateway_display)
        refresh_btn.click(refresh_gateway, outputs=gateway_display)

        clear_btn.click(
            reset_conversation,
            inputs=[session_state],
            outputs=[chatbot, session_state, status_display, language_display, phase_display, worker_display],
        )

    return app


# ── Entry Point ────────────────────────────────────────────────────────────

if __name__ == "__main__":
    logging.basicConfig(
        level=config.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = create_app()
    app.launch(
        server_name="0.0.0.0",
        server_port=8000,
        share=False,
        show_error=True,
    )
