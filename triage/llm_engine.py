"""
LLM Engine — free-form replies through the Model Gateway.

Used for turns that no template or assessment flow covers:
  - System prompt and per-turn context prompt construction
  - Structured JSON reply contract
  - Parsing with an explicit unstructured-text fallback
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Optional

import config
from triage.model_gateway import GenerationOptions, ModelGateway, Prompt
from triage.models import Role, Session
from triage.responses import EMERGENCY_NOTICE

logger = logging.getLogger(__name__)


# ── System Prompt ──────────────────────────────────────────────────────────

SYSTEM_PROMPT = """You are a multilingual public-health assistant for rural and semi-urban communities.
You are empathetic, clear, and careful.

## YOUR ROLE
1. Answer general health, hygiene, nutrition and vaccination questions in simple language
2. Ask one clarifying question when the user's concern is vague
3. Point the user to a health worker or health center when in doubt

## SAFETY RULES (NEVER VIOLATE)
- You are NOT a doctor. NEVER diagnose conditions or prescribe medicines or doses.
- If the user mentions chest pain, difficulty breathing, loss of consciousness,
  severe bleeding, stroke symptoms, seizures, poisoning, or suicidal thoughts,
  set "is_emergency" to true and advise calling 108 immediately.
- Keep answers short: at most 5 sentences or 5 bullet points.

## RESPONSE FORMAT
You MUST respond with ONLY a valid JSON object (no markdown fences, no extra text). Schema:
{
  "response": "Your message to the user (markdown allowed)",
  "follow_up_question": "One short clarifying question, or null",
  "is_emergency": true | false,
  "topics": ["short topic tags"]
}
"""


# ── Context Prompt Builder ─────────────────────────────────────────────────

def build_context_prompt(session: Session, user_message: str, history_size: int = 10) -> str:
    """Build a context-aware prompt for the current conversation turn."""
    history_str = ""
    # The latest user turn is passed separately
    previous = session.turns[:-1] if session.turns and session.turns[-1].role == Role.USER else session.turns
    for turn in previous[-history_size:]:
        speaker = "User" if turn.role == Role.USER else "Assistant"
        history_str += f"{speaker}: {turn.content}\n"

    seen = ", ".join(f"{e.type}={e.value}" for e in session.context.entities) or "None yet"

    return f"""## CURRENT CONVERSATION CONTEXT
- **Current Intent**: {session.context.current_intent or 'unknown'}
- **Known Details**: {seen}

## CONVERSATION HISTORY
{history_str if history_str else '(This is the start of the conversation)'}

## LATEST USER MESSAGE
User: {user_message}

Respond with ONLY a valid JSON object."""


@dataclass(frozen=True)
class Reply:
    text: str
    follow_up_question: Optional[str] = None
    is_emergency: bool = False
    structured: bool = True
    model_used: str = ""


class LLMEngine:
    """Generates free-form replies; gateway exhaustion propagates to the caller."""

    def __init__(self, gateway: ModelGateway):
        self.gateway = gateway

    def generate(self, session: Session, user_message: str) -> Reply:
        prompt = build_context_prompt(session, user_message)
        result = self.gateway.generate(
            Prompt(text=prompt),
            GenerationOptions(
                system_instruction=SYSTEM_PROMPT,
                response_mime_type="application/json",
                max_tokens=config.MAX_OUTPUT_TOKENS,
            ),
        )
        reply = self.parse_reply(result.text)
        logger.info(
            "[LLM] Reply from %s after %d attempt(s), structured=%s",
            result.model_used, result.attempt_count, reply.structured,
        )
        return Reply(
            text=reply.text,
            follow_up_question=reply.follow_up_question,
            is_emergency=reply.is_emergency,
            structured=reply.structured,
            model_used=result.model_used,
        )

    @classmethod
    def parse_reply(cls, raw_text: str) -> Reply:
        """Parse the model's JSON reply; unparseable output is used as plain text."""
        parsed = cls._extract_json(raw_text)

        if parsed is None:
            logger.warning("[LLM] Reply was not valid JSON, using it as plain text: %s", raw_text[:200])
            return Reply(text=raw_text.strip(), structured=False)

        response_text = parsed.get("response")
        is_emergency = bool(parsed.get("is_emergency", False))
        follow_up = parsed.get("follow_up_question") or None

        if not isinstance(response_text, str) or not response_text.strip() or cls._looks_like_json(response_text):
            # Never show raw JSON to the user
            logger.warning("[LLM] JSON reply had no usable 'response' field")
            if is_emergency:
                response_text = EMERGENCY_NOTICE
            else:
                response_text = (
                    "Thank you for sharing. Could you tell me a little more "
                    "so I can better assist you?"
                )

        text = response_text.strip()
        if is_emergency and EMERGENCY_NOTICE not in text:
            text = f"{text}\n\n{EMERGENCY_NOTICE}"
        if follow_up and follow_up not in text:
            text = f"{text}\n\n{follow_up}"

        return Reply(
            text=text,
            follow_up_question=follow_up,
            is_emergency=is_emergency,
            structured=True,
        )

    @staticmethod
    def _extract_json(raw_text: str) -> Optional[dict]:
        candidates = [raw_text]

        fenced = re.search(r"```(?:json)?\s*(\{.*?\})\s*```", raw_text, re.DOTALL)
        if fenced:
            candidates.append(fenced.group(1))

        braces = re.search(r"\{.*\}", raw_text, re.DOTALL)
        if braces:
            candidates.append(braces.group(0))

        for candidate in candidates:
            try:
                parsed = json.loads(candidate)
            except (json.JSONDecodeError, TypeError):
                continue
            if isinstance(parsed, dict):
                return parsed
        return None

    @staticmethod
    def _looks_like_json(text: str) -> bool:
        """Check if a string looks like raw JSON (should never be shown to user)."""
        stripped = text.strip()
        if stripped.startswith(("{", "[")):
            try:
                json.loads(stripped)
                return True
            except (json.JSONDecodeError, TypeError):
                pass
        json_patterns = ['"response":', '"follow_up_question":', '"is_emergency":', '"topics":']
        return sum(1 for p in json_patterns if p in stripped) >= 2
