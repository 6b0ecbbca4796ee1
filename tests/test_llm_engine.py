"""
Tests for the LLM reply engine.
"""

import pytest

from conftest import MODELS, FakeProvider, ProviderError
from triage.errors import ModelGatewayExhausted
from triage.languages import Language
from triage.llm_engine import LLMEngine, build_context_prompt
from triage.model_gateway import ModelGateway
from triage.models import Role, Session, Turn
from triage.responses import EMERGENCY_NOTICE


class TestParseReply:
    """Tests for turning raw model output into a reply."""

    def test_plain_json(self):
        reply = LLMEngine.parse_reply(
            '{"response": "Rest well.", "follow_up_question": "Any fever?", "is_emergency": false}'
        )
        assert reply.structured
        assert reply.text == "Rest well.\n\nAny fever?"
        assert reply.follow_up_question == "Any fever?"

    def test_fenced_json(self):
        raw = 'Here you go:\n```json\n{"response": "Drink fluids.", "is_emergency": false}\n```'
        assert LLMEngine.parse_reply(raw).text == "Drink fluids."

    def test_plain_text_is_used_as_is(self):
        reply = LLMEngine.parse_reply("  Please rest and drink water.  ")
        assert not reply.structured
        assert reply.text == "Please rest and drink water."

    def test_emergency_adds_notice(self):
        reply = LLMEngine.parse_reply('{"response": "Go to a hospital.", "is_emergency": true}')
        assert reply.is_emergency
        assert reply.text.endswith(EMERGENCY_NOTICE)

    def test_missing_response_never_shows_json(self):
        reply = LLMEngine.parse_reply('{"follow_up_question": null, "is_emergency": false}')
        assert "{" not in reply.text
        assert reply.text.startswith("Thank you for sharing")

    def test_nested_json_response_is_replaced(self):
        reply = LLMEngine.parse_reply('{"response": "{\\"response\\": \\"x\\", \\"topics\\": []}"}')
        assert "{" not in reply.text

    def test_missing_response_on_emergency(self):
        reply = LLMEngine.parse_reply('{"is_emergency": true}')
        assert reply.text == EMERGENCY_NOTICE


class TestGenerate:
    """Tests for generation through the gateway."""

    def test_generate_uses_json_mode(self, gateway, provider):
        session = Session(user_id="user-1")
        session.append_turn(Turn(session.id, Role.USER, "what should I eat", Language.ENGLISH))

        reply = LLMEngine(gateway).generate(session, "what should I eat")

        assert reply.text == "Drink plenty of clean water and rest."
        assert reply.model_used == "model-a"
        _, prompt, options = provider.calls[0]
        assert options.response_mime_type == "application/json"
        assert "health" in options.system_instruction.lower()
        assert "User: what should I eat" in prompt.text

    def test_exhaustion_propagates(self):
        gw = ModelGateway(
            FakeProvider(default=ProviderError("down", code=500)),
            models=MODELS, retry_delay=0, sleep=lambda s: None,
        )
        try:
            with pytest.raises(ModelGatewayExhausted):
                LLMEngine(gw).generate(Session(user_id="user-1"), "hello")
        finally:
            gw.close()


class TestContextPrompt:
    """Tests for the per-turn prompt."""

    def test_history_excludes_latest_user_turn(self):
        session = Session(user_id="user-1")
        session.append_turn(Turn(session.id, Role.USER, "hi", Language.ENGLISH))
        session.append_turn(Turn(session.id, Role.ASSISTANT, "Hello!", Language.ENGLISH))
        session.append_turn(Turn(session.id, Role.USER, "my knee hurts", Language.ENGLISH))

        prompt = build_context_prompt(session, "my knee hurts")

        assert "User: hi\nAssistant: Hello!" in prompt
        assert prompt.count("my knee hurts") == 1

    def test_start_of_conversation(self):
        prompt = build_context_prompt(Session(user_id="user-1"), "hello")
        assert "(This is the start of the conversation)" in prompt
        assert "None yet" in prompt
