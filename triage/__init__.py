"""
Triage package — Multilingual Health-Triage Conversation Core.

Only leaf modules are re-exported here; import services such as
``triage.session_manager`` directly.
"""

from triage.languages import Language
from triage.states import SessionStatus

__all__ = ["Language", "SessionStatus"]
