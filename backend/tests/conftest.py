from __future__ import annotations

import pytest

from app.agents.agent_bridge import TurnResult
from app.db.sqlite_store import SQLiteConversationStore
from app.services.conversation_service import ConversationService


class FakeBridge:
    """Stands in for AgentSessionBridge; records calls and replays a canned turn."""

    def __init__(self):
        self.result = TurnResult(response_text="Sure, let's get started.")
        self.error: Exception | None = None
        self.calls: list[tuple] = []

    async def run_turn(self, conversation_id, user_message, existing_session_id=None):
        self.calls.append((conversation_id, user_message, existing_session_id))
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def store(tmp_path):
    s = SQLiteConversationStore(tmp_path / "agent.db")
    yield s
    s.close()


@pytest.fixture
def fake_bridge():
    return FakeBridge()


@pytest.fixture
def service(store, fake_bridge):
    return ConversationService(store, fake_bridge)
