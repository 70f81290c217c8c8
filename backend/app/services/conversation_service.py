# backend/app/services/conversation_service.py

from functools import lru_cache
from typing import List, Optional
from uuid import uuid4

from app.agents.agent_bridge import AgentConfig, AgentSessionBridge
from app.core.config_loader import settings
from app.core.errors import NotFoundError
from app.core.logger import logger
from app.db.sqlite_store import SQLiteConversationStore
from app.models.conversation_models import Conversation, Message, Role
from app.models.metadata_models import parse_metadata


TITLE_MAX_LENGTH = 60


def title_from_message(content: str) -> str:
    content = content.strip()
    if len(content) > TITLE_MAX_LENGTH:
        return content[:TITLE_MAX_LENGTH - 3] + "..."
    return content


class ConversationService:
    """Sends user messages through the agent and records both sides of the turn."""

    def __init__(self, store: SQLiteConversationStore, bridge: AgentSessionBridge):
        self.store = store
        self.bridge = bridge

    # --------------------------
    # Conversations
    # --------------------------
    def create_conversation(self, title: Optional[str] = None, conversation_id: Optional[str] = None) -> Conversation:
        return self.store.create_conversation(conversation_id or str(uuid4()), title)

    def list_conversations(self) -> List[Conversation]:
        return self.store.list_active_conversations()

    def get_conversation(self, conversation_id: str) -> Conversation:
        conversation = self.store.get_conversation(conversation_id)
        if conversation is None:
            raise NotFoundError("Conversation", conversation_id)
        return conversation

    def rename_conversation(self, conversation_id: str, title: str) -> Conversation:
        if not self.store.set_conversation_title(conversation_id, title):
            raise NotFoundError("Conversation", conversation_id)
        return self.get_conversation(conversation_id)

    def delete_conversation(self, conversation_id: str) -> None:
        if not self.store.delete_conversation(conversation_id):
            raise NotFoundError("Conversation", conversation_id)
        logger.info(f"Deleted conversation {conversation_id}")

    # --------------------------
    # Messages
    # --------------------------
    def list_messages(self, conversation_id: str) -> List[Message]:
        self.get_conversation(conversation_id)
        return self.store.list_messages(conversation_id)

    async def send_message(self, conversation_id: str, user_text: str) -> Message:
        """
        Run one turn: store the user message, ask the agent, store its reply.

        If the agent call raises, the user message stays stored without a
        reply and the error propagates. Retrying stores a new user message.
        """
        conversation = self.get_conversation(conversation_id)
        content = user_text.strip()

        self.store.create_message(str(uuid4()), conversation_id, Role.USER, content)

        logger.info(f"Processing message for conversation {conversation_id}")
        turn = await self.bridge.run_turn(conversation_id, content, conversation.agent_session_id)

        # One metadata object per stored message: keep the first proposal.
        metadata = None
        if turn.metadata_items:
            metadata = parse_metadata(turn.metadata_items[0])
            if len(turn.metadata_items) > 1:
                dropped = [item.get("type") for item in turn.metadata_items[1:]]
                logger.warning(
                    f"Turn for conversation {conversation_id} produced {len(turn.metadata_items)} "
                    f"metadata items; storing the first, dropping {dropped}"
                )

        assistant_message = self.store.create_message(
            str(uuid4()), conversation_id, Role.ASSISTANT, turn.response_text, metadata
        )

        if turn.new_session_id:
            self.store.update_agent_session_id(conversation_id, turn.new_session_id)

        if not conversation.title:
            self.store.set_conversation_title(conversation_id, title_from_message(content))

        logger.info(f"Agent responded for conversation {conversation_id}")
        return assistant_message


@lru_cache(maxsize=1)
def get_conversation_service() -> ConversationService:
    store = SQLiteConversationStore(settings.db_path)
    bridge = AgentSessionBridge(AgentConfig.from_settings(settings))
    return ConversationService(store, bridge)
