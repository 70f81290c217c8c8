# backend/app/models/conversation_models.py

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_serializer, field_validator

from app.models.metadata_models import MessageMetadata, metadata_to_dict


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class ConversationStatus(str, Enum):
    ACTIVE = "active"
    ARCHIVED = "archived"


# --------------------------
# Records
# --------------------------
class Conversation(BaseModel):
    id: str
    title: Optional[str] = None
    agent_session_id: Optional[str] = None
    status: ConversationStatus = ConversationStatus.ACTIVE
    created_at: int
    updated_at: int


class Message(BaseModel):
    id: str
    conversation_id: str
    role: Role
    content: str
    metadata: Optional[MessageMetadata] = None
    created_at: int

    @field_serializer("metadata")
    def _serialize_metadata(self, metadata: Optional[MessageMetadata]) -> Optional[Dict[str, Any]]:
        return metadata_to_dict(metadata) if metadata is not None else None


# --------------------------
# Request bodies
# --------------------------
class CreateConversationIn(BaseModel):
    title: Optional[str] = None


class UpdateTitleIn(BaseModel):
    title: str = Field(min_length=1)


class SendMessageIn(BaseModel):
    content: str

    @field_validator("content")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Message content is required")
        return value.strip()
