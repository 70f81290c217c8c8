# backend/app/api/routes_conversation.py

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response

from app.core.errors import NotFoundError
from app.models.conversation_models import Conversation, CreateConversationIn, UpdateTitleIn
from app.services.conversation_service import ConversationService, get_conversation_service

router = APIRouter(prefix="/conversations", tags=["conversations"])


# --------------------------
# List active conversations
# --------------------------
@router.get("", response_model=List[Conversation])
def list_conversations(service: ConversationService = Depends(get_conversation_service)):
    return service.list_conversations()


# --------------------------
# Create conversation
# --------------------------
@router.post("", response_model=Conversation, status_code=201)
def create_conversation(
    data: Optional[CreateConversationIn] = None,
    service: ConversationService = Depends(get_conversation_service),
):
    title = data.title if data else None
    return service.create_conversation(title)


# --------------------------
# Get one conversation
# --------------------------
@router.get("/{conversation_id}", response_model=Conversation)
def get_conversation(conversation_id: str, service: ConversationService = Depends(get_conversation_service)):
    try:
        return service.get_conversation(conversation_id)
    except NotFoundError:
        raise HTTPException(404, "Conversation not found")


# --------------------------
# Update conversation title
# --------------------------
@router.patch("/{conversation_id}/title", response_model=Conversation)
def update_conversation_title(
    conversation_id: str,
    data: UpdateTitleIn,
    service: ConversationService = Depends(get_conversation_service),
):
    try:
        return service.rename_conversation(conversation_id, data.title)
    except NotFoundError:
        raise HTTPException(404, "Conversation not found")


# --------------------------
# Delete conversation
# --------------------------
@router.delete("/{conversation_id}", status_code=204)
def delete_conversation(conversation_id: str, service: ConversationService = Depends(get_conversation_service)):
    try:
        service.delete_conversation(conversation_id)
    except NotFoundError:
        raise HTTPException(404, "Conversation not found")
    return Response(status_code=204)
