# backend/app/api/routes_messages.py

from typing import List

from fastapi import APIRouter, Depends, HTTPException

from app.core.errors import NotFoundError
from app.models.conversation_models import Message, SendMessageIn
from app.services.conversation_service import ConversationService, get_conversation_service

router = APIRouter(prefix="/conversations", tags=["messages"])


# -----------------------------
# Message history, oldest first
# -----------------------------
@router.get("/{conversation_id}/messages", response_model=List[Message])
def get_messages(conversation_id: str, service: ConversationService = Depends(get_conversation_service)):
    try:
        return service.list_messages(conversation_id)
    except NotFoundError:
        raise HTTPException(404, "Conversation not found")


# -----------------------------
# Send a message, wait for the full agent turn
# -----------------------------
@router.post("/{conversation_id}/messages", response_model=Message, status_code=201)
async def send_message(
    conversation_id: str,
    req: SendMessageIn,
    service: ConversationService = Depends(get_conversation_service),
):
    """
    Runs one agent turn and returns the stored assistant message.
    Agent transport failures are turned into a 500 by the app-level handler.
    """
    try:
        return await service.send_message(conversation_id, req.content)
    except NotFoundError:
        raise HTTPException(404, "Conversation not found")
