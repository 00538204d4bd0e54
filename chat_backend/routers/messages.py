"""Message routes."""
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException

from chat_backend.auth import get_current_user
from chat_backend.exceptions import ChatBackendError
from chat_backend.models import User
from chat_backend.schemas import MessageCreate, MessageOut
from chat_backend.services import messages as message_service

router = APIRouter(prefix="/api/message", tags=["messages"])
logger = logging.getLogger(__name__)


@router.post("", response_model=MessageOut, status_code=201)
async def send_message(payload: MessageCreate, current_user: User = Depends(get_current_user)):
    try:
        return await message_service.create_message(payload.content, payload.chat_id, current_user.id)
    except ChatBackendError as e:
        logger.error(f"Send message failed for user ID={current_user.id}: {e.message}")
        raise HTTPException(status_code=400, detail=e.message)


@router.get("/{chat_id}", response_model=List[MessageOut])
async def all_messages(chat_id: int, current_user: User = Depends(get_current_user)):
    try:
        return await message_service.list_messages(chat_id)
    except ChatBackendError as e:
        raise HTTPException(status_code=400, detail=e.message)
