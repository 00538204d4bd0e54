"""Direct and group chat routes."""
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException

from chat_backend.auth import get_current_user
from chat_backend.exceptions import ChatBackendError
from chat_backend.models import User
from chat_backend.schemas import AccessChatRequest, ChatOut, GroupChatOut, GroupCreate, GroupMemberChange, GroupRename
from chat_backend.services import chats as chat_service

router = APIRouter(prefix="/api/chat", tags=["chats"])
logger = logging.getLogger(__name__)


@router.post("", response_model=ChatOut)
async def access_chat(payload: AccessChatRequest, current_user: User = Depends(get_current_user)):
    try:
        return await chat_service.access_chat(current_user.id, payload.user_id)
    except ChatBackendError as e:
        logger.error(f"Access chat failed for user ID={current_user.id}: {e.message}")
        raise HTTPException(status_code=400, detail=e.message)


@router.get("", response_model=List[ChatOut])
async def fetch_chats(current_user: User = Depends(get_current_user)):
    try:
        chats = await chat_service.fetch_chats(current_user.id)
    except ChatBackendError as e:
        raise HTTPException(status_code=400, detail=e.message)
    logger.info(f"Listed chats for user ID={current_user.id}: {len(chats)} chats found")
    return chats


@router.post("/group", response_model=GroupChatOut)
async def create_group_chat(payload: GroupCreate, current_user: User = Depends(get_current_user)):
    try:
        return await chat_service.create_group_chat(payload.name, payload.users, current_user.id)
    except ChatBackendError as e:
        logger.error(f"Group chat creation failed: {e.message}")
        raise HTTPException(status_code=400, detail=e.message)


@router.put("/group/rename", response_model=GroupChatOut)
async def rename_group_chat(payload: GroupRename, current_user: User = Depends(get_current_user)):
    try:
        return await chat_service.rename_group_chat(payload.chat_id, payload.chat_name)
    except ChatBackendError as e:
        raise HTTPException(status_code=400, detail=e.message)


@router.put("/group/add", response_model=GroupChatOut)
async def add_to_group_chat(payload: GroupMemberChange, current_user: User = Depends(get_current_user)):
    try:
        return await chat_service.add_participant(payload.chat_id, payload.user_id)
    except ChatBackendError as e:
        logger.error(f"Add group member failed: {e.message}")
        raise HTTPException(status_code=404, detail=e.message)


@router.delete("/group/remove", response_model=GroupChatOut)
async def remove_from_group_chat(payload: GroupMemberChange, current_user: User = Depends(get_current_user)):
    try:
        return await chat_service.remove_participant(payload.chat_id, payload.user_id)
    except ChatBackendError as e:
        logger.error(f"Remove group member failed: {e.message}")
        raise HTTPException(status_code=404, detail=e.message)
