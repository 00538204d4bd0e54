"""Registration, login, user search and profile routes."""
import logging
import os
import uuid
from pathlib import Path
from typing import List, Optional

import aiofiles
from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from chat_backend import config
from chat_backend.auth import get_current_user
from chat_backend.exceptions import ChatBackendError
from chat_backend.models import User
from chat_backend.schemas import AuthOut, LoginRequest, PasswordChange, UserCreate, UserOut
from chat_backend.services import users as user_service

router = APIRouter(prefix="/api/user", tags=["users"])
logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = {"jpg", "jpeg", "png", "gif", "webp"}


@router.post("", response_model=AuthOut, status_code=201)
async def register(payload: UserCreate):
    try:
        return await user_service.register_user(payload.name, payload.email, payload.password, payload.picture)
    except ChatBackendError as e:
        logger.error(f"User registration failed: {e.message}")
        raise HTTPException(status_code=400, detail=e.message)


@router.post("/login", response_model=AuthOut)
async def login(payload: LoginRequest):
    try:
        return await user_service.authenticate_user(payload.email, payload.password)
    except ChatBackendError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("", response_model=List[UserOut])
async def search_users(search: Optional[str] = None, current_user: User = Depends(get_current_user)):
    try:
        return await user_service.search_users(search, exclude_user_id=current_user.id)
    except ChatBackendError as e:
        logger.error(f"User search failed: {e.message}")
        raise HTTPException(status_code=400, detail=e.message)


@router.put("/password")
async def change_password(payload: PasswordChange, current_user: User = Depends(get_current_user)):
    try:
        await user_service.change_password(current_user.id, payload.old_password, payload.new_password)
    except ChatBackendError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return {"message": "Password changed"}


@router.post("/picture", response_model=UserOut)
async def upload_picture(file: UploadFile = File(...), current_user: User = Depends(get_current_user)):
    file_extension = (file.filename or "").rsplit(".", 1)[-1].lower()
    if file_extension not in IMAGE_EXTENSIONS:
        raise HTTPException(status_code=400, detail="Picture must be an image")
    file_name = f"{uuid.uuid4()}.{file_extension}"
    file_path = Path(config.UPLOAD_DIR) / file_name
    try:
        os.makedirs(config.UPLOAD_DIR, exist_ok=True)
        async with aiofiles.open(file_path, "wb") as f:
            await f.write(await file.read())
    except OSError as e:
        logger.error(f"Picture upload failed: {str(e)}")
        raise HTTPException(status_code=400, detail="Picture upload failed")
    logger.info(f"Picture stored for user ID={current_user.id}: {file_name}")
    return await user_service.update_picture(current_user.id, f"/uploads/{file_name}")
