from datetime import datetime, timedelta, timezone
import logging

import bcrypt
import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from chat_backend import config
from chat_backend.exceptions import Unauthorized
from chat_backend.models import User

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=config.BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode(), salt).decode()


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode(), password_hash.encode())
    except ValueError:
        # stored value is not a bcrypt hash
        return False


def create_token(user_id: int, expires_in: timedelta | None = None) -> str:
    expires_in = expires_in or timedelta(days=config.TOKEN_EXPIRY_DAYS)
    now = datetime.now(timezone.utc)
    payload = {"sub": str(user_id), "iat": now, "exp": now + expires_in}
    return jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def decode_token(token: str) -> int:
    """Return the user id bound to ``token``; raises Unauthorized if it is invalid or expired."""
    try:
        payload = jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
        return int(payload["sub"])
    except jwt.ExpiredSignatureError:
        raise Unauthorized("Token expired")
    except (jwt.InvalidTokenError, KeyError, ValueError):
        raise Unauthorized("Invalid token")


async def get_current_user(credentials: HTTPAuthorizationCredentials | None = Depends(security)) -> User:
    """FastAPI dependency resolving the bearer token to the calling user."""
    if not credentials or not credentials.credentials:
        logger.warning("Rejected request without bearer token")
        raise HTTPException(status_code=401, detail="Not authorized, no token")
    try:
        user_id = decode_token(credentials.credentials)
    except Unauthorized as e:
        logger.warning(f"Token verification failed: {e.message}")
        raise HTTPException(status_code=401, detail=f"Not authorized, {e.message.lower()}")
    user = await User.filter(id=user_id).first()
    if not user:
        logger.warning(f"Token refers to missing user ID={user_id}")
        raise HTTPException(status_code=401, detail="Not authorized, user not found")
    return user
