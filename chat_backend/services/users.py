"""Identity store: registration, credential checks and user lookup."""
import asyncio
import logging
from typing import List, Optional

from tortoise.exceptions import BaseORMException, IntegrityError
from tortoise.expressions import Q

from chat_backend.auth import create_token, hash_password, verify_password
from chat_backend.exceptions import Conflict, CreationFailed, InvalidInput, NotFound, PersistenceError, Unauthorized
from chat_backend.models import User
from chat_backend.schemas import AuthOut, UserOut

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def to_auth_out(user: User) -> AuthOut:
    return AuthOut(
        id=user.id,
        name=user.name,
        email=user.email,
        picture=user.picture,
        token=create_token(user.id),
    )


async def get_user_by_email(email: str) -> Optional[User]:
    return await User.filter(email=normalize_email(email)).first()


async def register_user(name: str, email: str, password: str, picture: Optional[str] = None) -> AuthOut:
    name, email = (name or "").strip(), normalize_email(email or "")
    if not name or not email or not password:
        raise InvalidInput("Please fill all the fields")

    if await get_user_by_email(email):
        logger.warning(f"Registration rejected, email already in use: {email}")
        raise Conflict("User already exists")

    password_hash = await asyncio.to_thread(hash_password, password)
    fields = {"name": name, "email": email, "password": password_hash}
    if picture:
        fields["picture"] = picture
    try:
        user = await User.create(**fields)
    except IntegrityError:
        # lost a race against another registration with the same email
        raise Conflict("User already exists")
    except BaseORMException as e:
        logger.error(f"Failed to create user {email}: {str(e)}", exc_info=True)
        raise CreationFailed("Failed to create user") from e

    logger.info(f"User registered: ID={user.id}, email={user.email}")
    return to_auth_out(user)


async def authenticate_user(email: str, password: str) -> AuthOut:
    if not email or not password:
        raise InvalidInput("Please provide email and password")
    user = await get_user_by_email(email)
    if not user or not await asyncio.to_thread(verify_password, password, user.password):
        logger.info(f"Login failed for {email}")
        raise Unauthorized("Invalid email or password")
    logger.info(f"Login succeeded: ID={user.id}")
    return to_auth_out(user)


async def search_users(search: Optional[str], exclude_user_id: Optional[int] = None) -> List[UserOut]:
    """Users whose name or email contains ``search`` (case-insensitive); everyone when empty."""
    query = User.all()
    if search:
        query = query.filter(Q(name__icontains=search) | Q(email__icontains=search))
    if exclude_user_id is not None:
        query = query.exclude(id=exclude_user_id)
    try:
        users = await query.order_by("name", "id")
    except BaseORMException as e:
        raise PersistenceError("Failed to fetch users") from e
    return [UserOut.model_validate(u) for u in users]


async def change_password(user_id: int, old_password: str, new_password: str) -> None:
    if not new_password:
        raise InvalidInput("New password is required")
    user = await User.filter(id=user_id).first()
    if not user:
        raise NotFound("User not found")
    if not await asyncio.to_thread(verify_password, old_password, user.password):
        logger.info(f"Password change rejected for ID={user_id}")
        raise Unauthorized("Invalid credentials")
    user.password = await asyncio.to_thread(hash_password, new_password)
    await user.save(update_fields=["password", "updated_at"])
    logger.info(f"Password changed: ID={user_id}")


async def update_picture(user_id: int, picture: str) -> UserOut:
    user = await User.filter(id=user_id).first()
    if not user:
        raise NotFound("User not found")
    user.picture = picture
    await user.save(update_fields=["picture", "updated_at"])
    return UserOut.model_validate(user)
