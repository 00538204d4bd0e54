"""
Chat directory: direct and group chats and their membership.

Every operation returns an expanded record, i.e. a response model with the
participants, the group admin and the latest message (with its sender)
resolved instead of bare ids.

Direct chats are unique per unordered pair of users. The pair is stored as a
sorted ``direct_key`` under a unique constraint, so two concurrent
``access_chat`` calls cannot both create a chat: the loser hits the
constraint and returns the winner's chat.
"""
import logging
from typing import Iterable, List, Optional, Union

from tortoise.exceptions import BaseORMException, IntegrityError
from tortoise.transactions import in_transaction

from chat_backend.exceptions import CreationFailed, InvalidInput, NotFound, NotProvided
from chat_backend.models import Chat, ChatParticipant, Message, User
from chat_backend.schemas import DirectChatOut, GroupChatOut, LatestMessageOut, UserOut

logger = logging.getLogger(__name__)

ChatRecord = Union[DirectChatOut, GroupChatOut]


def direct_key(user_a: int, user_b: int) -> str:
    low, high = sorted((int(user_a), int(user_b)))
    return f"{low}:{high}"


async def chat_users(chat_id: int) -> List[User]:
    """Participants of a chat in join order."""
    memberships = await ChatParticipant.filter(chat_id=chat_id).order_by("id").prefetch_related("user")
    return [m.user for m in memberships]


async def expand_chat(chat: Chat) -> ChatRecord:
    users = [UserOut.model_validate(u) for u in await chat_users(chat.id)]

    latest_message = None
    if chat.latest_message_id:
        message = await Message.filter(id=chat.latest_message_id).prefetch_related("sender").first()
        if message:
            latest_message = LatestMessageOut(
                id=message.id,
                sender=UserOut.model_validate(message.sender),
                content=message.content,
                created_at=message.created_at,
            )

    common = dict(
        id=chat.id,
        users=users,
        latest_message=latest_message,
        created_at=chat.created_at,
        updated_at=chat.updated_at,
    )
    if not chat.is_group_chat:
        return DirectChatOut(**common)

    group_admin = None
    if chat.group_admin_id:
        admin = next((u for u in users if u.id == chat.group_admin_id), None)
        if admin is None:
            admin_user = await User.filter(id=chat.group_admin_id).first()
            admin = UserOut.model_validate(admin_user) if admin_user else None
        group_admin = admin
    return GroupChatOut(chat_name=chat.chat_name or "", group_admin=group_admin, **common)


async def _get_group_chat(chat_id: int) -> Chat:
    chat = await Chat.filter(id=chat_id, is_group_chat=True).first() if chat_id else None
    if not chat:
        raise NotFound(f"Chat not found with id: {chat_id}")
    return chat


async def _require_users(user_ids: Iterable[int]) -> None:
    user_ids = list(user_ids)
    found = set(await User.filter(id__in=user_ids).values_list("id", flat=True))
    missing = [uid for uid in user_ids if uid not in found]
    if missing:
        raise NotFound(f"User not found with id: {', '.join(str(uid) for uid in missing)}")


async def access_chat(requester_id: int, target_id: Optional[int]) -> DirectChatOut:
    """Return the direct chat between the two users, creating it on first contact."""
    if not target_id:
        raise NotProvided("No user ID is provided")
    if int(target_id) == int(requester_id):
        raise InvalidInput("Cannot start a chat with yourself")

    key = direct_key(requester_id, target_id)
    chat = await Chat.filter(direct_key=key).first()
    if chat:
        return await expand_chat(chat)

    await _require_users([target_id])
    try:
        async with in_transaction():
            chat = await Chat.create(is_group_chat=False, direct_key=key)
            await ChatParticipant.create(chat=chat, user_id=requester_id)
            await ChatParticipant.create(chat=chat, user_id=target_id)
    except IntegrityError:
        chat = await Chat.filter(direct_key=key).first()
        if not chat:
            raise CreationFailed("Failed to create chat")
        logger.info(f"Direct chat {key} created concurrently, using ID={chat.id}")
    except BaseORMException as e:
        logger.error(f"Direct chat creation failed for {key}: {str(e)}", exc_info=True)
        raise CreationFailed(str(e)) from e
    else:
        logger.info(f"Direct chat created: ID={chat.id}, users={key}")
    return await expand_chat(chat)


async def fetch_chats(user_id: int) -> List[ChatRecord]:
    chats = await Chat.filter(participants__user_id=user_id).order_by("-updated_at", "-id")
    return [await expand_chat(chat) for chat in chats]


async def create_group_chat(name: str, member_ids: Optional[List[int]], creator_id: int) -> GroupChatOut:
    name = (name or "").strip()
    if not name or member_ids is None:
        raise InvalidInput("Please provide all the required fields")

    # fresh list, the caller's is left alone
    members = list(dict.fromkeys(int(uid) for uid in member_ids))
    if len(members) < 2:
        raise InvalidInput("Please provide at least two users to create a group chat")
    if creator_id not in members:
        members.append(creator_id)

    await _require_users(members)
    try:
        async with in_transaction():
            chat = await Chat.create(chat_name=name, is_group_chat=True, group_admin_id=creator_id)
            for uid in members:
                await ChatParticipant.create(chat=chat, user_id=uid)
    except BaseORMException as e:
        logger.error(f"Group chat creation failed: {str(e)}", exc_info=True)
        raise CreationFailed(str(e)) from e

    logger.info(f"Group chat created: ID={chat.id}, name={name}, members={members}")
    return await expand_chat(chat)


async def rename_group_chat(chat_id: int, chat_name: str) -> GroupChatOut:
    chat_name = (chat_name or "").strip()
    if not chat_name:
        raise InvalidInput("Chat name is required")
    chat = await _get_group_chat(chat_id)
    chat.chat_name = chat_name
    await chat.save(update_fields=["chat_name", "updated_at"])
    await chat.refresh_from_db()
    logger.info(f"Group chat renamed: ID={chat.id}, name={chat_name}")
    return await expand_chat(chat)


async def add_participant(chat_id: int, user_id: int) -> GroupChatOut:
    chat = await _get_group_chat(chat_id)
    await _require_users([user_id])
    _, created = await ChatParticipant.get_or_create(chat=chat, user_id=user_id)
    if created:
        await chat.save(update_fields=["updated_at"])
        await chat.refresh_from_db()
        logger.info(f"User {user_id} added to group chat {chat.id}")
    else:
        logger.info(f"User {user_id} already in group chat {chat.id}")
    return await expand_chat(chat)


async def remove_participant(chat_id: int, user_id: int) -> GroupChatOut:
    chat = await _get_group_chat(chat_id)
    removed = await ChatParticipant.filter(chat_id=chat.id, user_id=user_id).delete()
    update_fields = ["updated_at"]
    if chat.group_admin_id == user_id:
        successor = await ChatParticipant.filter(chat_id=chat.id).order_by("id").first()
        if successor:
            chat.group_admin_id = successor.user_id
            update_fields.append("group_admin_id")
            logger.info(f"Admin of group chat {chat.id} passed to user {successor.user_id}")
    # only the columns changed here; other requests may have written the rest
    await chat.save(update_fields=update_fields)
    await chat.refresh_from_db()
    logger.info(f"User {user_id} removed from group chat {chat.id} ({removed} membership(s))")
    return await expand_chat(chat)
