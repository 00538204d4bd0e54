"""Message log: appending messages to a chat and reading them back."""
import logging
from typing import List

from tortoise.exceptions import BaseORMException
from tortoise.transactions import in_transaction

from chat_backend.exceptions import InvalidInput, NotFound, PersistenceError
from chat_backend.models import Chat, ChatParticipant, Message
from chat_backend.schemas import MessageChatOut, MessageOut, UserOut
from chat_backend.services.chats import chat_users

logger = logging.getLogger(__name__)


async def _message_chat(chat: Chat) -> MessageChatOut:
    return MessageChatOut(
        id=chat.id,
        is_group_chat=chat.is_group_chat,
        chat_name=chat.chat_name if chat.is_group_chat else None,
        users=[UserOut.model_validate(u) for u in await chat_users(chat.id)],
    )


def _to_out(message: Message, chat: MessageChatOut) -> MessageOut:
    return MessageOut(
        id=message.id,
        sender=UserOut.model_validate(message.sender),
        chat=chat,
        content=message.content,
        created_at=message.created_at,
    )


async def create_message(content: str, chat_id: int, sender_id: int) -> MessageOut:
    """Store a message and make it the chat's latest message."""
    if not content or not content.strip() or not chat_id:
        raise InvalidInput("Content and chatId are required")

    chat = await Chat.filter(id=chat_id).first()
    if not chat:
        raise NotFound(f"Chat not found with id: {chat_id}")
    if not await ChatParticipant.exists(chat_id=chat.id, user_id=sender_id):
        logger.warning(f"User {sender_id} tried to post to chat {chat.id} without being a member")
        raise InvalidInput("You are not a participant of this chat")

    try:
        async with in_transaction():
            message = await Message.create(content=content, chat_id=chat.id, sender_id=sender_id)
            chat.latest_message_id = message.id
            await chat.save(update_fields=["latest_message_id", "updated_at"])
        await message.fetch_related("sender")
        await chat.refresh_from_db()
    except BaseORMException as e:
        logger.error(f"Failed to store message in chat {chat.id}: {str(e)}", exc_info=True)
        raise PersistenceError(str(e)) from e

    logger.info(f"Message stored: ID={message.id}, chat={chat.id}, sender={sender_id}")
    return _to_out(message, await _message_chat(chat))


async def list_messages(chat_id: int) -> List[MessageOut]:
    """All messages of a chat, oldest first."""
    if not chat_id:
        raise InvalidInput("ChatId is required")
    chat = await Chat.filter(id=chat_id).first()
    if not chat:
        raise NotFound(f"Chat not found with id: {chat_id}")
    try:
        messages = await Message.filter(chat_id=chat.id).order_by("created_at", "id").prefetch_related("sender")
    except BaseORMException as e:
        raise PersistenceError(str(e)) from e
    chat_out = await _message_chat(chat)
    return [_to_out(m, chat_out) for m in messages]
