"""
Realtime relay for live message delivery and typing indicators.

Clients talk to the relay over a websocket using JSON frames of the form
``{"event": <name>, "data": <payload>}``.

Client to server:
    setup         data is the user object; joins the user's personal room
    join chat     data is a chat id; joins that chat's room
    typing        data is a chat id; tells the rest of the room
    stop typing   data is a chat id; tells the rest of the room
    new message   data is a message as returned by POST /api/message

Server to client:
    connected         acknowledgement of setup
    typing            data is the chat id
    stop typing       data is the chat id
    message received  data is the message

Rooms live in memory for the lifetime of a connection; nothing is queued for
users who are offline.
"""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional, Protocol, Set

logger = logging.getLogger(__name__)


class Connection(Protocol):
    async def send_json(self, data: Any) -> None: ...


def user_room(user_id: Any) -> str:
    return f"user:{user_id}"


def chat_room(chat_id: Any) -> str:
    return f"chat:{chat_id}"


class ConnectionManager:
    """Registry of rooms and the connections joined to them.

    Connections are tracked by identity, so any object with an async
    ``send_json`` works, hashable or not.
    """

    def __init__(self):
        self._rooms: Dict[str, Dict[int, Connection]] = {}
        self._memberships: Dict[int, Set[str]] = {}
        self._lock = asyncio.Lock()

    async def join(self, connection: Connection, room: str) -> None:
        async with self._lock:
            self._rooms.setdefault(room, {})[id(connection)] = connection
            self._memberships.setdefault(id(connection), set()).add(room)

    async def leave(self, connection: Connection, room: str) -> None:
        async with self._lock:
            self._discard(connection, room)

    async def disconnect(self, connection: Connection) -> None:
        async with self._lock:
            for room in list(self._memberships.get(id(connection), ())):
                self._discard(connection, room)
            self._memberships.pop(id(connection), None)

    def _discard(self, connection: Connection, room: str) -> None:
        members = self._rooms.get(room)
        if members is not None:
            members.pop(id(connection), None)
            if not members:
                del self._rooms[room]
        rooms = self._memberships.get(id(connection))
        if rooms is not None:
            rooms.discard(room)

    # Reads take a copy without the lock: they never await, so on the single
    # event loop no mutation can interleave with them.
    def rooms_of(self, connection: Connection) -> Set[str]:
        return set(self._memberships.get(id(connection), ()))

    def members(self, room: str) -> List[Connection]:
        return list(self._rooms.get(room, {}).values())

    async def send(self, connection: Connection, event: str, data: Any = None) -> bool:
        frame = {"event": event} if data is None else {"event": event, "data": data}
        try:
            await connection.send_json(frame)
            return True
        except Exception as e:
            logger.error(f"Failed to deliver '{event}': {str(e)}")
            return False

    async def broadcast(self, room: str, event: str, data: Any = None, exclude: Optional[Connection] = None) -> int:
        """Send to every connection in ``room`` except ``exclude``; returns how many were reached."""
        async with self._lock:
            targets = [c for c in self._rooms.get(room, {}).values() if c is not exclude]
        delivered = 0
        for connection in targets:
            if await self.send(connection, event, data):
                delivered += 1
        return delivered


class ChatRelay:
    """Dispatches client events and fans them out through a ConnectionManager."""

    def __init__(self, manager: Optional[ConnectionManager] = None):
        self.manager = manager or ConnectionManager()
        self._handlers = {
            "setup": self.setup,
            "join chat": self.join_chat,
            "typing": self.typing,
            "stop typing": self.stop_typing,
            "new message": self.new_message,
        }

    async def dispatch(self, connection: Connection, raw: str) -> None:
        """Handle one frame from a client. Bad frames are logged and dropped."""
        try:
            frame = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("Dropping frame that is not valid JSON")
            return
        if not isinstance(frame, dict) or not isinstance(frame.get("event"), str):
            logger.warning("Dropping frame without an event name")
            return

        handler = self._handlers.get(frame["event"])
        if handler is None:
            logger.warning(f"Dropping unknown event '{frame['event']}'")
            return
        try:
            await handler(connection, frame.get("data"))
        except Exception as e:
            logger.error(f"Event '{frame['event']}' failed: {str(e)}", exc_info=True)

    async def setup(self, connection: Connection, user: Any) -> None:
        user_id = user.get("id") if isinstance(user, dict) else None
        if user_id is None:
            logger.warning("Dropping setup without a user id")
            return
        await self.manager.join(connection, user_room(user_id))
        await self.manager.send(connection, "connected")
        logger.info(f"User {user_id} connected to relay")

    async def join_chat(self, connection: Connection, chat_id: Any) -> None:
        if chat_id is None or chat_id == "":
            logger.warning("Dropping join chat without a chat id")
            return
        await self.manager.join(connection, chat_room(chat_id))

    async def typing(self, connection: Connection, chat_id: Any) -> None:
        if chat_id is not None:
            await self.manager.broadcast(chat_room(chat_id), "typing", chat_id, exclude=connection)

    async def stop_typing(self, connection: Connection, chat_id: Any) -> None:
        if chat_id is not None:
            await self.manager.broadcast(chat_room(chat_id), "stop typing", chat_id, exclude=connection)

    async def new_message(self, connection: Connection, message: Any) -> None:
        """Deliver ``message`` to the personal room of each chat member except the sender."""
        if not isinstance(message, dict):
            logger.warning("Dropping new message that is not an object")
            return
        chat = message.get("chat")
        users = chat.get("users") if isinstance(chat, dict) else None
        if not users:
            logger.info("Chat users not available, message not relayed")
            return

        sender = message.get("sender")
        sender_id = sender.get("id") if isinstance(sender, dict) else sender
        for user in users:
            user_id = user.get("id") if isinstance(user, dict) else user
            if user_id is None or str(user_id) == str(sender_id):
                continue
            await self.manager.broadcast(user_room(user_id), "message received", message, exclude=connection)

    async def disconnect(self, connection: Connection) -> None:
        await self.manager.disconnect(connection)
