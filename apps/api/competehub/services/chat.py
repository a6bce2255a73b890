"""Realtime chat gateway: room subscriptions plus global and room message fan-out."""
from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable

from fastapi import HTTPException
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..schemas import realtime as events
from ..schemas.messages import MessageRead
from ..schemas.users import UserSummary
from . import messages as messages_service
from . import rooms as rooms_service
from .connections import Connection, ConnectionRegistry

logger = logging.getLogger(__name__)

GLOBAL_CHANNEL = "global"

Handler = Callable[[Connection, Any], Awaitable[None]]


def room_channel(room_id: int) -> str:
    return f"room_{room_id}"


def parse_room_id(data: Any) -> int | None:
    """Accept a bare id or an object carrying ``room_id``/``roomId``."""

    if isinstance(data, dict):
        data = data.get("room_id", data.get("roomId"))
    if isinstance(data, bool):
        return None
    if isinstance(data, int):
        return data if data > 0 else None
    if isinstance(data, str) and data.strip().isdigit():
        return int(data) or None
    return None


class ChatGateway:
    """Owns the chat connection registry and the chat event handlers."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        registry: ConnectionRegistry | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.registry = registry or ConnectionRegistry()
        self._handlers: dict[str, Handler] = {
            "join_room": self.join_room,
            "leave_room": self.leave_room,
            "global_message": self.send_global_message,
            "room_message": self.send_room_message,
        }

    async def connect(self, connection: Connection) -> None:
        await self.registry.register(connection)
        await self.registry.subscribe(connection.connection_id, GLOBAL_CHANNEL)
        logger.info("User %s connected to chat (%s)", connection.user.id, connection.connection_id)
        await connection.emit("connected", {"userId": connection.user.id, "rooms": [GLOBAL_CHANNEL]})

    async def disconnect(self, connection: Connection) -> None:
        await self.registry.unregister(connection.connection_id)
        logger.info("User %s disconnected from chat (%s)", connection.user.id, connection.connection_id)

    async def dispatch(self, connection: Connection, event: str, data: Any) -> None:
        """Run one client event; failures become ``error`` events on this connection."""

        handler = self._handlers.get(event)
        if handler is None:
            await connection.emit("error", {"message": f"Unknown event: {event}"})
            return

        try:
            await handler(connection, data)
        except HTTPException as exc:
            await connection.emit("error", {"message": exc.detail})
        except ValidationError:
            await connection.emit("error", {"message": "Invalid payload"})
        except Exception:
            logger.exception("Chat event %s failed for user %s", event, connection.user.id)
            await connection.emit("error", {"message": "Internal server error"})

    async def join_room(self, connection: Connection, data: Any) -> None:
        room_id = parse_room_id(data)
        if room_id is None:
            await connection.emit("error", {"message": "Invalid room id"})
            return

        async with self.session_factory() as session:
            await rooms_service.verify_membership(session, room_id, connection.user.id)

        await self.registry.subscribe(connection.connection_id, room_channel(room_id))
        await connection.emit("joined_room", {"roomId": room_id})

    async def leave_room(self, connection: Connection, data: Any) -> None:
        room_id = parse_room_id(data)
        if room_id is None:
            await connection.emit("error", {"message": "Invalid room id"})
            return

        await self.registry.unsubscribe(connection.connection_id, room_channel(room_id))
        await connection.emit("left_room", {"roomId": room_id})

    async def send_global_message(self, connection: Connection, data: Any) -> None:
        payload = events.GlobalMessageEvent.model_validate(data)
        await self.publish_global(connection.user, payload.message_text)

    async def send_room_message(self, connection: Connection, data: Any) -> None:
        payload = events.RoomMessageEvent.model_validate(data)
        await self.publish_room(connection.user, payload.room_id, payload.message_text)

    async def publish_global(self, author: UserSummary, message_text: str) -> MessageRead:
        """Persist a global message, then deliver it to every chat connection."""

        async with self.registry.channel_lock(GLOBAL_CHANNEL):
            async with self.session_factory() as session:
                message = await messages_service.create_global_message(session, author, message_text)
            await self.registry.broadcast(GLOBAL_CHANNEL, "global_message", message.global_event())
        return message

    async def publish_room(self, author: UserSummary, room_id: int, message_text: str) -> MessageRead:
        """Persist a room message for a verified member, then deliver it to the room."""

        channel = room_channel(room_id)
        async with self.session_factory() as session:
            # Checked before the channel lock so unknown rooms never get one.
            await rooms_service.verify_membership(session, room_id, author.id)
            async with self.registry.channel_lock(channel):
                message = await messages_service.create_room_message(session, author, room_id, message_text)
                await self.registry.broadcast(channel, "room_message", message.room_event())
        return message
