"""WebRTC signaling relay between members of a team room."""
from __future__ import annotations

import logging
from typing import Any

from fastapi import HTTPException
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..schemas import realtime as events
from . import rooms as rooms_service
from .chat import parse_room_id
from .connections import Connection, ConnectionRegistry

logger = logging.getLogger(__name__)

# Signaling event name -> key holding the opaque payload.
RELAYED_EVENTS = {
    "offer": "offer",
    "answer": "answer",
    "ice-candidate": "candidate",
}


def signaling_channel(room_id: int) -> str:
    return f"webrtc_room_{room_id}"


class SignalingRelay:
    """Fan SDP and ICE payloads out to the other peers of a room, never back to the sender."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        registry: ConnectionRegistry | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.registry = registry or ConnectionRegistry()

    async def connect(self, connection: Connection) -> None:
        await self.registry.register(connection)
        logger.info("User %s connected to signaling (%s)", connection.user.id, connection.connection_id)
        await connection.emit("connected", {"userId": connection.user.id})

    async def disconnect(self, connection: Connection) -> None:
        channels = await self.registry.unregister(connection.connection_id)
        for channel in channels:
            await self.registry.broadcast(channel, "user_left", {"userId": connection.user.id})
        logger.info("User %s disconnected from signaling (%s)", connection.user.id, connection.connection_id)

    async def dispatch(self, connection: Connection, event: str, data: Any) -> None:
        try:
            if event == "join_room":
                await self.join_room(connection, data)
            elif event == "leave_room":
                await self.leave_room(connection, data)
            elif event in RELAYED_EVENTS:
                await self.relay(connection, event, data)
            else:
                await connection.emit("error", {"message": f"Unknown event: {event}"})
        except HTTPException as exc:
            await connection.emit("error", {"message": exc.detail})
        except ValidationError:
            await connection.emit("error", {"message": "Invalid payload"})
        except Exception:
            logger.exception("Signaling event %s failed for user %s", event, connection.user.id)
            await connection.emit("error", {"message": "Internal server error"})

    async def join_room(self, connection: Connection, data: Any) -> None:
        room_id = parse_room_id(data)
        if room_id is None:
            await connection.emit("error", {"message": "Invalid room id"})
            return

        async with self.session_factory() as session:
            await rooms_service.verify_membership(session, room_id, connection.user.id)

        channel = signaling_channel(room_id)
        others = await self.registry.subscribe(connection.connection_id, channel)
        participants = sorted({peer.user.id for peer in others})
        await connection.emit("joined_room", {"roomId": room_id, "participants": participants})
        await self.registry.broadcast(
            channel,
            "user_joined",
            {"userId": connection.user.id, "userName": connection.user.full_name},
            exclude=connection.connection_id,
        )

    async def leave_room(self, connection: Connection, data: Any) -> None:
        room_id = parse_room_id(data)
        if room_id is None:
            await connection.emit("error", {"message": "Invalid room id"})
            return

        channel = signaling_channel(room_id)
        if await self.registry.unsubscribe(connection.connection_id, channel):
            await self.registry.broadcast(channel, "user_left", {"userId": connection.user.id})

    async def relay(self, connection: Connection, event: str, data: Any) -> None:
        """Forward an offer/answer/candidate verbatim, tagged with the sender."""

        frame = events.SignalEvent.model_validate(data)
        channel = signaling_channel(frame.room_id)
        if not await self.registry.is_subscribed(connection.connection_id, channel):
            await connection.emit("error", {"message": "Join the room before signaling"})
            return

        key = RELAYED_EVENTS[event]
        await self.registry.broadcast(
            channel,
            event,
            {key: data.get(key), "roomId": frame.room_id, "from": connection.user.id},
            exclude=connection.connection_id,
        )
