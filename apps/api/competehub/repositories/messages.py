"""Message persistence helpers."""
from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..models.message import Message


async def create_message(
    session: AsyncSession,
    *,
    user_id: int,
    message_text: str,
    room_id: int | None = None,
) -> Message:
    """Persist a message; no room means a global broadcast."""

    message = Message(
        user_id=user_id,
        message_text=message_text,
        room_id=room_id,
        is_global=room_id is None,
    )
    session.add(message)
    await session.flush()
    return message


async def list_global(session: AsyncSession, *, limit: int) -> list[Message]:
    """Return the latest global messages in chronological order."""

    stmt = (
        select(Message)
        .options(selectinload(Message.user))
        .where(Message.is_global.is_(True))
        .order_by(Message.created_at.desc(), Message.id.desc())
        .limit(limit)
    )
    result = await session.execute(stmt)
    return list(reversed(result.scalars().all()))


async def list_for_room(session: AsyncSession, room_id: int) -> list[Message]:
    """Return every message of a room in chronological order."""

    stmt = (
        select(Message)
        .options(selectinload(Message.user))
        .where(Message.room_id == room_id)
        .order_by(Message.created_at.asc(), Message.id.asc())
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())
