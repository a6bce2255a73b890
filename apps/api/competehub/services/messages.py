"""Message creation and history, shared by REST routes and the chat gateway."""
from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..db.session import atomic
from ..models.message import Message
from ..repositories import messages as messages_repo
from ..schemas.messages import MessageRead
from ..schemas.users import UserSummary
from . import rooms as rooms_service


async def create_global_message(session: AsyncSession, author: UserSummary, message_text: str) -> MessageRead:
    """Persist a global broadcast message."""

    async with atomic(session):
        message = await messages_repo.create_message(session, user_id=author.id, message_text=message_text)
    return _to_read(message, author)


async def create_room_message(
    session: AsyncSession,
    author: UserSummary,
    room_id: int,
    message_text: str,
) -> MessageRead:
    """Persist a room message after re-checking the author's membership."""

    async with atomic(session):
        await rooms_service.verify_membership(session, room_id, author.id)
        message = await messages_repo.create_message(
            session,
            user_id=author.id,
            message_text=message_text,
            room_id=room_id,
        )
    return _to_read(message, author)


async def list_global_messages(session: AsyncSession) -> list[MessageRead]:
    """Latest global messages, oldest first."""

    messages = await messages_repo.list_global(session, limit=settings.global_history_limit)
    return [MessageRead.model_validate(message) for message in messages]


async def list_room_messages(session: AsyncSession, room_id: int, user_id: int) -> list[MessageRead]:
    """Full history of a room for one of its members."""

    await rooms_service.verify_membership(session, room_id, user_id)
    messages = await messages_repo.list_for_room(session, room_id)
    return [MessageRead.model_validate(message) for message in messages]


def _to_read(message: Message, author: UserSummary) -> MessageRead:
    return MessageRead(
        id=message.id,
        room_id=message.room_id,
        user_id=message.user_id,
        message_text=message.message_text,
        is_global=message.is_global,
        created_at=message.created_at,
        user=author,
    )
