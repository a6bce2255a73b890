"""Room registry persistence helpers."""
from __future__ import annotations

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.room import Room


async def get_by_id(session: AsyncSession, room_id: int) -> Room | None:
    """Return a room by identifier."""

    return await session.get(Room, room_id)


async def get_for_team(session: AsyncSession, team_id: int) -> Room | None:
    """Return the room owned by a team."""

    stmt: Select[tuple[Room]] = select(Room).where(Room.team_id == team_id)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def create_room(session: AsyncSession, *, team_id: int, name: str) -> Room:
    """Persist the room of a freshly created team."""

    room = Room(team_id=team_id, name=name)
    session.add(room)
    await session.flush()
    return room
