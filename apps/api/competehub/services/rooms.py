"""Room registry: one room per team, and the membership gate for room access."""
from __future__ import annotations

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.room import Room
from ..models.team import TeamMember
from ..repositories import rooms as rooms_repo
from ..repositories import teams as teams_repo


def room_name_for(team_name: str) -> str:
    """Deterministic room name derived from the team name."""

    return f"{team_name} Room"


async def get_room_for_team(session: AsyncSession, team_id: int) -> Room:
    """Return the team's room or raise 404."""

    room = await rooms_repo.get_for_team(session, team_id)
    if room is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Room not found")
    return room


async def verify_membership(session: AsyncSession, room_id: int, user_id: int) -> TeamMember:
    """Return the caller's membership in the room's team.

    This is the single access check shared by the REST message endpoints and the
    realtime channels.
    """

    room = await rooms_repo.get_by_id(session, room_id)
    if room is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Room not found")

    membership = await teams_repo.get_membership(session, room.team_id, user_id)
    if membership is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    return membership
