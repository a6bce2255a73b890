"""Team lifecycle: creation, invite-based joining, capacity locking and leaving.

Joins and leaves for the same team are serialized twice over: an in-process
``asyncio.Lock`` per team (one worker) and a ``SELECT ... FOR UPDATE`` on the team
row (across workers). The member count is compared to the ceiling and the lock
flags are flipped while both are held, so exactly one join fills the team and
every later join sees ``is_locked``.

Creating and joining also hold a per (user, competition) lock, and the
``(competition_id, leader_id)`` unique constraint backs the one-team rule
across workers.
"""
from __future__ import annotations

import logging
import secrets

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.locks import KeyedLocks
from ..db.session import atomic
from ..models.team import Team
from ..models.user import User
from ..repositories import competitions as competitions_repo
from ..repositories import rooms as rooms_repo
from ..repositories import teams as teams_repo
from ..schemas import teams as schemas
from . import rooms as rooms_service

logger = logging.getLogger(__name__)

INVITE_CODE_BYTES = 8
INVITE_CODE_ATTEMPTS = 5

team_locks = KeyedLocks()
enrollment_locks = KeyedLocks()


def generate_invite_code() -> str:
    """Return a random 16-character upper-case hex code."""

    return secrets.token_hex(INVITE_CODE_BYTES).upper()


async def create_team(
    payload: schemas.CreateTeamRequest,
    user: User,
    session: AsyncSession,
) -> schemas.TeamRead:
    """Create a team led by ``user`` together with its first member row and room."""

    _require_qualified(user, "You must be qualified and approved to create a team")

    if await competitions_repo.get_by_id(session, payload.competition_id) is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid competition")

    name = payload.name.strip()
    async with enrollment_locks.hold((user.id, payload.competition_id)):
        existing = await teams_repo.find_team_for_user(session, user.id, competition_id=payload.competition_id)
        if existing is not None:
            raise _duplicate_team()

        try:
            async with atomic(session):
                team = await teams_repo.create_team(
                    session,
                    competition_id=payload.competition_id,
                    name=name,
                    leader_id=user.id,
                    invite_code=await _unique_invite_code(session),
                )
                await teams_repo.add_member(session, team.id, user.id)
                await rooms_repo.create_room(session, team_id=team.id, name=rooms_service.room_name_for(name))
        except IntegrityError as exc:
            # Another worker committed a team for the same leader first.
            logger.info("Concurrent team creation by user %s rejected: %s", user.id, exc.orig)
            raise _duplicate_team() from exc

    logger.info("User %s created team %s in competition %s", user.id, team.id, team.competition_id)
    return schemas.TeamRead.model_validate(team)


async def join_team(
    payload: schemas.JoinTeamRequest,
    user: User,
    session: AsyncSession,
) -> schemas.JoinTeamResponse:
    """Add ``user`` to the team owning the invite code, locking it when full."""

    _require_qualified(user, "User must be qualified and approved")

    team = await teams_repo.get_by_invite_code(session, payload.invite_code.strip())
    if team is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Team not found")
    team_id = team.id

    async with enrollment_locks.hold((user.id, team.competition_id)), team_locks.hold(team_id):
        async with atomic(session):
            team = await _lock_team(session, team_id)
            if team.is_locked:
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Team is locked")

            if await teams_repo.get_membership(session, team_id, user.id) is not None:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="You are already a member of this team",
                )

            other = await teams_repo.find_team_for_user(session, user.id, competition_id=team.competition_id)
            if other is not None:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="You already belong to a team in this competition",
                )

            if await teams_repo.count_members(session, team_id) >= settings.team_max_members:
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Team is full")

            await teams_repo.add_member(session, team_id, user.id)

            member_count = await teams_repo.count_members(session, team_id)
            if member_count >= settings.team_max_members:
                team.is_locked = True
                team.is_complete = True
                logger.info("Team %s reached %s members and is now locked", team_id, member_count)

    logger.info("User %s joined team %s", user.id, team_id)
    detail = await _load_detail(session, team_id)
    return schemas.JoinTeamResponse(message="Successfully joined team", team=detail)


async def leave_team(team_id: int, user: User, session: AsyncSession) -> schemas.MessageResponse:
    """Remove ``user`` from a team; any departure reopens a locked team."""

    team = await teams_repo.get_by_id(session, team_id)
    if team is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Team not found")
    if team.leader_id == user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Team leader cannot leave. Transfer leadership first.",
        )

    async with team_locks.hold(team_id):
        async with atomic(session):
            team = await _lock_team(session, team_id)
            membership = await teams_repo.get_membership(session, team_id, user.id)
            if membership is None:
                raise HTTPException(
                    status_code=status.HTTP_404_NOT_FOUND,
                    detail="You are not a member of this team",
                )
            await session.delete(membership)

            # Reopened regardless of the remaining head count.
            if team.is_locked:
                team.is_locked = False
                team.is_complete = False

    logger.info("User %s left team %s", user.id, team_id)
    return schemas.MessageResponse(message="Left team successfully")


async def get_my_team(
    user: User,
    session: AsyncSession,
    *,
    competition_id: int | None = None,
) -> schemas.TeamDetail:
    """Return the single team the user leads or belongs to."""

    team = await teams_repo.find_team_for_user(session, user.id, competition_id=competition_id)
    if team is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No team found")
    return schemas.TeamDetail.model_validate(team)


async def get_team_room(team_id: int, user: User, session: AsyncSession) -> schemas.RoomRead:
    """Return a team's room to one of its members."""

    if await teams_repo.get_by_id(session, team_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Team not found")
    room = await rooms_service.get_room_for_team(session, team_id)
    await rooms_service.verify_membership(session, room.id, user.id)
    return schemas.RoomRead.model_validate(room)


def _require_qualified(user: User, detail: str) -> None:
    if not (user.is_qualified and user.is_approved):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


def _duplicate_team() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail="You already have a team for this competition",
    )


async def _lock_team(session: AsyncSession, team_id: int) -> Team:
    team = await teams_repo.lock_for_update(session, team_id)
    if team is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Team not found")
    return team


async def _unique_invite_code(session: AsyncSession) -> str:
    for _ in range(INVITE_CODE_ATTEMPTS):
        code = generate_invite_code()
        if not await teams_repo.invite_code_exists(session, code):
            return code
        logger.warning("Invite code collision, regenerating")
    raise RuntimeError("Could not generate a unique invite code")


async def _load_detail(session: AsyncSession, team_id: int) -> schemas.TeamDetail:
    team = await teams_repo.get_detail(session, team_id)
    if team is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Team not found")
    return schemas.TeamDetail.model_validate(team)
