"""Team lifecycle endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..db.session import get_session
from ..dependencies import get_current_user
from ..models.user import User
from ..schemas import teams as schemas
from ..services import teams as teams_service

router = APIRouter()


@router.post("/create", response_model=schemas.TeamRead, status_code=status.HTTP_201_CREATED)
async def create_team(
    payload: schemas.CreateTeamRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> schemas.TeamRead:
    """Create a team, its leader membership and its room."""

    return await teams_service.create_team(payload, user, session)


@router.post("/join", response_model=schemas.JoinTeamResponse)
async def join_team(
    payload: schemas.JoinTeamRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> schemas.JoinTeamResponse:
    """Join a team by invite code."""

    return await teams_service.join_team(payload, user, session)


@router.get("/my-team", response_model=schemas.TeamDetail)
async def get_my_team(
    competition_id: int | None = Query(default=None, ge=1),
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> schemas.TeamDetail:
    """Return the caller's team with members and room."""

    return await teams_service.get_my_team(user, session, competition_id=competition_id)


@router.get("/{team_id}/room", response_model=schemas.RoomRead)
async def get_team_room(
    team_id: int,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> schemas.RoomRead:
    return await teams_service.get_team_room(team_id, user, session)


@router.delete("/{team_id}/leave", response_model=schemas.MessageResponse)
async def leave_team(
    team_id: int,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> schemas.MessageResponse:
    """Leave a team as a non-leader member."""

    return await teams_service.leave_team(team_id, user, session)
