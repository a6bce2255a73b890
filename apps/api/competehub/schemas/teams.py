"""Wire contracts for team lifecycle endpoints."""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from .users import UserSummary


class CreateTeamRequest(BaseModel):
    competition_id: int = Field(..., ge=1)
    name: str = Field(..., min_length=1, max_length=255)


class JoinTeamRequest(BaseModel):
    invite_code: str = Field(..., min_length=1, max_length=50)


class RoomRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    team_id: int
    name: str


class TeamRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    competition_id: int
    name: str
    leader_id: int
    invite_code: str
    is_locked: bool
    is_complete: bool
    created_at: datetime


class TeamMemberRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    joined_at: datetime
    user: UserSummary


class TeamDetail(TeamRead):
    leader: UserSummary
    members: list[TeamMemberRead]
    room: RoomRead | None = None


class JoinTeamResponse(BaseModel):
    message: str
    team: TeamDetail


class MessageResponse(BaseModel):
    message: str
