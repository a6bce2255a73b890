"""Schemas for authentication and user payloads."""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from ..models.user import UserRole


class UserSummary(BaseModel):
    """Author/occupant summary sent over the wire."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    full_name: str
    email: str


class UserRead(UserSummary):
    role: UserRole
    is_qualified: bool
    is_approved: bool
    created_at: datetime


class RegisterRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    password: str = Field(..., min_length=6, max_length=128)
    full_name: str = Field(..., min_length=1, max_length=255)


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class AuthResponse(BaseModel):
    user: UserRead
    token: str


class MeResponse(BaseModel):
    user: UserRead
