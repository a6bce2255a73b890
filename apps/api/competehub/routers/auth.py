"""Registration and login endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..db.session import get_session
from ..dependencies import get_current_user
from ..models.user import User
from ..schemas import users as schemas
from ..services import auth as auth_service

router = APIRouter()


@router.post("/register", response_model=schemas.AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(
    payload: schemas.RegisterRequest,
    session: AsyncSession = Depends(get_session),
) -> schemas.AuthResponse:
    """Create an account and return a session token."""

    return await auth_service.register(payload, session)


@router.post("/login", response_model=schemas.AuthResponse)
async def login(
    payload: schemas.LoginRequest,
    session: AsyncSession = Depends(get_session),
) -> schemas.AuthResponse:
    """Exchange credentials for a session token."""

    return await auth_service.login(payload, session)


@router.get("/me", response_model=schemas.MeResponse)
async def me(user: User = Depends(get_current_user)) -> schemas.MeResponse:
    return schemas.MeResponse(user=schemas.UserRead.model_validate(user))
