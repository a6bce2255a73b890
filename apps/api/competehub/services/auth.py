"""Registration, login and token-to-user resolution."""
from __future__ import annotations

import logging

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..core import security
from ..db.session import atomic
from ..models.user import User
from ..repositories import users as users_repo
from ..schemas import users as schemas

logger = logging.getLogger(__name__)


async def register(payload: schemas.RegisterRequest, session: AsyncSession) -> schemas.AuthResponse:
    """Create an account and return it with a fresh token."""

    async with atomic(session):
        if await users_repo.get_by_email(session, payload.email):
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered")
        user = await users_repo.create_user(
            session,
            email=payload.email,
            password_hash=security.hash_password(payload.password),
            full_name=payload.full_name,
        )

    logger.info("Registered user %s", user.id)
    return _auth_response(user)


async def login(payload: schemas.LoginRequest, session: AsyncSession) -> schemas.AuthResponse:
    """Exchange credentials for a token."""

    user = await users_repo.get_by_email(session, payload.email)
    if user is None or not security.verify_password(payload.password, user.password_hash):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    return _auth_response(user)


async def resolve_token(session: AsyncSession, token: str | None) -> User:
    """Return the user a bearer token belongs to, or raise 401."""

    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")

    try:
        user_id = security.decode_access_token(token)
    except security.TokenError as exc:
        detail = "Token expired" if exc.reason == "expired" else "Invalid token"
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail) from exc

    user = await users_repo.get_by_id(session, user_id)
    if user is None:
        logger.warning("Token presented for unknown user %s", user_id)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    return user


def _auth_response(user: User) -> schemas.AuthResponse:
    return schemas.AuthResponse(
        user=schemas.UserRead.model_validate(user),
        token=security.create_access_token(user.id),
    )
