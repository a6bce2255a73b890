"""Handshake authentication shared by the chat and signaling channels."""
from __future__ import annotations

import logging

from fastapi import HTTPException, WebSocket
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..schemas.users import UserSummary
from . import auth as auth_service

logger = logging.getLogger(__name__)


def extract_token(websocket: WebSocket) -> str | None:
    """Read the token from the ``token`` query parameter or a bearer header."""

    token = websocket.query_params.get("token")
    if token:
        return token

    header = websocket.headers.get("authorization", "")
    scheme, _, credentials = header.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return None


async def authenticate(
    websocket: WebSocket,
    session_factory: async_sessionmaker[AsyncSession],
) -> UserSummary | None:
    """Resolve the handshake to a user, or None when it must be rejected."""

    token = extract_token(websocket)
    async with session_factory() as session:
        try:
            user = await auth_service.resolve_token(session, token)
        except HTTPException as exc:
            logger.info("Rejected realtime handshake on %s: %s", websocket.url.path, exc.detail)
            return None
        return UserSummary.model_validate(user)
