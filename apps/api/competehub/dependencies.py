"""Request-scoped dependencies shared by the REST routers."""
from __future__ import annotations

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from .db.session import get_session
from .models.user import User
from .services import auth as auth_service
from .services.chat import ChatGateway

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    session: AsyncSession = Depends(get_session),
) -> User:
    """Resolve the bearer token to a user or fail with 401."""

    token = credentials.credentials if credentials else None
    return await auth_service.resolve_token(session, token)


def get_chat_gateway(request: Request) -> ChatGateway:
    """Return the chat gateway owned by the running application."""

    return request.app.state.chat_gateway
