"""Chat history and message posting endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..db.session import get_session
from ..dependencies import get_chat_gateway, get_current_user
from ..models.user import User
from ..schemas.messages import CreateMessageRequest, MessageRead
from ..schemas.users import UserSummary
from ..services import messages as messages_service
from ..services.chat import ChatGateway

router = APIRouter()


@router.get("/global", response_model=list[MessageRead])
async def list_global_messages(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> list[MessageRead]:
    """Latest global messages in chronological order."""

    return await messages_service.list_global_messages(session)


@router.get("/room/{room_id}", response_model=list[MessageRead])
async def list_room_messages(
    room_id: int,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> list[MessageRead]:
    """Full room history; members only."""

    return await messages_service.list_room_messages(session, room_id, user.id)


@router.post("", response_model=MessageRead, status_code=status.HTTP_201_CREATED)
async def create_message(
    payload: CreateMessageRequest,
    user: User = Depends(get_current_user),
    gateway: ChatGateway = Depends(get_chat_gateway),
) -> MessageRead:
    """Persist a message and fan it out exactly like a realtime send."""

    author = UserSummary.model_validate(user)
    if payload.is_global:
        return await gateway.publish_global(author, payload.message_text)
    if payload.room_id is not None:
        return await gateway.publish_room(author, payload.room_id, payload.message_text)
    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail="Either room_id or is_global must be provided",
    )
