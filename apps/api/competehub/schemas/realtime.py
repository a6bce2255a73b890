"""Frames and event payloads for the realtime channels."""
from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class Frame(BaseModel):
    """Envelope of every frame: ``{"event": ..., "data": ...}``."""

    event: str = Field(..., min_length=1)
    data: Any = None


class GlobalMessageEvent(BaseModel):
    message_text: str = Field(..., min_length=1, max_length=5000)


class RoomMessageEvent(BaseModel):
    room_id: int = Field(..., ge=1, validation_alias=AliasChoices("room_id", "roomId"))
    message_text: str = Field(..., min_length=1, max_length=5000)


class SignalEvent(BaseModel):
    """Offer/answer/candidate frames; the payload itself is opaque."""

    model_config = ConfigDict(extra="allow")

    room_id: int = Field(..., ge=1, validation_alias=AliasChoices("roomId", "room_id"))
