"""Wire contracts for chat messages."""
from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .users import UserSummary


class CreateMessageRequest(BaseModel):
    room_id: int | None = Field(default=None, ge=1)
    message_text: str = Field(..., min_length=1, max_length=5000)
    is_global: bool = False


class MessageRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    room_id: int | None = None
    user_id: int
    message_text: str
    is_global: bool
    created_at: datetime
    user: UserSummary

    def global_event(self) -> dict[str, Any]:
        """Payload of the ``global_message`` realtime event."""

        return self.model_dump(mode="json", include={"id", "message_text", "user", "created_at"})

    def room_event(self) -> dict[str, Any]:
        """Payload of the ``room_message`` realtime event."""

        return self.model_dump(mode="json", include={"id", "message_text", "user", "room_id", "created_at"})
