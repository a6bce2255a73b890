"""Competition registry lookups."""
from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from ..models.competition import Competition


async def get_by_id(session: AsyncSession, competition_id: int) -> Competition | None:
    """Return a competition by identifier."""

    return await session.get(Competition, competition_id)
