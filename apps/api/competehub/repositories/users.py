"""User directory lookups."""
from __future__ import annotations

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.user import User


async def get_by_id(session: AsyncSession, user_id: int) -> User | None:
    """Return a user by identifier."""

    return await session.get(User, user_id)


async def get_by_email(session: AsyncSession, email: str) -> User | None:
    """Return a user by case-insensitive email."""

    stmt: Select[tuple[User]] = select(User).where(func.lower(User.email) == email.strip().lower())
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def create_user(
    session: AsyncSession,
    *,
    email: str,
    password_hash: str,
    full_name: str,
) -> User:
    """Persist a new user with the default role."""

    user = User(email=email.strip().lower(), password_hash=password_hash, full_name=full_name.strip())
    session.add(user)
    await session.flush()
    return user
