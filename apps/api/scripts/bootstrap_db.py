"""Create database schema and seed a competition with demo users for development."""
from __future__ import annotations

import asyncio

from sqlalchemy import select

from competehub.core.security import hash_password
from competehub.db.session import SessionLocal, engine
from competehub.models.base import Base
from competehub.models.competition import Competition
from competehub.models.user import User, UserRole

COMPETITIONS = [
    {"name": "Spring Hackathon", "is_active": True},
]

DEMO_PASSWORD = "password123"

USERS = [
    {"email": "admin@example.com", "full_name": "Ada Admin", "role": UserRole.ADMIN, "qualified": True},
    {"email": "ava.khan@example.com", "full_name": "Ava Khan", "role": UserRole.TEAM_MEMBER, "qualified": True},
    {"email": "daniel.lee@example.com", "full_name": "Daniel Lee", "role": UserRole.TEAM_MEMBER, "qualified": True},
    {"email": "sofia.rehman@example.com", "full_name": "Sofia Rehman", "role": UserRole.TEAM_MEMBER, "qualified": True},
    {"email": "new.comer@example.com", "full_name": "New Comer", "role": UserRole.TEAM_MEMBER, "qualified": False},
]


async def create_schema() -> None:
    """Create the database schema if it does not already exist."""

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def seed_competitions() -> None:
    """Insert demo competitions that are not there yet."""

    async with SessionLocal() as session:
        async with session.begin():
            for data in COMPETITIONS:
                result = await session.execute(select(Competition).where(Competition.name == data["name"]))
                competition = result.scalar_one_or_none()
                if competition is None:
                    session.add(Competition(name=data["name"], is_active=data["is_active"]))
                else:
                    competition.is_active = data["is_active"]


async def seed_users() -> None:
    """Insert or refresh demo users; qualified ones may form teams."""

    password_hash = hash_password(DEMO_PASSWORD)
    async with SessionLocal() as session:
        async with session.begin():
            for data in USERS:
                result = await session.execute(select(User).where(User.email == data["email"]))
                user = result.scalar_one_or_none()
                if user is None:
                    user = User(email=data["email"], password_hash=password_hash, full_name=data["full_name"])
                    session.add(user)
                user.full_name = data["full_name"]
                user.role = data["role"]
                user.is_qualified = data["qualified"]
                user.is_approved = data["qualified"]


async def main() -> None:
    await create_schema()
    await seed_competitions()
    await seed_users()
    print(f"Database schema ensured and demo data seeded (password: {DEMO_PASSWORD}).")


if __name__ == "__main__":
    asyncio.run(main())
