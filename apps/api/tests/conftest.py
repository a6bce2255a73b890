"""Shared fixtures: a file-backed SQLite database per test and an app wired to it."""
from __future__ import annotations

import itertools
from collections.abc import AsyncGenerator, Iterator

import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import NullPool

from competehub.core.security import create_access_token
from competehub.db.session import get_session
from competehub.main import create_app
from competehub.models import Competition, Message, Team, TeamMember, User
from competehub.models.base import Base


@pytest.fixture
def sync_engine(tmp_path) -> Iterator[Engine]:
    engine = create_engine(f"sqlite:///{tmp_path / 'competehub.db'}")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(tmp_path, sync_engine) -> async_sessionmaker[AsyncSession]:
    # NullPool: every session opens its own connection on whichever loop uses it.
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'competehub.db'}", poolclass=NullPool)
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


@pytest.fixture
def app(session_factory):
    application = create_app(session_factory)

    async def _get_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    application.dependency_overrides[get_session] = _get_session
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
def competition_id(sync_engine) -> int:
    with Session(sync_engine) as session:
        competition = Competition(name="Spring Hackathon")
        session.add(competition)
        session.commit()
        return competition.id


@pytest.fixture
def make_user(sync_engine):
    """Factory for users stored directly in the test database."""

    counter = itertools.count(1)

    def _make(full_name: str | None = None, *, qualified: bool = True, approved: bool | None = None) -> User:
        number = next(counter)
        with Session(sync_engine, expire_on_commit=False) as session:
            user = User(
                email=f"user{number}@example.com",
                password_hash="!",
                full_name=full_name or f"User {number}",
                is_qualified=qualified,
                is_approved=qualified if approved is None else approved,
            )
            session.add(user)
            session.commit()
            return user

    return _make


@pytest.fixture
def db(sync_engine):
    """Read-side helpers for asserting on persisted state."""

    class _Db:
        def team(self, team_id: int) -> Team:
            with Session(sync_engine, expire_on_commit=False) as session:
                return session.get(Team, team_id)

        def member_count(self, team_id: int) -> int:
            with Session(sync_engine) as session:
                stmt = select(func.count(TeamMember.id)).where(TeamMember.team_id == team_id)
                return session.execute(stmt).scalar_one()

        def message_count(self, **filters) -> int:
            with Session(sync_engine) as session:
                stmt = select(func.count(Message.id)).filter_by(**filters)
                return session.execute(stmt).scalar_one()

        def team_count(self) -> int:
            with Session(sync_engine) as session:
                return session.execute(select(func.count(Team.id))).scalar_one()

    return _Db()


@pytest.fixture
def auth_headers():
    def _headers(user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user.id)}"}

    return _headers
