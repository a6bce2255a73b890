"""Team and membership persistence helpers."""
from __future__ import annotations

from sqlalchemy import Select, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..models.team import Team, TeamMember


def _with_details(stmt: Select[tuple[Team]]) -> Select[tuple[Team]]:
    return stmt.options(
        selectinload(Team.leader),
        selectinload(Team.members).selectinload(TeamMember.user),
        selectinload(Team.room),
    )


async def get_by_id(session: AsyncSession, team_id: int) -> Team | None:
    """Return a team by identifier."""

    return await session.get(Team, team_id)


async def get_by_invite_code(session: AsyncSession, invite_code: str) -> Team | None:
    """Return the team owning an invite code."""

    stmt: Select[tuple[Team]] = select(Team).where(Team.invite_code == invite_code)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def invite_code_exists(session: AsyncSession, invite_code: str) -> bool:
    """Return True if a team already uses the invite code."""

    stmt = select(func.count(Team.id)).where(Team.invite_code == invite_code)
    result = await session.execute(stmt)
    return result.scalar_one() > 0


async def lock_for_update(session: AsyncSession, team_id: int) -> Team | None:
    """Load the team row under a row lock for the rest of the transaction.

    Dialects without row locks (SQLite) ignore FOR UPDATE; callers also hold the
    in-process team lock.
    """

    stmt = (
        select(Team)
        .where(Team.id == team_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_detail(session: AsyncSession, team_id: int) -> Team | None:
    """Return a team with leader, members and room eagerly loaded."""

    stmt = _with_details(select(Team).where(Team.id == team_id)).execution_options(populate_existing=True)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def find_team_for_user(
    session: AsyncSession,
    user_id: int,
    *,
    competition_id: int | None = None,
) -> Team | None:
    """Return the most recent team the user leads or belongs to."""

    membership = select(TeamMember.team_id).where(TeamMember.user_id == user_id)
    stmt = select(Team).where(or_(Team.leader_id == user_id, Team.id.in_(membership)))
    if competition_id is not None:
        stmt = stmt.where(Team.competition_id == competition_id)
    stmt = _with_details(stmt.order_by(Team.id.desc()).limit(1))
    result = await session.execute(stmt)
    return result.scalars().first()


async def create_team(
    session: AsyncSession,
    *,
    competition_id: int,
    name: str,
    leader_id: int,
    invite_code: str,
) -> Team:
    """Persist a new, unlocked team."""

    team = Team(
        competition_id=competition_id,
        name=name,
        leader_id=leader_id,
        invite_code=invite_code,
        is_locked=False,
        is_complete=False,
    )
    session.add(team)
    await session.flush()
    return team


async def get_membership(session: AsyncSession, team_id: int, user_id: int) -> TeamMember | None:
    """Return the membership row for (team, user)."""

    stmt: Select[tuple[TeamMember]] = select(TeamMember).where(
        TeamMember.team_id == team_id,
        TeamMember.user_id == user_id,
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def add_member(session: AsyncSession, team_id: int, user_id: int) -> TeamMember:
    """Insert a membership row."""

    member = TeamMember(team_id=team_id, user_id=user_id)
    session.add(member)
    await session.flush()
    return member


async def count_members(session: AsyncSession, team_id: int) -> int:
    """Return the current member count of a team."""

    stmt = select(func.count(TeamMember.id)).where(TeamMember.team_id == team_id)
    result = await session.execute(stmt)
    return result.scalar_one()
