"""Service-level tests for team creation, joining, locking and leaving."""
from __future__ import annotations

import asyncio

import pytest
from fastapi import HTTPException

from competehub.repositories import rooms as rooms_repo
from competehub.schemas.teams import CreateTeamRequest, JoinTeamRequest
from competehub.services import teams as teams_service


async def _create_team(session_factory, leader, competition_id: int, name: str = "Alpha"):
    async with session_factory() as session:
        return await teams_service.create_team(
            CreateTeamRequest(competition_id=competition_id, name=name), leader, session
        )


async def _join(session_factory, user, invite_code: str):
    async with session_factory() as session:
        return await teams_service.join_team(JoinTeamRequest(invite_code=invite_code), user, session)


@pytest.mark.asyncio
async def test_create_team_adds_leader_and_room(session_factory, make_user, competition_id, db):
    leader = make_user("Ava")

    team = await _create_team(session_factory, leader, competition_id)

    assert team.leader_id == leader.id
    assert team.is_locked is False
    assert team.is_complete is False
    assert len(team.invite_code) == 16
    assert db.member_count(team.id) == 1

    async with session_factory() as session:
        detail = await teams_service.get_my_team(leader, session)
    assert detail.room is not None
    assert detail.room.name == "Alpha Room"
    assert [member.user_id for member in detail.members] == [leader.id]


@pytest.mark.asyncio
async def test_create_team_requires_qualified_and_approved(session_factory, make_user, competition_id, db):
    unqualified = make_user(qualified=False)
    unapproved = make_user(qualified=True, approved=False)

    for user in (unqualified, unapproved):
        with pytest.raises(HTTPException) as exc:
            await _create_team(session_factory, user, competition_id)
        assert exc.value.status_code == 403

    assert db.team_count() == 0


@pytest.mark.asyncio
async def test_create_second_team_in_competition_conflicts(session_factory, make_user, competition_id):
    leader = make_user()
    await _create_team(session_factory, leader, competition_id)

    with pytest.raises(HTTPException) as exc:
        await _create_team(session_factory, leader, competition_id, name="Beta")

    assert exc.value.status_code == 409


@pytest.mark.asyncio
async def test_create_team_with_unknown_competition(session_factory, make_user):
    with pytest.raises(HTTPException) as exc:
        await _create_team(session_factory, make_user(), 999)

    assert exc.value.status_code == 400


@pytest.mark.asyncio
async def test_invite_codes_are_unique_and_regenerated_on_collision(
    session_factory, make_user, competition_id, monkeypatch
):
    codes = iter(["DUPLICATE0000000", "DUPLICATE0000000", "UNIQUE0000000000"])
    monkeypatch.setattr(teams_service, "generate_invite_code", lambda: next(codes))

    first = await _create_team(session_factory, make_user(), competition_id, name="One")
    second = await _create_team(session_factory, make_user(), competition_id, name="Two")

    assert first.invite_code == "DUPLICATE0000000"
    assert second.invite_code == "UNIQUE0000000000"


@pytest.mark.asyncio
async def test_generated_invite_codes_do_not_repeat(session_factory, make_user, competition_id):
    teams = [await _create_team(session_factory, make_user(), competition_id, name=f"T{i}") for i in range(8)]

    assert len({team.invite_code for team in teams}) == len(teams)


@pytest.mark.asyncio
async def test_create_team_is_atomic(session_factory, make_user, competition_id, monkeypatch, db):
    async def broken_create_room(*args, **kwargs):
        raise RuntimeError("storage unavailable")

    monkeypatch.setattr(rooms_repo, "create_room", broken_create_room)

    with pytest.raises(RuntimeError):
        await _create_team(session_factory, make_user(), competition_id)

    assert db.team_count() == 0


@pytest.mark.asyncio
async def test_team_fills_and_locks_on_fifth_join(session_factory, make_user, competition_id, monkeypatch, db):
    monkeypatch.setattr(teams_service, "generate_invite_code", lambda: "ABC123")
    user_a, user_b, user_c, user_d, user_e, user_f = (make_user(name) for name in "ABCDEF")

    team = await _create_team(session_factory, user_a, competition_id)
    assert team.invite_code == "ABC123"

    joined = await _join(session_factory, user_b, "ABC123")
    assert joined.message == "Successfully joined team"
    assert len(joined.team.members) == 2
    assert joined.team.is_locked is False

    for user in (user_c, user_d):
        result = await _join(session_factory, user, "ABC123")
        assert result.team.is_locked is False

    last = await _join(session_factory, user_e, "ABC123")
    assert len(last.team.members) == 5
    assert last.team.is_locked is True
    assert last.team.is_complete is True

    with pytest.raises(HTTPException) as exc:
        await _join(session_factory, user_f, "ABC123")
    assert exc.value.status_code == 400
    assert exc.value.detail == "Team is locked"
    assert db.member_count(team.id) == 5


@pytest.mark.asyncio
async def test_team_is_only_locked_by_a_join(session_factory, make_user, competition_id, db):
    team = await _create_team(session_factory, make_user(), competition_id)
    for _ in range(3):
        await _join(session_factory, make_user(), team.invite_code)

    assert db.member_count(team.id) == 4
    assert db.team(team.id).is_locked is False


@pytest.mark.asyncio
async def test_join_unknown_code_and_duplicate_membership(session_factory, make_user, competition_id):
    leader = make_user()
    team = await _create_team(session_factory, leader, competition_id)

    with pytest.raises(HTTPException) as missing:
        await _join(session_factory, make_user(), "NOPE")
    assert missing.value.status_code == 404

    with pytest.raises(HTTPException) as duplicate:
        await _join(session_factory, leader, team.invite_code)
    assert duplicate.value.status_code == 400
    assert duplicate.value.detail == "You are already a member of this team"


@pytest.mark.asyncio
async def test_join_rejects_second_team_in_same_competition(session_factory, make_user, competition_id):
    alpha = await _create_team(session_factory, make_user(), competition_id, name="Alpha")
    beta = await _create_team(session_factory, make_user(), competition_id, name="Beta")
    drifter = make_user()
    await _join(session_factory, drifter, alpha.invite_code)

    with pytest.raises(HTTPException) as exc:
        await _join(session_factory, drifter, beta.invite_code)

    assert exc.value.status_code == 400


@pytest.mark.asyncio
async def test_join_requires_qualification(session_factory, make_user, competition_id):
    team = await _create_team(session_factory, make_user(), competition_id)

    with pytest.raises(HTTPException) as exc:
        await _join(session_factory, make_user(qualified=False), team.invite_code)

    assert exc.value.status_code == 403


@pytest.mark.asyncio
async def test_concurrent_joins_fill_team_exactly_once(session_factory, make_user, competition_id, db):
    team = await _create_team(session_factory, make_user(), competition_id)
    for _ in range(2):
        await _join(session_factory, make_user(), team.invite_code)
    assert db.member_count(team.id) == 3

    contenders = [make_user() for _ in range(10)]

    async def attempt(user):
        try:
            await _join(session_factory, user, team.invite_code)
        except HTTPException as exc:
            return exc.status_code
        return "joined"

    outcomes = await asyncio.gather(*(attempt(user) for user in contenders))

    assert outcomes.count("joined") == 2
    assert outcomes.count(400) == 8
    assert db.member_count(team.id) == 5
    stored = db.team(team.id)
    assert stored.is_locked is True
    assert stored.is_complete is True


@pytest.mark.asyncio
async def test_concurrent_creates_by_one_leader_yield_one_team(session_factory, make_user, competition_id, db):
    leader = make_user()

    async def attempt(index: int):
        try:
            await _create_team(session_factory, leader, competition_id, name=f"Team {index}")
        except HTTPException as exc:
            return exc.status_code
        return "created"

    outcomes = await asyncio.gather(*(attempt(index) for index in range(5)))

    assert outcomes.count("created") == 1
    assert outcomes.count(409) == 4
    assert db.team_count() == 1


@pytest.mark.asyncio
async def test_leader_unique_constraint_maps_to_conflict(
    session_factory, make_user, competition_id, monkeypatch, db
):
    leader = make_user()
    first = await _create_team(session_factory, leader, competition_id)

    # Another worker's commit is invisible to the in-process check.
    async def nothing_found(*args, **kwargs):
        return None

    monkeypatch.setattr(teams_service.teams_repo, "find_team_for_user", nothing_found)

    with pytest.raises(HTTPException) as exc:
        await _create_team(session_factory, leader, competition_id, name="Beta")

    assert exc.value.status_code == 409
    assert exc.value.detail == "You already have a team for this competition"
    assert db.team_count() == 1
    assert db.member_count(first.id) == 1


@pytest.mark.asyncio
async def test_leader_cannot_leave(session_factory, make_user, competition_id, db):
    leader = make_user()
    team = await _create_team(session_factory, leader, competition_id)

    async with session_factory() as session:
        with pytest.raises(HTTPException) as exc:
            await teams_service.leave_team(team.id, leader, session)

    assert exc.value.status_code == 403
    assert db.member_count(team.id) == 1


@pytest.mark.asyncio
async def test_any_leave_unlocks_a_full_team(session_factory, make_user, competition_id, db):
    team = await _create_team(session_factory, make_user(), competition_id)
    members = [make_user() for _ in range(4)]
    for member in members:
        await _join(session_factory, member, team.invite_code)
    assert db.team(team.id).is_locked is True

    async with session_factory() as session:
        result = await teams_service.leave_team(team.id, members[0], session)

    assert result.message == "Left team successfully"
    stored = db.team(team.id)
    assert stored.is_locked is False
    assert stored.is_complete is False
    assert db.member_count(team.id) == 4

    # Reopened team accepts the next join and locks again at five.
    rejoined = await _join(session_factory, make_user(), team.invite_code)
    assert rejoined.team.is_locked is True


@pytest.mark.asyncio
async def test_leave_by_non_member_and_missing_team(session_factory, make_user, competition_id):
    team = await _create_team(session_factory, make_user(), competition_id)
    stranger = make_user()

    async with session_factory() as session:
        with pytest.raises(HTTPException) as not_member:
            await teams_service.leave_team(team.id, stranger, session)
        with pytest.raises(HTTPException) as missing:
            await teams_service.leave_team(9999, stranger, session)

    assert not_member.value.status_code == 404
    assert missing.value.status_code == 404


@pytest.mark.asyncio
async def test_get_my_team_returns_one_team_for_leader_and_member(session_factory, make_user, competition_id):
    leader = make_user()
    member = make_user()
    outsider = make_user()
    team = await _create_team(session_factory, leader, competition_id)
    await _join(session_factory, member, team.invite_code)

    async with session_factory() as session:
        for user in (leader, member):
            detail = await teams_service.get_my_team(user, session)
            assert detail.id == team.id
            assert {m.user_id for m in detail.members} == {leader.id, member.id}
            assert detail.leader.id == leader.id
        with pytest.raises(HTTPException) as exc:
            await teams_service.get_my_team(outsider, session)

    assert exc.value.status_code == 404


@pytest.mark.asyncio
async def test_get_team_room_for_members_only(session_factory, make_user, competition_id):
    leader = make_user()
    team = await _create_team(session_factory, leader, competition_id)

    async with session_factory() as session:
        room = await teams_service.get_team_room(team.id, leader, session)
        with pytest.raises(HTTPException) as exc:
            await teams_service.get_team_room(team.id, make_user(), session)

    assert room.team_id == team.id
    assert exc.value.status_code == 403
