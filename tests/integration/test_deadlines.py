"""Deadline setting, automatic locking and auto-assignment."""

import asyncio
import random
from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from highlander.exceptions import (
    DeadlinePassedError,
    GameNotActiveError,
    InvalidDeadlineError,
    SelectionsLockedError,
)
from highlander.models.fields import AuditAction, RoundStatus
from highlander.schemas.audit_logs import DeadlineAuditLog
from highlander.schemas.games import Game
from highlander.schemas.tickets import TeamSelection
from highlander.services.deadline_service import (
    LOCKED,
    NO_ACTION,
    enforce_deadline,
    enforce_expired_deadlines,
    find_expired_games,
    lock_game_now,
)
from highlander.services.game_service import clear_deadline, list_audit_logs, set_deadline
from highlander.services.selection_service import submit_selection
from highlander.utils.clock import to_utc
from tests.integration.game_helpers import (
    count_rows,
    give_tickets,
    identity,
    make_active_game,
    make_match,
    make_selection,
    make_teams,
    make_user,
    reload,
    selections_for,
)

NOW = datetime(2025, 9, 13, 12, 0, 0, tzinfo=UTC)


async def _round_selections(db: AsyncSession, game: Game, round_number: int) -> list[TeamSelection]:
    async with db.begin():
        result = await db.execute(
            select(TeamSelection)
            .where(TeamSelection.game_id == game.id, TeamSelection.round == round_number)  # type: ignore[arg-type]
            .order_by(TeamSelection.ticket_id)  # type: ignore[arg-type]
        )
        return list(result.scalars().all())


@pytest.mark.asyncio
async def test_missing_pick_auto_assigned_when_deadline_passes(db_session: AsyncSession) -> None:
    """Three tickets, one never submitted: it gets an unused team and the round locks."""
    admin = await make_user(db_session, "admin", is_admin=True)
    players = [await make_user(db_session, name) for name in ("ada", "bea", "ciro")]
    teams = await make_teams(db_session, 6)
    for home, away in ((0, 1), (2, 3), (4, 5)):
        await make_match(db_session, 1, teams[home], teams[away])

    game = await make_active_game(db_session, admin)
    tickets = [(await give_tickets(db_session, game, p))[0] for p in players]
    await make_selection(db_session, tickets[0], teams[0], 1)
    await make_selection(db_session, tickets[1], teams[2], 1)

    deadline = NOW + timedelta(hours=1)
    await set_deadline(db_session, game.id, identity(admin), deadline, now=NOW)

    after = NOW + timedelta(hours=2)
    assert await find_expired_games(db_session, after) == [game.id]
    outcome = await enforce_deadline(db_session, game.id, now=after, rng=random.Random(1))

    assert outcome.action == LOCKED
    assert outcome.round_number == 1
    assert outcome.auto_assigned_count == 1
    assert outcome.manual_selection_count == 2
    assert outcome.total_active_tickets == 3

    locked = await reload(db_session, Game, game.id)
    assert locked.round_status == RoundStatus.selection_locked
    assert locked.selection_deadline is None

    (auto,) = await selections_for(db_session, tickets[2])
    assert auto.is_auto_assigned
    assert auto.round == 1
    # a team nobody else holds this round is preferred
    assert auto.team_id not in {teams[0].id, teams[2].id}

    logs = await list_audit_logs(db_session, game.id, identity(admin))
    assert [entry.action for entry in logs] == [AuditAction.deadline_set, AuditAction.auto_lock]
    lock_entry = logs[-1]
    assert lock_entry.auto_assigned_count == 1
    assert lock_entry.manual_selection_count == 2
    assert lock_entry.total_active_tickets == 3
    assert lock_entry.deadline is not None and to_utc(lock_entry.deadline) == deadline


@pytest.mark.asyncio
async def test_second_enforcement_is_a_no_op(db_session: AsyncSession) -> None:
    admin = await make_user(db_session, "admin", is_admin=True)
    player = await make_user(db_session, "dora")
    # no fixtures for the round, so any seeded team may be drawn
    await make_teams(db_session, 4)
    game = await make_active_game(db_session, admin, deadline=NOW - timedelta(minutes=1))
    await give_tickets(db_session, game, player)

    first = await enforce_deadline(db_session, game.id, now=NOW)
    second = await enforce_deadline(db_session, game.id, now=NOW)

    assert first.action == LOCKED and first.auto_assigned_count == 1
    assert second.action == NO_ACTION
    assert await count_rows(db_session, TeamSelection) == 1
    assert await count_rows(
        db_session, DeadlineAuditLog, DeadlineAuditLog.action == AuditAction.auto_lock
    ) == 1


@pytest.mark.asyncio
async def test_deadline_not_reached_is_left_alone(db_session: AsyncSession) -> None:
    admin = await make_user(db_session, "admin", is_admin=True)
    game = await make_active_game(db_session, admin, deadline=NOW + timedelta(minutes=5))

    assert await find_expired_games(db_session, NOW) == []
    outcome = await enforce_deadline(db_session, game.id, now=NOW)
    assert outcome.action == NO_ACTION
    assert (await reload(db_session, Game, game.id)).round_status == RoundStatus.selection_open


@pytest.mark.asyncio
async def test_exhausted_ticket_is_skipped(db_session: AsyncSession) -> None:
    admin = await make_user(db_session, "admin", is_admin=True)
    player = await make_user(db_session, "enzo")
    teams = await make_teams(db_session, 2)
    game = await make_active_game(
        db_session, admin, current_round=3, deadline=NOW - timedelta(seconds=1)
    )
    (ticket,) = await give_tickets(db_session, game, player)
    await make_selection(db_session, ticket, teams[0], 1)
    await make_selection(db_session, ticket, teams[1], 2)

    outcome = await enforce_deadline(db_session, game.id, now=NOW)

    assert outcome.action == LOCKED
    assert outcome.auto_assigned_count == 0
    assert outcome.skipped_ticket_ids == [ticket.id]
    assert await _round_selections(db_session, game, 3) == []


@pytest.mark.asyncio
async def test_sweep_locks_each_expired_game(
    db_session: AsyncSession, session_factory: async_sessionmaker[AsyncSession]
) -> None:
    admin = await make_user(db_session, "admin", is_admin=True)
    await make_teams(db_session, 4)
    expired = await make_active_game(db_session, admin, deadline=NOW - timedelta(minutes=3))
    pending = await make_active_game(db_session, admin, deadline=NOW + timedelta(minutes=3))

    results = await enforce_expired_deadlines(session_factory, now=NOW)

    assert [(r.game_id, r.action) for r in results] == [(expired.id, LOCKED)]
    assert (await reload(db_session, Game, pending.id)).round_status == RoundStatus.selection_open


@pytest.mark.asyncio
async def test_admin_can_lock_before_deadline(db_session: AsyncSession) -> None:
    admin = await make_user(db_session, "admin", is_admin=True)
    player = await make_user(db_session, "flavia")
    await make_teams(db_session, 4)
    game = await make_active_game(db_session, admin)
    await give_tickets(db_session, game, player)

    outcome = await lock_game_now(db_session, game.id, identity(admin), now=NOW)

    assert outcome.action == LOCKED
    assert outcome.auto_assigned_count == 1
    assert (await reload(db_session, Game, game.id)).round_status == RoundStatus.selection_locked


@pytest.mark.asyncio
async def test_deadline_rules(db_session: AsyncSession) -> None:
    admin = await make_user(db_session, "admin", is_admin=True)
    game = await make_active_game(db_session, admin)
    me = identity(admin)

    with pytest.raises(InvalidDeadlineError):
        await set_deadline(db_session, game.id, me, NOW - timedelta(minutes=1), now=NOW)

    await set_deadline(db_session, game.id, me, NOW + timedelta(days=1), now=NOW)
    cleared = await clear_deadline(db_session, game.id, me)
    assert cleared.selection_deadline is None

    logs = await list_audit_logs(db_session, game.id, me)
    assert [entry.action for entry in logs] == [
        AuditAction.deadline_set,
        AuditAction.deadline_cleared,
    ]

    await lock_game_now(db_session, game.id, me, now=NOW)
    with pytest.raises(SelectionsLockedError):
        await set_deadline(db_session, game.id, me, NOW + timedelta(days=1), now=NOW)


@pytest.mark.asyncio
async def test_deadline_needs_an_active_game(db_session: AsyncSession) -> None:
    from highlander.models.games import GameCreate
    from highlander.services.game_service import create_game

    admin = await make_user(db_session, "admin", is_admin=True)
    game = await create_game(db_session, identity(admin), GameCreate(name="Early", start_round=1))

    with pytest.raises(GameNotActiveError):
        await set_deadline(db_session, game.id, identity(admin), NOW + timedelta(hours=1), now=NOW)


@pytest.mark.asyncio
async def test_concurrent_enforcement_locks_once(
    db_session: AsyncSession, session_factory: async_sessionmaker[AsyncSession]
) -> None:
    admin = await make_user(db_session, "admin", is_admin=True)
    players = [await make_user(db_session, name) for name in ("nora", "otto")]
    teams = await make_teams(db_session, 4)
    await make_match(db_session, 1, teams[0], teams[1])
    await make_match(db_session, 1, teams[2], teams[3])
    game = await make_active_game(db_session, admin, deadline=NOW - timedelta(minutes=1))
    tickets = [(await give_tickets(db_session, game, p))[0] for p in players]

    async with session_factory() as first, session_factory() as second:
        outcomes = await asyncio.gather(
            enforce_deadline(first, game.id, now=NOW, rng=random.Random(1)),
            enforce_deadline(second, game.id, now=NOW, rng=random.Random(2)),
        )

    assert sorted(o.action for o in outcomes) == sorted([LOCKED, NO_ACTION])
    winner = next(o for o in outcomes if o.action == LOCKED)
    assert winner.auto_assigned_count == 2
    assert await count_rows(
        db_session, DeadlineAuditLog, DeadlineAuditLog.action == AuditAction.auto_lock
    ) == 1
    for ticket in tickets:
        assert len(await selections_for(db_session, ticket)) == 1
    assert (await reload(db_session, Game, game.id)).round_status == RoundStatus.selection_locked


@pytest.mark.asyncio
async def test_late_pick_racing_the_lock(
    db_session: AsyncSession, session_factory: async_sessionmaker[AsyncSession]
) -> None:
    """The pick lands before the lock and counts as manual, or it is refused."""
    admin = await make_user(db_session, "admin", is_admin=True)
    paola = await make_user(db_session, "paola")
    quinn = await make_user(db_session, "quinn")
    teams = await make_teams(db_session, 4)
    await make_match(db_session, 1, teams[0], teams[1])
    await make_match(db_session, 1, teams[2], teams[3])
    game = await make_active_game(db_session, admin)
    (late,) = await give_tickets(db_session, game, paola)
    (idle,) = await give_tickets(db_session, game, quinn)

    async with session_factory() as picker, session_factory() as locker:
        picked, locked = await asyncio.gather(
            submit_selection(picker, identity(paola), late.id, teams[0].id, now=NOW),
            lock_game_now(locker, game.id, identity(admin), now=NOW, rng=random.Random(3)),
            return_exceptions=True,
        )

    assert not isinstance(locked, BaseException)
    assert locked.action == LOCKED
    (late_pick,) = await selections_for(db_session, late)
    (idle_pick,) = await selections_for(db_session, idle)
    assert idle_pick.is_auto_assigned

    if isinstance(picked, BaseException):
        assert isinstance(picked, (SelectionsLockedError, DeadlinePassedError))
        assert late_pick.is_auto_assigned
        assert locked.auto_assigned_count == 2
    else:
        assert late_pick.team_id == teams[0].id and not late_pick.is_auto_assigned
        assert locked.auto_assigned_count == 1
        assert locked.manual_selection_count == 1
