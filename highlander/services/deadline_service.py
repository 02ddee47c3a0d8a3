"""Deadline enforcement: auto-assign missing picks and lock the round.

A sweep finds active games whose selection deadline has passed while the
round is still open and locks each of them in its own transaction. The lock
is a conditional UPDATE on ``round_status``; whichever transaction flips
``selection_open`` to ``selection_locked`` first does the work, and any
concurrent or repeated attempt sees zero affected rows and returns without
touching anything.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from highlander.models.fields import AuditAction, GameStatus, RoundStatus
from highlander.schemas.audit_logs import DeadlineAuditLog
from highlander.schemas.games import Game
from highlander.schemas.matches import Match
from highlander.schemas.teams import Team
from highlander.schemas.tickets import TeamSelection, Ticket
from highlander.services.game_logic import choose_auto_assignment
from highlander.services.game_service import load_game, require_active, require_owner
from highlander.services.user_service import UserIdentity
from highlander.utils.clock import to_utc, utcnow
from highlander.utils.retry import with_db_retry

logger = logging.getLogger(__name__)

LOCKED = "locked"
NO_ACTION = "no_action"
ERROR = "error"


@dataclass
class DeadlineCheckResult:
    game_id: int
    action: str
    round_number: Optional[int] = None
    auto_assigned_count: int = 0
    manual_selection_count: int = 0
    total_active_tickets: int = 0
    skipped_ticket_ids: list[int] = field(default_factory=list)
    deadline: Optional[datetime] = None
    detail: Optional[str] = None


@with_db_retry()
async def find_expired_games(db: AsyncSession, now: datetime) -> list[int]:
    """Ids of active, still-open games whose deadline is at or before ``now``."""
    async with db.begin():
        result = await db.execute(
            select(Game.id)  # type: ignore[call-overload]
            .where(
                Game.status == GameStatus.active,
                Game.round_status == RoundStatus.selection_open,
                Game.selection_deadline.is_not(None),  # type: ignore[union-attr]
                Game.selection_deadline <= now,  # type: ignore[operator]
            )
            .order_by(Game.id)
        )
        return list(result.scalars().all())


async def _candidate_team_ids(db: AsyncSession, round_number: int) -> list[int]:
    """Teams playing this round; every team when fixtures are not loaded yet."""
    matches = await db.execute(
        select(Match.home_team_id, Match.away_team_id).where(  # type: ignore[call-overload]
            Match.round == round_number
        )
    )
    playing = sorted({team_id for row in matches.all() for team_id in row})
    if playing:
        return playing
    teams = await db.execute(select(Team.id).order_by(Team.id))  # type: ignore[call-overload]
    return list(teams.scalars().all())


async def _lock_round(
    db: AsyncSession, game_id: int, now: datetime, require_expired: bool
) -> Optional[tuple[int, Optional[datetime]]]:
    """Flip selection_open -> selection_locked; None when another caller won."""
    stmt = (
        update(Game)
        .where(
            Game.id == game_id,  # type: ignore[arg-type]
            Game.status == GameStatus.active,  # type: ignore[arg-type]
            Game.round_status == RoundStatus.selection_open,  # type: ignore[arg-type]
        )
        .values(round_status=RoundStatus.selection_locked)
        .returning(Game.current_round, Game.selection_deadline)
        .execution_options(synchronize_session=False)
    )
    if require_expired:
        stmt = stmt.where(
            Game.selection_deadline.is_not(None),  # type: ignore[union-attr]
            Game.selection_deadline <= now,  # type: ignore[operator]
        )
    row = (await db.execute(stmt)).one_or_none()
    if row is None:
        return None
    return row[0], row[1]


async def _auto_assign_missing(
    db: AsyncSession,
    game_id: int,
    round_number: int,
    rng: random.Random,
) -> DeadlineCheckResult:
    active = await db.execute(
        select(Ticket.id)  # type: ignore[call-overload]
        .where(Ticket.game_id == game_id, Ticket.is_active.is_(True))  # type: ignore[attr-defined]
        .order_by(Ticket.id)
    )
    active_ids = list(active.scalars().all())

    round_selections = await db.execute(
        select(TeamSelection.ticket_id, TeamSelection.team_id).where(  # type: ignore[call-overload]
            TeamSelection.game_id == game_id,
            TeamSelection.round == round_number,
        )
    )
    round_rows = round_selections.all()
    with_selection = {ticket_id for ticket_id, _ in round_rows}
    taken_in_round = {team_id for _, team_id in round_rows}

    missing = [tid for tid in active_ids if tid not in with_selection]
    outcome = DeadlineCheckResult(
        game_id=game_id,
        action=LOCKED,
        round_number=round_number,
        manual_selection_count=len(round_rows),
        total_active_tickets=len(active_ids),
    )
    if not missing:
        return outcome

    candidates = await _candidate_team_ids(db, round_number)
    history = await db.execute(
        select(TeamSelection.ticket_id, TeamSelection.team_id).where(  # type: ignore[call-overload]
            TeamSelection.ticket_id.in_(missing)  # type: ignore[attr-defined]
        )
    )
    used_by_ticket: dict[int, set[int]] = {tid: set() for tid in missing}
    for ticket_id, team_id in history.all():
        used_by_ticket[ticket_id].add(team_id)

    for ticket_id in missing:
        team_id = choose_auto_assignment(
            candidates, used_by_ticket[ticket_id], taken_in_round, rng
        )
        if team_id is None:
            logger.warning(
                "No team left to auto-assign for ticket %s in game %s round %s; "
                "every team has been used (team list shorter than the game)",
                ticket_id,
                game_id,
                round_number,
            )
            outcome.skipped_ticket_ids.append(ticket_id)
            continue

        db.add(
            TeamSelection(
                ticket_id=ticket_id,
                game_id=game_id,
                team_id=team_id,
                round=round_number,
                is_auto_assigned=True,
            )
        )
        taken_in_round.add(team_id)
        outcome.auto_assigned_count += 1

    return outcome


@with_db_retry()
async def enforce_deadline(
    db: AsyncSession,
    game_id: int,
    now: datetime | None = None,
    rng: random.Random | None = None,
    *,
    require_expired: bool = True,
) -> DeadlineCheckResult:
    """Lock one game's round, auto-assigning tickets that have no pick.

    Runs as a single transaction. With ``require_expired`` (the monitor's
    mode) the lock only happens once the deadline has passed; the admin
    on-demand path passes False.
    """
    now = to_utc(now) if now else utcnow()
    rng = rng or random.Random()

    async with db.begin():
        locked = await _lock_round(db, game_id, now, require_expired)
        if locked is None:
            return DeadlineCheckResult(
                game_id=game_id,
                action=NO_ACTION,
                detail="Game already locked, inactive or deadline not reached",
            )
        round_number, deadline = locked

        outcome = await _auto_assign_missing(db, game_id, round_number, rng)
        outcome.deadline = deadline

        await db.execute(
            update(Game)
            .where(Game.id == game_id)  # type: ignore[arg-type]
            .values(selection_deadline=None)
            .execution_options(synchronize_session=False)
        )
        db.add(
            DeadlineAuditLog(
                game_id=game_id,
                action=AuditAction.auto_lock,
                round_number=round_number,
                deadline=deadline,
                auto_assigned_count=outcome.auto_assigned_count,
                manual_selection_count=outcome.manual_selection_count,
                total_active_tickets=outcome.total_active_tickets,
            )
        )

    logger.info(
        "Auto-locked game %s round %s (deadline %s): %d auto-assigned, %d manual, %d active",
        game_id,
        round_number,
        deadline.isoformat() if deadline else "none",
        outcome.auto_assigned_count,
        outcome.manual_selection_count,
        outcome.total_active_tickets,
    )
    return outcome


async def lock_game_now(
    db: AsyncSession,
    game_id: int,
    admin: UserIdentity,
    now: datetime | None = None,
    rng: random.Random | None = None,
) -> DeadlineCheckResult:
    """Admin on-demand lock, deadline or not."""
    await _check_owner(db, game_id, admin)
    return await enforce_deadline(db, game_id, now, rng, require_expired=False)


@with_db_retry()
async def _check_owner(db: AsyncSession, game_id: int, admin: UserIdentity) -> None:
    async with db.begin():
        game = await load_game(db, game_id)
        require_owner(game, admin)
        require_active(game)


async def enforce_expired_deadlines(
    session_factory: async_sessionmaker[AsyncSession],
    now: datetime | None = None,
    rng: random.Random | None = None,
) -> list[DeadlineCheckResult]:
    """One sweep: lock every expired game, each in its own session.

    A failure in one game is logged and reported as an ``error`` result;
    the other games are still processed.
    """
    now = to_utc(now) if now else utcnow()
    async with session_factory() as db:
        expired = await find_expired_games(db, now)

    logger.debug("Deadline sweep at %s: %d expired game(s)", now.isoformat(), len(expired))

    results: list[DeadlineCheckResult] = []
    for game_id in expired:
        try:
            async with session_factory() as db:
                results.append(await enforce_deadline(db, game_id, now, rng))
        except Exception as exc:
            logger.error("Auto-lock failed for game %s: %s", game_id, exc, exc_info=True)
            results.append(
                DeadlineCheckResult(game_id=game_id, action=ERROR, detail=str(exc))
            )
    return results


class DeadlineMonitor:
    """Poll for expired deadlines on a fixed interval in the background."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        interval_seconds: float = 30.0,
    ) -> None:
        self.session_factory = session_factory
        self.interval_seconds = interval_seconds
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        logger.info("Starting deadline monitor (every %.0fs)", self.interval_seconds)
        self._task = asyncio.create_task(self._run(), name="deadline-monitor")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Deadline monitor stopped")

    async def run_once(self) -> list[DeadlineCheckResult]:
        results = await enforce_expired_deadlines(self.session_factory)
        locked = [r for r in results if r.action == LOCKED]
        if locked:
            logger.info(
                "Deadline monitor auto-locked %d game(s): %s",
                len(locked),
                [(r.game_id, r.auto_assigned_count) for r in locked],
            )
        return results

    async def _run(self) -> None:
        while True:
            try:
                await self.run_once()
            except Exception:
                logger.exception("Deadline monitor sweep failed")
            await asyncio.sleep(self.interval_seconds)
