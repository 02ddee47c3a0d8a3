"""Round resolution and game-end bookkeeping.

``calculate_round`` eliminates the tickets whose team failed to win, then
hands the surviving standings to ``evaluate_game_end``. Both steps run in the
same transaction with the game row locked, so a crash never leaves a round
half-resolved and a second call sees ``calculated`` and stops.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from highlander.exceptions import (
    RoundAlreadyCalculatedError,
    RoundNotReadyError,
    SelectionsStillOpenError,
)
from highlander.models.fields import GameStatus, RoundStatus
from highlander.schemas.games import Game, GameParticipant
from highlander.schemas.matches import Match
from highlander.schemas.tickets import TeamSelection, Ticket
from highlander.services.game_logic import (
    GameEndVerdict,
    SurvivorStanding,
    evaluate_game_end,
    find_eliminated_tickets,
    incomplete_matches,
    rank_survivors,
)
from highlander.services.game_service import (
    load_game,
    require_active,
    require_owner,
)
from highlander.services.user_service import UserIdentity
from highlander.utils.clock import to_utc, utcnow
from highlander.utils.retry import with_db_retry

logger = logging.getLogger(__name__)


@dataclass
class RoundResolution:
    """What one call to ``calculate_round`` decided."""

    game_id: int
    round: int
    eliminated_ticket_ids: list[int]
    remaining_active_tickets: int
    game_status: GameStatus
    verdict: GameEndVerdict


async def load_standings(db: AsyncSession, game_id: int) -> list[SurvivorStanding]:
    """Active tickets grouped by player, with each player's join time."""
    counts = await db.execute(
        select(  # type: ignore[call-overload]
            Ticket.user_id,
            func.count(Ticket.id),
            func.min(Ticket.created_at),
        )
        .where(Ticket.game_id == game_id, Ticket.is_active.is_(True))  # type: ignore[attr-defined]
        .group_by(Ticket.user_id)
    )
    rows = counts.all()
    if not rows:
        return []

    joined = await db.execute(
        select(GameParticipant.user_id, GameParticipant.joined_at).where(  # type: ignore[call-overload]
            GameParticipant.game_id == game_id
        )
    )
    joined_at = {user_id: ts for user_id, ts in joined.all()}

    return [
        SurvivorStanding(
            user_id=user_id,
            tickets_remaining=count,
            # a ticket holder without a participant row falls back to its first ticket
            joined_at=joined_at.get(user_id, first_ticket_at),
        )
        for user_id, count, first_ticket_at in rows
    ]


async def finalize_game(
    db: AsyncSession,
    game: Game,
    verdict: GameEndVerdict,
    now: datetime,
) -> None:
    """Mark the game completed and flag the winning participants."""
    if not verdict.ended:
        raise ValueError("Cannot finalize a game that hasn't ended")

    game.status = GameStatus.completed
    game.end_reason = verdict.reason
    game.completed_at = now
    game.selection_deadline = None

    winner_ids = [w.user_id for w in verdict.winners]
    if winner_ids:
        await db.execute(
            update(GameParticipant)
            .where(
                GameParticipant.game_id == game.id,  # type: ignore[arg-type]
                GameParticipant.user_id.in_(winner_ids),  # type: ignore[attr-defined]
            )
            .values(is_winner=True)
            .execution_options(synchronize_session=False)
        )

    logger.info(
        "Game %s ended: reason=%s winners=%s survivors=%d",
        game.id,
        verdict.reason.value if verdict.reason else None,
        winner_ids,
        len(verdict.survivors),
    )


@with_db_retry()
async def calculate_round(
    db: AsyncSession,
    game_id: int,
    admin: UserIdentity,
    now: datetime | None = None,
) -> RoundResolution:
    """Eliminate losing tickets for the game's current round.

    Raises ``RoundNotReadyError`` while any match of the round lacks a result
    and ``RoundAlreadyCalculatedError`` on a second call; neither touches a
    row. Selections must be locked first (deadline or on-demand lock).
    """
    now = to_utc(now) if now else utcnow()
    async with db.begin():
        game = await load_game(db, game_id, for_update=True)
        require_owner(game, admin)
        require_active(game)
        if game.round_status == RoundStatus.calculated:
            raise RoundAlreadyCalculatedError()
        if game.round_status == RoundStatus.selection_open:
            raise SelectionsStillOpenError()

        round_number = game.current_round
        matches_result = await db.execute(
            select(Match).where(Match.round == round_number)  # type: ignore[arg-type]
        )
        matches = list(matches_result.scalars().all())
        if not matches:
            raise RoundNotReadyError("No matches are scheduled for this round.")
        if incomplete_matches(matches):
            raise RoundNotReadyError()

        selections_result = await db.execute(
            select(TeamSelection).where(
                TeamSelection.game_id == game_id,  # type: ignore[arg-type]
                TeamSelection.round == round_number,  # type: ignore[arg-type]
            )
        )
        selections = list(selections_result.scalars().all())

        tickets_result = await db.execute(
            select(Ticket)
            .where(Ticket.game_id == game_id, Ticket.is_active.is_(True))  # type: ignore[attr-defined]
            .with_for_update()
        )
        active_tickets = {t.id: t for t in tickets_result.scalars().all()}

        eliminated_ids: list[int] = []
        for ticket_id in find_eliminated_tickets(selections, matches):
            ticket = active_tickets.get(ticket_id)
            if ticket is None:
                continue
            ticket.is_active = False
            ticket.eliminated_in_round = round_number
            eliminated_ids.append(ticket_id)

        game.round_status = RoundStatus.calculated
        game.selection_deadline = None
        await db.flush()

        standings = await load_standings(db, game_id)
        verdict = evaluate_game_end(standings, game.start_round, round_number)
        if verdict.ended:
            await finalize_game(db, game, verdict, now)

        remaining = sum(s.tickets_remaining for s in standings)

    logger.info(
        "Game %s round %s calculated: %d eliminated, %d active ticket(s) left",
        game_id,
        round_number,
        len(eliminated_ids),
        remaining,
    )
    return RoundResolution(
        game_id=game_id,
        round=round_number,
        eliminated_ticket_ids=sorted(eliminated_ids),
        remaining_active_tickets=remaining,
        game_status=game.status,
        verdict=verdict,
    )


def last_played_round(game: Game) -> int:
    """Season round whose results the standings reflect."""
    if game.round_status == RoundStatus.calculated:
        return game.current_round
    return game.current_round - 1


@with_db_retry()
async def evaluate_game(db: AsyncSession, game_id: int) -> tuple[Game, GameEndVerdict]:
    """Current verdict for a game without changing anything."""
    async with db.begin():
        game = await load_game(db, game_id)
        standings = await load_standings(db, game_id)
    if game.status == GameStatus.registration:
        # nothing has been played yet
        return game, GameEndVerdict(ended=False, survivors=tuple(rank_survivors(standings)))
    return game, evaluate_game_end(standings, game.start_round, last_played_round(game))


@with_db_retry()
async def reevaluate_game(
    db: AsyncSession,
    game_id: int,
    admin: UserIdentity,
    now: datetime | None = None,
) -> tuple[Game, GameEndVerdict]:
    """Re-run the end rules after a manual change and finalize if over."""
    now = to_utc(now) if now else utcnow()
    async with db.begin():
        game = await load_game(db, game_id, for_update=True)
        require_owner(game, admin)
        require_active(game)
        standings = await load_standings(db, game_id)
        verdict = evaluate_game_end(standings, game.start_round, last_played_round(game))
        if verdict.ended:
            await finalize_game(db, game, verdict, now)
    return game, verdict
