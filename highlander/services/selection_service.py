"""Player team selections."""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from highlander.exceptions import (
    DeadlinePassedError,
    SelectionsLockedError,
    TeamAlreadyUsedError,
    TeamNotFoundError,
    TeamNotPlayingError,
    TicketInactiveError,
    TicketNotFoundError,
    TicketNotOwnedError,
)
from highlander.models.fields import RoundStatus
from highlander.schemas.matches import Match
from highlander.schemas.teams import Team
from highlander.schemas.tickets import TeamSelection, Ticket
from highlander.services.game_service import load_game, require_active
from highlander.services.user_service import UserIdentity
from highlander.utils.clock import to_utc, utcnow
from highlander.utils.retry import with_db_retry

logger = logging.getLogger(__name__)


async def _team_plays_in_round(db: AsyncSession, team_id: int, round_number: int) -> bool:
    """True when the team has a fixture, or when no fixtures are loaded yet."""
    fixtures = await db.execute(
        select(Match.home_team_id, Match.away_team_id).where(  # type: ignore[call-overload]
            Match.round == round_number
        )
    )
    rows = fixtures.all()
    if not rows:
        return True
    return any(team_id in row for row in rows)


@with_db_retry()
async def submit_selection(
    db: AsyncSession,
    user: UserIdentity,
    ticket_id: int,
    team_id: int,
    now: datetime | None = None,
) -> TeamSelection:
    """Pick (or change) the team a ticket backs in the game's current round.

    The game row is locked for the whole transaction, so a pick either
    commits before the deadline lock flips the round or is rejected after it.
    """
    now = to_utc(now) if now else utcnow()
    async with db.begin():
        ticket = await db.get(Ticket, ticket_id)
        if ticket is None:
            raise TicketNotFoundError()

        # game row first, then the ticket: same order as round resolution
        game = await load_game(db, ticket.game_id, for_update=True)
        await db.refresh(ticket, with_for_update=True)
        require_active(game)
        if game.round_status != RoundStatus.selection_open:
            raise SelectionsLockedError()
        if game.selection_deadline is not None and now >= to_utc(game.selection_deadline):
            raise DeadlinePassedError()

        if ticket.user_id != user.id:
            raise TicketNotOwnedError()
        if not ticket.is_active:
            raise TicketInactiveError()

        team = await db.get(Team, team_id)
        if team is None:
            raise TeamNotFoundError()

        round_number = game.current_round
        if not await _team_plays_in_round(db, team_id, round_number):
            raise TeamNotPlayingError()

        earlier = await db.execute(
            select(TeamSelection.id).where(  # type: ignore[call-overload]
                TeamSelection.ticket_id == ticket_id,
                TeamSelection.team_id == team_id,
                TeamSelection.round != round_number,
            )
        )
        if earlier.first() is not None:
            raise TeamAlreadyUsedError()

        current = (
            await db.execute(
                select(TeamSelection).where(
                    TeamSelection.ticket_id == ticket_id,  # type: ignore[arg-type]
                    TeamSelection.round == round_number,  # type: ignore[arg-type]
                )
            )
        ).scalar_one_or_none()

        if current is None:
            selection = TeamSelection(
                ticket_id=ticket_id,
                game_id=game.id,
                team_id=team_id,
                round=round_number,
                is_auto_assigned=False,
            )
            db.add(selection)
        else:
            selection = current
            selection.team_id = team_id
            selection.is_auto_assigned = False
            selection.updated_at = now
        await db.flush()

    logger.info(
        "Ticket %s picked team %s for game %s round %s",
        ticket_id,
        team_id,
        game.id,
        round_number,
    )
    return selection
