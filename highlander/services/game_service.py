"""Game administration: lifecycle, tickets, deadlines and round advance."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from highlander.config import settings
from highlander.exceptions import (
    AdminTicketError,
    GameNotActiveError,
    GameNotFoundError,
    InvalidDeadlineError,
    InvalidTicketCountError,
    NotGameOwnerError,
    RegistrationClosedError,
    RoundNotCalculatedError,
    SelectionsLockedError,
    TicketNotFoundError,
    TicketNotOwnedError,
    UserNotFoundError,
)
from highlander.models.fields import AuditAction, GameStatus, RoundStatus
from highlander.models.games import GameCreate
from highlander.schemas.audit_logs import DeadlineAuditLog
from highlander.schemas.games import Game, GameParticipant
from highlander.schemas.tickets import TeamSelection, Ticket
from highlander.schemas.users import User
from highlander.services.user_service import UserIdentity
from highlander.utils.clock import to_utc, utcnow
from highlander.utils.retry import with_db_retry

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Shared loaders (call inside an open transaction)
# ---------------------------------------------------------------------------


async def load_game(db: AsyncSession, game_id: int, *, for_update: bool = False) -> Game:
    """Fetch a game or raise ``GameNotFoundError``.

    ``for_update`` takes a row lock; the game row is the mutual-exclusion
    point between selection writes, deadline locks and round resolution.
    """
    # round_status is also written by bulk UPDATEs; never trust a cached row
    stmt = (
        select(Game)
        .where(Game.id == game_id)  # type: ignore[arg-type]
        .execution_options(populate_existing=True)
    )
    if for_update:
        stmt = stmt.with_for_update()
    result = await db.execute(stmt)
    game = result.scalar_one_or_none()
    if game is None:
        raise GameNotFoundError()
    return game


def require_owner(game: Game, admin: UserIdentity) -> None:
    if game.created_by != admin.id:
        raise NotGameOwnerError()


def require_active(game: Game) -> None:
    if game.status != GameStatus.active:
        raise GameNotActiveError()


# ---------------------------------------------------------------------------
# Game lifecycle
# ---------------------------------------------------------------------------


@with_db_retry()
async def create_game(db: AsyncSession, admin: UserIdentity, data: GameCreate) -> Game:
    async with db.begin():
        game = Game(
            name=data.name,
            description=data.description,
            start_round=data.start_round,
            current_round=data.start_round,
            status=GameStatus.registration,
            round_status=RoundStatus.selection_open,
            created_by=admin.id,
        )
        db.add(game)
        await db.flush()
    logger.info("Game %s '%s' created by user %s", game.id, game.name, admin.id)
    return game


@with_db_retry()
async def get_game(db: AsyncSession, game_id: int) -> Game:
    async with db.begin():
        return await load_game(db, game_id)


@with_db_retry()
async def list_games_for_user(db: AsyncSession, user: UserIdentity) -> list[Game]:
    """Admins see the games they created, players the games they joined."""
    async with db.begin():
        if user.is_admin:
            stmt = select(Game).where(Game.created_by == user.id)  # type: ignore[arg-type]
        else:
            stmt = (
                select(Game)
                .join(GameParticipant, GameParticipant.game_id == Game.id)  # type: ignore[arg-type]
                .where(GameParticipant.user_id == user.id)  # type: ignore[arg-type]
            )
        result = await db.execute(stmt.order_by(Game.created_at.desc()))  # type: ignore[attr-defined]
        return list(result.scalars().all())


@with_db_retry()
async def delete_game(db: AsyncSession, game_id: int, admin: UserIdentity) -> None:
    """Delete a game and everything it owns in one transaction."""
    async with db.begin():
        game = await load_game(db, game_id, for_update=True)
        require_owner(game, admin)

        # mirrors ON DELETE CASCADE on every game-owned foreign key
        await db.execute(delete(TeamSelection).where(TeamSelection.game_id == game_id))  # type: ignore[arg-type]
        await db.execute(delete(Ticket).where(Ticket.game_id == game_id))  # type: ignore[arg-type]
        await db.execute(
            delete(GameParticipant).where(GameParticipant.game_id == game_id)  # type: ignore[arg-type]
        )
        await db.execute(
            delete(DeadlineAuditLog).where(DeadlineAuditLog.game_id == game_id)  # type: ignore[arg-type]
        )
        await db.delete(game)
    logger.info("Game %s deleted by user %s", game_id, admin.id)


@with_db_retry()
async def close_registration(db: AsyncSession, game_id: int, admin: UserIdentity) -> Game:
    async with db.begin():
        game = await load_game(db, game_id, for_update=True)
        require_owner(game, admin)
        if game.status != GameStatus.registration:
            raise RegistrationClosedError("Registration is not open for this game.")
        game.status = GameStatus.active
        game.round_status = RoundStatus.selection_open
    logger.info("Game %s registration closed; game is active at round %s", game_id, game.current_round)
    return game


# ---------------------------------------------------------------------------
# Tickets
# ---------------------------------------------------------------------------


@with_db_retry()
async def assign_tickets(
    db: AsyncSession,
    game_id: int,
    admin: UserIdentity,
    *,
    user_id: int,
    count: int = 1,
) -> list[Ticket]:
    """Give ``count`` tickets to a player and register them as participant."""
    max_count = settings.max_tickets_per_assignment
    async with db.begin():
        game = await load_game(db, game_id, for_update=True)
        require_owner(game, admin)
        if game.status != GameStatus.registration:
            raise RegistrationClosedError(
                "Cannot assign tickets - registration is closed."
            )

        target = await db.get(User, user_id)
        if target is None:
            raise UserNotFoundError()
        if target.is_admin:
            raise AdminTicketError()
        if count < 1 or count > max_count:
            raise InvalidTicketCountError(
                f"Ticket count must be between 1 and {max_count}."
            )

        tickets = [Ticket(game_id=game_id, user_id=user_id) for _ in range(count)]
        db.add_all(tickets)

        existing = await db.execute(
            select(GameParticipant).where(
                GameParticipant.game_id == game_id,  # type: ignore[arg-type]
                GameParticipant.user_id == user_id,  # type: ignore[arg-type]
            )
        )
        if existing.scalar_one_or_none() is None:
            db.add(GameParticipant(game_id=game_id, user_id=user_id))
        await db.flush()

    logger.info("Assigned %d ticket(s) in game %s to user %s", count, game_id, user_id)
    return tickets


@with_db_retry()
async def list_user_tickets(
    db: AsyncSession, game_id: int, user: UserIdentity
) -> list[Ticket]:
    async with db.begin():
        await load_game(db, game_id)
        result = await db.execute(
            select(Ticket)
            .where(Ticket.game_id == game_id, Ticket.user_id == user.id)  # type: ignore[arg-type]
            .order_by(Ticket.id)  # type: ignore[arg-type]
        )
        return list(result.scalars().all())


@with_db_retry()
async def list_ticket_selections(
    db: AsyncSession, ticket_id: int, user: UserIdentity
) -> tuple[Ticket, list[TeamSelection]]:
    """Selections of one ticket, visible to its holder and the game's admin."""
    async with db.begin():
        ticket = await db.get(Ticket, ticket_id)
        if ticket is None:
            raise TicketNotFoundError()
        if ticket.user_id != user.id:
            game = await load_game(db, ticket.game_id)
            if game.created_by != user.id:
                raise TicketNotOwnedError("Access denied.")
        result = await db.execute(
            select(TeamSelection)
            .where(TeamSelection.ticket_id == ticket_id)  # type: ignore[arg-type]
            .order_by(TeamSelection.round)  # type: ignore[arg-type]
        )
        return ticket, list(result.scalars().all())


@with_db_retry()
async def list_game_tickets(
    db: AsyncSession, game_id: int, admin: UserIdentity
) -> list[tuple[Ticket, list[TeamSelection]]]:
    """Every ticket of a game with its selections (admin overview)."""
    async with db.begin():
        game = await load_game(db, game_id)
        require_owner(game, admin)
        tickets_result = await db.execute(
            select(Ticket).where(Ticket.game_id == game_id).order_by(Ticket.id)  # type: ignore[arg-type]
        )
        tickets = list(tickets_result.scalars().all())
        selections_result = await db.execute(
            select(TeamSelection)
            .where(TeamSelection.game_id == game_id)  # type: ignore[arg-type]
            .order_by(TeamSelection.round)  # type: ignore[arg-type]
        )
        by_ticket: dict[int, list[TeamSelection]] = {}
        for selection in selections_result.scalars().all():
            by_ticket.setdefault(selection.ticket_id, []).append(selection)

    return [(ticket, by_ticket.get(ticket.id or 0, [])) for ticket in tickets]


async def _selections_by_ticket(
    db: AsyncSession, ticket_ids: list[int]
) -> dict[int, list[TeamSelection]]:
    result = await db.execute(
        select(TeamSelection)
        .where(TeamSelection.ticket_id.in_(ticket_ids))  # type: ignore[attr-defined]
        .order_by(TeamSelection.round)  # type: ignore[arg-type]
    )
    by_ticket: dict[int, list[TeamSelection]] = {}
    for selection in result.scalars().all():
        by_ticket.setdefault(selection.ticket_id, []).append(selection)
    return by_ticket


async def _games_newest_first(db: AsyncSession, *where: Any) -> list[Game]:
    result = await db.execute(
        select(Game)
        .where(*where)
        .order_by(Game.created_at.desc(), Game.id.desc())  # type: ignore[attr-defined,union-attr]
    )
    return list(result.scalars().all())


@with_db_retry()
async def list_user_selections(
    db: AsyncSession, user: UserIdentity
) -> list[tuple[Game, list[tuple[Ticket, list[TeamSelection]]]]]:
    """The caller's tickets and picks in every game, grouped by game."""
    async with db.begin():
        result = await db.execute(
            select(Ticket)
            .where(Ticket.user_id == user.id)  # type: ignore[arg-type]
            .order_by(Ticket.id)  # type: ignore[arg-type]
        )
        tickets = list(result.scalars().all())
        if not tickets:
            return []
        games = await _games_newest_first(
            db, Game.id.in_(sorted({t.game_id for t in tickets}))  # type: ignore[union-attr]
        )
        by_ticket = await _selections_by_ticket(db, [t.id for t in tickets])  # type: ignore[misc]

    by_game: dict[int, list[tuple[Ticket, list[TeamSelection]]]] = {}
    for ticket in tickets:
        by_game.setdefault(ticket.game_id, []).append((ticket, by_ticket.get(ticket.id or 0, [])))
    return [(game, by_game[game.id or 0]) for game in games]


@with_db_retry()
async def list_admin_overview(
    db: AsyncSession, admin: UserIdentity
) -> list[tuple[Game, list[tuple[Ticket, str, list[TeamSelection]]]]]:
    """Every game the admin created, each ticket with its holder and picks."""
    async with db.begin():
        games = await _games_newest_first(db, Game.created_by == admin.id)
        if not games:
            return []
        result = await db.execute(
            select(Ticket, User.username)  # type: ignore[call-overload]
            .join(User, User.id == Ticket.user_id)
            .where(Ticket.game_id.in_([g.id for g in games]))
            .order_by(Ticket.id)
        )
        rows = [(ticket, username) for ticket, username in result.all()]
        by_ticket = await _selections_by_ticket(db, [t.id for t, _ in rows])  # type: ignore[misc]

    by_game: dict[int, list[tuple[Ticket, str, list[TeamSelection]]]] = {
        game.id or 0: [] for game in games
    }
    for ticket, username in rows:
        by_game[ticket.game_id].append((ticket, username, by_ticket.get(ticket.id or 0, [])))
    return [(game, by_game[game.id or 0]) for game in games]


# ---------------------------------------------------------------------------
# Deadlines
# ---------------------------------------------------------------------------


def _audit(game: Game, action: AuditAction, deadline: datetime | None) -> DeadlineAuditLog:
    return DeadlineAuditLog(
        game_id=game.id,  # type: ignore[arg-type]
        action=action,
        round_number=game.current_round,
        deadline=deadline,
    )


@with_db_retry()
async def set_deadline(
    db: AsyncSession,
    game_id: int,
    admin: UserIdentity,
    deadline: datetime,
    now: datetime | None = None,
) -> Game:
    now = to_utc(now) if now else utcnow()
    deadline = to_utc(deadline)
    async with db.begin():
        game = await load_game(db, game_id, for_update=True)
        require_owner(game, admin)
        require_active(game)
        if game.round_status != RoundStatus.selection_open:
            raise SelectionsLockedError()
        if deadline <= now:
            raise InvalidDeadlineError()

        game.selection_deadline = deadline
        db.add(_audit(game, AuditAction.deadline_set, deadline))
    logger.info("Game %s round %s deadline set to %s", game_id, game.current_round, deadline.isoformat())
    return game


@with_db_retry()
async def clear_deadline(db: AsyncSession, game_id: int, admin: UserIdentity) -> Game:
    async with db.begin():
        game = await load_game(db, game_id, for_update=True)
        require_owner(game, admin)
        previous = game.selection_deadline
        if previous is not None:
            game.selection_deadline = None
            db.add(_audit(game, AuditAction.deadline_cleared, previous))
    logger.info("Game %s deadline cleared", game_id)
    return game


@with_db_retry()
async def list_audit_logs(
    db: AsyncSession, game_id: int, admin: UserIdentity
) -> list[DeadlineAuditLog]:
    async with db.begin():
        game = await load_game(db, game_id)
        require_owner(game, admin)
        result = await db.execute(
            select(DeadlineAuditLog)
            .where(DeadlineAuditLog.game_id == game_id)  # type: ignore[arg-type]
            .order_by(DeadlineAuditLog.created_at, DeadlineAuditLog.id)  # type: ignore[arg-type]
        )
        return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Round advance
# ---------------------------------------------------------------------------


@with_db_retry()
async def start_next_round(db: AsyncSession, game_id: int, admin: UserIdentity) -> Game:
    """Open selections for the following season round."""
    async with db.begin():
        game = await load_game(db, game_id, for_update=True)
        require_owner(game, admin)
        require_active(game)
        if game.round_status != RoundStatus.calculated:
            raise RoundNotCalculatedError()

        game.current_round += 1
        game.round_status = RoundStatus.selection_open
        game.selection_deadline = None
    logger.info("Game %s advanced to round %s", game_id, game.current_round)
    return game
