"""Game administration routes (owner admin only)."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from highlander.models.games import (
    AuditLogRead,
    DeadlineCheckRead,
    DeadlineSet,
    GameCreate,
    GameRead,
    GameStandingsRead,
    MessageResponse,
    RoundResolutionRead,
    TicketAssign,
    TicketRead,
    TicketSelectionsRead,
    VerdictRead,
)
from highlander.routes.helpers import require_admin
from highlander.services import game_service
from highlander.services.deadline_service import lock_game_now
from highlander.services.round_service import calculate_round, reevaluate_game
from highlander.services.user_service import UserIdentity
from highlander.utils.db_async import get_session

router = APIRouter(prefix="/api/games", tags=["admin-games"])


@router.post("", response_model=GameRead, status_code=201)
async def create_game(
    body: GameCreate,
    admin: UserIdentity = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> GameRead:
    game = await game_service.create_game(db, admin, body)
    return GameRead.model_validate(game)


@router.delete("/{game_id}", response_model=MessageResponse)
async def delete_game(
    game_id: int,
    admin: UserIdentity = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> MessageResponse:
    """Delete the game with its tickets, selections and audit trail."""
    await game_service.delete_game(db, game_id, admin)
    return MessageResponse(message="Game deleted successfully")


@router.post("/{game_id}/close-registration", response_model=GameRead)
async def close_registration(
    game_id: int,
    admin: UserIdentity = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> GameRead:
    game = await game_service.close_registration(db, game_id, admin)
    return GameRead.model_validate(game)


# ========== Tickets ==========


@router.post("/{game_id}/tickets", response_model=List[TicketRead], status_code=201)
async def assign_tickets(
    game_id: int,
    body: TicketAssign,
    admin: UserIdentity = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> List[TicketRead]:
    tickets = await game_service.assign_tickets(
        db, game_id, admin, user_id=body.user_id, count=body.count
    )
    return [TicketRead.model_validate(t) for t in tickets]


@router.get("/{game_id}/tickets/all", response_model=List[TicketSelectionsRead])
async def all_tickets(
    game_id: int,
    admin: UserIdentity = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> List[TicketSelectionsRead]:
    """Every ticket of the game with its picks so far."""
    rows = await game_service.list_game_tickets(db, game_id, admin)
    return [TicketSelectionsRead.from_rows(ticket, selections) for ticket, selections in rows]


# ========== Deadlines ==========


@router.put("/{game_id}/deadline", response_model=GameRead)
async def set_deadline(
    game_id: int,
    body: DeadlineSet,
    admin: UserIdentity = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> GameRead:
    game = await game_service.set_deadline(db, game_id, admin, body.deadline)
    return GameRead.model_validate(game)


@router.delete("/{game_id}/deadline", response_model=GameRead)
async def clear_deadline(
    game_id: int,
    admin: UserIdentity = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> GameRead:
    game = await game_service.clear_deadline(db, game_id, admin)
    return GameRead.model_validate(game)


@router.post("/{game_id}/enforce-deadline", response_model=DeadlineCheckRead)
async def enforce_deadline(
    game_id: int,
    admin: UserIdentity = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> DeadlineCheckRead:
    """Lock selections now, auto-assigning tickets without a pick."""
    outcome = await lock_game_now(db, game_id, admin)
    return DeadlineCheckRead(
        game_id=outcome.game_id,
        action=outcome.action,
        round_number=outcome.round_number,
        auto_assigned_count=outcome.auto_assigned_count,
        manual_selection_count=outcome.manual_selection_count,
        skipped_ticket_ids=outcome.skipped_ticket_ids,
        detail=outcome.detail,
    )


@router.get("/{game_id}/audit-log", response_model=List[AuditLogRead])
async def audit_log(
    game_id: int,
    admin: UserIdentity = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> List[AuditLogRead]:
    logs = await game_service.list_audit_logs(db, game_id, admin)
    return [AuditLogRead.model_validate(entry) for entry in logs]


# ========== Rounds ==========


@router.post("/{game_id}/calculate-round", response_model=RoundResolutionRead)
async def calculate_round_handler(
    game_id: int,
    admin: UserIdentity = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> RoundResolutionRead:
    resolution = await calculate_round(db, game_id, admin)
    return RoundResolutionRead(
        game_id=resolution.game_id,
        round=resolution.round,
        eliminated_ticket_ids=resolution.eliminated_ticket_ids,
        remaining_active_tickets=resolution.remaining_active_tickets,
        game_status=resolution.game_status,
        verdict=VerdictRead.from_verdict(resolution.verdict),
    )


@router.post("/{game_id}/next-round", response_model=GameRead)
async def next_round(
    game_id: int,
    admin: UserIdentity = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> GameRead:
    game = await game_service.start_next_round(db, game_id, admin)
    return GameRead.model_validate(game)


@router.post("/{game_id}/evaluate", response_model=GameStandingsRead)
async def evaluate(
    game_id: int,
    admin: UserIdentity = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> GameStandingsRead:
    """Re-run the end-of-game rules and close the game if it is over."""
    game, verdict = await reevaluate_game(db, game_id, admin)
    return GameStandingsRead(
        game=GameRead.model_validate(game),
        verdict=VerdictRead.from_verdict(verdict),
    )
