from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from highlander.models.games import (
    GameRead,
    GameSelectionsRead,
    SelectionRead,
    SelectionSubmit,
    TicketSelectionsRead,
)
from highlander.routes.helpers import get_current_user
from highlander.services.game_service import list_ticket_selections, list_user_selections
from highlander.services.selection_service import submit_selection
from highlander.services.user_service import UserIdentity
from highlander.utils.db_async import get_session

router = APIRouter(prefix="/api", tags=["selections"])


@router.post("/selections", response_model=SelectionRead)
async def submit_selection_handler(
    body: SelectionSubmit,
    user: UserIdentity = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> SelectionRead:
    """Pick a team for the current round; a second pick replaces the first."""
    selection = await submit_selection(db, user, body.ticket_id, body.team_id)
    return SelectionRead.model_validate(selection)


@router.get("/tickets/{ticket_id}/selections", response_model=TicketSelectionsRead)
async def ticket_selections(
    ticket_id: int,
    user: UserIdentity = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> TicketSelectionsRead:
    ticket, selections = await list_ticket_selections(db, ticket_id, user)
    return TicketSelectionsRead.from_rows(ticket, selections)


@router.get("/me/selections", response_model=List[GameSelectionsRead])
async def my_selections(
    user: UserIdentity = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> List[GameSelectionsRead]:
    """Every ticket the caller holds, with its picks, grouped by game."""
    rows = await list_user_selections(db, user)
    return [
        GameSelectionsRead(
            game=GameRead.model_validate(game),
            tickets=[TicketSelectionsRead.from_rows(t, picks) for t, picks in tickets],
        )
        for game, tickets in rows
    ]
