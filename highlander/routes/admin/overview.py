"""Cross-game views over everything an admin runs."""

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from highlander.models.games import (
    GameRead,
    GameSelectionsRead,
    TicketOverviewRead,
    TicketRead,
    TicketSelectionsRead,
)
from highlander.routes.helpers import require_admin
from highlander.services.game_service import list_admin_overview
from highlander.services.user_service import UserIdentity
from highlander.utils.db_async import get_session

router = APIRouter(tags=["admin-overview"])


@router.get("/team-selections", response_model=List[GameSelectionsRead])
async def all_team_selections(
    admin: UserIdentity = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> List[GameSelectionsRead]:
    """Each of the admin's games with every ticket, its holder and its picks."""
    rows = await list_admin_overview(db, admin)
    return [
        GameSelectionsRead(
            game=GameRead.model_validate(game),
            tickets=[
                TicketSelectionsRead.from_rows(ticket, picks, username)
                for ticket, username, picks in tickets
            ],
        )
        for game, tickets in rows
    ]


@router.get("/tickets", response_model=List[TicketOverviewRead])
async def all_tickets(
    admin: UserIdentity = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> List[TicketOverviewRead]:
    rows = await list_admin_overview(db, admin)
    return [
        TicketOverviewRead(
            **TicketRead.model_validate(ticket).model_dump(),
            game_name=game.name,
            game_status=game.status,
            username=username,
        )
        for game, tickets in rows
        for ticket, username, _ in tickets
    ]
