from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from highlander.models.games import (
    GameRead,
    GameStandingsRead,
    TicketRead,
    VerdictRead,
)
from highlander.routes.helpers import get_current_user
from highlander.services.game_service import get_game, list_games_for_user, list_user_tickets
from highlander.services.round_service import evaluate_game
from highlander.services.user_service import UserIdentity
from highlander.utils.db_async import get_session

router = APIRouter(prefix="/api/games", tags=["games"])


@router.get("", response_model=List[GameRead])
async def list_games(
    user: UserIdentity = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> List[GameRead]:
    """Games the caller created (admins) or holds tickets in (players)."""
    games = await list_games_for_user(db, user)
    return [GameRead.model_validate(game) for game in games]


@router.get("/{game_id}", response_model=GameRead)
async def get_game_handler(
    game_id: int,
    user: UserIdentity = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> GameRead:
    game = await get_game(db, game_id)
    return GameRead.model_validate(game)


@router.get("/{game_id}/tickets", response_model=List[TicketRead])
async def my_tickets(
    game_id: int,
    user: UserIdentity = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> List[TicketRead]:
    """The caller's tickets in one game."""
    tickets = await list_user_tickets(db, game_id, user)
    return [TicketRead.model_validate(t) for t in tickets]


@router.get("/{game_id}/standings", response_model=GameStandingsRead)
async def standings(
    game_id: int,
    user: UserIdentity = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> GameStandingsRead:
    """Survivors ranked by tickets left, and whether the game is over."""
    game, verdict = await evaluate_game(db, game_id)
    return GameStandingsRead(
        game=GameRead.model_validate(game),
        verdict=VerdictRead.from_verdict(verdict),
    )
