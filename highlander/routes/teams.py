from typing import List

from fastapi import APIRouter, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from highlander.models.fields import SEASON_FINAL_ROUND
from highlander.models.games import MatchRead, TeamRead
from highlander.services.match_service import list_matches, list_teams
from highlander.utils.db_async import get_session

router = APIRouter(prefix="/api", tags=["teams"])


@router.get("/teams", response_model=List[TeamRead])
async def teams(db: AsyncSession = Depends(get_session)) -> List[TeamRead]:
    return [TeamRead.model_validate(t) for t in await list_teams(db)]


@router.get("/matches/{round_number}", response_model=List[MatchRead])
async def matches_for_round(
    round_number: int = Path(..., ge=1, le=SEASON_FINAL_ROUND),
    db: AsyncSession = Depends(get_session),
) -> List[MatchRead]:
    """Fixtures of a season round, with results once recorded."""
    return [MatchRead.model_validate(m) for m in await list_matches(db, round_number)]
