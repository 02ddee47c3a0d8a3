"""Fixture and result management."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from highlander.models.games import MatchCreate, MatchRead, MatchResultUpdate
from highlander.routes.helpers import require_admin
from highlander.services.match_service import create_match, record_result
from highlander.services.user_service import UserIdentity
from highlander.utils.db_async import get_session

router = APIRouter(prefix="/matches", tags=["admin-matches"])


@router.post("", response_model=MatchRead, status_code=201)
async def create_fixture(
    body: MatchCreate,
    admin: UserIdentity = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> MatchRead:
    return MatchRead.model_validate(await create_match(db, body))


@router.post("/{match_id}/result", response_model=MatchRead)
async def set_result(
    match_id: int,
    body: MatchResultUpdate,
    admin: UserIdentity = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> MatchRead:
    """Record (or correct) the final score."""
    return MatchRead.model_validate(await record_result(db, match_id, body))
