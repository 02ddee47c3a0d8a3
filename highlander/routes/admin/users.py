"""Admin user management routes."""

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from highlander.models.users import UserCreate, UserRead
from highlander.routes.helpers import require_admin
from highlander.services.user_service import UserIdentity, create_user, list_users
from highlander.utils.db_async import get_session

router = APIRouter(prefix="/users", tags=["admin-users"])


@router.get("", response_model=List[UserRead])
async def list_all_users(
    admin: UserIdentity = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> List[UserRead]:
    """Everyone who can be handed tickets (admin only)."""
    return [UserRead.model_validate(u) for u in await list_users(db)]


@router.post("", response_model=UserRead, status_code=201)
async def add_user(
    body: UserCreate,
    admin: UserIdentity = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> UserRead:
    user = await create_user(
        db,
        username=body.username,
        email=body.email,
        first_name=body.first_name,
        last_name=body.last_name,
        is_admin=body.is_admin,
    )
    return UserRead.model_validate(user)
