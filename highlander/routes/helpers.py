"""Caller identity for API routes."""

from __future__ import annotations

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from highlander.exceptions import AdminRequiredError, AuthenticationRequiredError
from highlander.services.user_service import UserIdentity, get_user_identity
from highlander.utils.db_async import get_session


async def get_current_user(
    request: Request,
    x_user_id: int | None = Header(default=None),
    db: AsyncSession = Depends(get_session),
) -> UserIdentity:
    """Resolve the ``X-User-Id`` header set by the upstream auth proxy.

    Lookups go through ``app.state.user_cache``.
    """
    if x_user_id is None:
        raise AuthenticationRequiredError()
    user = await get_user_identity(db, x_user_id, request.app.state.user_cache)
    if user is None:
        raise AuthenticationRequiredError("Unknown user.")
    return user


async def require_admin(
    user: UserIdentity = Depends(get_current_user),
) -> UserIdentity:
    if not user.is_admin:
        raise AdminRequiredError()
    return user
