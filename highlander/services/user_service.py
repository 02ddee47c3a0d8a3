"""User lookups for request identity and ticket assignment."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from highlander.exceptions import UserExistsError
from highlander.schemas.users import User
from highlander.utils.retry import with_db_retry
from highlander.utils.ttl_cache import TTLCache

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserIdentity:
    """Who is calling; detached from any session so it can be cached."""

    id: int
    username: str
    is_admin: bool


@with_db_retry()
async def fetch_user_identity(db: AsyncSession, user_id: int) -> UserIdentity | None:
    async with db.begin():
        user = await db.get(User, user_id)
    if user is None or user.id is None:
        return None
    return UserIdentity(id=user.id, username=user.username, is_admin=user.is_admin)


async def get_user_identity(
    db: AsyncSession,
    user_id: int,
    cache: TTLCache[UserIdentity],
) -> UserIdentity | None:
    """Resolve a user id through the read-through cache."""
    return await cache.get_or_fetch(
        user_id, lambda: fetch_user_identity(db, user_id)
    )


@with_db_retry()
async def list_users(db: AsyncSession) -> list[User]:
    async with db.begin():
        result = await db.execute(select(User).order_by(User.username))  # type: ignore[arg-type]
        return list(result.scalars().all())


@with_db_retry()
async def create_user(
    db: AsyncSession,
    *,
    username: str,
    email: str,
    first_name: str,
    last_name: str,
    is_admin: bool = False,
) -> User:
    """Insert a user row. Credentials live with the auth provider, not here."""
    async with db.begin():
        clash = await db.execute(
            select(User.id).where(  # type: ignore[call-overload]
                or_(User.username == username, User.email == email)
            )
        )
        if clash.first() is not None:
            raise UserExistsError()
        user = User(
            username=username,
            email=email,
            first_name=first_name,
            last_name=last_name,
            is_admin=is_admin,
        )
        db.add(user)
        await db.flush()
    logger.info("Created user %s (id=%s, admin=%s)", username, user.id, is_admin)
    return user
