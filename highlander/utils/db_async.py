"""Async SQLAlchemy engine and session helpers."""

from typing import Any, AsyncGenerator, Dict

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from highlander.config import settings
from highlander.utils.db_url import prepare_database_url

DATABASE_URL, CONNECT_ARGS = prepare_database_url(settings.database_url)


def engine_options() -> Dict[str, Any]:
    """Engine kwargs for the configured backend.

    On Postgres the pool is sized from settings and every connection gets a
    ``lock_timeout``, so a request queued behind a game row lock fails instead
    of hanging.
    """
    options: Dict[str, Any] = {
        "echo": settings.sql_echo,
        "pool_pre_ping": True,
        "connect_args": dict(CONNECT_ARGS),
    }
    if DATABASE_URL.get_backend_name() == "postgresql":
        options["pool_size"] = settings.db_pool_size
        options["max_overflow"] = settings.db_max_overflow
        options["connect_args"]["server_settings"] = {
            "lock_timeout": str(settings.db_lock_timeout_ms),
        }
    return options


engine = create_async_engine(DATABASE_URL, **engine_options())
SessionLocal = async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session."""
    async with SessionLocal() as session:
        yield session


def import_table_models() -> None:
    """Import every table module so ``SQLModel.metadata`` is complete."""
    from highlander.schemas import audit_logs, games, matches, teams, tickets, users  # noqa: F401


async def init_db():
    """Create all tables (dev convenience; migrations own production schema)."""
    import_table_models()

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


async def dispose_engine() -> None:
    await engine.dispose()
