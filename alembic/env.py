"""Alembic environment configuration for Highlander."""
import asyncio
import logging
import os
from logging.config import fileConfig
from pathlib import Path

from alembic import context
from dotenv import load_dotenv
from sqlalchemy import pool
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlmodel import SQLModel

# Import models so SQLModel metadata is populated.
from highlander.schemas import audit_logs, games, matches, teams, tickets, users  # noqa: F401
from highlander.utils.db_url import describe_database_url, prepare_database_url

config = context.config
logger = logging.getLogger("alembic.env")

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# Read DATABASE_URL straight from the environment; the app Settings would also
# demand SECRET_KEY and ENV, which migrations do not need.
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(env_path, override=False)

raw_url = os.getenv("DATABASE_URL")
if not raw_url:
    raise RuntimeError("DATABASE_URL is required for Alembic migrations")

DB_URL, connect_args = prepare_database_url(raw_url)
# configparser treats % as interpolation
config.set_main_option(
    "sqlalchemy.url", DB_URL.render_as_string(hide_password=False).replace("%", "%%")
)

target_metadata = SQLModel.metadata


def run_migrations_offline() -> None:
    """Emit SQL for the Postgres enums and tables without connecting."""
    context.configure(
        url=DB_URL,
        target_metadata=target_metadata,
        literal_binds=True,
        compare_type=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection) -> None:
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        compare_type=True,
    )

    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    """Migrate over asyncpg; one short-lived connection, no pool."""
    connectable: AsyncEngine = create_async_engine(
        DB_URL,
        poolclass=pool.NullPool,
        connect_args=connect_args,
    )
    logger.info("Migrating %s", describe_database_url(DB_URL))

    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)

    await connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
