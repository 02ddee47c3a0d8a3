"""Seed reference data: the Serie A clubs and, optionally, a first admin.

Safe to re-run; existing teams and users are left alone.

Usage:
    python -m highlander.cli.seed
    python -m highlander.cli.seed --admin-username admin --admin-email admin@example.com
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from typing import Optional, Sequence

from highlander.exceptions import UserExistsError
from highlander.services.match_service import seed_teams
from highlander.services.user_service import create_user
from highlander.utils.db_async import SessionLocal, dispose_engine

logger = logging.getLogger("seed")


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Seed Highlander reference data.")
    parser.add_argument("--admin-username", help="Also create an admin user with this username")
    parser.add_argument("--admin-email", help="Email for the admin user")
    parser.add_argument("--admin-first-name", default="Game")
    parser.add_argument("--admin-last-name", default="Admin")
    args = parser.parse_args(argv)
    if args.admin_username and not args.admin_email:
        parser.error("--admin-email is required with --admin-username")
    return args


async def main_async(argv: Optional[Sequence[str]] = None) -> None:
    args = parse_args(argv)
    try:
        async with SessionLocal() as db:
            added = await seed_teams(db)
            logger.info("Teams seeded: %d new", added)

            if args.admin_username:
                try:
                    admin = await create_user(
                        db,
                        username=args.admin_username,
                        email=args.admin_email,
                        first_name=args.admin_first_name,
                        last_name=args.admin_last_name,
                        is_admin=True,
                    )
                    logger.info("Admin user %s created with id %s", admin.username, admin.id)
                except UserExistsError:
                    logger.info("Admin user %s already exists; skipped", args.admin_username)
    finally:
        await dispose_engine()


def main(argv: Optional[Sequence[str]] = None) -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    asyncio.run(main_async(argv))


if __name__ == "__main__":
    main()
