"""Standalone runner for one deadline sweep.

For deployments that schedule the sweep externally (a cron machine) instead
of running the in-process monitor: set ``DEADLINE_MONITOR_ENABLED=false`` on
the web app and run this on the desired interval.

Usage:
    python -m highlander.cli.deadline_runner

Exit codes:
    0 - Success (including games that needed no action)
    1 - At least one game failed to lock (check logs for details)
"""

import asyncio
import logging
import sys
from datetime import datetime, timezone

from highlander.services.deadline_service import ERROR, LOCKED, enforce_expired_deadlines
from highlander.utils.db_async import SessionLocal, dispose_engine

# Configure logging for cron context
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("deadline_runner")


async def main() -> int:
    start_time = datetime.now(timezone.utc)
    logger.info("Starting deadline sweep")

    try:
        results = await enforce_expired_deadlines(SessionLocal)
        elapsed = (datetime.now(timezone.utc) - start_time).total_seconds()

        locked = [r for r in results if r.action == LOCKED]
        failed = [r for r in results if r.action == ERROR]
        logger.info(
            f"Sweep complete in {elapsed:.1f}s: "
            f"{len(results)} expired, "
            f"{len(locked)} locked, "
            f"{sum(r.auto_assigned_count for r in locked)} auto-assigned"
        )
        for result in failed:
            logger.warning(f"Game {result.game_id} not locked: {result.detail}")

        return 1 if failed else 0

    except Exception as e:
        elapsed = (datetime.now(timezone.utc) - start_time).total_seconds()
        logger.error(f"Deadline sweep failed after {elapsed:.1f}s: {e}", exc_info=True)
        return 1

    finally:
        await dispose_engine()


if __name__ == "__main__":
    exit_code = asyncio.run(main())
    sys.exit(exit_code)
