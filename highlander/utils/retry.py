"""Bounded retry for storage calls that hit transient connection errors."""

from __future__ import annotations

import asyncio
import functools
import logging
from typing import Any, Awaitable, Callable, TypeVar

from sqlalchemy.exc import DBAPIError, OperationalError

from highlander.config import settings
from highlander.exceptions import StorageUnavailableError

logger = logging.getLogger(__name__)

T = TypeVar("T")


_TRANSIENT_DB_ERROR_MARKERS = (
    "cache lookup failed for type",
    "InvalidCachedStatementError",
    "cached statement plan is invalid",
    "ConnectionDoesNotExistError",
    "connection was closed",
    "closed in the middle of operation",
    "could not connect to server",
    "Connection refused",
    # lock_timeout expiry on a row lock
    "LockNotAvailableError",
    "canceling statement due to lock timeout",
)


def is_transient_db_error(exc: BaseException) -> bool:
    """Return True when the DB exception is likely fixed by retrying."""
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return True
    if isinstance(exc, OperationalError):
        return True
    if isinstance(exc, (ConnectionError, TimeoutError)):
        return True
    text = str(exc)
    return any(marker in text for marker in _TRANSIENT_DB_ERROR_MARKERS)


def backoff_delay(attempt: int, base_delay: float) -> float:
    """Delay before retry number ``attempt`` (1-based): base, 2x base, 4x base..."""
    return base_delay * (2 ** (attempt - 1))


def with_db_retry(
    max_attempts: int | None = None,
    base_delay: float | None = None,
    *,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """Retry an async storage operation on transient errors.

    The wrapped coroutine must own its transaction (``async with db.begin()``)
    so a failed attempt is rolled back before the next one starts. Errors that
    are not transient propagate on the first attempt. Once ``max_attempts`` is
    spent, ``StorageUnavailableError`` is raised from the last failure.

    Unset parameters are read from settings at call time.
    """

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            attempts, delay = _resolve_policy(max_attempts, base_delay)
            last_exc: BaseException | None = None
            for attempt in range(1, attempts + 1):
                try:
                    return await func(*args, **kwargs)
                except Exception as exc:
                    if not is_transient_db_error(exc):
                        raise
                    last_exc = exc
                    if attempt == attempts:
                        break
                    wait = backoff_delay(attempt, delay)
                    logger.warning(
                        "Transient DB error in %s (attempt %d/%d); retrying in %.2fs: %s",
                        func.__qualname__,
                        attempt,
                        attempts,
                        wait,
                        exc,
                    )
                    await sleep(wait)

            logger.error(
                "%s gave up after %d attempt(s): %s",
                func.__qualname__,
                attempts,
                last_exc,
            )
            raise StorageUnavailableError(func.__qualname__, attempts) from last_exc

        return wrapper

    return decorator


def _resolve_policy(
    max_attempts: int | None, base_delay: float | None
) -> tuple[int, float]:
    attempts = max_attempts if max_attempts is not None else settings.db_retry_attempts
    delay = (
        base_delay if base_delay is not None else settings.db_retry_base_delay_seconds
    )
    return max(1, attempts), delay
