"""Deadline sweep orchestration without a database."""

import asyncio
from contextlib import asynccontextmanager
from datetime import UTC, datetime

import pytest

from highlander.services import deadline_service
from highlander.services.deadline_service import (
    ERROR,
    LOCKED,
    DeadlineCheckResult,
    DeadlineMonitor,
    enforce_expired_deadlines,
)

NOW = datetime(2025, 9, 13, 15, 0, 0, tzinfo=UTC)


class FakeSessionFactory:
    """Stands in for ``async_sessionmaker``: hands out marker objects."""

    def __init__(self) -> None:
        self.opened = 0

    def __call__(self):
        @asynccontextmanager
        async def _session():
            self.opened += 1
            yield object()

        return _session()


@pytest.mark.asyncio
async def test_sweep_isolates_failures(monkeypatch):
    async def _expired(db, now):
        return [1, 2, 3]

    async def _enforce(db, game_id, now=None, rng=None):
        if game_id == 2:
            raise RuntimeError("boom")
        return DeadlineCheckResult(game_id=game_id, action=LOCKED, round_number=4)

    monkeypatch.setattr(deadline_service, "find_expired_games", _expired)
    monkeypatch.setattr(deadline_service, "enforce_deadline", _enforce)
    factory = FakeSessionFactory()

    results = await enforce_expired_deadlines(factory, now=NOW)  # type: ignore[arg-type]

    assert [(r.game_id, r.action) for r in results] == [(1, LOCKED), (2, ERROR), (3, LOCKED)]
    assert results[1].detail == "boom"
    # one session for the lookup, one per game
    assert factory.opened == 4


@pytest.mark.asyncio
async def test_sweep_with_nothing_expired(monkeypatch):
    async def _expired(db, now):
        return []

    monkeypatch.setattr(deadline_service, "find_expired_games", _expired)
    assert await enforce_expired_deadlines(FakeSessionFactory(), now=NOW) == []  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_monitor_polls_until_stopped(monkeypatch):
    sweeps = 0
    polled = asyncio.Event()

    async def _sweep(factory, now=None, rng=None):
        nonlocal sweeps
        sweeps += 1
        if sweeps >= 2:
            polled.set()
        return []

    monkeypatch.setattr(deadline_service, "enforce_expired_deadlines", _sweep)
    monitor = DeadlineMonitor(FakeSessionFactory(), interval_seconds=0.01)  # type: ignore[arg-type]

    monitor.start()
    assert monitor.running
    await asyncio.wait_for(polled.wait(), timeout=2)
    await monitor.stop()

    assert not monitor.running
    assert sweeps >= 2


@pytest.mark.asyncio
async def test_monitor_survives_a_failed_sweep(monkeypatch):
    calls = 0
    recovered = asyncio.Event()

    async def _sweep(factory, now=None, rng=None):
        nonlocal calls
        calls += 1
        if calls == 1:
            raise RuntimeError("database down")
        recovered.set()
        return []

    monkeypatch.setattr(deadline_service, "enforce_expired_deadlines", _sweep)
    monitor = DeadlineMonitor(FakeSessionFactory(), interval_seconds=0.01)  # type: ignore[arg-type]

    monitor.start()
    await asyncio.wait_for(recovered.wait(), timeout=2)
    await monitor.stop()
    assert calls >= 2
