"""Unit tests for the subscription maintenance scheduler."""

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from tollgate.platform.scheduler import SubscriptionScheduler


@pytest.fixture
def fake_lifecycle():
    lifecycle = MagicMock()
    lifecycle.process_expired_subscriptions = AsyncMock(return_value=2)
    lifecycle.gate.prune = AsyncMock(return_value=7)
    return lifecycle


@pytest.fixture
def fake_db():
    db = MagicMock()

    @asynccontextmanager
    async def _context():
        yield db

    with patch("tollgate.platform.scheduler.get_db_context", _context):
        yield db


class TestRunOnce:
    async def test_sweeps_and_prunes_on_first_run(self, fake_lifecycle, fake_db):
        scheduler = SubscriptionScheduler(lifecycle=fake_lifecycle, prune_cron="0 3 * * *")
        now = datetime(2025, 5, 1, 12, 0)

        expired = await scheduler.run_once(now=now)

        assert expired == 2
        fake_lifecycle.process_expired_subscriptions.assert_awaited_once_with(fake_db, now=now)
        fake_lifecycle.gate.prune.assert_awaited_once()
        assert scheduler.next_prune_at == datetime(2025, 5, 2, 3, 0)

    async def test_prune_waits_for_the_cron_slot(self, fake_lifecycle, fake_db):
        scheduler = SubscriptionScheduler(lifecycle=fake_lifecycle, prune_cron="0 3 * * *")
        await scheduler.run_once(now=datetime(2025, 5, 1, 12, 0))

        await scheduler.run_once(now=datetime(2025, 5, 1, 18, 0))
        assert fake_lifecycle.gate.prune.await_count == 1

        await scheduler.run_once(now=datetime(2025, 5, 2, 3, 5))
        assert fake_lifecycle.gate.prune.await_count == 2
        assert scheduler.next_prune_at == datetime(2025, 5, 3, 3, 0)

    async def test_prune_uses_the_retention_window(self, fake_lifecycle, fake_db):
        scheduler = SubscriptionScheduler(lifecycle=fake_lifecycle)
        now = datetime(2025, 5, 1, 12, 0)

        await scheduler.run_once(now=now)

        kwargs = fake_lifecycle.gate.prune.await_args.kwargs
        assert kwargs["retention"].days > 0
        assert kwargs["now"] == now


class TestStartStop:
    async def test_start_and_stop(self, fake_lifecycle, fake_db):
        scheduler = SubscriptionScheduler(lifecycle=fake_lifecycle, check_interval=3600)

        await scheduler.start()
        assert scheduler.running is True
        assert scheduler.next_prune_at is not None

        await scheduler.stop()
        assert scheduler.running is False
        assert scheduler.task is None

    async def test_loop_survives_errors(self, fake_lifecycle, fake_db):
        fake_lifecycle.process_expired_subscriptions.side_effect = RuntimeError("db down")
        scheduler = SubscriptionScheduler(lifecycle=fake_lifecycle, check_interval=3600)

        await scheduler.start()
        # Let the loop run its first iteration
        for _ in range(5):
            await asyncio.sleep(0)
        assert scheduler.running is True
        await scheduler.stop()

        fake_lifecycle.process_expired_subscriptions.assert_awaited()
