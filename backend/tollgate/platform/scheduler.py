"""Scheduler for subscription maintenance.

Runs the expiry sweep on a fixed interval and prunes old webhook
idempotency records on a cron schedule.
"""

import asyncio
from datetime import datetime, timedelta
from typing import Optional

from croniter import croniter

from tollgate.core.config import settings
from tollgate.core.datetime_utils import utc_now_naive
from tollgate.core.logging import logger
from tollgate.db.session import get_db_context
from tollgate.platform.billing.lifecycle import (
    SubscriptionLifecycleService,
    subscription_lifecycle,
)


class SubscriptionScheduler:
    """Background loop for expiry and idempotency retention."""

    def __init__(
        self,
        lifecycle: Optional[SubscriptionLifecycleService] = None,
        check_interval: Optional[int] = None,
        prune_cron: Optional[str] = None,
    ):
        """Initialize the scheduler."""
        self.lifecycle = lifecycle or subscription_lifecycle
        self.running = False
        self.task: Optional[asyncio.Task] = None
        self.check_interval = check_interval or settings.EXPIRY_SWEEP_INTERVAL_SECONDS
        self.prune_cron = prune_cron or settings.IDEMPOTENCY_PRUNE_CRON
        self.next_prune_at: Optional[datetime] = None

    def _schedule_next_prune(self, now: datetime) -> None:
        self.next_prune_at = croniter(self.prune_cron, now).get_next(datetime)

    async def start(self):
        """Start the scheduler."""
        if self.running:
            logger.warning("Scheduler is already running")
            return

        self._schedule_next_prune(utc_now_naive())
        self.running = True
        self.task = asyncio.create_task(self._scheduler_loop())
        logger.debug(
            f"Subscription scheduler started: sweep every {self.check_interval}s, "
            f"next prune at {self.next_prune_at.isoformat()}"
        )

    async def stop(self):
        """Stop the scheduler."""
        if not self.running:
            logger.warning("Scheduler is not running")
            return

        self.running = False
        if self.task:
            self.task.cancel()
            try:
                await self.task
            except asyncio.CancelledError:
                logger.debug("Scheduler task cancelled successfully")
            self.task = None
        logger.debug("Subscription scheduler stopped")

    async def run_once(self, now: Optional[datetime] = None) -> int:
        """Run one sweep, and the prune if it is due. Returns the number expired."""
        now = now or utc_now_naive()
        async with get_db_context() as db:
            expired = await self.lifecycle.process_expired_subscriptions(db, now=now)

            if self.next_prune_at is None or now >= self.next_prune_at:
                pruned = await self.lifecycle.gate.prune(
                    db, retention=timedelta(days=settings.IDEMPOTENCY_RETENTION_DAYS), now=now
                )
                logger.info(f"Pruned {pruned} webhook idempotency record(s)")
                self._schedule_next_prune(now)

        return expired

    async def _scheduler_loop(self):
        """Main loop."""
        while self.running:
            try:
                await self.run_once()
            except Exception as e:
                logger.error(f"Error in subscription scheduler loop: {e}", exc_info=True)

            await asyncio.sleep(self.check_interval)


# Create a singleton instance
subscription_scheduler = SubscriptionScheduler()
