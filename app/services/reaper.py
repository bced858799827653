"""Periodic sweep of expired self-destruct challenges.

Confirmation never trusts an expired entry on its own, so the reaper only keeps
memory bounded; a missed sweep is harmless.
"""

from __future__ import annotations

import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ..core.logging import log_event
from .confirmations import Clock, ConfirmationRegistry

logger = logging.getLogger(__name__)

REAPER_INTERVAL_SECONDS = 60
JOB_ID = "purge_expired_challenges"


class ExpiryReaper:
    """Runs ``ConfirmationRegistry.purge_expired`` on a fixed interval."""

    def __init__(
        self,
        registry: ConfirmationRegistry,
        *,
        clock: Clock | None = None,
        interval_seconds: int = REAPER_INTERVAL_SECONDS,
    ) -> None:
        self.registry = registry
        self.clock = clock or registry.clock
        self.interval_seconds = interval_seconds
        self.scheduler: Optional[AsyncIOScheduler] = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def run_once(self) -> int:
        """Purge expired entries now and return how many were removed."""
        try:
            removed = self.registry.purge_expired(self.clock())
        except Exception:
            logger.exception("Expired challenge sweep failed")
            return 0
        if removed:
            log_event(logger, "self_destruct.reaped", removed=removed, pending=len(self.registry))
        return removed

    def start(self) -> None:
        """Start the scheduler; must be called from within a running event loop."""
        if self._running:
            return

        self.scheduler = AsyncIOScheduler()
        self.scheduler.add_job(
            self.run_once,
            trigger=IntervalTrigger(seconds=self.interval_seconds),
            id=JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.start()
        self._running = True
        logger.info(f"Expiry reaper started (interval={self.interval_seconds}s)")

    def stop(self) -> None:
        if self.scheduler and self._running:
            self.scheduler.shutdown(wait=False)
            self._running = False
            logger.info("Expiry reaper stopped")
