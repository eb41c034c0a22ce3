"""Periodic refresh scheduling with at most one cycle in flight.

The scheduler owns two kinds of asyncio tasks:

- a ticker, which asks for a refresh immediately on start and then once per
  interval
- the refresh task, which runs reconciliation cycles; there is never more
  than one

A refresh requested while one is running joins the running one instead of
starting a second. ``request_refresh(follow_up=True)`` additionally marks
that one more cycle must run once the current one ends, which is how a
configuration change guarantees the new target gets polled. Follow-up
requests made during the same cycle collapse into one extra cycle.
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import TYPE_CHECKING

from jlib_dashboard.logging import get_logger

if TYPE_CHECKING:
    from jlib_dashboard.models import Snapshot
    from jlib_dashboard.reconciler import Reconciler

logger = get_logger(__name__)

DEFAULT_REFRESH_INTERVAL = 10.0


class RefreshScheduler:
    """Drives the reconciler on a fixed cadence and on demand.

    Must be used from a running event loop.

    Example::

        scheduler = RefreshScheduler(reconciler, interval=10.0)
        scheduler.start()
        ...
        snapshot = await scheduler.wait_for_refresh()
        ...
        await scheduler.stop()
    """

    def __init__(self, reconciler: Reconciler, interval: float = DEFAULT_REFRESH_INTERVAL) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self.reconciler = reconciler
        self.interval = interval
        self._ticker: asyncio.Task[None] | None = None
        self._refresh: asyncio.Task[Snapshot | None] | None = None
        self._follow_up = False
        self._stopping = False
        self._cycles_completed = 0

    @property
    def is_refreshing(self) -> bool:
        return self._refresh is not None and not self._refresh.done()

    @property
    def is_running(self) -> bool:
        return self._ticker is not None and not self._ticker.done()

    @property
    def cycles_completed(self) -> int:
        return self._cycles_completed

    def start(self) -> None:
        """Start the ticker. The first cycle begins right away."""
        if self.is_running:
            return
        self._stopping = False
        self._ticker = asyncio.create_task(self._tick_loop(), name="refresh-ticker")
        logger.info("Refresh scheduler started, interval %.1fs", self.interval)

    async def stop(self) -> None:
        """Stop ticking and wait for an in-flight cycle to finish.

        The running cycle is not cancelled; a pending follow-up is dropped.
        """
        self._stopping = True
        self._follow_up = False
        if self._ticker is not None:
            self._ticker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._ticker
            self._ticker = None
        if self._refresh is not None and not self._refresh.done():
            await asyncio.wait({self._refresh})
        logger.info("Refresh scheduler stopped after %d cycle(s)", self._cycles_completed)

    def request_refresh(self, follow_up: bool = False) -> asyncio.Task[Snapshot | None]:
        """Start a cycle, or join the one already running.

        Args:
            follow_up: If a cycle is already running, run exactly one more
                cycle after it. Has no extra effect when idle.

        Returns:
            The task running the cycle(s).
        """
        if self._refresh is not None and not self._refresh.done():
            if follow_up:
                self._follow_up = True
                logger.debug(
                    "Refresh in flight, follow-up cycle scheduled",
                    extra={"diagnostic_tag": "refresh"},
                )
            return self._refresh
        self._refresh = asyncio.create_task(self._run(), name="refresh-cycle")
        return self._refresh

    async def wait_for_refresh(self) -> Snapshot | None:
        """Request a refresh and wait for it to complete.

        Cancelling the waiter does not cancel the cycle.
        """
        return await asyncio.shield(self.request_refresh())

    async def _run(self) -> Snapshot | None:
        result: Snapshot | None = None
        while True:
            try:
                result = await self.reconciler.run_cycle()
            finally:
                self._cycles_completed += 1
            if not self._follow_up or self._stopping:
                return result
            self._follow_up = False
            logger.debug("Running follow-up cycle", extra={"diagnostic_tag": "refresh"})

    async def _tick_loop(self) -> None:
        while True:
            if self.is_refreshing:
                logger.debug(
                    "Tick skipped, refresh in flight",
                    extra={"diagnostic_tag": "refresh"},
                )
            else:
                self.request_refresh()
            await asyncio.sleep(self.interval)
