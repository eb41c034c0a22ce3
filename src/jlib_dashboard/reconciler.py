"""One refresh cycle: poll the inspection server and publish the result."""

from __future__ import annotations

import asyncio
from dataclasses import replace

from jlib_dashboard.broadcast import BroadcastHub, data_update
from jlib_dashboard.inspection_client import InspectionClient, InspectionClientError
from jlib_dashboard.logging import ContextAdapter, get_logger
from jlib_dashboard.models import ConnectivityStatus, Snapshot, snapshot_from_summary, utc_now_iso
from jlib_dashboard.snapshot_store import SnapshotStore

logger = get_logger(__name__)


class Reconciler:
    """Turns the inspection server's current state into a committed snapshot.

    A cycle runs health check, summary fetch, snapshot build, commit and
    broadcast, in that order. When the server is unreachable or the summary
    cannot be fetched, the previous applications and counts are kept and
    only the connectivity status flips to ``disconnected``.

    If the client is retargeted while a cycle is running, the cycle's result
    belongs to the old server and is dropped without commit or broadcast.
    """

    def __init__(
        self,
        client: InspectionClient,
        store: SnapshotStore,
        hub: BroadcastHub,
    ) -> None:
        self.client = client
        self.store = store
        self.hub = hub
        self._cycle = 0

    async def run_cycle(self) -> Snapshot | None:
        """Run one reconciliation cycle.

        Never raises except for cancellation; every other failure is logged
        and turned into a disconnected snapshot.

        Returns:
            The committed snapshot, or None if the result was discarded
            because the target changed mid-cycle.
        """
        self._cycle += 1
        cycle_log = logger.with_context(cycle=self._cycle)
        target = self.client.base_url

        try:
            snapshot = await self._poll(target, cycle_log)
        except asyncio.CancelledError:
            raise
        except Exception:
            cycle_log.exception("Unexpected error while refreshing from %s", target)
            snapshot = self._disconnected()

        if self.client.base_url != target:
            cycle_log.info(
                "Discarding refresh result from %s, target is now %s",
                target,
                self.client.base_url,
            )
            return None

        self.store.commit(snapshot)
        self.hub.broadcast(data_update(snapshot))
        cycle_log.debug(
            "Committed snapshot: %d application(s), status %s",
            snapshot.application_count,
            snapshot.connectivity_status.value,
            extra={"diagnostic_tag": "refresh"},
        )
        return snapshot

    async def _poll(self, target: str, cycle_log: ContextAdapter) -> Snapshot:
        health = await self.client.check_health()
        if not health.is_up:
            cycle_log.warning("Inspection server %s is down: %s", target, health.error)
            return self._disconnected()

        try:
            summary = await self.client.fetch_dashboard_summary()
        except InspectionClientError as e:
            cycle_log.warning("Failed to fetch summary from %s: %s", target, e)
            return self._disconnected()

        return snapshot_from_summary(summary)

    def _disconnected(self) -> Snapshot:
        """The previous snapshot's data, marked disconnected as of now."""
        return replace(
            self.store.read(),
            connectivity_status=ConnectivityStatus.DISCONNECTED,
            last_updated=utc_now_iso(),
        )
