"""Tests for the reconciliation cycle."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from jlib_dashboard.broadcast import DATA_UPDATE, BroadcastHub, Subscriber
from jlib_dashboard.health import HealthStatus, ServiceHealth
from jlib_dashboard.inspection_client import InspectionClient
from jlib_dashboard.models import ConnectivityStatus
from jlib_dashboard.reconciler import Reconciler
from jlib_dashboard.snapshot_store import SnapshotStore


@pytest.fixture
def store() -> SnapshotStore:
    return SnapshotStore()


@pytest.fixture
def hub(store: SnapshotStore) -> BroadcastHub:
    return BroadcastHub(store)


@pytest.fixture
def subscriber(hub: BroadcastHub) -> Subscriber:
    subscriber = Subscriber()
    hub.register(subscriber)
    subscriber._queue.get_nowait()  # catch-up event
    return subscriber


class TestRunCycle:
    """Tests for Reconciler.run_cycle against a simulated server."""

    @pytest.mark.asyncio
    async def test_success_commits_and_broadcasts_once(
        self, inspection_client: InspectionClient, store: SnapshotStore, hub: BroadcastHub, subscriber: Subscriber
    ) -> None:
        reconciler = Reconciler(inspection_client, store, hub)

        snapshot = await reconciler.run_cycle()

        assert snapshot is store.read()
        assert snapshot.connectivity_status is ConnectivityStatus.CONNECTED
        assert [app.app_id for app in snapshot.applications] == ["orders", "billing"]
        assert snapshot.jar_count == 3
        assert snapshot.active_jar_count == 2
        assert subscriber.pending == 1
        event = subscriber._queue.get_nowait()
        assert event.type == DATA_UPDATE
        assert event.data == snapshot.to_dict()

    @pytest.mark.asyncio
    async def test_health_checked_before_summary(
        self, fake_server, inspection_client: InspectionClient, store: SnapshotStore, hub: BroadcastHub
    ) -> None:
        await Reconciler(inspection_client, store, hub).run_cycle()
        assert fake_server.paths() == ["/health", "/api/dashboard"]

    @pytest.mark.asyncio
    async def test_jar_counts_follow_loaded_flags(
        self, fake_server, inspection_client: InspectionClient, store: SnapshotStore, hub: BroadcastHub
    ) -> None:
        unloaded = fake_server.applications[0]["jars"][1]
        for jar_id in ("netty", "slf4j"):
            fake_server.applications[1]["jars"].append({**unloaded, "jarId": jar_id, "path": f"/opt/lib/{jar_id}.jar"})

        snapshot = await Reconciler(inspection_client, store, hub).run_cycle()

        summary = await inspection_client.fetch_dashboard_summary()
        assert not {"jarCount", "activeJarCount", "inactiveJarCount"} & summary.keys()
        loaded = [jar["loaded"] for app in fake_server.applications for jar in app["jars"]]
        assert snapshot.jar_count == len(loaded) == 5
        assert snapshot.active_jar_count == loaded.count(True) == 2
        assert snapshot.inactive_jar_count == loaded.count(False) == 3
        assert all(app.jars is None for app in snapshot.applications)

    @pytest.mark.asyncio
    async def test_down_server_keeps_previous_applications(
        self, fake_server, inspection_client: InspectionClient, store: SnapshotStore, hub: BroadcastHub, subscriber: Subscriber
    ) -> None:
        reconciler = Reconciler(inspection_client, store, hub)
        connected = await reconciler.run_cycle()

        fake_server.healthy = False
        disconnected = await reconciler.run_cycle()

        assert disconnected.connectivity_status is ConnectivityStatus.DISCONNECTED
        assert disconnected.applications == connected.applications
        assert disconnected.jar_count == connected.jar_count
        assert disconnected.last_updated != connected.last_updated
        assert "/api/dashboard" not in fake_server.paths()[2:]
        assert subscriber.pending == 2

    @pytest.mark.asyncio
    async def test_summary_failure_marks_disconnected(
        self, fake_server, inspection_client: InspectionClient, store: SnapshotStore, hub: BroadcastHub
    ) -> None:
        reconciler = Reconciler(inspection_client, store, hub)
        connected = await reconciler.run_cycle()

        fake_server.summary_status = 500
        snapshot = await reconciler.run_cycle()

        assert snapshot.connectivity_status is ConnectivityStatus.DISCONNECTED
        assert snapshot.applications == connected.applications

    @pytest.mark.asyncio
    async def test_first_cycle_failure_yields_empty_disconnected(
        self, fake_server, inspection_client: InspectionClient, store: SnapshotStore, hub: BroadcastHub
    ) -> None:
        fake_server.healthy = False
        snapshot = await Reconciler(inspection_client, store, hub).run_cycle()
        assert snapshot.applications == ()
        assert snapshot.connectivity_status is ConnectivityStatus.DISCONNECTED

    @pytest.mark.asyncio
    async def test_unexpected_error_is_absorbed(self, store: SnapshotStore, hub: BroadcastHub) -> None:
        client = MagicMock()
        client.base_url = "http://jlib:8080"
        client.check_health = AsyncMock(side_effect=RuntimeError("boom"))

        snapshot = await Reconciler(client, store, hub).run_cycle()

        assert snapshot.connectivity_status is ConnectivityStatus.DISCONNECTED

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self, store: SnapshotStore, hub: BroadcastHub) -> None:
        client = MagicMock()
        client.base_url = "http://jlib:8080"
        client.check_health = AsyncMock(side_effect=asyncio.CancelledError())

        with pytest.raises(asyncio.CancelledError):
            await Reconciler(client, store, hub).run_cycle()

    @pytest.mark.asyncio
    async def test_result_discarded_when_target_changes_mid_cycle(
        self, store: SnapshotStore, hub: BroadcastHub, subscriber: Subscriber
    ) -> None:
        client = MagicMock()
        client.base_url = "http://old:8080"

        async def summary() -> dict:
            client.base_url = "http://new:8080"
            return {"applications": [{"appId": "stale"}]}

        client.check_health = AsyncMock(return_value=ServiceHealth(HealthStatus.UP, 1.0))
        client.fetch_dashboard_summary = AsyncMock(side_effect=summary)
        before = store.read()

        result = await Reconciler(client, store, hub).run_cycle()

        assert result is None
        assert store.read() is before
        assert subscriber.pending == 0
