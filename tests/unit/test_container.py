"""Tests for the dependency injection container."""

from __future__ import annotations

from dependency_injector import providers

from jlib_dashboard.broadcast import BroadcastHub
from jlib_dashboard.config import Config
from jlib_dashboard.container import DashboardContainer, create_container
from jlib_dashboard.health import HealthChecker
from jlib_dashboard.inspection_client import InspectionClient
from jlib_dashboard.reconciler import Reconciler
from jlib_dashboard.scheduler import RefreshScheduler
from jlib_dashboard.snapshot_store import SnapshotStore


class TestCreateContainer:
    """Tests for create_container."""

    def test_defaults_to_default_config(self) -> None:
        container = create_container()
        assert container.config() == Config()

    def test_providers_build_configured_instances(self) -> None:
        config = Config(
            jlib_server_url="http://inspector:9090",
            request_timeout=2.0,
            refresh_interval=15.0,
            subscriber_queue_size=7,
        )
        container = create_container(config)

        client = container.inspection_client()
        assert isinstance(client, InspectionClient)
        assert client.base_url == "http://inspector:9090"
        assert client.timeout.read == 2.0

        hub = container.broadcast_hub()
        assert isinstance(hub, BroadcastHub)
        assert hub.queue_size == 7

        scheduler = container.scheduler()
        assert isinstance(scheduler, RefreshScheduler)
        assert scheduler.interval == 15.0

        assert isinstance(container.snapshot_store(), SnapshotStore)
        assert isinstance(container.health_checker(), HealthChecker)

    def test_singletons_are_shared(self) -> None:
        container = create_container()
        reconciler = container.reconciler()
        assert isinstance(reconciler, Reconciler)
        assert reconciler.client is container.inspection_client()
        assert reconciler.store is container.snapshot_store()
        assert reconciler.hub is container.broadcast_hub()
        assert container.scheduler().reconciler is reconciler

    def test_containers_are_isolated(self) -> None:
        first, second = create_container(), create_container()
        assert first.snapshot_store() is not second.snapshot_store()

    def test_client_can_be_overridden(self) -> None:
        container = create_container()
        fake = InspectionClient("http://fake:1")
        container.inspection_client.override(providers.Object(fake))
        assert container.reconciler().client is fake
        assert isinstance(container, DashboardContainer)
