"""Dependency injection container for the JLib Dashboard.

All long-lived collaborators are singletons of one container, which is built
once per application instance:

    DashboardContainer
    ├── config (Config)
    ├── inspection_client (InspectionClient)
    ├── snapshot_store (SnapshotStore)
    ├── broadcast_hub (BroadcastHub)
    ├── reconciler (Reconciler)
    ├── scheduler (RefreshScheduler)
    └── health_checker (HealthChecker)

Usage:
    container = create_container(config)
    scheduler = container.scheduler()

    # Test setup with a simulated inspection server
    container = create_container(config)
    container.inspection_client.override(
        providers.Singleton(InspectionClient, config.jlib_server_url, transport=transport)
    )
"""

from __future__ import annotations

from dependency_injector import containers, providers

from jlib_dashboard.broadcast import BroadcastHub
from jlib_dashboard.config import Config
from jlib_dashboard.health import HealthChecker
from jlib_dashboard.inspection_client import InspectionClient
from jlib_dashboard.reconciler import Reconciler
from jlib_dashboard.scheduler import RefreshScheduler
from jlib_dashboard.snapshot_store import SnapshotStore


class DashboardContainer(containers.DeclarativeContainer):
    """Root container wiring the refresh pipeline and its HTTP-facing parts."""

    config: providers.Dependency[Config] = providers.Dependency(instance_of=Config)

    inspection_client = providers.Singleton(
        InspectionClient,
        base_url=config.provided.jlib_server_url,
        timeout=config.provided.request_timeout,
    )

    snapshot_store = providers.Singleton(SnapshotStore)

    broadcast_hub = providers.Singleton(
        BroadcastHub,
        store=snapshot_store,
        queue_size=config.provided.subscriber_queue_size,
    )

    reconciler = providers.Singleton(
        Reconciler,
        client=inspection_client,
        store=snapshot_store,
        hub=broadcast_hub,
    )

    scheduler = providers.Singleton(
        RefreshScheduler,
        reconciler=reconciler,
        interval=config.provided.refresh_interval,
    )

    health_checker = providers.Singleton(HealthChecker, inspection_client=inspection_client)


def create_container(config: Config | None = None) -> DashboardContainer:
    """Create a container for one application instance.

    Args:
        config: Application configuration. Defaults to ``Config()``.

    Returns:
        A DashboardContainer with the configuration bound.
    """
    container = DashboardContainer()
    container.config.override(providers.Object(config or Config()))
    return container
