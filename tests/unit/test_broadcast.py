"""Tests for the broadcast hub and subscribers."""

from __future__ import annotations

import asyncio

import pytest

from jlib_dashboard.broadcast import (
    CONFIG_UPDATE,
    DATA_UPDATE,
    BroadcastHub,
    Subscriber,
    SubscriberClosedError,
    config_update,
    data_update,
)
from jlib_dashboard.models import Application, ConnectivityStatus, Snapshot
from jlib_dashboard.snapshot_store import SnapshotStore


@pytest.fixture
def store() -> SnapshotStore:
    return SnapshotStore(
        Snapshot(
            applications=(Application(app_id="orders"),),
            application_count=1,
            connectivity_status=ConnectivityStatus.CONNECTED,
        )
    )


def _drain(subscriber: Subscriber) -> list:
    events = []
    while subscriber.pending:
        events.append(subscriber._queue.get_nowait())
    return events


class TestEvents:
    """Tests for the event builders."""

    def test_data_update_carries_snapshot(self, store: SnapshotStore) -> None:
        event = data_update(store.read())
        assert event.to_dict() == {"type": "data-update", "data": store.read().to_dict()}

    def test_config_update_is_connecting(self) -> None:
        event = config_update("http://new:8080")
        assert event.type == CONFIG_UPDATE
        assert event.data == {"jlibServerUrl": "http://new:8080", "serverStatus": "connecting"}


class TestSubscriber:
    """Tests for Subscriber."""

    @pytest.mark.asyncio
    async def test_send_then_get(self) -> None:
        subscriber = Subscriber(maxsize=2)
        event = config_update("http://x:1")
        subscriber.send(event)
        assert await subscriber.get() == event

    def test_send_fails_when_full(self) -> None:
        subscriber = Subscriber(maxsize=1)
        subscriber.send(config_update("http://x:1"))
        with pytest.raises(SubscriberClosedError):
            subscriber.send(config_update("http://x:2"))

    def test_send_fails_when_closed(self) -> None:
        subscriber = Subscriber()
        subscriber.close()
        with pytest.raises(SubscriberClosedError):
            subscriber.send(config_update("http://x:1"))

    @pytest.mark.asyncio
    async def test_close_wakes_pending_get(self) -> None:
        subscriber = Subscriber()
        waiter = asyncio.create_task(subscriber.get())
        await asyncio.sleep(0)
        subscriber.close()
        assert await asyncio.wait_for(waiter, timeout=1.0) is None

    @pytest.mark.asyncio
    async def test_close_on_full_queue(self) -> None:
        subscriber = Subscriber(maxsize=1)
        subscriber.send(config_update("http://x:1"))
        subscriber.close()
        assert (await subscriber.get()).type == CONFIG_UPDATE
        assert await subscriber.get() is None
        assert await subscriber.get() is None


class TestBroadcastHub:
    """Tests for BroadcastHub."""

    def test_register_sends_current_snapshot_to_new_subscriber_only(
        self, store: SnapshotStore
    ) -> None:
        hub = BroadcastHub(store)
        first, second = Subscriber(), Subscriber()

        assert hub.register(first) is True
        _drain(first)
        assert hub.register(second) is True

        assert _drain(first) == []
        events = _drain(second)
        assert len(events) == 1
        assert events[0].type == DATA_UPDATE
        assert events[0].data == store.read().to_dict()
        assert hub.subscriber_count == 2

    def test_broadcast_reaches_every_subscriber(self, store: SnapshotStore) -> None:
        hub = BroadcastHub(store)
        subscribers = [Subscriber() for _ in range(3)]
        for subscriber in subscribers:
            hub.register(subscriber)
            _drain(subscriber)

        event = config_update("http://new:8080")
        assert hub.broadcast(event) == 3
        assert all(_drain(s) == [event] for s in subscribers)

    def test_failed_send_drops_only_that_subscriber(self, store: SnapshotStore) -> None:
        hub = BroadcastHub(store)
        healthy, stalled = Subscriber(maxsize=5), Subscriber(maxsize=1)
        hub.register(healthy)
        hub.register(stalled)  # queue is now full with the catch-up event

        delivered = hub.broadcast(data_update(store.read()))

        assert delivered == 1
        assert hub.subscriber_count == 1
        assert stalled.closed is True
        assert healthy.pending == 2

    def test_closed_subscriber_is_pruned(self, store: SnapshotStore) -> None:
        hub = BroadcastHub(store)
        gone = Subscriber()
        hub.register(gone)
        gone.close()
        hub.broadcast(config_update("http://x:1"))
        assert hub.subscriber_count == 0

    def test_unregister_is_idempotent(self, store: SnapshotStore) -> None:
        hub = BroadcastHub(store)
        subscriber = Subscriber()
        hub.register(subscriber)
        hub.unregister(subscriber)
        hub.unregister(subscriber)
        assert hub.subscriber_count == 0
        assert subscriber.closed is True

    def test_register_rejects_subscriber_that_cannot_receive(self, store: SnapshotStore) -> None:
        hub = BroadcastHub(store)
        subscriber = Subscriber()
        subscriber.close()
        assert hub.register(subscriber) is False
        assert hub.subscriber_count == 0

    def test_new_subscriber_uses_hub_queue_size(self, store: SnapshotStore) -> None:
        hub = BroadcastHub(store, queue_size=1)
        subscriber = hub.new_subscriber()
        hub.register(subscriber)
        with pytest.raises(SubscriberClosedError):
            subscriber.send(config_update("http://x:1"))

    def test_subscriber_names_are_numbered_per_hub(self, store: SnapshotStore) -> None:
        first_hub, second_hub = BroadcastHub(store), BroadcastHub(store)
        assert [first_hub.new_subscriber().name for _ in range(2)] == ["subscriber-1", "subscriber-2"]
        assert second_hub.new_subscriber().name == "subscriber-1"

    def test_close_all(self, store: SnapshotStore) -> None:
        hub = BroadcastHub(store)
        subscribers = [Subscriber() for _ in range(2)]
        for subscriber in subscribers:
            hub.register(subscriber)
        hub.close_all()
        assert hub.subscriber_count == 0
        assert all(s.closed for s in subscribers)
