"""Fan-out of dashboard events to real-time subscribers.

Each connected browser is represented by a :class:`Subscriber`, a bounded
queue drained by that browser's streaming response. The :class:`BroadcastHub`
keeps the set of live subscribers and pushes every event to all of them.

Delivery to one subscriber never blocks or fails delivery to another. A
subscriber whose send fails (it was closed, or its queue is full because the
client stopped reading) is dropped from the hub.

All hub operations are synchronous and must be called from the event loop
that owns the subscribers' queues.
"""

from __future__ import annotations

import asyncio
import itertools
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal

from jlib_dashboard.logging import get_logger
from jlib_dashboard.models import ConnectivityStatus, Snapshot

if TYPE_CHECKING:
    from jlib_dashboard.snapshot_store import SnapshotStore

logger = get_logger(__name__)

EventType = Literal["data-update", "config-update"]

DATA_UPDATE: EventType = "data-update"
CONFIG_UPDATE: EventType = "config-update"

DEFAULT_QUEUE_SIZE = 100


@dataclass(frozen=True)
class DashboardEvent:
    """One message pushed to subscribers."""

    type: EventType
    data: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "data": self.data}


def data_update(snapshot: Snapshot) -> DashboardEvent:
    """Build the event carrying a full snapshot."""
    return DashboardEvent(type=DATA_UPDATE, data=snapshot.to_dict())


def config_update(jlib_server_url: str) -> DashboardEvent:
    """Build the event announcing a new inspection server target.

    The status is always ``connecting``; the real outcome follows with the
    next ``data-update``.
    """
    return DashboardEvent(
        type=CONFIG_UPDATE,
        data={
            "jlibServerUrl": jlib_server_url,
            "serverStatus": ConnectivityStatus.CONNECTING.value,
        },
    )


class SubscriberClosedError(Exception):
    """Raised when sending to a subscriber that can no longer receive events."""


class Subscriber:
    """A single real-time connection's event buffer.

    Example::

        subscriber = Subscriber()
        hub.register(subscriber)
        try:
            while (event := await subscriber.get()) is not None:
                ...
        finally:
            hub.unregister(subscriber)
    """

    def __init__(self, maxsize: int = DEFAULT_QUEUE_SIZE, name: str = "subscriber") -> None:
        self.name = name
        # One slot is reserved for the close marker
        self._queue: asyncio.Queue[DashboardEvent | None] = asyncio.Queue(maxsize=maxsize + 1)
        self._maxsize = maxsize
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def send(self, event: DashboardEvent) -> None:
        """Queue an event for delivery.

        Raises:
            SubscriberClosedError: If the subscriber is closed or has fallen
                too far behind.
        """
        if self._closed:
            raise SubscriberClosedError(f"{self.name} is closed")
        if self._queue.qsize() >= self._maxsize:
            raise SubscriberClosedError(f"{self.name} has {self._maxsize} undelivered events")
        self._queue.put_nowait(event)

    async def get(self) -> DashboardEvent | None:
        """Wait for the next event. Returns None once the subscriber is closed."""
        if self._closed and self._queue.empty():
            return None
        return await self._queue.get()

    def close(self) -> None:
        """Stop accepting events and wake up a pending :meth:`get`."""
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(None)


class BroadcastHub:
    """Set of live subscribers with catch-up on registration."""

    def __init__(self, store: SnapshotStore, queue_size: int = DEFAULT_QUEUE_SIZE) -> None:
        self._store = store
        self.queue_size = queue_size
        self._subscribers: set[Subscriber] = set()
        self._subscriber_ids = itertools.count(1)

    def new_subscriber(self) -> Subscriber:
        """Create a subscriber sized and numbered by this hub. It is not registered yet."""
        return Subscriber(maxsize=self.queue_size, name=f"subscriber-{next(self._subscriber_ids)}")

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def register(self, subscriber: Subscriber) -> bool:
        """Add a subscriber and send it the current snapshot.

        Only the new subscriber receives the catch-up event. If that first
        send fails the subscriber is closed and not kept.

        Returns:
            True if the subscriber was registered.
        """
        try:
            subscriber.send(data_update(self._store.read()))
        except SubscriberClosedError:
            logger.warning(
                "Subscriber rejected its initial snapshot, not registering",
                extra={"subscriber": subscriber.name},
            )
            subscriber.close()
            return False
        self._subscribers.add(subscriber)
        logger.info(
            "Subscriber connected (%d active)",
            len(self._subscribers),
            extra={"subscriber": subscriber.name},
        )
        return True

    def unregister(self, subscriber: Subscriber) -> None:
        """Remove a subscriber. Unregistering twice is harmless."""
        if subscriber in self._subscribers:
            self._subscribers.discard(subscriber)
            logger.info(
                "Subscriber disconnected (%d active)",
                len(self._subscribers),
                extra={"subscriber": subscriber.name},
            )
        subscriber.close()

    def broadcast(self, event: DashboardEvent) -> int:
        """Send an event to every registered subscriber.

        Subscribers whose send fails are dropped; the rest still receive the
        event.

        Returns:
            Number of subscribers the event was delivered to.
        """
        delivered = 0
        for subscriber in list(self._subscribers):
            try:
                subscriber.send(event)
                delivered += 1
            except SubscriberClosedError as e:
                logger.warning(
                    "Dropping subscriber after failed send: %s",
                    e,
                    extra={"subscriber": subscriber.name},
                )
                self.unregister(subscriber)
        logger.debug(
            "Broadcast %s to %d subscriber(s)",
            event.type,
            delivered,
            extra={"diagnostic_tag": "broadcast"},
        )
        return delivered

    def close_all(self) -> None:
        """Disconnect every subscriber, e.g. at shutdown."""
        for subscriber in list(self._subscribers):
            self.unregister(subscriber)
