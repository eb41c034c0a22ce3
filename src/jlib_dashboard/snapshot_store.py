"""In-memory holder of the current dashboard snapshot.

The store holds exactly one immutable ``Snapshot``. Writers replace it as a
whole; the single exception is :meth:`SnapshotStore.patch_application`, which
performs its read-modify-write under the store's lock so that it always
applies to the most recently committed snapshot.

The store does not notify anyone. Callers that change it are responsible for
handing the result to the broadcast hub.
"""

from __future__ import annotations

import threading
from dataclasses import replace
from typing import Any

from jlib_dashboard.logging import get_logger
from jlib_dashboard.models import Application, ConnectivityStatus, Snapshot, utc_now_iso

logger = get_logger(__name__)


class SnapshotStore:
    """Thread-safe holder of the current ``Snapshot``."""

    def __init__(self, initial: Snapshot | None = None) -> None:
        self._snapshot = initial if initial is not None else Snapshot()
        self._lock = threading.Lock()

    def read(self) -> Snapshot:
        """Return the latest committed snapshot. Never blocks on writers."""
        return self._snapshot

    def commit(self, snapshot: Snapshot) -> None:
        """Replace the current snapshot with ``snapshot``."""
        with self._lock:
            self._snapshot = snapshot

    def reset(self, status: ConnectivityStatus) -> Snapshot:
        """Discard all cached applications and set the connectivity status.

        Used when the inspection server target changes: data from the old
        server must not be shown as if it came from the new one.

        Returns:
            The newly committed empty snapshot.
        """
        snapshot = Snapshot(last_updated=utc_now_iso(), connectivity_status=status)
        self.commit(snapshot)
        return snapshot

    def get_application(self, app_id: str) -> Application | None:
        return self._snapshot.find_application(app_id)

    def patch_application(self, app_id: str, fields: dict[str, Any]) -> Snapshot | None:
        """Apply an edit to one application's editable fields.

        Only ``name``, ``description`` and ``tags`` are applied. The
        snapshot's ``last_updated`` is bumped so clients see a fresh state.

        Args:
            app_id: Identity of the application to edit.
            fields: New values for any subset of the editable fields.

        Returns:
            The updated snapshot, or None (and no change) if ``app_id`` is not
            in the current snapshot.
        """
        with self._lock:
            current = self._snapshot
            index = next(
                (i for i, app in enumerate(current.applications) if app.app_id == app_id),
                None,
            )
            if index is None:
                logger.debug("Patch ignored, application %s not in snapshot", app_id)
                return None

            applications = list(current.applications)
            applications[index] = applications[index].with_metadata(fields)
            updated = replace(
                current,
                applications=tuple(applications),
                last_updated=utc_now_iso(),
            )
            self._snapshot = updated
            return updated
