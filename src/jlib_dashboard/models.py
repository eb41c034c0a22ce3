"""Data model for the dashboard snapshot.

The inspection server speaks camelCase JSON. These frozen dataclasses are the
dashboard's own view of that data: ``from_payload()`` reads an upstream JSON
object leniently (missing fields fall back to defaults), ``to_dict()`` renders
the wire form served to browsers.

Snapshots are immutable. Updating the dashboard state always means building
a new ``Snapshot`` (see ``dataclasses.replace``), which is what lets readers
hold on to a snapshot without ever observing a half-written one.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import Enum
from typing import Any

# Marker the inspection server reports when a checksum could not be computed
UNKNOWN_CHECKSUM = "?"

# Sizes the inspection server reports when a JAR's size is not known
UNKNOWN_SIZES = frozenset({-1, 0})

# Separator between a container archive and a nested entry, e.g.
# "app.jar!/BOOT-INF/lib/dep.jar"
NESTED_PATH_SEPARATOR = "!/"

# Application fields that can be edited through the metadata endpoint
EDITABLE_APPLICATION_FIELDS = frozenset({"name", "description", "tags"})


class ConnectivityStatus(Enum):
    """Connectivity to the inspection server, as of the last refresh attempt."""

    UNKNOWN = "unknown"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


def utc_now_iso() -> str:
    """Return the current UTC time as an ISO-8601 string."""
    return datetime.now(tz=UTC).isoformat()


def _str(payload: dict[str, Any], key: str, default: str = "") -> str:
    value = payload.get(key)
    return default if value is None else str(value)


def _int(payload: dict[str, Any], key: str, default: int = 0) -> int:
    value = payload.get(key)
    if isinstance(value, bool):
        return default
    try:
        return int(value) if value is not None else default
    except (TypeError, ValueError):
        return default


def _optional_int(payload: dict[str, Any], key: str) -> int | None:
    if payload.get(key) is None:
        return None
    return _int(payload, key)


def _tags(value: Any) -> tuple[str, ...]:
    """Normalize a tag list, dropping duplicates while keeping order."""
    if not isinstance(value, list | tuple):
        return ()
    return tuple(dict.fromkeys(str(tag) for tag in value if tag is not None))


@dataclass(frozen=True)
class JarApplicationRef:
    """One application referencing a JAR, as shown on the JAR detail view."""

    app_id: str
    loaded: bool = False
    path: str = ""
    last_accessed: str | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> JarApplicationRef:
        return cls(
            app_id=_str(payload, "appId"),
            loaded=bool(payload.get("loaded", False)),
            path=_str(payload, "path"),
            last_accessed=payload.get("lastAccessed"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "appId": self.app_id,
            "loaded": self.loaded,
            "path": self.path,
            "lastAccessed": self.last_accessed,
        }


@dataclass(frozen=True)
class Jar:
    """A dependency artifact observed inside a monitored JVM.

    Attributes:
        jar_id: Identity unique across the whole inspection server.
        file_name: Archive file name.
        path: Full path; nested archives use ``!/`` as container separator.
        checksum: Content hash, or ``"?"`` when unavailable.
        size: Size in bytes; ``-1`` or ``0`` mean unknown.
        loaded: True if loaded by at least one classloader.
        last_accessed: Upstream timestamp of the last access.
        manifest: Manifest attributes, possibly empty.
        applications: Back-references, only present on the detail view.
    """

    jar_id: str
    file_name: str = ""
    path: str = ""
    checksum: str = UNKNOWN_CHECKSUM
    size: int = -1
    loaded: bool = False
    last_accessed: str | None = None
    manifest: dict[str, str] = field(default_factory=dict)
    applications: tuple[JarApplicationRef, ...] | None = None

    @property
    def checksum_available(self) -> bool:
        return bool(self.checksum) and self.checksum != UNKNOWN_CHECKSUM

    @property
    def size_known(self) -> bool:
        return self.size not in UNKNOWN_SIZES

    @property
    def is_nested(self) -> bool:
        return NESTED_PATH_SEPARATOR in self.path

    @property
    def container_path(self) -> str | None:
        """Path of the outermost archive holding a nested JAR, else None."""
        if not self.is_nested:
            return None
        return self.path.split(NESTED_PATH_SEPARATOR, 1)[0]

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> Jar:
        manifest = payload.get("manifest") or {}
        refs = payload.get("applications")
        return cls(
            # Per-app listings of older servers identify a JAR by its path only
            jar_id=_str(payload, "jarId") or _str(payload, "path"),
            file_name=_str(payload, "fileName"),
            path=_str(payload, "path"),
            checksum=_str(payload, "checksum", UNKNOWN_CHECKSUM) or UNKNOWN_CHECKSUM,
            size=_int(payload, "size", -1),
            loaded=bool(payload.get("loaded", False)),
            last_accessed=payload.get("lastAccessed"),
            manifest={str(k): str(v) for k, v in manifest.items()} if isinstance(manifest, dict) else {},
            applications=(
                tuple(JarApplicationRef.from_payload(ref) for ref in refs if isinstance(ref, dict))
                if isinstance(refs, list)
                else None
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "jarId": self.jar_id,
            "fileName": self.file_name,
            "path": self.path,
            "checksum": self.checksum,
            "size": self.size,
            "loaded": self.loaded,
            "lastAccessed": self.last_accessed,
            "manifest": dict(self.manifest),
        }
        if self.applications is not None:
            result["applications"] = [ref.to_dict() for ref in self.applications]
        return result


@dataclass(frozen=True)
class Application:
    """One monitored JVM process.

    ``jars`` is None when the JAR list has not been embedded; the bulk
    snapshot never embeds it and clients fetch it per application on demand.
    """

    app_id: str
    command_line: str = ""
    jdk_version: str = ""
    jdk_vendor: str = ""
    jdk_path: str = ""
    name: str = ""
    description: str = ""
    tags: tuple[str, ...] = ()
    first_seen: str | None = None
    last_updated: str | None = None
    jar_count: int = 0
    jars: tuple[Jar, ...] | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> Application:
        jars = payload.get("jars")
        parsed_jars = (
            tuple(Jar.from_payload(jar) for jar in jars if isinstance(jar, dict))
            if isinstance(jars, list)
            else None
        )
        jar_count = _optional_int(payload, "jarCount")
        if jar_count is None:
            jar_count = len(parsed_jars) if parsed_jars is not None else 0
        return cls(
            app_id=_str(payload, "appId"),
            command_line=_str(payload, "commandLine"),
            jdk_version=_str(payload, "jdkVersion"),
            jdk_vendor=_str(payload, "jdkVendor"),
            jdk_path=_str(payload, "jdkPath"),
            name=_str(payload, "name"),
            description=_str(payload, "description"),
            tags=_tags(payload.get("tags")),
            first_seen=payload.get("firstSeen"),
            last_updated=payload.get("lastUpdated"),
            jar_count=jar_count,
            jars=parsed_jars,
        )

    def without_jars(self) -> Application:
        return self if self.jars is None else replace(self, jars=None)

    def with_metadata(self, fields: dict[str, Any]) -> Application:
        """Return a copy with the editable fields in ``fields`` applied.

        Keys outside ``EDITABLE_APPLICATION_FIELDS`` are ignored.
        """
        changes: dict[str, Any] = {}
        if "name" in fields:
            changes["name"] = "" if fields["name"] is None else str(fields["name"])
        if "description" in fields:
            changes["description"] = (
                "" if fields["description"] is None else str(fields["description"])
            )
        if "tags" in fields:
            changes["tags"] = _tags(fields["tags"])
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "appId": self.app_id,
            "name": self.name,
            "description": self.description,
            "commandLine": self.command_line,
            "jdkVersion": self.jdk_version,
            "jdkVendor": self.jdk_vendor,
            "jdkPath": self.jdk_path,
            "firstSeen": self.first_seen,
            "lastUpdated": self.last_updated,
            "jarCount": self.jar_count,
            "tags": list(self.tags),
        }
        if self.jars is not None:
            result["jars"] = [jar.to_dict() for jar in self.jars]
        return result


@dataclass(frozen=True)
class Snapshot:
    """The single aggregate of dashboard state.

    ``applications`` keeps upstream response order. ``connectivity_status``
    reflects only the outcome of the most recent refresh attempt.
    """

    applications: tuple[Application, ...] = ()
    application_count: int = 0
    jar_count: int = 0
    active_jar_count: int = 0
    inactive_jar_count: int = 0
    last_updated: str | None = None
    connectivity_status: ConnectivityStatus = ConnectivityStatus.UNKNOWN

    def find_application(self, app_id: str) -> Application | None:
        for app in self.applications:
            if app.app_id == app_id:
                return app
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "applications": [app.to_dict() for app in self.applications],
            "applicationCount": self.application_count,
            "jarCount": self.jar_count,
            "activeJarCount": self.active_jar_count,
            "inactiveJarCount": self.inactive_jar_count,
            "lastUpdated": self.last_updated,
            "connectivityStatus": self.connectivity_status.value,
            # Field name the browser client reads
            "serverStatus": self.connectivity_status.value,
        }


def snapshot_from_summary(payload: dict[str, Any]) -> Snapshot:
    """Build a connected snapshot from an upstream summary payload.

    Counts present in the payload are trusted as-is; the inspection server
    owns the rules for what counts as a unique JAR. Missing counts are derived
    from the applications in the payload before their embedded JAR lists are
    stripped.

    Args:
        payload: Decoded ``/api/dashboard`` response body.

    Returns:
        A snapshot with ``CONNECTED`` status and no embedded JAR lists.
    """
    raw_apps = payload.get("applications")
    apps = tuple(
        Application.from_payload(item)
        for item in (raw_apps if isinstance(raw_apps, list) else [])
        if isinstance(item, dict)
    )

    application_count = _optional_int(payload, "applicationCount")
    if application_count is None:
        application_count = len(apps)

    jar_count = _optional_int(payload, "jarCount")
    if jar_count is None:
        jar_count = sum(app.jar_count for app in apps)

    active_jar_count = _optional_int(payload, "activeJarCount")
    if active_jar_count is None:
        active_jar_count = sum(1 for app in apps for jar in (app.jars or ()) if jar.loaded)

    inactive_jar_count = _optional_int(payload, "inactiveJarCount")
    if inactive_jar_count is None:
        inactive_jar_count = max(jar_count - active_jar_count, 0)

    last_updated = payload.get("lastUpdated") or utc_now_iso()

    return Snapshot(
        applications=tuple(app.without_jars() for app in apps),
        application_count=application_count,
        jar_count=jar_count,
        active_jar_count=active_jar_count,
        inactive_jar_count=inactive_jar_count,
        last_updated=str(last_updated),
        connectivity_status=ConnectivityStatus.CONNECTED,
    )
