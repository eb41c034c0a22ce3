"""Shared pytest fixtures for JLib Dashboard tests.

The inspection server is simulated in-process by ``FakeInspectionServer``,
plugged into ``InspectionClient`` through an ``httpx.MockTransport``. Tests
change the fake's attributes (``healthy``, ``applications``, ...) to shape
what the next request sees, and inspect ``requests`` afterwards.
"""

from __future__ import annotations

import copy
import json
import re
from typing import Any

import httpx
import pytest
from dependency_injector import providers

from jlib_dashboard.config import Config
from jlib_dashboard.container import DashboardContainer, create_container
from jlib_dashboard.inspection_client import InspectionClient

FAKE_SERVER_URL = "http://jlib.test:8080"

_APP_PATH = re.compile(r"^/api/apps/(?P<app_id>[^/]+)/(?P<resource>jars|jvm|metadata)$")
_JAR_PATH = re.compile(r"^/api/jars/(?P<jar_id>.+)$")


def make_jar(jar_id: str, *, loaded: bool = True, **overrides: Any) -> dict[str, Any]:
    """Build an upstream JAR payload."""
    jar = {
        "jarId": jar_id,
        "fileName": f"{jar_id}.jar",
        "path": f"/opt/lib/{jar_id}.jar",
        "checksum": f"sha256-{jar_id}",
        "size": 1024,
        "loaded": loaded,
        "lastAccessed": "2024-01-01T00:00:00Z",
        "manifest": {},
    }
    jar.update(overrides)
    return jar


def make_application(app_id: str, jars: list[dict[str, Any]] | None = None, **overrides: Any) -> dict[str, Any]:
    """Build an upstream application payload."""
    jars = jars if jars is not None else [make_jar(f"{app_id}-core")]
    app = {
        "appId": app_id,
        "commandLine": f"java -jar {app_id}.jar",
        "jdkVersion": "21.0.2",
        "jdkVendor": "Eclipse Adoptium",
        "jdkPath": "/usr/lib/jvm/temurin-21",
        "name": app_id.title(),
        "description": "",
        "tags": [],
        "firstSeen": "2024-01-01T00:00:00Z",
        "lastUpdated": "2024-01-02T00:00:00Z",
        "jars": jars,
    }
    app.update(overrides)
    return app


def _list_entry(app: dict[str, Any]) -> dict[str, Any]:
    """Shape of one item in the upstream ``/api/apps`` list: no JARs, no metadata."""
    keys = ("appId", "commandLine", "jdkVersion", "jdkVendor", "firstSeen", "lastUpdated")
    entry = {key: app[key] for key in keys}
    entry["jarCount"] = len(app["jars"])
    return entry


def _details(app: dict[str, Any]) -> dict[str, Any]:
    """Shape of one upstream application detail: metadata plus embedded JARs."""
    return {**copy.deepcopy(app), "jarCount": len(app["jars"])}


class FakeInspectionServer:
    """In-process stand-in for the JLib inspection server."""

    def __init__(self) -> None:
        self.healthy = True
        self.reachable_hosts = {"jlib.test"}
        self.summary_status = 200
        self.metadata_status = 200
        self.applications: list[dict[str, Any]] = [
            make_application("orders", [make_jar("spring-core"), make_jar("guava", loaded=False)]),
            make_application("billing", [make_jar("jackson")]),
        ]
        self.summary_extra: dict[str, Any] = {}
        self.jvm: dict[str, dict[str, Any]] = {
            "orders": {"appId": "orders", "heapUsed": 1048576, "threadCount": 42},
        }
        self.requests: list[httpx.Request] = []

    def paths(self, method: str = "GET") -> list[str]:
        return [r.url.path for r in self.requests if r.method == method]

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def _find_app(self, app_id: str) -> dict[str, Any] | None:
        return next((app for app in self.applications if app["appId"] == app_id), None)

    def _all_jars(self) -> dict[str, dict[str, Any]]:
        jars: dict[str, dict[str, Any]] = {}
        for app in self.applications:
            for jar in app["jars"]:
                entry = jars.setdefault(
                    jar["jarId"], {**jar, "appCount": 0, "loadedAppCount": 0, "applications": []}
                )
                entry["appCount"] += 1
                entry["loadedAppCount"] += int(jar["loaded"])
                entry["applications"].append(
                    {"appId": app["appId"], "loaded": jar["loaded"], "path": jar["path"]}
                )
        return jars

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.host not in self.reachable_hosts:
            raise httpx.ConnectError("Connection refused", request=request)
        path = request.url.path

        if path == "/health":
            if self.healthy:
                return httpx.Response(200, json={"status": "UP"})
            return httpx.Response(503, json={"status": "DOWN"})

        if path == "/api/dashboard" and request.method == "GET":
            if self.summary_status != 200:
                return httpx.Response(self.summary_status, json={"error": "boom"})
            return httpx.Response(
                200,
                json={
                    "applications": [_details(app) for app in self.applications],
                    "lastUpdated": "2024-01-03T00:00:00Z",
                    "serverStatus": "connected",
                    **self.summary_extra,
                },
            )

        if path == "/api/apps" and request.method == "GET":
            return httpx.Response(
                200,
                json={"applications": [_list_entry(app) for app in self.applications]},
            )

        if match := _APP_PATH.match(path):
            app = self._find_app(match["app_id"])
            if app is None:
                return httpx.Response(404, json={"error": "Application not found"})
            resource = match["resource"]
            if resource == "jars":
                return httpx.Response(200, json={"jars": copy.deepcopy(app["jars"])})
            if resource == "jvm":
                return httpx.Response(200, json=self.jvm.get(app["appId"], {}))
            if self.metadata_status != 200:
                return httpx.Response(self.metadata_status, json={"error": "write failed"})
            app.update(json.loads(request.content))
            return httpx.Response(200, json=_details(app))

        if path == "/api/jars":
            jars = [
                {k: v for k, v in jar.items() if k != "applications"}
                for jar in self._all_jars().values()
            ]
            return httpx.Response(200, json={"jars": jars})

        if match := _JAR_PATH.match(path):
            jar = self._all_jars().get(match["jar_id"])
            if jar is None:
                return httpx.Response(404, json={"error": "JAR not found"})
            return httpx.Response(200, json=jar)

        return httpx.Response(404, json={"error": "API endpoint not found"})


@pytest.fixture
def fake_server() -> FakeInspectionServer:
    return FakeInspectionServer()


@pytest.fixture
def inspection_client(fake_server: FakeInspectionServer) -> InspectionClient:
    return InspectionClient(FAKE_SERVER_URL, timeout=1.0, transport=fake_server.transport())


@pytest.fixture
def dashboard_config() -> Config:
    # Long interval so only the startup cycle and explicit refreshes run
    return Config(jlib_server_url=FAKE_SERVER_URL, refresh_interval=3600.0, subscriber_queue_size=10)


@pytest.fixture
def container(dashboard_config: Config, inspection_client: InspectionClient) -> DashboardContainer:
    container = create_container(dashboard_config)
    container.inspection_client.override(providers.Object(inspection_client))
    return container
