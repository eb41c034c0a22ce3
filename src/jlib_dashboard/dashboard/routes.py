"""Route handlers for the dashboard API.

Three kinds of endpoints live here:

- Snapshot reads (``/api/dashboard``, ``/api/apps``), answered from the
  snapshot store without touching the inspection server
- Read-through detail endpoints (per-app JARs, JVM details, global JARs,
  JAR detail), forwarded to the inspection server on every request
- Writes (server config, application metadata, manual refresh), which change
  the cached state and announce the change to real-time subscribers

Inspection client failures are translated into HTTP errors: an unknown entity
becomes 404, an unreachable or misbehaving inspection server becomes 502.
"""

from __future__ import annotations

import json
from collections.abc import AsyncGenerator, Awaitable
from typing import TYPE_CHECKING, Any, TypeVar

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError
from sse_starlette.sse import EventSourceResponse

from jlib_dashboard.broadcast import config_update, data_update
from jlib_dashboard.dashboard.models import (
    DashboardHealthResponse,
    MetadataUpdateRequest,
    ServerConfigRequest,
    ServerConfigResponse,
    ServerConfigUpdateResponse,
)
from jlib_dashboard.inspection_client import InspectionClientError, InspectionNotFoundError
from jlib_dashboard.logging import get_logger
from jlib_dashboard.models import ConnectivityStatus, utc_now_iso

if TYPE_CHECKING:
    from jlib_dashboard.container import DashboardContainer

logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

# Body of the 404 returned for any unrouted /api path
API_NOT_FOUND = {"error": "API endpoint not found"}


def _validation_message(error: ValidationError) -> str:
    """Flatten a pydantic error into one readable line."""
    parts = []
    for item in error.errors(include_url=False):
        location = ".".join(str(part) for part in item["loc"]) or "body"
        parts.append(f"{location}: {item['msg']}")
    return "; ".join(parts)


async def _parse_body(request: Request, model: type[ModelT]) -> ModelT:
    """Validate a JSON request body, rejecting bad input with 400.

    Raises:
        HTTPException: 400 if the body is not JSON or fails validation.
    """
    try:
        payload = await request.json()
    except ValueError as e:
        raise HTTPException(status_code=400, detail="Request body must be valid JSON") from e
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=_validation_message(e)) from e


async def _forward(call: Awaitable[dict[str, Any]], entity: str) -> dict[str, Any]:
    """Await an inspection client call, translating its failures.

    Raises:
        HTTPException: 404 if the entity is unknown upstream, 502 for any
            other inspection server failure.
    """
    try:
        return await call
    except InspectionNotFoundError as e:
        raise HTTPException(status_code=404, detail=f"{entity} not found") from e
    except InspectionClientError as e:
        logger.warning("Inspection server request for %s failed: %s", entity, e)
        raise HTTPException(status_code=502, detail=f"Inspection server error: {e}") from e


def create_routes(container: DashboardContainer) -> APIRouter:
    """Create the dashboard API router.

    Args:
        container: The application's dependency container.

    Returns:
        An APIRouter with all dashboard API routes configured.
    """
    client = container.inspection_client()
    store = container.snapshot_store()
    hub = container.broadcast_hub()
    scheduler = container.scheduler()
    health_checker = container.health_checker()

    dashboard_router = APIRouter()

    @dashboard_router.get("/api/dashboard")
    async def api_dashboard() -> dict[str, Any]:
        """Return the current snapshot."""
        return store.read().to_dict()

    @dashboard_router.get("/api/server-config", response_model=ServerConfigResponse)
    async def get_server_config() -> ServerConfigResponse:
        """Return the inspection server URL currently polled."""
        return ServerConfigResponse(jlib_server_url=client.base_url)

    @dashboard_router.post("/api/server-config", response_model=ServerConfigUpdateResponse)
    async def update_server_config(request: Request) -> ServerConfigUpdateResponse:
        """Point the dashboard at a different inspection server.

        The cached applications are cleared right away, subscribers are told
        about the new target, and a refresh against it is scheduled without
        waiting for the next tick.

        Raises:
            HTTPException: 400 if the URL is malformed.
        """
        body = await _parse_body(request, ServerConfigRequest)
        url = body.jlib_server_url

        client.retarget(url)
        store.reset(ConnectivityStatus.CONNECTING)
        hub.broadcast(config_update(url))
        scheduler.request_refresh(follow_up=True)

        logger.info("Inspection server URL set to %s", url)
        return ServerConfigUpdateResponse(success=True, jlib_server_url=url)

    @dashboard_router.get("/api/apps")
    @dashboard_router.get("/api/applications")
    async def api_applications() -> list[dict[str, Any]]:
        """Return the cached application list."""
        return [app.to_dict() for app in store.read().applications]

    @dashboard_router.get("/api/apps/{app_id}")
    @dashboard_router.get("/api/applications/{app_id}")
    async def api_application(app_id: str) -> dict[str, Any]:
        """Return one cached application.

        Raises:
            HTTPException: 404 if the application is not in the snapshot.
        """
        app = store.get_application(app_id)
        if app is None:
            raise HTTPException(status_code=404, detail="Application not found")
        return app.to_dict()

    @dashboard_router.get("/api/apps/{app_id}/jars")
    async def api_application_jars(app_id: str) -> dict[str, Any]:
        """Forward the JAR list request for one application."""
        return await _forward(client.fetch_application_jars(app_id), "Application")

    @dashboard_router.get("/api/apps/{app_id}/jvm")
    async def api_application_jvm(app_id: str) -> dict[str, Any]:
        """Forward the JVM details request for one application."""
        return await _forward(client.fetch_jvm_details(app_id), "Application")

    @dashboard_router.get("/api/jars")
    async def api_jars() -> dict[str, Any]:
        """Forward the global JAR inventory request."""
        return await _forward(client.fetch_global_jars(), "JAR list")

    @dashboard_router.get("/api/jars/{jar_id:path}")
    async def api_jar_detail(jar_id: str) -> dict[str, Any]:
        """Forward a JAR detail request.

        JAR identities may contain slashes, so the whole remaining path is
        the identifier.
        """
        return await _forward(client.fetch_jar_detail(jar_id), "JAR")

    @dashboard_router.put("/api/apps/{app_id}/metadata")
    @dashboard_router.put("/api/applications/{app_id}/metadata")
    async def update_application_metadata(app_id: str, request: Request) -> dict[str, Any]:
        """Write application metadata through to the inspection server.

        The cached copy is patched and broadcast only after the inspection
        server accepted the change.

        Raises:
            HTTPException: 400 for a malformed body, 404 if the application
                is unknown upstream, 502 if the write failed.
        """
        body = await _parse_body(request, MetadataUpdateRequest)
        fields = body.changed_fields()
        app_log = logger.with_context(app_id=app_id)

        persisted = await _forward(client.update_application_metadata(app_id, fields), "Application")

        snapshot = store.patch_application(app_id, fields)
        if snapshot is not None:
            hub.broadcast(data_update(snapshot))
            app_log.info("Metadata updated: %s", ", ".join(sorted(fields)))
        else:
            app_log.info("Metadata updated upstream, application not in the cached snapshot")
        return persisted

    @dashboard_router.post("/api/refresh")
    async def api_refresh() -> dict[str, Any]:
        """Run a refresh now (or join the running one) and return the result."""
        await scheduler.wait_for_refresh()
        return store.read().to_dict()

    @dashboard_router.get("/api/health", response_model=DashboardHealthResponse)
    async def api_health() -> DashboardHealthResponse:
        """Summarize the dashboard's own state.

        Answered from the cache; does not call the inspection server.
        """
        snapshot = store.read()
        return DashboardHealthResponse(
            status="healthy",
            timestamp=utc_now_iso(),
            jlib_server_status=snapshot.connectivity_status.value,
            applications_count=len(snapshot.applications),
            subscribers=hub.subscriber_count,
        )

    @dashboard_router.get("/api/events")
    async def api_events() -> EventSourceResponse:
        """Real-time event stream.

        The first event is a ``data-update`` with the current snapshot;
        every later broadcast follows. The SSE event name is the event type
        and its data is the whole event as JSON.
        """
        subscriber = hub.new_subscriber()

        async def event_generator() -> AsyncGenerator[dict[str, Any]]:
            if not hub.register(subscriber):
                return
            try:
                while (event := await subscriber.get()) is not None:
                    yield {"event": event.type, "data": json.dumps(event.to_dict())}
            finally:
                hub.unregister(subscriber)

        return EventSourceResponse(event_generator())

    @dashboard_router.get("/health/live")
    async def health_live() -> dict[str, Any]:
        """Liveness check endpoint. Does not check the inspection server."""
        return health_checker.check_liveness().to_dict()

    @dashboard_router.get("/health/ready")
    async def health_ready() -> dict[str, Any]:
        """Readiness check endpoint.

        Checks connectivity to the inspection server.

        Example response:
            {
                "status": "healthy",
                "timestamp": 1706472123.456,
                "checks": {"jlib_server": {"status": "up", "latency_ms": 4.2}}
            }
        """
        result = await health_checker.check_readiness()
        return result.to_dict()

    @dashboard_router.api_route(
        "/api/{path:path}",
        methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
        include_in_schema=False,
    )
    async def api_not_found(path: str) -> JSONResponse:
        """Catch-all for unknown API paths. Must stay the last API route."""
        logger.debug("No API route for /api/%s", path)
        return JSONResponse(status_code=404, content=API_NOT_FOUND)

    return dashboard_router
