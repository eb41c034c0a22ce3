"""HTTP client for the JLib inspection server.

The inspection server performs the actual JVM introspection; the dashboard
only consumes its REST endpoints. Every call is bounded by the configured
timeout and is attempted exactly once. Retry policy belongs to the refresh
cadence of the scheduler and to the browser, not to this layer.

Outcomes are reported as exceptions:

- ``InspectionNotFoundError``: the server answered 404 for the entity
- ``InspectionUnreachableError``: timeout, refused connection or other
  transport failure
- ``InspectionResponseError``: any other non-success status or an
  undecodable body

All three derive from ``InspectionClientError``.
"""

from __future__ import annotations

import time
from typing import Any, Self
from urllib.parse import quote

import httpx

from jlib_dashboard.config import DEFAULT_JLIB_SERVER_URL, normalize_server_url
from jlib_dashboard.health import HealthStatus, ServiceHealth
from jlib_dashboard.logging import get_logger

logger = get_logger(__name__)

# Default per-call timeout in seconds (connect, read, write, pool)
DEFAULT_TIMEOUT = 5.0

# Upstream endpoints
HEALTH_PATH = "/health"
SUMMARY_PATH = "/api/dashboard"
APPLICATION_JARS_PATH = "/api/apps/{app_id}/jars"
JVM_DETAILS_PATH = "/api/apps/{app_id}/jvm"
METADATA_PATH = "/api/apps/{app_id}/metadata"
GLOBAL_JARS_PATH = "/api/jars"
JAR_DETAIL_PATH = "/api/jars/{jar_id}"


class InspectionClientError(Exception):
    """Base class for inspection server call failures."""


class InspectionNotFoundError(InspectionClientError):
    """Raised when the inspection server does not know the requested entity."""


class InspectionUnreachableError(InspectionClientError):
    """Raised when the inspection server cannot be reached in time."""


class InspectionResponseError(InspectionClientError):
    """Raised when the inspection server answers with an unusable response.

    Attributes:
        status_code: HTTP status of the response, if one was received.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def _segment(value: str) -> str:
    """Percent-encode a value for use as a single URL path segment."""
    return quote(value, safe="")


class InspectionClient:
    """Async client for the inspection server's REST API.

    Uses a single pooled ``httpx.AsyncClient``, created lazily on first use.
    The target base URL can be swapped at runtime with :meth:`retarget`;
    requests already in flight finish against the URL they started with.

    Example::

        client = InspectionClient("http://localhost:8080", timeout=5.0)
        summary = await client.fetch_dashboard_summary()
        await client.aclose()
    """

    def __init__(
        self,
        base_url: str = DEFAULT_JLIB_SERVER_URL,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the inspection client.

        Args:
            base_url: Inspection server base URL (e.g., "http://localhost:8080").
            timeout: Per-call timeout in seconds.
            transport: Optional custom transport, used by tests to simulate
                the inspection server.
        """
        self._base_url = normalize_server_url(base_url)
        self.timeout = httpx.Timeout(timeout)
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def base_url(self) -> str:
        """The inspection server URL new requests are sent to."""
        return self._base_url

    def retarget(self, base_url: str) -> None:
        """Point subsequent requests at a different inspection server.

        Args:
            base_url: The new base URL. Must already be validated.
        """
        new_url = normalize_server_url(base_url)
        if new_url != self._base_url:
            logger.info("Inspection server target changed: %s -> %s", self._base_url, new_url)
        self._base_url = new_url

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
        return self._client

    async def aclose(self) -> None:
        """Close the pooled HTTP client and release its connections."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json_body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Issue one request and decode the JSON object it returns.

        Args:
            method: HTTP method.
            path: Path relative to the current base URL.
            json_body: Optional JSON request body.

        Returns:
            The decoded response object.

        Raises:
            InspectionNotFoundError: On HTTP 404.
            InspectionUnreachableError: On timeout or transport failure.
            InspectionResponseError: On any other error status or a body that
                is not a JSON object.
        """
        url = f"{self._base_url}{path}"
        logger.debug("%s %s", method, url)
        try:
            response = await self._get_client().request(method, url, json=json_body)
            response.raise_for_status()
        except httpx.TimeoutException as e:
            raise InspectionUnreachableError(f"{method} {url} timed out: {e}") from e
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status == 404:
                raise InspectionNotFoundError(f"{method} {url} returned 404") from e
            raise InspectionResponseError(
                f"{method} {url} failed with status {status}", status_code=status
            ) from e
        except httpx.RequestError as e:
            raise InspectionUnreachableError(f"{method} {url} failed: {e}") from e

        try:
            data = response.json()
        except ValueError as e:
            raise InspectionResponseError(
                f"{method} {url} returned a body that is not JSON",
                status_code=response.status_code,
            ) from e
        if not isinstance(data, dict):
            raise InspectionResponseError(
                f"{method} {url} returned {type(data).__name__}, expected an object",
                status_code=response.status_code,
            )
        return data

    async def check_health(self) -> ServiceHealth:
        """Check the inspection server's health endpoint.

        The response body is ignored; any 2xx answer counts as reachable.
        This method never raises for connectivity problems.

        Returns:
            ServiceHealth with status UP if reachable, DOWN otherwise.
        """
        url = f"{self._base_url}{HEALTH_PATH}"
        start_time = time.perf_counter()
        try:
            response = await self._get_client().get(url)
            response.raise_for_status()
        except httpx.TimeoutException:
            latency_ms = (time.perf_counter() - start_time) * 1000
            logger.warning("Inspection server health check timed out after %.2fms", latency_ms)
            return ServiceHealth(
                status=HealthStatus.DOWN,
                latency_ms=latency_ms,
                error="Connection timed out",
            )
        except httpx.HTTPStatusError as e:
            latency_ms = (time.perf_counter() - start_time) * 1000
            error_msg = f"HTTP {e.response.status_code}"
            logger.warning("Inspection server health check failed: %s", error_msg)
            return ServiceHealth(
                status=HealthStatus.DOWN,
                latency_ms=latency_ms,
                error=error_msg,
            )
        except httpx.RequestError as e:
            latency_ms = (time.perf_counter() - start_time) * 1000
            logger.warning("Inspection server health check failed due to request error: %s", e)
            return ServiceHealth(
                status=HealthStatus.DOWN,
                latency_ms=latency_ms,
                error=str(e) or type(e).__name__,
            )

        latency_ms = (time.perf_counter() - start_time) * 1000
        logger.debug(
            "Inspection server health check succeeded in %.2fms",
            latency_ms,
            extra={"diagnostic_tag": "refresh"},
        )
        return ServiceHealth(status=HealthStatus.UP, latency_ms=latency_ms)

    async def fetch_dashboard_summary(self) -> dict[str, Any]:
        """Fetch every application with its JAR list embedded.

        Each embedded JAR carries its ``loaded`` flag.

        Returns:
            ``{"applications": [{..., "jars": [...]}], "lastUpdated", "serverStatus"}``
        """
        return await self._request("GET", SUMMARY_PATH)

    async def fetch_application_jars(self, app_id: str) -> dict[str, Any]:
        """Fetch the JAR list of one application.

        Returns:
            ``{"jars": [...]}``

        Raises:
            InspectionNotFoundError: If the application is unknown upstream.
        """
        return await self._request("GET", APPLICATION_JARS_PATH.format(app_id=_segment(app_id)))

    async def fetch_jvm_details(self, app_id: str) -> dict[str, Any]:
        """Fetch the JVM runtime snapshot of one application.

        Raises:
            InspectionNotFoundError: If the application is unknown upstream.
        """
        return await self._request("GET", JVM_DETAILS_PATH.format(app_id=_segment(app_id)))

    async def fetch_global_jars(self) -> dict[str, Any]:
        """Fetch the deduplicated JAR inventory across all applications.

        Returns:
            ``{"jars": [{jarId, fileName, checksum, size, appCount, loadedAppCount}, ...]}``
        """
        return await self._request("GET", GLOBAL_JARS_PATH)

    async def fetch_jar_detail(self, jar_id: str) -> dict[str, Any]:
        """Fetch one JAR with its application back-references.

        Raises:
            InspectionNotFoundError: If the JAR is unknown upstream.
        """
        return await self._request("GET", JAR_DETAIL_PATH.format(jar_id=_segment(jar_id)))

    async def update_application_metadata(
        self, app_id: str, fields: dict[str, Any]
    ) -> dict[str, Any]:
        """Persist user-editable metadata of one application upstream.

        Args:
            app_id: Application identity.
            fields: Any of ``name``, ``description`` and ``tags``.

        Returns:
            The inspection server's persisted copy of the application.

        Raises:
            InspectionNotFoundError: If the application is unknown upstream.
        """
        return await self._request(
            "PUT", METADATA_PATH.format(app_id=_segment(app_id)), json_body=fields
        )
