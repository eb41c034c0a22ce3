"""Health check types and checks for the dashboard.

This module provides:
- The health result types shared by the inspection server check and the
  dashboard's own health endpoints
- ``HealthChecker``, which answers liveness and readiness checks

Health Check Types:
- Liveness: Basic check to confirm the dashboard process is serving requests
- Readiness: Verifies the inspection server answers its ``/health`` endpoint

Usage:
    from jlib_dashboard.health import HealthChecker

    checker = HealthChecker(inspection_client)
    liveness = checker.check_liveness()
    readiness = await checker.check_readiness()
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from jlib_dashboard.inspection_client import InspectionClient


class HealthStatus(Enum):
    """Health status values for service checks."""

    UP = "up"
    DOWN = "down"


@dataclass
class ServiceHealth:
    """Health status for an individual service.

    Attributes:
        status: The health status (up, down).
        latency_ms: Latency in milliseconds for the health check.
        error: Optional error message if the check failed.
    """

    status: HealthStatus
    latency_ms: float
    error: str | None = None

    @property
    def is_up(self) -> bool:
        return self.status == HealthStatus.UP

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        result: dict[str, Any] = {
            "status": self.status.value,
            "latency_ms": round(self.latency_ms, 2),
        }
        if self.error:
            result["error"] = self.error
        return result


@dataclass
class HealthCheckResult:
    """Result of a health check operation.

    Attributes:
        status: Overall health status ("healthy" or "unhealthy").
        checks: Dictionary of individual service health checks.
        timestamp: Unix timestamp of the health check.
    """

    status: str
    checks: dict[str, ServiceHealth] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "status": self.status,
            "timestamp": self.timestamp,
            "checks": {name: check.to_dict() for name, check in self.checks.items()},
        }


class HealthChecker:
    """Liveness and readiness checks for the dashboard."""

    def __init__(self, inspection_client: InspectionClient) -> None:
        self.inspection_client = inspection_client

    def check_liveness(self) -> HealthCheckResult:
        """Perform a basic liveness check.

        Does not touch the inspection server.
        """
        return HealthCheckResult(status="healthy")

    async def check_readiness(self) -> HealthCheckResult:
        """Check the inspection server and report the result.

        The check itself never raises; an unreachable server is reported as
        an ``unhealthy`` result.
        """
        jlib_server = await self.inspection_client.check_health()
        status = "healthy" if jlib_server.is_up else "unhealthy"
        return HealthCheckResult(status=status, checks={"jlib_server": jlib_server})
