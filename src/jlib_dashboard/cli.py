"""Command-line interface argument parsing for the JLib Dashboard.

This module provides the CLI argument parser that handles:
- Inspection server URL override
- Listen address and port override
- Refresh interval override
- Log level override
- Environment file specification
"""

from __future__ import annotations

import argparse
from pathlib import Path


def parse_args(args: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments.

    Args:
        args: Optional list of arguments to parse. If None, uses sys.argv.

    Returns:
        Parsed arguments namespace with the following attributes:
        - server_url: Inspection server base URL
        - host: Address to listen on
        - port: Port to listen on
        - interval: Refresh interval in seconds
        - log_level: Logging level
        - env_file: Path to .env file
    """
    parser = argparse.ArgumentParser(
        description="JLib Dashboard - monitoring for Java applications and their JARs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--server-url",
        default=None,
        help="Inspection server base URL (overrides JLIB_SERVER_URL)",
    )

    parser.add_argument(
        "--host",
        default=None,
        help="Address to listen on (overrides JLIB_DASHBOARD_HOST)",
    )

    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to listen on (overrides JLIB_DASHBOARD_PORT / PORT)",
    )

    parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Refresh interval in seconds (overrides JLIB_DASHBOARD_REFRESH_INTERVAL)",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Log level (overrides JLIB_DASHBOARD_LOG_LEVEL)",
    )

    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Path to .env file (default: ./.env)",
    )

    return parser.parse_args(args)


__all__ = ["parse_args"]
