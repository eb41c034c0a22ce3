"""Application runner for the JLib Dashboard.

Ties together configuration, logging and the HTTP server:

1. Parse command-line arguments
2. Load configuration from the environment and apply CLI overrides
3. Configure logging
4. Build the FastAPI app and serve it with uvicorn until interrupted

The refresh scheduler lives inside the app's lifespan, so it starts and stops
with the server.
"""

from __future__ import annotations

import argparse
from dataclasses import replace
from typing import Any

import uvicorn

from jlib_dashboard.cli import parse_args
from jlib_dashboard.config import Config, is_valid_server_url, load_config, normalize_server_url
from jlib_dashboard.dashboard import create_app
from jlib_dashboard.logging import get_logger, setup_logging

logger = get_logger(__name__)


def apply_cli_overrides(config: Config, parsed: argparse.Namespace) -> Config:
    """Apply CLI argument overrides to the configuration.

    Args:
        config: Base configuration loaded from environment.
        parsed: Parsed command-line arguments.

    Returns:
        New Config instance with CLI overrides applied.

    Raises:
        ValueError: If an override is out of range or not a valid URL.
    """
    overrides: dict[str, Any] = {}

    if parsed.server_url is not None:
        url = normalize_server_url(parsed.server_url)
        if not is_valid_server_url(url):
            raise ValueError(f"--server-url must be an absolute http or https URL, got {parsed.server_url!r}")
        overrides["jlib_server_url"] = url
    if parsed.host:
        overrides["host"] = parsed.host
    if parsed.port is not None:
        if not 1 <= parsed.port <= 65535:
            raise ValueError(f"--port must be between 1 and 65535, got {parsed.port}")
        overrides["port"] = parsed.port
    if parsed.interval is not None:
        if parsed.interval <= 0:
            raise ValueError(f"--interval must be positive, got {parsed.interval}")
        overrides["refresh_interval"] = parsed.interval
    if parsed.log_level:
        overrides["log_level"] = parsed.log_level

    if overrides:
        return replace(config, **overrides)
    return config


def run_server(config: Config) -> int:
    """Serve the dashboard until the server is asked to exit.

    Args:
        config: Fully resolved configuration.

    Returns:
        Exit code for the application.
    """
    app = create_app(config)
    server = uvicorn.Server(
        uvicorn.Config(
            app=app,
            host=config.host,
            port=config.port,
            log_level="warning",
            access_log=False,
        )
    )
    logger.info("Dashboard listening on http://%s:%d", config.host, config.port)
    server.run()
    return 0


def main(args: list[str] | None = None) -> int:
    """Main entry point for the application.

    Args:
        args: Optional list of command-line arguments.

    Returns:
        Exit code for the application.
    """
    parsed = parse_args(args)

    config = load_config(parsed.env_file)
    try:
        config = apply_cli_overrides(config, parsed)
    except ValueError as e:
        setup_logging(config.log_level, json_format=config.log_json)
        logger.error("Invalid command-line option: %s", e)
        return 2

    setup_logging(
        config.log_level,
        json_format=config.log_json,
        diagnostic_tags=config.diagnostic_tags,
    )
    logger.info("Inspection server: %s", config.jlib_server_url)

    return run_server(config)


__all__ = [
    "apply_cli_overrides",
    "main",
    "run_server",
]
