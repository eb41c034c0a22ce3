"""Configuration loading from environment variables."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlsplit

from dotenv import load_dotenv

# Valid log levels
VALID_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})

# URL schemes accepted for the inspection server
VALID_URL_SCHEMES = frozenset({"http", "https"})

# Port validation bounds
MIN_PORT = 1
MAX_PORT = 65535

DEFAULT_JLIB_SERVER_URL = "http://localhost:8080"


@dataclass(frozen=True)
class Config:
    """Application configuration loaded from environment.

    This dataclass is frozen (immutable) to prevent accidental modification
    after creation. The inspection server URL here is only the startup value;
    the live target can be changed at runtime through the server-config API.
    """

    # Inspection server
    jlib_server_url: str = DEFAULT_JLIB_SERVER_URL
    request_timeout: float = 5.0  # seconds, per upstream call

    # Refresh cadence
    refresh_interval: float = 10.0  # seconds

    # Real-time subscribers
    # Maximum number of undelivered events buffered per subscriber before it
    # is considered stalled and dropped
    subscriber_queue_size: int = 100

    # HTTP server
    host: str = "127.0.0.1"
    port: int = 3000

    # Optional directory with the built front end, served at /
    static_dir: Path | None = None

    # Logging
    log_level: str = "INFO"
    log_json: bool = False
    diagnostic_tags: str = ""


def is_valid_server_url(value: str) -> bool:
    """Check that a string is an absolute http(s) URL with a host.

    Args:
        value: Candidate inspection server URL.

    Returns:
        True if the URL is well-formed, False otherwise.
    """
    if not isinstance(value, str) or not value.strip():
        return False
    try:
        parts = urlsplit(value.strip())
        # Accessing .port validates the port range
        parts.port
    except ValueError:
        return False
    return parts.scheme in VALID_URL_SCHEMES and bool(parts.hostname)


def normalize_server_url(value: str) -> str:
    """Strip whitespace and trailing slashes from a server URL."""
    return value.strip().rstrip("/")


def _parse_positive_int(value: str, name: str, default: int) -> int:
    """Parse a string as a positive integer with validation.

    Args:
        value: The string value to parse.
        name: The name of the setting (for error messages).
        default: The default value to use if parsing fails.

    Returns:
        The parsed positive integer, or the default if invalid.

    Logs a warning if the value is invalid.
    """
    try:
        parsed = int(value)
        if parsed <= 0:
            logging.warning(
                "Invalid %s: %d is not positive, using default %d",
                name,
                parsed,
                default,
            )
            return default
        return parsed
    except ValueError:
        logging.warning(
            "Invalid %s: '%s' is not a valid integer, using default %d",
            name,
            value,
            default,
        )
        return default


def _parse_positive_float(value: str, name: str, default: float) -> float:
    """Parse a string as a strictly positive float with validation.

    Args:
        value: The string value to parse.
        name: The name of the setting (for error messages).
        default: The default value to use if parsing fails.

    Returns:
        The parsed float, or the default if invalid.
    """
    try:
        parsed = float(value)
        if parsed <= 0:
            logging.warning(
                "Invalid %s: %f is not positive, using default %f",
                name,
                parsed,
                default,
            )
            return default
        return parsed
    except ValueError:
        logging.warning(
            "Invalid %s: '%s' is not a valid number, using default %f",
            name,
            value,
            default,
        )
        return default


def _parse_port(value: str, name: str, default: int) -> int:
    """Parse a string as a valid TCP port number with range validation.

    Args:
        value: The string value to parse.
        name: The name of the setting (for error messages).
        default: The default value to use if parsing fails.

    Returns:
        The parsed port number (MIN_PORT-MAX_PORT), or the default if invalid.
    """
    try:
        parsed = int(value)
        if parsed < MIN_PORT or parsed > MAX_PORT:
            logging.warning(
                "Invalid %s: %d is not a valid port (must be %d-%d), using default %d",
                name,
                parsed,
                MIN_PORT,
                MAX_PORT,
                default,
            )
            return default
        return parsed
    except ValueError:
        logging.warning(
            "Invalid %s: '%s' is not a valid integer, using default %d",
            name,
            value,
            default,
        )
        return default


def _validate_log_level(value: str, default: str = "INFO") -> str:
    """Validate and normalize a log level string.

    Args:
        value: The log level string to validate.
        default: The default value to use if invalid.

    Returns:
        The validated log level (uppercase), or the default if invalid.
    """
    normalized = value.upper()
    if normalized not in VALID_LOG_LEVELS:
        logging.warning(
            "Invalid JLIB_DASHBOARD_LOG_LEVEL: '%s' is not valid, using default '%s'. "
            "Valid values: %s",
            value,
            default,
            ", ".join(sorted(VALID_LOG_LEVELS)),
        )
        return default
    return normalized


def _validate_server_url(value: str, default: str = DEFAULT_JLIB_SERVER_URL) -> str:
    """Validate and normalize the inspection server URL.

    Args:
        value: The URL string to validate.
        default: The default value to use if invalid.

    Returns:
        The normalized URL, or the default if invalid.
    """
    if not is_valid_server_url(value):
        logging.warning(
            "Invalid JLIB_SERVER_URL: '%s' is not an absolute http(s) URL, using default '%s'",
            value,
            default,
        )
        return default
    return normalize_server_url(value)


def _parse_bool(value: str) -> bool:
    """Parse a string as a boolean.

    Returns:
        True if value is "true", "1", or "yes" (case-insensitive), False otherwise.
    """
    return value.lower() in ("true", "1", "yes")


def load_config(env_file: Path | None = None) -> Config:
    """Load configuration from environment variables.

    Args:
        env_file: Optional path to .env file. If not provided,
                  looks for .env in current directory.

    Returns:
        Config object with loaded values.

    Values are validated and defaults are used for invalid inputs.
    """
    if env_file:
        load_dotenv(env_file)
    else:
        load_dotenv()

    jlib_server_url = _validate_server_url(
        os.getenv("JLIB_SERVER_URL", DEFAULT_JLIB_SERVER_URL),
    )

    request_timeout = _parse_positive_float(
        os.getenv("JLIB_DASHBOARD_REQUEST_TIMEOUT", "5.0"),
        "JLIB_DASHBOARD_REQUEST_TIMEOUT",
        5.0,
    )

    refresh_interval = _parse_positive_float(
        os.getenv("JLIB_DASHBOARD_REFRESH_INTERVAL", "10.0"),
        "JLIB_DASHBOARD_REFRESH_INTERVAL",
        10.0,
    )

    subscriber_queue_size = _parse_positive_int(
        os.getenv("JLIB_DASHBOARD_SUBSCRIBER_QUEUE_SIZE", "100"),
        "JLIB_DASHBOARD_SUBSCRIBER_QUEUE_SIZE",
        100,
    )

    # PORT is honoured for compatibility with container platforms; the
    # prefixed variable wins when both are set
    port_value = os.getenv("JLIB_DASHBOARD_PORT") or os.getenv("PORT", "3000")
    port = _parse_port(port_value, "JLIB_DASHBOARD_PORT", 3000)

    host = os.getenv("JLIB_DASHBOARD_HOST", "127.0.0.1")

    static_dir_str = os.getenv("JLIB_DASHBOARD_STATIC_DIR", "")
    static_dir = Path(static_dir_str) if static_dir_str else None

    log_level = _validate_log_level(os.getenv("JLIB_DASHBOARD_LOG_LEVEL", "INFO"))
    log_json = _parse_bool(os.getenv("JLIB_DASHBOARD_LOG_JSON", ""))
    diagnostic_tags = os.getenv("JLIB_DASHBOARD_DIAGNOSTIC_TAGS", "")

    return Config(
        jlib_server_url=jlib_server_url,
        request_timeout=request_timeout,
        refresh_interval=refresh_interval,
        subscriber_queue_size=subscriber_queue_size,
        host=host,
        port=port,
        static_dir=static_dir,
        log_level=log_level,
        log_json=log_json,
        diagnostic_tags=diagnostic_tags,
    )
