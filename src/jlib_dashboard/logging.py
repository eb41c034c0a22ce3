"""Structured logging configuration for the JLib Dashboard."""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import MutableMapping
from datetime import UTC, datetime
from typing import Any

# Context fields rendered by both formatters when present on a record
CONTEXT_FIELDS = ("app_id", "jar_id", "cycle", "subscriber")


class DiagnosticFilter(logging.Filter):
    """Filter that gates debug log messages based on diagnostic tags.

    DEBUG records carrying a ``diagnostic_tag`` attribute (set via ``extra``)
    are emitted only when their tag is enabled. Records above DEBUG, or
    without a tag, always pass through.

    The dashboard tags its chattier debug lines so they stay silent unless
    requested through ``JLIB_DASHBOARD_DIAGNOSTIC_TAGS``::

        JLIB_DASHBOARD_DIAGNOSTIC_TAGS=refresh,broadcast
        JLIB_DASHBOARD_DIAGNOSTIC_TAGS=*

    Usage in application code::

        logger.debug(
            "Tick skipped, refresh in flight",
            extra={"diagnostic_tag": "refresh"},
        )

    Attributes:
        enabled_tags: Frozenset of tag strings that are allowed through.
        allow_all: If ``True``, all tagged diagnostics are emitted.
    """

    def __init__(self, enabled_tags: frozenset[str] | None = None) -> None:
        """Initialize the diagnostic filter.

        Args:
            enabled_tags: Set of tag strings to allow. ``None`` or an empty
                frozenset suppresses all tagged diagnostics. A frozenset
                containing ``"*"`` enables all tags.
        """
        super().__init__()
        self.enabled_tags: frozenset[str] = enabled_tags or frozenset()
        self.allow_all: bool = "*" in self.enabled_tags

    def filter(self, record: logging.LogRecord) -> bool:
        """Decide whether the log record should be emitted."""
        if record.levelno != logging.DEBUG:
            return True

        tag: str | None = getattr(record, "diagnostic_tag", None)
        if tag is None:
            return True

        if self.allow_all:
            return True

        return tag in self.enabled_tags

    @classmethod
    def from_config_string(cls, tags_csv: str) -> DiagnosticFilter:
        """Create a filter from a comma-separated configuration string.

        Args:
            tags_csv: Comma-separated list of tags (e.g. ``"refresh,broadcast"``).
                Whitespace around tags is stripped. ``"*"`` enables all tags.

        Returns:
            A configured ``DiagnosticFilter`` instance.
        """
        if not tags_csv.strip():
            return cls(frozenset())
        tags = frozenset(t.strip() for t in tags_csv.split(",") if t.strip())
        return cls(tags)


def _component(record: logging.LogRecord) -> str:
    # "jlib_dashboard.reconciler" -> "reconciler"
    return record.name.split(".")[-1] if "." in record.name else record.name


class StructuredFormatter(logging.Formatter):
    """Formatter that outputs structured log messages.

    Includes timestamp, level, component, message, and any extra context.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record with structured output.

        Args:
            record: The log record to format.

        Returns:
            Formatted log string.
        """
        timestamp = datetime.fromtimestamp(record.created, tz=UTC).strftime("%Y-%m-%d %H:%M:%S.%f")[
            :-3
        ]

        parts = [
            f"{timestamp}",
            f"[{record.levelname:8}]",
            f"[{_component(record):12}]",
        ]

        context_parts = [
            f"{key}={getattr(record, key)}" for key in CONTEXT_FIELDS if hasattr(record, key)
        ]
        if context_parts:
            parts.append(f"[{' '.join(context_parts)}]")

        parts.append(record.getMessage())

        if record.exc_info:
            parts.append(self.formatException(record.exc_info))

        return " ".join(parts)


class JSONFormatter(logging.Formatter):
    """Formatter that outputs JSON log messages for machine parsing."""

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record as JSON."""
        log_data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "component": _component(record),
            "message": record.getMessage(),
        }

        for key in CONTEXT_FIELDS:
            if hasattr(record, key):
                log_data[key] = getattr(record, key)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data)


class ContextAdapter(logging.LoggerAdapter[logging.Logger]):
    """Logger adapter that adds context to all log messages.

    Usage:
        logger = get_logger(__name__)
        ctx_logger = logger.with_context(app_id="a1b2c3")
        ctx_logger.info("Metadata updated")
    """

    def process(
        self, msg: str, kwargs: MutableMapping[str, Any]
    ) -> tuple[str, MutableMapping[str, Any]]:
        """Merge the adapter's context into the record's ``extra`` dict."""
        extra = kwargs.get("extra", {})
        if self.extra is not None:
            extra.update(self.extra)
        kwargs["extra"] = extra
        return msg, kwargs


class DashboardLogger(logging.Logger):
    """Custom logger with context support."""

    def with_context(self, **context: Any) -> ContextAdapter:
        """Create a logger adapter with additional context.

        Args:
            **context: Context fields to add to all log messages.

        Returns:
            ContextAdapter with the specified context.
        """
        return ContextAdapter(self, context)


logging.setLoggerClass(DashboardLogger)


def get_logger(name: str) -> DashboardLogger:
    """Get a logger with the custom DashboardLogger class.

    Args:
        name: Logger name (typically __name__).

    Returns:
        DashboardLogger instance.
    """
    return logging.getLogger(name)  # type: ignore[return-value]


def setup_logging(
    level: str = "INFO",
    json_format: bool = False,
    replace_handlers: bool = True,
    diagnostic_tags: str = "",
) -> None:
    """Configure logging for the application.

    Args:
        level: Log level string (DEBUG, INFO, WARNING, ERROR).
        json_format: If True, output JSON-formatted logs.
        replace_handlers: If True, remove existing handlers before adding new ones.
        diagnostic_tags: Comma-separated list of diagnostic tags to enable.
            ``"*"`` enables all tagged diagnostics.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    if replace_handlers:
        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(numeric_level)

    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(StructuredFormatter())

    handler.addFilter(DiagnosticFilter.from_config_string(diagnostic_tags))

    root_logger.addHandler(handler)

    logging.getLogger("jlib_dashboard").setLevel(numeric_level)
    # uvicorn's access log duplicates what the routes already log
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
