"""Logging configuration for depscout.

All modules use `get_logger(__name__)` and pass structured fields through
``extra``. The formatter appends those fields to the message as ``key=value``
pairs, so a warning such as::

    logger.warning("Excess registryUrls ...", extra={"datasource": "npm"})

renders as ``... | Excess registryUrls ... | datasource=npm``. List values
(for example the candidate ``registry_urls``) are joined with commas.

Usage:
    from depscout.logging import setup_logging, get_logger

    # At application startup
    setup_logging()

    # In each module
    logger = get_logger(__name__)
"""

import logging
import sys
from collections.abc import Callable
from typing import Any

from depscout.constants import LOG_DATE_FORMAT, LOG_FORMAT

# LogRecord attributes that are not structured fields
_STANDARD_ATTRS = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "taskName",
        "message",
        "asctime",
    }
)


def format_field(value: Any) -> str:
    """Render one structured field value.

    Sequences (candidate registry URLs, dropped versions) are joined with
    commas instead of printed as Python reprs, so
    ``registry_urls=["https://a", "https://b"]`` renders as
    ``registry_urls=https://a,https://b``. An empty sequence renders as
    ``-``.
    """
    if isinstance(value, (list, tuple, set, frozenset)):
        items = sorted(value) if isinstance(value, (set, frozenset)) else value
        return ",".join(str(item) for item in items) or "-"
    return str(value)


class StructuredFormatter(logging.Formatter):
    """A formatter that outputs structured log messages.

    Fields passed through ``extra`` (datasource, package_name, registry_url,
    ...) are appended to the message as ``key=value`` pairs.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record with structured fields.

        Args:
            record: The log record to format.

        Returns:
            Formatted log string.
        """
        base_message = super().format(record)

        # Anything not set by logging itself came from extra= or LogContext
        extra_fields: dict[str, Any] = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _STANDARD_ATTRS and not key.startswith("_")
        }

        if extra_fields:
            fields_str = " | ".join(f"{k}={format_field(v)}" for k, v in extra_fields.items())
            return f"{base_message} | {fields_str}"

        return base_message


def setup_logging(
    level: int = logging.INFO,
    *,
    include_timestamp: bool = True,
) -> None:
    """Configure logging for the application.

    Sets up a structured formatter writing to stderr, so stdout stays free
    for release listings and ``--json`` output. Should be called once at
    application startup (the CLI does this).

    Args:
        level: The logging level (default: INFO).
        include_timestamp: Whether to include timestamps in output.
    """
    if include_timestamp:
        formatter = StructuredFormatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    else:
        formatter = StructuredFormatter("%(levelname)-8s | %(name)s | %(message)s")

    # Configure root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)

    # Datasource plugins log under their own package names; only ours is set
    logging.getLogger("depscout").setLevel(level)

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger for the given module.

    This is a convenience wrapper around logging.getLogger that
    ensures consistent naming.

    Args:
        name: The module name (typically __name__).

    Returns:
        A configured Logger instance.
    """
    return logging.getLogger(name)


class LogContext:
    """Context manager for adding structured fields to log messages.

    Usage:
        with LogContext(datasource="npm", package_name="react"):
            logger.info("Looking up releases")
            # The log will include: datasource=npm | package_name=react

    Fields already present on a record (standard attributes) are never
    overwritten.
    """

    def __init__(self, **fields: Any) -> None:
        """Initialize the log context.

        Args:
            **fields: Extra fields to include in all log messages.
        """
        self.fields = fields
        self._old_factory: Callable[..., logging.LogRecord] | None = None

    def __enter__(self) -> "LogContext":
        """Enter the context and set up the log record factory."""
        old_factory = logging.getLogRecordFactory()
        self._old_factory = old_factory
        fields = self.fields

        def record_factory(*args: Any, **kwargs: Any) -> logging.LogRecord:
            record = old_factory(*args, **kwargs)
            for key, value in fields.items():
                if not hasattr(record, key):
                    setattr(record, key, value)
            return record

        logging.setLogRecordFactory(record_factory)
        return self

    def __exit__(self, *args: Any) -> None:
        """Exit the context and restore the original log record factory."""
        if self._old_factory is not None:
            logging.setLogRecordFactory(self._old_factory)
