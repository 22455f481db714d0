"""Custom exceptions for depscout.

This module defines a hierarchy of exceptions used throughout depscout.
All exceptions inherit from DepscoutError, making it easy to catch
all depscout-related errors in one place.

Exception Hierarchy:
    DepscoutError (base)
    ├── ConfigError - Configuration loading/validation failures
    ├── DatasourceError - Soft failure of a single registry query
    ├── ExternalHostError - Host-level failure (HOST_DISABLED or HARD)
    ├── DigestNotSupportedError - Digest requested from a datasource without support
    └── CacheError - Cache operation failures
"""

from enum import Enum
from typing import Any


class DepscoutError(Exception):
    """Base exception for all depscout errors.

    Args:
        message: Human-readable error message.
        details: Optional dictionary with additional error context.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigError(DepscoutError):
    """Raised when configuration loading or validation fails.

    Examples:
        - Invalid YAML syntax in .depscout.yaml
        - Values that fail schema validation
    """


class DatasourceError(DepscoutError):
    """Raised by a datasource when one registry query fails.

    The resolution engine treats this as a soft failure: it is logged and
    the registry is considered to have no result.

    Args:
        message: Human-readable error message.
        datasource_id: Id of the datasource that raised the error.
        details: Optional dictionary with additional error context.
    """

    def __init__(
        self,
        message: str,
        datasource_id: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.datasource_id = datasource_id

    def __str__(self) -> str:
        base = f"[{self.datasource_id}] {self.message}"
        if self.details:
            return f"{base} | Details: {self.details}"
        return base


class HostErrorKind(str, Enum):
    """Kind of an external host failure."""

    HOST_DISABLED = "host-disabled"
    HARD = "external-host-error"


class ExternalHostError(DepscoutError):
    """Raised when a remote registry host fails as a whole.

    ``HOST_DISABLED`` means the host was administratively disabled and is
    treated like "not found". ``HARD`` aborts the whole lookup.

    Args:
        message: Human-readable error message.
        kind: The failure kind.
        host: Host name the failure relates to, if known.
        details: Optional dictionary with additional error context.
    """

    def __init__(
        self,
        message: str,
        kind: HostErrorKind = HostErrorKind.HARD,
        host: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.kind = kind
        self.host = host

    def __str__(self) -> str:
        base = f"{self.kind.value}: {self.message}"
        if self.host:
            base = f"{base} (host={self.host})"
        if self.details:
            return f"{base} | Details: {self.details}"
        return base


class DigestNotSupportedError(DepscoutError):
    """Raised when a digest is requested from a datasource that cannot provide one."""

    def __init__(self, datasource_id: str) -> None:
        super().__init__(
            f"Datasource '{datasource_id}' does not support digests",
            {"datasource": datasource_id},
        )
        self.datasource_id = datasource_id


class CacheError(DepscoutError):
    """Raised when cache operations fail.

    Examples:
        - Values that cannot be copied into the cache
        - Invalid TTL values
    """
