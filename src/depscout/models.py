"""Pydantic models for depscout.

This module contains the data models shared by the resolution engine,
the datasource plugins and the configuration layer.

Models are organized by domain:
- Release data (Release, ReleaseResult)
- Requests (LookupRequest, DigestRequest) and what plugins receive
  (GetReleasesConfig, DigestConfig)
- Config models (CacheConfig, HostRule, HttpConfig, MetadataOverrides, DepscoutConfig)

Release data models allow extra fields: datasources may attach arbitrary
per-registry metadata which is carried through untouched.
"""

from __future__ import annotations

from datetime import datetime  # noqa: TC003 - Required at runtime for Pydantic
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, PositiveInt, field_validator

from depscout.constants import (
    DEFAULT_CACHE_MAX_SIZE,
    DEFAULT_CACHE_TTL_MINUTES,
    DEFAULT_HTTP_TIMEOUT_SECONDS,
)

RegistryStrategy = Literal["first", "hunt", "merge"]
ConstraintsFiltering = Literal["none", "strict"]

# =============================================================================
# RELEASE DATA MODELS
# =============================================================================


class Release(BaseModel):
    """One published version of a package."""

    model_config = ConfigDict(extra="allow")

    version: str = Field(..., description="Version string (after extraction)")
    release_timestamp: datetime | None = Field(
        default=None, description="When the version was published"
    )
    constraints: dict[str, list[str]] | None = Field(
        default=None,
        description="Ecosystem name -> supported version ranges (e.g. python: ['>=3.8'])",
    )
    is_deprecated: bool | None = Field(default=None, description="Deprecated by its author")
    is_stable: bool | None = Field(default=None, description="Registry-reported stability")
    registry_url: str | None = Field(
        default=None, description="Registry that supplied this release (merge strategy)"
    )
    changelog_url: str | None = Field(default=None, description="Per-release changelog URL")
    source_url: str | None = Field(default=None, description="Per-release source URL")


class ReleaseResult(BaseModel):
    """All releases of a package, plus package-level metadata."""

    model_config = ConfigDict(extra="allow")

    releases: list[Release] = Field(default_factory=list, description="Releases, registry order")
    registry_url: str | None = Field(default=None, description="Registry that produced this")
    source_url: str | None = Field(default=None, description="Source repository URL")
    source_directory: str | None = Field(default=None, description="Path within the repository")
    changelog_url: str | None = Field(default=None, description="Changelog URL")
    homepage: str | None = Field(default=None, description="Project homepage")
    tags: dict[str, str] | None = Field(default=None, description="Tag name -> version")
    is_private: bool | None = Field(default=None, description="Served by a private registry")
    replacement_name: str | None = Field(default=None, description="Replacement package name")
    replacement_version: str | None = Field(default=None, description="Replacement version")


# =============================================================================
# REQUEST MODELS
# =============================================================================


class LookupRequest(BaseModel):
    """A caller's request for the releases of one package."""

    datasource: str | None = Field(default=None, description="Datasource id")
    package_name: str | None = Field(default=None, description="Package to look up")
    registry_urls: list[str] | None = Field(
        default=None, description="Explicit registry URLs (highest priority)"
    )
    default_registry_urls: list[str] | None = Field(
        default=None, description="Fallback registry URLs when registry_urls is absent"
    )
    additional_registry_urls: list[str] | None = Field(
        default=None, description="Registry URLs appended after the resolved candidates"
    )
    registry_strategy: RegistryStrategy | None = Field(
        default=None, description="Overrides the datasource's registry strategy"
    )
    extract_version: str | None = Field(
        default=None, description="Regex with a named 'version' group"
    )
    versioning: str | None = Field(default=None, description="Versioning scheme id")
    constraints: dict[str, str] | None = Field(
        default=None, description="Ecosystem name -> the caller's range"
    )
    constraints_filtering: ConstraintsFiltering = Field(
        default="none", description="Whether to drop releases with incompatible constraints"
    )
    replacement_name: str | None = Field(default=None, description="Copied to the result")
    replacement_version: str | None = Field(default=None, description="Copied to the result")


class DigestRequest(BaseModel):
    """A caller's request for the content digest of one package version."""

    datasource: str = Field(..., description="Datasource id")
    package_name: str = Field(..., description="Package to look up")
    registry_urls: list[str] | None = Field(default=None, description="Explicit registry URLs")
    default_registry_urls: list[str] | None = Field(default=None, description="Fallback URLs")
    additional_registry_urls: list[str] | None = Field(default=None, description="Extra URLs")
    replacement_name: str | None = Field(
        default=None, description="Used in place of package_name when set"
    )
    current_value: str | None = Field(default=None, description="Currently pinned value")
    current_digest: str | None = Field(default=None, description="Currently pinned digest")


class GetReleasesConfig(BaseModel):
    """What a datasource receives for one registry query."""

    package_name: str
    registry_url: str | None = None


class DigestConfig(BaseModel):
    """What a datasource receives for a digest query."""

    package_name: str
    registry_url: str | None = None
    current_value: str | None = None
    current_digest: str | None = None


# =============================================================================
# CONFIG MODELS
# =============================================================================


class CacheConfig(BaseModel):
    """Release cache configuration."""

    enabled: bool = Field(default=True, description="Whether caching is enabled")
    ttl_minutes: int = Field(
        default=DEFAULT_CACHE_TTL_MINUTES, ge=1, description="Default TTL in minutes"
    )
    ttl_days: int | None = Field(
        default=None, ge=1, description="Default TTL in days (overrides ttl_minutes)"
    )
    ttl_overrides: dict[str, PositiveInt] = Field(
        default_factory=dict,
        description="Namespace or datasource id -> TTL in minutes",
    )
    max_size: int = Field(default=DEFAULT_CACHE_MAX_SIZE, ge=1, description="Maximum entries")

    @property
    def default_ttl_minutes(self) -> int:
        """Return the effective default TTL in minutes."""
        if self.ttl_days is not None:
            return self.ttl_days * 24 * 60
        return self.ttl_minutes


class HostRule(BaseModel):
    """Per-host network policy."""

    host: str = Field(..., description="Host name, matched exactly or as a parent domain")
    enabled: bool = Field(default=True, description="False marks the host as disabled")

    @field_validator("host")
    @classmethod
    def _normalize_host(cls, value: str) -> str:
        return value.strip().lower()


class HttpConfig(BaseModel):
    """HTTP client configuration."""

    timeout_seconds: float = Field(
        default=DEFAULT_HTTP_TIMEOUT_SECONDS, gt=0, description="Request timeout in seconds"
    )


class MetadataOverrides(BaseModel):
    """Manual changelog/source URLs keyed by datasource id, then package name."""

    changelog_urls: dict[str, dict[str, str]] = Field(default_factory=dict)
    source_urls: dict[str, dict[str, str]] = Field(default_factory=dict)


class DepscoutConfig(BaseModel):
    """Root configuration for depscout."""

    cache: CacheConfig = Field(default_factory=CacheConfig)
    cache_private_packages: bool = Field(
        default=False, description="Cache results flagged as private"
    )
    host_rules: list[HostRule] = Field(default_factory=list)
    http: HttpConfig = Field(default_factory=HttpConfig)
    metadata_overrides: MetadataOverrides = Field(default_factory=MetadataOverrides)

    def is_host_disabled(self, host: str | None) -> bool:
        """Check whether a host rule disables the given host.

        Args:
            host: Host name from a registry URL.

        Returns:
            True if a matching rule has ``enabled: false``.
        """
        if not host:
            return False
        host = host.lower()
        for rule in self.host_rules:
            if rule.enabled:
                continue
            if host == rule.host or host.endswith(f".{rule.host}"):
                return True
        return False
