"""Shared fixtures: in-memory datasources backed by a registry URL table."""

from __future__ import annotations

from typing import Any

import pytest

from depscout.datasources import DatasourceRegistry
from depscout.datasources.base import Datasource
from depscout.lookup import ReleaseLookup
from depscout.models import DigestConfig, GetReleasesConfig, ReleaseResult

PACKAGE_NAME = "package"


class DummyDatasource(Datasource):
    """Answers from a ``registry_url -> result`` table.

    A table value may be a dict (validated as ReleaseResult), a
    ReleaseResult, None, or an exception instance to raise.
    """

    id = "dummy"

    def __init__(self, registries: dict[str, Any] | None = None) -> None:
        self.registries = registries or {}
        self.calls: list[str | None] = []

    async def get_releases(self, config: GetReleasesConfig) -> ReleaseResult | None:
        self.calls.append(config.registry_url)
        value = self.registries.get(config.registry_url or "")
        if isinstance(value, BaseException):
            raise value
        if value is None:
            return None
        if isinstance(value, ReleaseResult):
            return value
        return ReleaseResult.model_validate(value)


class CachingDatasource(DummyDatasource):
    caching = True


class FixedRegistryDatasource(DummyDatasource):
    """Only ever talks to its built-in registry."""

    custom_registry_support = False
    default_registry_urls = ("https://reg1.com",)


class DigestDatasource(DummyDatasource):
    id = "dummy-digest"

    def __init__(self, registries: dict[str, Any] | None = None) -> None:
        super().__init__(registries)
        self.digest_calls: list[tuple[DigestConfig, str | None]] = []

    async def get_digest(self, config: DigestConfig, new_value: str | None = None) -> str | None:
        self.digest_calls.append((config, new_value))
        return f"sha256:{config.package_name}:{new_value or config.current_value}"


@pytest.fixture
def dummy() -> DummyDatasource:
    """A dummy datasource with no registries; tests fill in the table."""
    return DummyDatasource()


@pytest.fixture
def registry(dummy: DummyDatasource) -> DatasourceRegistry:
    """A registry holding only the dummy datasource."""
    return DatasourceRegistry([dummy])


@pytest.fixture
def lookup(registry: DatasourceRegistry) -> ReleaseLookup:
    """A lookup engine over the dummy registry."""
    return ReleaseLookup(registry)
