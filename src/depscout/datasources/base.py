"""Base plugin interfaces for datasources.

A datasource lists the published releases of packages from one registry
family (npm, PyPI, Maven, a Docker registry, ...). The resolution engine
only talks to datasources through this interface, so new registries can be
added without touching the engine.

Class attributes describe how the engine should treat the datasource:

    id                      unique identifier, also the cache namespace suffix
    default_versioning      scheme used to interpret versions
    default_registry_urls   tuple of URLs, or a zero-argument callable
                            returning them (evaluated at lookup time)
    custom_registry_support whether caller-supplied registry URLs are honoured
    registry_strategy       "first", "hunt" or "merge"
    caching                 whether results are cached by the engine
    cache_ttl_minutes       per-datasource cache TTL, None for the default

Digest lookups are an optional capability: a datasource that implements
``get_digest`` satisfies the DigestCapable protocol and nothing else is
needed to advertise it.

Example:
    class NpmDatasource(Datasource):
        id = "npm"
        default_registry_urls = ("https://registry.npmjs.org",)
        default_versioning = "semver"
        caching = True

        async def get_releases(self, config):
            packument = await self._http.get_json(f"{config.registry_url}/{config.package_name}")
            if packument is None:
                return None
            return ReleaseResult(
                releases=[Release(version=v) for v in packument["versions"]],
            )

        async def get_digest(self, config, new_value=None):
            ...
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, ClassVar, Protocol, runtime_checkable

from depscout.constants import DEFAULT_REGISTRY_STRATEGY, DEFAULT_VERSIONING

if TYPE_CHECKING:
    from depscout.models import DigestConfig, GetReleasesConfig, RegistryStrategy, ReleaseResult

RegistryUrls = Sequence[str] | Callable[[], Sequence[str]]


class Datasource(ABC):
    """Abstract base class for all datasources.

    Subclasses must define ``id`` and implement ``get_releases``.

    Implementation Requirements:
        - All I/O must be async
        - Return None when the package does not exist on the queried registry
        - Raise ExternalHostError for host-wide failures, anything else for
          registry-local failures (the engine logs and skips those)
        - Never mutate a ReleaseResult after returning it
    """

    id: ClassVar[str]
    default_versioning: ClassVar[str] = DEFAULT_VERSIONING
    default_registry_urls: ClassVar[RegistryUrls | None] = None
    custom_registry_support: ClassVar[bool] = True
    registry_strategy: ClassVar[RegistryStrategy | None] = DEFAULT_REGISTRY_STRATEGY
    caching: ClassVar[bool] = False
    cache_ttl_minutes: ClassVar[int | None] = None

    @abstractmethod
    async def get_releases(self, config: GetReleasesConfig) -> ReleaseResult | None:
        """Fetch all releases of a package from one registry.

        Args:
            config: Package name and the registry URL to query.

        Returns:
            ReleaseResult, or None if the package is unknown to this registry.
        """
        ...

    def resolve_default_registry_urls(self) -> list[str]:
        """Evaluate ``default_registry_urls``, calling it if it is a producer.

        Returns:
            The default registry URLs, empty if none are defined.
        """
        # Read through the class so a plain function is not bound to self
        urls = self.__dict__.get("default_registry_urls")
        if urls is None:
            urls = getattr(type(self), "default_registry_urls", None)
        if urls is None:
            return []
        if callable(urls):
            urls = urls()
        return list(urls or [])

    async def close(self) -> None:  # noqa: B027
        """Clean up resources (HTTP clients, connections, etc.).

        Override this method if your datasource holds resources that need cleanup.
        The default implementation does nothing.
        """
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.id!r})"


@runtime_checkable
class DigestCapable(Protocol):
    """Optional capability: resolve an immutable content digest."""

    async def get_digest(self, config: DigestConfig, new_value: str | None = None) -> str | None:
        """Return the digest for a package version, or None if not found."""
        ...


def supports_digest(datasource: Datasource) -> bool:
    """Check whether a datasource implements the digest capability."""
    return isinstance(datasource, DigestCapable) and callable(
        getattr(datasource, "get_digest", None)
    )
