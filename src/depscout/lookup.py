"""Release lookup engine.

This module contains the ReleaseLookup class which coordinates a package
lookup end to end:

    request -> datasource -> candidate registry URLs -> registry strategy
            -> (per registry: cache read, plugin call, metadata, cache write)
            -> post-processing -> result

Invalid requests (no package name, unknown datasource) never reach a
datasource and yield None. Hard host failures propagate to the caller.

Example:
    registry = DatasourceRegistry([NpmDatasource()])
    lookup = ReleaseLookup(registry, config=load_config())
    result = await lookup.get_pkg_releases(
        LookupRequest(datasource="npm", package_name="react")
    )
"""

from __future__ import annotations

import time
from functools import partial
from typing import TYPE_CHECKING, Any

from depscout.cache import CacheStore, PackageCache
from depscout.constants import CACHE_NAMESPACE_PREFIX, DEFAULT_REGISTRY_STRATEGY
from depscout.datasources.base import supports_digest
from depscout.exceptions import CacheError, DigestNotSupportedError
from depscout.logging import get_logger
from depscout.metadata import ManualMetadata, apply_metadata
from depscout.models import (
    DepscoutConfig,
    DigestConfig,
    DigestRequest,
    GetReleasesConfig,
    LookupRequest,
    ReleaseResult,
)
from depscout.postprocess import post_process
from depscout.registry_urls import resolve_registry_urls
from depscout.strategies import StrategyExecutor
from depscout.versioning import get_versioning

if TYPE_CHECKING:
    from depscout.datasources.base import Datasource
    from depscout.datasources.registry import DatasourceRegistry

logger = get_logger(__name__)


def cache_namespace(datasource_id: str) -> str:
    """Return the cache namespace for a datasource's release lists."""
    return f"{CACHE_NAMESPACE_PREFIX}{datasource_id}"


def cache_key(registry_url: str, package_name: str) -> str:
    """Return the cache key for one package on one registry."""
    return f"{registry_url}:{package_name}"


class ReleaseLookup:
    """Resolves package releases and digests through registered datasources.

    This class coordinates:
        - Selecting the datasource and its candidate registry URLs
        - Running the registry strategy (first, hunt or merge)
        - Caching per-registry results for datasources that opt in
        - Post-processing results for the caller
    """

    def __init__(
        self,
        registry: DatasourceRegistry,
        *,
        config: DepscoutConfig | None = None,
        cache: CacheStore | None = None,
        metadata: ManualMetadata | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            registry: Installed datasources.
            config: Global configuration; defaults when omitted.
            cache: Cache store; an in-memory PackageCache is created when
                omitted and caching is enabled in the config.
            metadata: Manual metadata overrides; built-in table plus config
                overrides when omitted.
        """
        self._registry = registry
        self._config = config or DepscoutConfig()

        self._cache: CacheStore | None = cache
        if self._cache is None and self._config.cache.enabled:
            self._cache = PackageCache(max_size=self._config.cache.max_size)

        self._metadata = metadata or ManualMetadata.default(self._config.metadata_overrides)

    @property
    def config(self) -> DepscoutConfig:
        return self._config

    # =========================================================================
    # RELEASES
    # =========================================================================

    async def get_pkg_releases(self, request: LookupRequest) -> ReleaseResult | None:
        """Look up all releases of a package.

        Args:
            request: What to look up and how.

        Returns:
            The processed result, or None if nothing was found or the
            request names no package or an unknown datasource.

        Raises:
            ExternalHostError: If a registry host fails hard.
            ConfigError: If ``extract_version`` is not a valid regex.
        """
        if not request.datasource:
            logger.debug("No datasource given for lookup")
            return None

        datasource = self._registry.get(request.datasource)
        if datasource is None:
            logger.warning("Unknown datasource", extra={"datasource": request.datasource})
            return None

        package_name = request.package_name
        if not package_name:
            logger.debug("No package name given for lookup", extra={"datasource": datasource.id})
            return None

        start_time = time.monotonic()

        resolved = resolve_registry_urls(
            datasource,
            request.registry_urls,
            request.default_registry_urls,
            request.additional_registry_urls,
        )
        strategy = (
            request.registry_strategy or datasource.registry_strategy or DEFAULT_REGISTRY_STRATEGY
        )

        executor = StrategyExecutor(
            partial(self._get_registry_releases, datasource, package_name),
            datasource.id,
            package_name,
            get_versioning(request.versioning or datasource.default_versioning),
        )
        raw = await executor.run(strategy, resolved.urls)

        result = post_process(raw, request, datasource) if raw is not None else None

        duration_ms = int((time.monotonic() - start_time) * 1000)
        logger.info(
            "Package releases looked up",
            extra={
                "datasource": datasource.id,
                "package_name": package_name,
                "strategy": strategy,
                "candidates": len(resolved.urls),
                "releases": len(result.releases) if result else 0,
                "duration_ms": duration_ms,
            },
        )
        return result

    async def _get_registry_releases(
        self,
        datasource: Datasource,
        package_name: str,
        registry_url: str,
    ) -> ReleaseResult | None:
        """Query one registry, going through the cache when enabled.

        The returned result is owned by the engine: a copy of what the
        datasource returned, stamped with the registry URL and enriched
        with metadata.
        """
        namespace = cache_namespace(datasource.id)
        key = cache_key(registry_url, package_name)
        cacheable = datasource.caching and self._cache is not None

        if cacheable:
            try:
                cached = self._cache.get(namespace, key)  # type: ignore[union-attr]
            except CacheError as e:
                logger.warning(
                    "Cache read failed",
                    extra={"namespace": namespace, "key": key, "error": str(e)},
                )
                cached = None
            if cached is not None:
                logger.debug("Cache hit for releases", extra={"namespace": namespace, "key": key})
                return self._coerce_result(cached)

        raw = await datasource.get_releases(
            GetReleasesConfig(package_name=package_name, registry_url=registry_url)
        )
        if raw is None:
            return None

        result = self._coerce_result(raw).model_copy(deep=True)
        result.registry_url = registry_url
        apply_metadata(result, datasource.id, package_name, self._metadata)

        if cacheable:
            if result.is_private and not self._config.cache_private_packages:
                logger.debug("Not caching private package", extra={"key": key})
            else:
                try:
                    self._cache.set(  # type: ignore[union-attr]
                        namespace, key, result, self._cache_ttl(datasource, namespace)
                    )
                except CacheError as e:
                    logger.warning(
                        "Cache write failed",
                        extra={"namespace": namespace, "key": key, "error": str(e)},
                    )

        return result

    @staticmethod
    def _coerce_result(value: Any) -> ReleaseResult:
        if isinstance(value, ReleaseResult):
            return value
        return ReleaseResult.model_validate(value)

    def _cache_ttl(self, datasource: Datasource, namespace: str) -> int:
        overrides = self._config.cache.ttl_overrides
        for name in (namespace, datasource.id):
            if name in overrides:
                return overrides[name]
        if datasource.cache_ttl_minutes:
            return datasource.cache_ttl_minutes
        return self._config.cache.default_ttl_minutes

    # =========================================================================
    # DIGESTS
    # =========================================================================

    def supports_digests(self, datasource_id: str) -> bool:
        """Check whether a datasource can resolve digests."""
        datasource = self._registry.get(datasource_id)
        return datasource is not None and supports_digest(datasource)

    async def get_digest(self, request: DigestRequest, new_value: str | None = None) -> str | None:
        """Resolve the content digest of a package version.

        ``replacement_name`` is looked up instead of ``package_name`` when
        set. The first candidate registry URL is used.

        Args:
            request: What to look up.
            new_value: The version/tag whose digest is wanted, if not current.

        Returns:
            The digest, or None if the datasource is unknown or found nothing.

        Raises:
            DigestNotSupportedError: If the datasource has no digest capability.
        """
        datasource = self._registry.get(request.datasource)
        if datasource is None:
            logger.warning("Unknown datasource", extra={"datasource": request.datasource})
            return None
        if not supports_digest(datasource):
            raise DigestNotSupportedError(datasource.id)

        resolved = resolve_registry_urls(
            datasource,
            request.registry_urls,
            request.default_registry_urls,
            request.additional_registry_urls,
        )
        config = DigestConfig(
            package_name=request.replacement_name or request.package_name,
            registry_url=resolved.urls[0] if resolved.urls else None,
            current_value=request.current_value,
            current_digest=request.current_digest,
        )
        return await datasource.get_digest(config, new_value)  # type: ignore[attr-defined]

    # =========================================================================
    # INTROSPECTION
    # =========================================================================

    def get_datasources(self) -> dict[str, Datasource]:
        """Return all installed datasources by id."""
        return self._registry.as_dict()

    def get_datasource_list(self) -> list[str]:
        """Return installed datasource ids, sorted."""
        return self._registry.list()

    async def close(self) -> None:
        """Release datasource resources."""
        await self._registry.close_all()
