"""Registry strategies: how candidate registries are queried and combined.

Every candidate is queried sequentially, in order. Each query either
returns a result, returns None ("not found"), or raises. Raised errors are
classified once, by ``classify_failure``:

    HOST_DISABLED  ExternalHostError(kind=HOST_DISABLED); the host is
                   administratively unavailable
    HARD           any other ExternalHostError; aborts the whole lookup
    SOFT           anything else; logged, the registry counts as "not found"

Strategies:
    first  query only the first candidate (warn if there are more)
    hunt   return the first result that has releases; a host-disabled
           candidate ends the hunt with no result
    merge  query every candidate and merge what they return; host-disabled
           and soft failures are skipped, and a tag reported by several
           registries keeps the highest version
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from enum import Enum
from typing import TYPE_CHECKING

from depscout.constants import (
    MSG_EXCESS_REGISTRY_URLS,
    REGISTRY_STRATEGY_FIRST,
    REGISTRY_STRATEGY_HUNT,
    REGISTRY_STRATEGY_MERGE,
)
from depscout.exceptions import ExternalHostError, HostErrorKind
from depscout.logging import get_logger
from depscout.postprocess import merge_results

if TYPE_CHECKING:
    from depscout.models import ReleaseResult
    from depscout.versioning import Versioning

logger = get_logger(__name__)

RegistryQuery = Callable[[str], Awaitable["ReleaseResult | None"]]


class FailureKind(str, Enum):
    """How a failed registry query affects the lookup."""

    HOST_DISABLED = "host-disabled"
    HARD = "hard"
    SOFT = "soft"


def classify_failure(error: BaseException) -> FailureKind:
    """Classify an error raised by a registry query.

    Args:
        error: The raised exception.

    Returns:
        The failure kind.
    """
    if isinstance(error, ExternalHostError):
        if error.kind is HostErrorKind.HOST_DISABLED:
            return FailureKind.HOST_DISABLED
        return FailureKind.HARD
    return FailureKind.SOFT


class StrategyExecutor:
    """Runs one registry strategy for a single package lookup.

    Args:
        query: Coroutine function querying one registry URL.
        datasource_id: Datasource id, for logging.
        package_name: Package name, for logging.
        versioning: Scheme used by ``merge`` to compare conflicting tags.
    """

    def __init__(
        self,
        query: RegistryQuery,
        datasource_id: str,
        package_name: str,
        versioning: Versioning | None = None,
    ) -> None:
        self._query = query
        self._datasource_id = datasource_id
        self._package_name = package_name
        self._versioning = versioning

    async def run(self, strategy: str, registry_urls: list[str]) -> ReleaseResult | None:
        """Run the named strategy over the candidate URLs.

        Raises:
            ExternalHostError: On a hard host failure.
            ValueError: If the strategy name is unknown.
        """
        if strategy == REGISTRY_STRATEGY_FIRST:
            return await self.first(registry_urls)
        if strategy == REGISTRY_STRATEGY_HUNT:
            return await self.hunt(registry_urls)
        if strategy == REGISTRY_STRATEGY_MERGE:
            return await self.merge(registry_urls)
        raise ValueError(f"Unknown registry strategy '{strategy}'")

    async def first(self, registry_urls: list[str]) -> ReleaseResult | None:
        if not registry_urls:
            return None
        if len(registry_urls) > 1:
            logger.warning(
                MSG_EXCESS_REGISTRY_URLS,
                extra={
                    "datasource": self._datasource_id,
                    "package_name": self._package_name,
                    "registry_urls": registry_urls,
                },
            )

        registry_url = registry_urls[0]
        try:
            return await self._query(registry_url)
        except Exception as e:
            if self._handle_failure(e, registry_url) is FailureKind.HARD:
                raise
            return None

    async def hunt(self, registry_urls: list[str]) -> ReleaseResult | None:
        for registry_url in registry_urls:
            try:
                result = await self._query(registry_url)
            except Exception as e:
                kind = self._handle_failure(e, registry_url)
                if kind is FailureKind.HARD:
                    raise
                if kind is FailureKind.HOST_DISABLED:
                    return None
                continue

            if result is not None and result.releases:
                return result

        return None

    async def merge(self, registry_urls: list[str]) -> ReleaseResult | None:
        collected: list[tuple[str, ReleaseResult]] = []
        for registry_url in registry_urls:
            try:
                result = await self._query(registry_url)
            except Exception as e:
                if self._handle_failure(e, registry_url) is FailureKind.HARD:
                    raise
                continue

            if result is not None:
                collected.append((registry_url, result))

        if not collected:
            return None
        return merge_results(collected, self._versioning)

    def _handle_failure(self, error: Exception, registry_url: str) -> FailureKind:
        kind = classify_failure(error)
        fields = {
            "datasource": self._datasource_id,
            "package_name": self._package_name,
            "registry_url": registry_url,
            "failure": kind.value,
            "error": str(error),
        }
        if kind is FailureKind.HARD:
            logger.warning("Registry lookup aborted by host error", extra=fields)
        elif kind is FailureKind.HOST_DISABLED:
            logger.debug("Registry host disabled", extra=fields)
        else:
            logger.debug("Registry lookup failed", extra=fields)
        return kind
