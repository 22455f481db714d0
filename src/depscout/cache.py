"""Namespaced TTL cache for depscout.

This module provides the in-memory package cache used by the resolution
engine. Entries are grouped by namespace (one per datasource) and every
entry carries its own time-to-live in minutes.

Stored values are deep-copied on the way in and on the way out, so callers
can freely mutate what they get back.

Example:
    cache = PackageCache(max_size=100)
    cache.set("datasource-releases-npm", "https://registry.npmjs.org:react", result, 15)
    result = cache.get("datasource-releases-npm", "https://registry.npmjs.org:react")
    # After 15 minutes...
    cache.get("datasource-releases-npm", "https://registry.npmjs.org:react")  # None
"""

from __future__ import annotations

import copy
import time
from typing import Any, Protocol, runtime_checkable

from depscout.constants import DEFAULT_CACHE_MAX_SIZE
from depscout.exceptions import CacheError


@runtime_checkable
class CacheStore(Protocol):
    """Keyed store consumed by the resolution engine."""

    def get(self, namespace: str, key: str) -> Any | None: ...

    def set(self, namespace: str, key: str, value: Any, ttl_minutes: int) -> None: ...


class CacheEntry:
    """A cache entry with value and expiration time.

    Attributes:
        value: The cached value.
        expires_at: Monotonic time when this entry expires.
    """

    __slots__ = ("expires_at", "value")

    def __init__(self, value: Any, ttl_seconds: float) -> None:
        self.value = value
        self.expires_at = time.monotonic() + ttl_seconds

    def is_expired(self) -> bool:
        """Check if this entry has expired."""
        return time.monotonic() > self.expires_at


class PackageCache:
    """In-memory namespaced TTL cache.

    Evicts expired entries lazily on access and when the cache is full;
    if still full, the oldest entry is dropped.
    """

    def __init__(self, max_size: int = DEFAULT_CACHE_MAX_SIZE) -> None:
        """Initialize the cache.

        Args:
            max_size: Maximum number of entries across all namespaces.
        """
        self._cache: dict[tuple[str, str], CacheEntry] = {}
        self._max_size = max_size

    def get(self, namespace: str, key: str) -> Any | None:
        """Get a value from the cache.

        Args:
            namespace: Cache namespace.
            key: Cache key within the namespace.

        Returns:
            A copy of the cached value, or None if not found/expired.
        """
        entry = self._cache.get((namespace, key))

        if entry is None:
            return None

        if entry.is_expired():
            del self._cache[(namespace, key)]
            return None

        return copy.deepcopy(entry.value)

    def set(self, namespace: str, key: str, value: Any, ttl_minutes: int) -> None:
        """Store a value in the cache.

        Args:
            namespace: Cache namespace.
            key: Cache key within the namespace.
            value: Value to cache (copied).
            ttl_minutes: Time-to-live in minutes.

        Raises:
            CacheError: If the TTL is not positive or the value cannot be copied.
        """
        if ttl_minutes <= 0:
            raise CacheError("Cache TTL must be positive", {"ttl_minutes": ttl_minutes})

        try:
            stored = copy.deepcopy(value)
        except (TypeError, copy.Error) as e:
            raise CacheError("Value cannot be cached", {"key": key, "error": str(e)}) from e

        full_key = (namespace, key)
        if len(self._cache) >= self._max_size and full_key not in self._cache:
            self._evict_expired()

        if len(self._cache) >= self._max_size and full_key not in self._cache:
            oldest_key = next(iter(self._cache))
            del self._cache[oldest_key]

        self._cache[full_key] = CacheEntry(stored, ttl_minutes * 60)

    def invalidate(self, namespace: str, key: str | None = None) -> None:
        """Remove one key, or a whole namespace when key is None."""
        if key is not None:
            self._cache.pop((namespace, key), None)
            return
        for full_key in [k for k in self._cache if k[0] == namespace]:
            del self._cache[full_key]

    def clear(self) -> None:
        """Clear all cache entries."""
        self._cache.clear()

    def _evict_expired(self) -> None:
        now = time.monotonic()
        expired_keys = [key for key, entry in self._cache.items() if now > entry.expires_at]
        for key in expired_keys:
            del self._cache[key]

    def __len__(self) -> int:
        """Return the number of entries, including ones that may have expired."""
        return len(self._cache)
