"""Registry URL selection.

Decides which registry endpoints a lookup should query, in order:

1. Caller ``registry_urls``, unless the datasource does not support custom
   registries (then they are ignored with a warning).
2. Caller ``default_registry_urls``.
3. The datasource's own defaults (a list, or a producer evaluated now).

Caller ``additional_registry_urls`` are appended last when custom
registries are supported. An empty result is not an error.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from depscout.constants import MSG_CUSTOM_REGISTRIES_IGNORED
from depscout.logging import get_logger

if TYPE_CHECKING:
    from depscout.datasources.base import Datasource

logger = get_logger(__name__)


@dataclass(frozen=True)
class ResolvedRegistryUrls:
    """Candidate registry URLs for one lookup.

    Attributes:
        urls: Ordered, de-duplicated candidate URLs.
        custom_urls_ignored: True if caller URLs were discarded.
    """

    urls: list[str] = field(default_factory=list)
    custom_urls_ignored: bool = False


def _clean(urls: Iterable[str] | None) -> list[str]:
    cleaned: list[str] = []
    for url in urls or []:
        url = url.strip() if isinstance(url, str) else ""
        if url and url not in cleaned:
            cleaned.append(url)
    return cleaned


def resolve_registry_urls(
    datasource: Datasource,
    registry_urls: list[str] | None = None,
    default_registry_urls: list[str] | None = None,
    additional_registry_urls: list[str] | None = None,
) -> ResolvedRegistryUrls:
    """Compute the ordered candidate registry URLs for a lookup.

    Args:
        datasource: The datasource being queried.
        registry_urls: Caller override, highest priority.
        default_registry_urls: Caller fallback, used when registry_urls is empty.
        additional_registry_urls: Caller URLs appended after the others.

    Returns:
        The candidates and whether caller URLs were ignored.
    """
    custom = _clean(registry_urls)
    additional = _clean(additional_registry_urls)
    custom_urls_ignored = False

    if (custom or additional) and not datasource.custom_registry_support:
        logger.warning(
            MSG_CUSTOM_REGISTRIES_IGNORED,
            extra={
                "datasource": datasource.id,
                "registry_urls": registry_urls,
                "default_registry_urls": default_registry_urls,
            },
        )
        custom = []
        additional = []
        custom_urls_ignored = True

    if custom:
        urls = custom
    else:
        urls = _clean(default_registry_urls) or _clean(datasource.resolve_default_registry_urls())

    for url in additional:
        if url not in urls:
            urls.append(url)

    return ResolvedRegistryUrls(urls=urls, custom_urls_ignored=custom_urls_ignored)
