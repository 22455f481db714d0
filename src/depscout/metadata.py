"""Package metadata enrichment.

Registries often publish incomplete or oddly formatted repository links.
This module fixes them up before results are cached or returned:

- Manual overrides: a static table of changelog/source URLs for packages
  whose registry metadata is known to be wrong or missing. Overrides win
  over whatever the registry supplied.
- Source URL normalization: whitespace trimmed, ``scm:`` / ``git+`` /
  ``git://`` / ``git@host:path`` forms rewritten to ``https://host/path``,
  trailing ``.git`` and ``/`` removed.
- Homepage fallback: a GitHub/GitLab homepage doubles as the source URL.
- Release timestamps are normalized to UTC.
"""

from __future__ import annotations

import re
from datetime import UTC
from typing import TYPE_CHECKING
from urllib.parse import urlparse

from depscout.logging import get_logger

if TYPE_CHECKING:
    from depscout.models import MetadataOverrides, ReleaseResult

logger = get_logger(__name__)

# datasource id -> package name -> URL
MANUAL_CHANGELOG_URLS: dict[str, dict[str, str]] = {
    "npm": {
        "firebase": "https://firebase.google.com/support/release-notes/js",
        "flow-bin": "https://github.com/facebook/flow/blob/master/Changelog.md",
        "react-native": "https://github.com/react-native-community/react-native-releases/blob/master/CHANGELOG.md",  # noqa: E501
    },
    "pypi": {
        "django": "https://github.com/django/django/tree/main/docs/releases",
        "flake8": "https://flake8.pycqa.org/en/latest/release-notes/index.html",
        "sqlalchemy": "https://github.com/sqlalchemy/sqlalchemy/tree/main/doc/build/changelog",
    },
}

MANUAL_SOURCE_URLS: dict[str, dict[str, str]] = {
    "docker": {
        "node": "https://github.com/nodejs/node",
        "python": "https://github.com/python/cpython",
        "traefik": "https://github.com/traefik/traefik",
    },
    "npm": {
        "node": "https://github.com/nodejs/node",
    },
}

_SCP_LIKE_RE = re.compile(r"^(?:[\w.-]+@)?(?P<host>[\w.-]+):(?!//|\d+(?:/|$))(?P<path>.+)$")
_SOURCE_HOSTS = frozenset({"github.com", "gitlab.com"})


class ManualMetadata:
    """Lookup table of manual changelog/source URL overrides."""

    def __init__(
        self,
        changelog_urls: dict[str, dict[str, str]] | None = None,
        source_urls: dict[str, dict[str, str]] | None = None,
    ) -> None:
        """Initialize the table.

        Args:
            changelog_urls: datasource id -> package name -> changelog URL.
            source_urls: datasource id -> package name -> source URL.
        """
        self._changelog_urls = changelog_urls if changelog_urls is not None else {}
        self._source_urls = source_urls if source_urls is not None else {}

    @classmethod
    def default(cls, overrides: MetadataOverrides | None = None) -> ManualMetadata:
        """Build the built-in table, extended by configured overrides."""
        changelog_urls = {k: dict(v) for k, v in MANUAL_CHANGELOG_URLS.items()}
        source_urls = {k: dict(v) for k, v in MANUAL_SOURCE_URLS.items()}
        if overrides is not None:
            for datasource_id, urls in overrides.changelog_urls.items():
                changelog_urls.setdefault(datasource_id, {}).update(urls)
            for datasource_id, urls in overrides.source_urls.items():
                source_urls.setdefault(datasource_id, {}).update(urls)
        return cls(changelog_urls, source_urls)

    def changelog_url(self, datasource_id: str, package_name: str) -> str | None:
        return self._changelog_urls.get(datasource_id, {}).get(package_name)

    def source_url(self, datasource_id: str, package_name: str) -> str | None:
        return self._source_urls.get(datasource_id, {}).get(package_name)


def massage_source_url(url: str | None) -> str | None:
    """Normalize a repository URL to plain https form.

    Args:
        url: The URL as published by the registry.

    Returns:
        The normalized URL, or None if nothing is left after trimming.

    Example:
        >>> massage_source_url("scm:git@github.com:Jasig/cas.git")
        'https://github.com/Jasig/cas'
    """
    if url is None:
        return None
    massaged = url.strip()
    if not massaged:
        return None

    # Maven style: scm:git:https://host/path or scm:git@host:path
    massaged = re.sub(r"^scm:(?:git:)?", "", massaged)
    massaged = re.sub(r"^git\+", "", massaged)

    if massaged.startswith("git://"):
        massaged = "https://" + massaged[len("git://") :]
    elif massaged.startswith("ssh://"):
        massaged = "https://" + massaged[len("ssh://") :].split("@", 1)[-1]
    elif "://" not in massaged:
        scp = _SCP_LIKE_RE.match(massaged)
        if scp is not None:
            massaged = f"https://{scp.group('host')}/{scp.group('path')}"

    parsed = urlparse(massaged)
    if parsed.scheme == "http" and parsed.hostname in _SOURCE_HOSTS:
        massaged = "https://" + massaged[len("http://") :]

    massaged = massaged.rstrip("/")
    if massaged.endswith(".git"):
        massaged = massaged[: -len(".git")]
    return massaged


def _is_source_host(url: str) -> bool:
    host = urlparse(url).hostname or ""
    return host in _SOURCE_HOSTS or (host.startswith("www.") and host[4:] in _SOURCE_HOSTS)


def apply_metadata(
    result: ReleaseResult,
    datasource_id: str,
    package_name: str,
    manual: ManualMetadata,
) -> ReleaseResult:
    """Enrich a result in place with override and normalized URLs.

    Args:
        result: The result to enrich (a copy owned by the engine).
        datasource_id: Datasource that produced the result.
        package_name: The package that was looked up.
        manual: Manual override table.

    Returns:
        The same result object.
    """
    changelog_url = manual.changelog_url(datasource_id, package_name)
    if changelog_url:
        result.changelog_url = changelog_url

    source_url = manual.source_url(datasource_id, package_name)
    if source_url:
        result.source_url = source_url

    result.source_url = massage_source_url(result.source_url)
    if result.homepage is not None:
        result.homepage = result.homepage.strip() or None

    if not result.source_url and result.homepage and _is_source_host(result.homepage):
        result.source_url = massage_source_url(result.homepage)

    for release in result.releases:
        if release.release_timestamp is None:
            continue
        if release.release_timestamp.tzinfo is None:
            release.release_timestamp = release.release_timestamp.replace(tzinfo=UTC)
        else:
            release.release_timestamp = release.release_timestamp.astimezone(UTC)

    return result
