"""Release result post-processing.

Turns what the registry strategy produced into what callers see:

1. ``merge_results`` unions per-registry results (merge strategy only).
2. ``extract_versions`` rewrites versions through a caller regex.
3. ``validate_and_sort`` drops versions the scheme cannot parse, collapses
   duplicates and sorts ascending.
4. ``filter_by_constraints`` drops releases whose declared constraints are
   incompatible with the caller's (strict mode only).
5. ``apply_replacements`` copies replacement name/version onto the result.

Metadata enrichment (overrides, source URL normalization) happens earlier,
per registry, so it can be cached; see depscout.metadata.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from depscout.constants import (
    CONSTRAINT_VERSIONING,
    CONSTRAINTS_FILTERING_STRICT,
    DEFAULT_VERSIONING,
)
from depscout.exceptions import ConfigError
from depscout.logging import get_logger
from depscout.versioning import Versioning, get_versioning

if TYPE_CHECKING:
    from depscout.datasources.base import Datasource
    from depscout.models import LookupRequest, Release, ReleaseResult

logger = get_logger(__name__)

# Scalar fields combined across merged results (earliest non-empty wins; tags
# are compared by version instead)
_MERGED_FIELDS = ("source_url", "source_directory", "changelog_url", "homepage")

# JavaScript-style named groups, as found in shared configs: (?<name>...)
_JS_NAMED_GROUP_RE = re.compile(r"\(\?<(?![=!])(\w+)>")


def _higher_tag(current: str, candidate: str, scheme: Versioning) -> str:
    if not scheme.is_version(current):
        return candidate if scheme.is_version(candidate) else current
    if not scheme.is_version(candidate):
        return current
    return candidate if scheme.compare(candidate, current) > 0 else current


def merge_results(
    results: list[tuple[str, ReleaseResult]],
    scheme: Versioning | None = None,
) -> ReleaseResult | None:
    """Combine per-registry results into one, in candidate order.

    Releases are de-duplicated by version; the first registry to report a
    version keeps it, and each release is attributed to its registry.
    When several registries report the same tag, the higher version under
    ``scheme`` wins; an unparsable value loses to a valid one, and between
    two unparsable values the earliest is kept. For scalar metadata the
    earliest result wins; keys missing from earlier results are filled from
    later ones.

    Args:
        results: (registry_url, result) pairs in candidate order.
        scheme: Versioning used to compare tag values; the default scheme
            when omitted.

    Returns:
        The merged result, or None if there was nothing to merge.
    """
    scheme = scheme or get_versioning(DEFAULT_VERSIONING)
    combined: ReleaseResult | None = None
    seen_versions: set[str] = set()

    for registry_url, result in results:
        releases: list[Release] = []
        for release in result.releases:
            if release.version in seen_versions:
                continue
            seen_versions.add(release.version)
            releases.append(
                release.model_copy(update={"registry_url": release.registry_url or registry_url})
            )

        if combined is None:
            combined = result.model_copy(
                update={
                    "releases": releases,
                    "registry_url": None,
                    "tags": dict(result.tags) if result.tags else None,
                }
            )
            continue

        combined.releases.extend(releases)

        for field in _MERGED_FIELDS:
            if not getattr(combined, field):
                setattr(combined, field, getattr(result, field))

        if result.tags:
            tags = combined.tags or {}
            for tag, version in result.tags.items():
                tags[tag] = _higher_tag(tags[tag], version, scheme) if tag in tags else version
            combined.tags = tags

        if result.is_private:
            combined.is_private = True

        for key, value in (result.model_extra or {}).items():
            if getattr(combined, key, None) is None:
                setattr(combined, key, value)

    return combined


def compile_extract_version(pattern: str) -> re.Pattern[str]:
    """Compile an extractVersion pattern.

    Accepts JavaScript-style ``(?<version>...)`` groups as well as Python's
    ``(?P<version>...)``.

    Raises:
        ConfigError: If the pattern is not a valid regex.
    """
    try:
        return re.compile(_JS_NAMED_GROUP_RE.sub(r"(?P<\1>", pattern))
    except re.error as e:
        raise ConfigError("Invalid extractVersion pattern", {"pattern": pattern}) from e


def extract_versions(result: ReleaseResult, pattern: str) -> None:
    """Rewrite each release version to the regex's ``version`` group.

    Releases without a match (or with an empty group) are dropped.
    """
    regex = compile_extract_version(pattern)
    kept: list[Release] = []
    for release in result.releases:
        match = regex.search(release.version)
        version = match.groupdict().get("version") if match else None
        if not version:
            continue
        release.version = version
        kept.append(release)

    dropped = len(result.releases) - len(kept)
    if dropped:
        logger.debug(
            "Releases dropped by extractVersion",
            extra={"pattern": pattern, "dropped": dropped},
        )
    result.releases = kept


def validate_and_sort(result: ReleaseResult, scheme: Versioning) -> None:
    """Keep valid, unique versions and sort them ascending."""
    unique: dict[str, Release] = {}
    for release in result.releases:
        if release.version in unique or not scheme.is_version(release.version):
            continue
        unique[release.version] = release
    result.releases = sorted(unique.values(), key=lambda r: scheme.sort_key(r.version))


def _is_compatible(
    release: Release, ecosystem: str, wanted: str, scheme: Versioning
) -> bool:
    declared = (release.constraints or {}).get(ecosystem)
    if not declared:
        return True
    return any(
        not supported or scheme.subset(wanted, supported) or scheme.matches(wanted, supported)
        for supported in declared
    )


def filter_by_constraints(result: ReleaseResult, request: LookupRequest) -> None:
    """Drop releases whose constraints cannot hold the caller's constraints.

    Only applies when ``constraints_filtering`` is ``strict``. A release is
    kept when, for every ecosystem in the request, it declares nothing for
    that ecosystem or one of its declared ranges contains the caller's.
    """
    if request.constraints_filtering != CONSTRAINTS_FILTERING_STRICT or not request.constraints:
        return

    for ecosystem, wanted in request.constraints.items():
        scheme = get_versioning(CONSTRAINT_VERSIONING.get(ecosystem, DEFAULT_VERSIONING))
        result.releases = [
            release
            for release in result.releases
            if _is_compatible(release, ecosystem, wanted, scheme)
        ]


def apply_replacements(result: ReleaseResult, request: LookupRequest) -> None:
    if request.replacement_name is not None:
        result.replacement_name = request.replacement_name
    if request.replacement_version is not None:
        result.replacement_version = request.replacement_version


def post_process(
    result: ReleaseResult,
    request: LookupRequest,
    datasource: Datasource,
) -> ReleaseResult | None:
    """Apply the request-specific pipeline to a strategy result.

    Works on a copy. If the pipeline removes every release the result is
    normalized to None; a result that arrived without releases (metadata
    only) is passed through.

    Args:
        result: Result produced by the registry strategy.
        request: The caller's lookup request.
        datasource: The datasource that served it.

    Returns:
        The processed result, or None.
    """
    had_releases = bool(result.releases)
    result = result.model_copy(deep=True)

    if request.extract_version:
        extract_versions(result, request.extract_version)

    scheme = get_versioning(request.versioning or datasource.default_versioning)
    validate_and_sort(result, scheme)
    filter_by_constraints(result, request)
    apply_replacements(result, request)

    if had_releases and not result.releases:
        logger.debug(
            "No releases left after post-processing",
            extra={"datasource": datasource.id, "package_name": request.package_name},
        )
        return None
    return result
