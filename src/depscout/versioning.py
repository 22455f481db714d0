"""Versioning schemes used to interpret release versions.

A scheme knows how to validate, order and range-check version strings of
one ecosystem. The engine uses it to drop unparsable versions, to sort
releases, and to decide whether a release's declared constraints are
compatible with the caller's.

Schemes:
    - semver: strict semantic versions (semantic_version)
    - semver-coerced: semver after coercion, so "v1.2" is 1.2.0 (default)
    - pep440 / python: Python package versions (packaging)
    - loose: anything that starts with a number, compared numerically

Range syntax accepted by ``subset``: comparators (``>=``, ``>``, ``<=``,
``<``, ``==``, ``=``, ``!=``, ``~=``, ``^``, ``~``) separated by commas or
whitespace, with ``||`` for alternatives. A bare version means "exactly".
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from functools import cmp_to_key
from typing import Any, ClassVar

import semantic_version
from packaging.specifiers import InvalidSpecifier, SpecifierSet
from packaging.version import InvalidVersion, Version

from depscout.constants import (
    DEFAULT_VERSIONING,
    VERSIONING_LOOSE,
    VERSIONING_PEP440,
    VERSIONING_PYTHON,
    VERSIONING_SEMVER,
    VERSIONING_SEMVER_COERCED,
)
from depscout.logging import get_logger

logger = get_logger(__name__)

_COMPARATOR_RE = re.compile(r"(>=|<=|==|!=|~=|>|<|=|\^|~)?\s*([0-9A-Za-z][0-9A-Za-z.\-+_*]*)")
_NUMBERS_RE = re.compile(r"\d+")


@dataclass(frozen=True)
class Bound:
    """One end of a version interval."""

    key: Any
    inclusive: bool


@dataclass(frozen=True)
class Interval:
    """A contiguous version interval; None bounds are unbounded."""

    lower: Bound | None = None
    upper: Bound | None = None

    def is_empty(self) -> bool:
        if self.lower is None or self.upper is None:
            return False
        if self.lower.key > self.upper.key:
            return True
        if self.lower.key == self.upper.key:
            return not (self.lower.inclusive and self.upper.inclusive)
        return False


def _lower_within(inner: Bound | None, outer: Bound | None) -> bool:
    if outer is None:
        return True
    if inner is None:
        return False
    if inner.key != outer.key:
        return inner.key > outer.key
    return outer.inclusive or not inner.inclusive


def _upper_within(inner: Bound | None, outer: Bound | None) -> bool:
    if outer is None:
        return True
    if inner is None:
        return False
    if inner.key != outer.key:
        return inner.key < outer.key
    return outer.inclusive or not inner.inclusive


def _tighter_lower(a: Bound | None, b: Bound) -> Bound:
    return b if a is None or _lower_within(b, a) else a


def _tighter_upper(a: Bound | None, b: Bound) -> Bound:
    return b if a is None or _upper_within(b, a) else a


class Versioning(ABC):
    """Base class for versioning schemes.

    Subclasses implement ``parse`` (version string -> comparable key, or
    None when invalid). Range handling is built on top of it.
    """

    id: ClassVar[str]

    @abstractmethod
    def parse(self, version: str) -> Any | None:
        """Return a comparable key for the version, or None if invalid."""
        ...

    def is_version(self, version: str | None) -> bool:
        return bool(version) and self.parse(version) is not None  # type: ignore[arg-type]

    def sort_key(self, version: str) -> Any:
        """Return the sort key for a valid version.

        Raises:
            ValueError: If the version is not valid in this scheme.
        """
        key = self.parse(version)
        if key is None:
            raise ValueError(f"Invalid {self.id} version: {version!r}")
        return key

    def compare(self, a: str, b: str) -> int:
        key_a, key_b = self.sort_key(a), self.sort_key(b)
        return (key_a > key_b) - (key_a < key_b)

    def sorted(self, versions: list[str]) -> list[str]:
        return sorted(versions, key=cmp_to_key(self.compare))

    def matches(self, version: str, range_: str) -> bool:
        """Check whether a version satisfies a range."""
        key = self.parse(version)
        if key is None:
            return False
        intervals = self._parse_range(range_)
        if intervals is None:
            return False
        return any(self._contains(interval, key) for interval in intervals)

    def subset(self, inner: str, outer: str) -> bool:
        """Check whether every version allowed by ``inner`` is allowed by ``outer``."""
        inner_intervals = self._parse_range(inner)
        outer_intervals = self._parse_range(outer)
        if not inner_intervals or not outer_intervals:
            return False
        return all(
            interval.is_empty()
            or any(
                _lower_within(interval.lower, candidate.lower)
                and _upper_within(interval.upper, candidate.upper)
                for candidate in outer_intervals
            )
            for interval in inner_intervals
        )

    # -------------------------------------------------------------------------
    # Range parsing
    # -------------------------------------------------------------------------

    def _contains(self, interval: Interval, key: Any) -> bool:
        point = Bound(key, True)
        return _lower_within(point, interval.lower) and _upper_within(point, interval.upper)

    def _parse_range(self, range_: str) -> list[Interval] | None:
        alternatives = [part.strip() for part in range_.split("||")]
        intervals: list[Interval] = []
        for alternative in alternatives:
            interval = self._parse_alternative(alternative)
            if interval is None:
                return None
            intervals.append(interval)
        return intervals

    def _parse_alternative(self, text: str) -> Interval | None:
        if not text or text == "*":
            return Interval()

        lower: Bound | None = None
        upper: Bound | None = None
        consumed = 0
        for match in _COMPARATOR_RE.finditer(text):
            if text[consumed : match.start()].strip(" ,"):
                return None
            consumed = match.end()
            operator, version = match.group(1) or "==", match.group(2)
            if operator == "!=":
                continue
            key = self.parse(version)
            if key is None:
                return None

            if operator in (">=", ">"):
                lower = _tighter_lower(lower, Bound(key, operator == ">="))
            elif operator in ("<=", "<"):
                upper = _tighter_upper(upper, Bound(key, operator == "<="))
            elif operator in ("==", "="):
                lower = _tighter_lower(lower, Bound(key, True))
                upper = _tighter_upper(upper, Bound(key, True))
            else:
                ceiling = self._ceiling(operator, version)
                if ceiling is None:
                    return None
                lower = _tighter_lower(lower, Bound(key, True))
                upper = _tighter_upper(upper, Bound(ceiling, False))

        if consumed == 0 or text[consumed:].strip(" ,"):
            return None
        return Interval(lower, upper)

    def _ceiling(self, operator: str, version: str) -> Any | None:
        """Exclusive upper key for ``~=``, ``^`` and ``~`` comparators."""
        numbers = [int(n) for n in _NUMBERS_RE.findall(version)]
        if not numbers:
            return None
        if operator == "~=":
            if len(numbers) < 2:
                return None
            index = len(numbers) - 2
        elif operator == "^":
            index = next((i for i, n in enumerate(numbers) if n != 0), len(numbers) - 1)
        else:
            index = min(1, len(numbers) - 1) if len(numbers) > 1 else 0
        bumped = [*numbers[:index], numbers[index] + 1]
        bumped += [0] * max(0, 3 - len(bumped))
        return self.parse(".".join(str(n) for n in bumped))


class SemverVersioning(Versioning):
    """Strict semantic versioning."""

    id = VERSIONING_SEMVER

    def parse(self, version: str) -> semantic_version.Version | None:
        try:
            return semantic_version.Version(version.strip())
        except ValueError:
            return None

    def matches(self, version: str, range_: str) -> bool:
        key = self.parse(version)
        if key is None:
            return False
        try:
            return semantic_version.NpmSpec(range_).match(key)
        except ValueError:
            return super().matches(version, range_)


class CoercedSemverVersioning(SemverVersioning):
    """Semantic versioning that accepts partial and ``v``-prefixed versions."""

    id = VERSIONING_SEMVER_COERCED

    def parse(self, version: str) -> semantic_version.Version | None:
        text = version.strip().lstrip("=vV")
        if not text or not text[0].isdigit():
            return None
        try:
            return semantic_version.Version.coerce(text)
        except ValueError:
            return None


class Pep440Versioning(Versioning):
    """Python package versions (PEP 440)."""

    id = VERSIONING_PEP440

    def parse(self, version: str) -> Version | None:
        try:
            return Version(version.strip())
        except InvalidVersion:
            return None

    def matches(self, version: str, range_: str) -> bool:
        key = self.parse(version)
        if key is None:
            return False
        spec = range_.strip()
        if self.parse(spec) is not None:
            spec = f"=={spec}"
        try:
            return SpecifierSet(spec).contains(key, prereleases=True)
        except InvalidSpecifier:
            return super().matches(version, range_)


_LOOSE_RE = re.compile(r"^[vV]?(\d+(?:[.\-_]\d+)*)(.*)$")


class LooseVersioning(Versioning):
    """Numeric-first comparison for versions that follow no standard."""

    id = VERSIONING_LOOSE

    def parse(self, version: str) -> tuple[tuple[int, ...], int, str] | None:
        match = _LOOSE_RE.match(version.strip())
        if match is None:
            return None
        numbers = tuple(int(n) for n in _NUMBERS_RE.findall(match.group(1)))
        suffix = match.group(2)
        # A suffix marks a pre-release: 1.0-beta sorts before 1.0
        return numbers, 0 if suffix else 1, suffix


_SCHEMES: dict[str, Versioning] = {}


def _register(scheme: Versioning, *aliases: str) -> None:
    _SCHEMES[scheme.id] = scheme
    for alias in aliases:
        _SCHEMES[alias] = scheme


_register(SemverVersioning())
_register(CoercedSemverVersioning())
_register(Pep440Versioning(), VERSIONING_PYTHON)
_register(LooseVersioning())


def get_default_versioning(versioning: str | None) -> str:
    """Return the given scheme id, or the default one when unset."""
    return versioning or DEFAULT_VERSIONING


def get_versioning(versioning: str | None) -> Versioning:
    """Look up a versioning scheme by id.

    Unknown ids fall back to the default scheme.
    """
    scheme_id = get_default_versioning(versioning)
    scheme = _SCHEMES.get(scheme_id)
    if scheme is None:
        logger.debug(
            "Unknown versioning scheme, using default",
            extra={"versioning": scheme_id, "default": DEFAULT_VERSIONING},
        )
        return _SCHEMES[DEFAULT_VERSIONING]
    return scheme


def list_versionings() -> list[str]:
    """List all known scheme ids and aliases."""
    return sorted(_SCHEMES)
