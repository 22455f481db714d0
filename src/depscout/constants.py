"""Constants and configuration defaults for depscout.

This module contains all magic values, default configurations, and constants
used throughout the application. Import from here instead of hardcoding values.
"""

from typing import Final

# =============================================================================
# VERSION
# =============================================================================
VERSION: Final[str] = "0.1.0"

# =============================================================================
# CACHE DEFAULTS
# =============================================================================
DEFAULT_CACHE_TTL_MINUTES: Final[int] = 15
DEFAULT_CACHE_MAX_SIZE: Final[int] = 1000
CACHE_NAMESPACE_PREFIX: Final[str] = "datasource-releases-"

# =============================================================================
# HTTP CLIENT DEFAULTS
# =============================================================================
DEFAULT_HTTP_TIMEOUT_SECONDS: Final[float] = 30.0
HTTP_USER_AGENT: Final[str] = f"depscout/{VERSION}"

# =============================================================================
# DATASOURCE DEFAULTS
# =============================================================================
DEFAULT_VERSIONING: Final[str] = "semver-coerced"
DEFAULT_REGISTRY_STRATEGY: Final[str] = "hunt"
DATASOURCE_ENTRY_POINT: Final[str] = "depscout.datasources"

REGISTRY_STRATEGY_FIRST: Final[str] = "first"
REGISTRY_STRATEGY_HUNT: Final[str] = "hunt"
REGISTRY_STRATEGY_MERGE: Final[str] = "merge"

CONSTRAINTS_FILTERING_NONE: Final[str] = "none"
CONSTRAINTS_FILTERING_STRICT: Final[str] = "strict"

# =============================================================================
# VERSIONING SCHEMES
# =============================================================================
VERSIONING_SEMVER: Final[str] = "semver"
VERSIONING_SEMVER_COERCED: Final[str] = "semver-coerced"
VERSIONING_PEP440: Final[str] = "pep440"
VERSIONING_PYTHON: Final[str] = "python"
VERSIONING_LOOSE: Final[str] = "loose"

# Ecosystem name in a release's constraints -> versioning scheme
CONSTRAINT_VERSIONING: Final[dict[str, str]] = {
    "python": VERSIONING_PEP440,
}

# =============================================================================
# LOG MESSAGES (asserted on by callers and tests)
# =============================================================================
MSG_CUSTOM_REGISTRIES_IGNORED: Final[str] = (
    "Custom registries are not allowed for this datasource and will be ignored"
)
MSG_EXCESS_REGISTRY_URLS: Final[str] = (
    "Excess registryUrls found for datasource lookup - using first configured only"
)

# =============================================================================
# CONFIG FILE
# =============================================================================
CONFIG_FILE_NAME: Final[str] = ".depscout.yaml"

# =============================================================================
# LOGGING
# =============================================================================
LOG_FORMAT: Final[str] = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATE_FORMAT: Final[str] = "%Y-%m-%d %H:%M:%S"
