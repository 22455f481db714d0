"""depscout - release discovery for dependency updates.

Looks up the published releases of packages across one or more package
registries through pluggable datasources.
"""

from depscout.constants import VERSION
from depscout.datasources import Datasource, DatasourceRegistry, DigestCapable
from depscout.exceptions import (
    CacheError,
    ConfigError,
    DatasourceError,
    DepscoutError,
    DigestNotSupportedError,
    ExternalHostError,
    HostErrorKind,
)
from depscout.lookup import ReleaseLookup
from depscout.models import (
    DepscoutConfig,
    DigestConfig,
    DigestRequest,
    GetReleasesConfig,
    LookupRequest,
    Release,
    ReleaseResult,
)
from depscout.versioning import get_default_versioning

__version__ = VERSION

__all__ = [
    "CacheError",
    "ConfigError",
    "Datasource",
    "DatasourceError",
    "DatasourceRegistry",
    "DepscoutConfig",
    "DepscoutError",
    "DigestCapable",
    "DigestConfig",
    "DigestNotSupportedError",
    "DigestRequest",
    "ExternalHostError",
    "GetReleasesConfig",
    "HostErrorKind",
    "LookupRequest",
    "Release",
    "ReleaseLookup",
    "ReleaseResult",
    "__version__",
    "get_default_versioning",
]
