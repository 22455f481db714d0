"""Datasource plugin system for depscout.

This package provides the plugin architecture for package registries.
Third-party packages implement Datasource to add a new registry family
without modifying the resolution engine.

Plugin Interfaces:
    - Datasource: Base class for registry plugins (get_releases)
    - DigestCapable: Optional digest capability (get_digest)

Registry:
    - DatasourceRegistry: Installed datasources keyed by id
"""

from depscout.datasources.base import Datasource, DigestCapable, RegistryUrls, supports_digest
from depscout.datasources.registry import DatasourceRegistry

__all__ = [
    "Datasource",
    "DatasourceRegistry",
    "DigestCapable",
    "RegistryUrls",
    "supports_digest",
]
