"""Datasource registry for discovering and managing datasource plugins.

This module provides the DatasourceRegistry class that handles:
- Registration of datasource instances (replace by id)
- Discovery of datasources via Python entry points
- Lookup and listing for the resolution engine
- Lifecycle management (cleanup)

Entry Points:
    Third-party packages can register datasources via entry points in pyproject.toml:

    [project.entry-points."depscout.datasources"]
    npm = "mypackage.npm:NpmDatasource"

    An entry point may name a Datasource subclass (instantiated with no
    arguments) or a ready-made instance.

Example Usage:
    registry = DatasourceRegistry()
    registry.discover_plugins()
    registry.register(NpmDatasource())

    npm = registry.get("npm")
"""

from __future__ import annotations

import inspect
from typing import Any

from depscout.constants import DATASOURCE_ENTRY_POINT
from depscout.datasources.base import Datasource
from depscout.logging import get_logger

logger = get_logger(__name__)


class DatasourceRegistry:
    """Central registry of installed datasources, keyed by id.

    One registry is built at process start and handed to the resolution
    engine. Tests build their own and register fakes.
    """

    def __init__(self, datasources: list[Datasource] | None = None) -> None:
        """Initialize the registry.

        Args:
            datasources: Optional datasources to register immediately.
        """
        self._datasources: dict[str, Datasource] = {}
        for datasource in datasources or []:
            self.register(datasource)

    # =========================================================================
    # REGISTRATION
    # =========================================================================

    def register(self, datasource: Datasource) -> None:
        """Install a datasource, replacing any datasource with the same id.

        Args:
            datasource: The datasource instance.

        Raises:
            TypeError: If the object has no id or no callable get_releases.
        """
        datasource_id = getattr(datasource, "id", None)
        if not isinstance(datasource_id, str) or not datasource_id:
            raise TypeError(f"Datasource {datasource!r} has no id")
        if not callable(getattr(datasource, "get_releases", None)):
            raise TypeError(f"Datasource '{datasource_id}' does not implement get_releases")

        existing = self._datasources.get(datasource_id)
        if existing is not None and existing is not datasource:
            logger.debug(
                "Replacing datasource",
                extra={"datasource": datasource_id, "previous": type(existing).__name__},
            )

        self._datasources[datasource_id] = datasource
        logger.debug(f"Registered datasource: {datasource_id} ({type(datasource).__module__})")

    def unregister(self, datasource_id: str) -> Datasource | None:
        """Remove a datasource by id.

        Returns:
            The removed datasource, or None if it was not registered.
        """
        return self._datasources.pop(datasource_id, None)

    def clear(self) -> None:
        """Remove all datasources."""
        self._datasources.clear()

    # =========================================================================
    # DISCOVERY
    # =========================================================================

    def discover_plugins(self) -> None:
        """Discover and register datasources from entry points.

        Errors during discovery are logged but don't stop the process.
        """
        from importlib.metadata import entry_points

        for ep in entry_points(group=DATASOURCE_ENTRY_POINT):
            try:
                self.register(self._instantiate(ep.load()))
                logger.info(f"Discovered datasource via entry point: {ep.name}")
            except Exception as e:
                logger.warning(
                    f"Failed to load datasource from entry point {ep.name}: {e}",
                    extra={"entry_point": ep.name, "group": DATASOURCE_ENTRY_POINT},
                )

    @staticmethod
    def _instantiate(loaded: Any) -> Datasource:
        if inspect.isclass(loaded):
            return loaded()
        return loaded

    # =========================================================================
    # ACCESS
    # =========================================================================

    def get(self, datasource_id: str | None) -> Datasource | None:
        """Get a datasource by id.

        Returns:
            The datasource, or None if the id is empty or unknown.
        """
        if not datasource_id:
            return None
        return self._datasources.get(datasource_id)

    def list(self) -> list[str]:
        """List registered datasource ids, sorted."""
        return sorted(self._datasources)

    def as_dict(self) -> dict[str, Datasource]:
        """Return a copy of the id -> datasource mapping."""
        return dict(self._datasources)

    def __contains__(self, datasource_id: object) -> bool:
        return datasource_id in self._datasources

    def __len__(self) -> int:
        return len(self._datasources)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def close_all(self) -> None:
        """Close all datasources and release their resources.

        Should be called during shutdown.
        """
        for datasource_id, datasource in list(self._datasources.items()):
            try:
                await datasource.close()
                logger.debug(f"Closed datasource: {datasource_id}")
            except Exception as e:
                logger.warning(f"Error closing datasource {datasource_id}: {e}")
