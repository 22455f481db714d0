"""HTTP client for datasource implementations.

Datasources use RegistryHttpClient to talk to registries. It applies the
host rules from the configuration and turns transport problems into the
error kinds the resolution engine understands:

    disabled host (host rule)       ExternalHostError(kind=HOST_DISABLED), no request made
    timeout / connection failure    ExternalHostError(kind=HARD)
    HTTP 429, HTTP 5xx              ExternalHostError(kind=HARD)
    HTTP 404                        None ("not found")
    other HTTP errors, bad JSON     DatasourceError (soft)

There is no retry loop here; a failed request fails once.

Example:
    client = RegistryHttpClient(config, datasource_id="npm")
    packument = await client.get_json("https://registry.npmjs.org/react")
    await client.close()
"""

from __future__ import annotations

import json
import time
from typing import Any

import httpx

from depscout.constants import HTTP_USER_AGENT
from depscout.exceptions import DatasourceError, ExternalHostError, HostErrorKind
from depscout.logging import get_logger
from depscout.models import DepscoutConfig

logger = get_logger(__name__)


class RegistryHttpClient:
    """Async HTTP client with registry-aware error classification.

    The underlying httpx client is created lazily and reused.
    """

    def __init__(
        self,
        config: DepscoutConfig | None = None,
        *,
        datasource_id: str = "http",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            config: Global configuration (host rules, timeout).
            datasource_id: Id of the owning datasource, used in errors and logs.
            client: Optional preconfigured httpx client (not closed by close()).
        """
        self._config = config or DepscoutConfig()
        self._datasource_id = datasource_id
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers={"Accept": "application/json", "User-Agent": HTTP_USER_AGENT},
                timeout=self._config.http.timeout_seconds,
                follow_redirects=True,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client if this object created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None

    async def get(self, url: str, **kwargs: Any) -> httpx.Response | None:
        """Perform a GET request.

        Args:
            url: Absolute URL.
            **kwargs: Passed through to httpx.

        Returns:
            The successful response, or None on HTTP 404.

        Raises:
            ExternalHostError: If the host is disabled or failing.
            DatasourceError: For other HTTP error statuses.
        """
        host = httpx.URL(url).host
        if self._config.is_host_disabled(host):
            raise ExternalHostError(
                "Host disabled by host rules", kind=HostErrorKind.HOST_DISABLED, host=host
            )

        start_time = time.monotonic()
        try:
            response = await self._get_client().get(url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            return self._handle_status_error(e, host, start_time)
        except httpx.RequestError as e:
            logger.warning(
                "Network error querying registry",
                extra={"datasource": self._datasource_id, "url": url, "error": str(e)},
            )
            raise ExternalHostError(
                f"Network error: {type(e).__name__}",
                kind=HostErrorKind.HARD,
                host=host,
                details={"url": url},
            ) from e

        logger.debug(
            "Registry request ok",
            extra={
                "datasource": self._datasource_id,
                "url": url,
                "status_code": response.status_code,
                "duration_ms": int((time.monotonic() - start_time) * 1000),
            },
        )
        return response

    async def get_json(self, url: str, **kwargs: Any) -> Any | None:
        """Perform a GET request and decode the JSON body.

        Returns:
            The decoded body, or None on HTTP 404.

        Raises:
            DatasourceError: If the body is not valid JSON.
        """
        response = await self.get(url, **kwargs)
        if response is None:
            return None
        try:
            return response.json()
        except json.JSONDecodeError as e:
            raise DatasourceError(
                "Invalid JSON in registry response",
                datasource_id=self._datasource_id,
                details={"url": url},
            ) from e

    def _handle_status_error(
        self, error: httpx.HTTPStatusError, host: str, start_time: float
    ) -> None:
        status_code = error.response.status_code
        url = str(error.request.url)
        fields = {
            "datasource": self._datasource_id,
            "url": url,
            "status_code": status_code,
            "duration_ms": int((time.monotonic() - start_time) * 1000),
        }

        if status_code == 404:
            logger.debug("Package not found on registry", extra=fields)
            return None

        if status_code == 429 or status_code >= 500:
            logger.warning("Registry host error", extra=fields)
            raise ExternalHostError(
                f"Registry responded with HTTP {status_code}",
                kind=HostErrorKind.HARD,
                host=host,
                details={"url": url, "status_code": status_code},
            ) from error

        logger.error("Registry API error", extra=fields)
        raise DatasourceError(
            f"Registry responded with HTTP {status_code}",
            datasource_id=self._datasource_id,
            details={"url": url, "status_code": status_code},
        ) from error
