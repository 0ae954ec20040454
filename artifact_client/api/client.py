"""
Async HTTP client for the artifact service JSON API.
"""

import asyncio
import json
import logging
import time
from typing import Any, Dict, Optional, Type

import aiohttp

from artifact_client.exceptions import ArtifactClientError
from artifact_client.models.config import ClientConfig

log = logging.getLogger(__name__)


class ArtifactAPIClient:
    """
    Async client for the artifact service.

    Owns a single connection pool shared by the JSON API calls and the direct
    object-store transfers. It keeps no per-transfer state, so any number of
    transfers may run on it concurrently.
    """

    ARTIFACTS_PATH = "/artifact-service/v1/artifacts/"
    STORAGE_USAGE_PATH = "/artifact-service/v1/storage/usage"

    def __init__(self, config: ClientConfig):
        """
        Initializes the API client.

        Args:
            config: Validated client configuration (base URL, timeouts, pool size).
        """
        self.config = config
        self.base_url: str = config.base_url
        self._session: Optional[aiohttp.ClientSession] = None

    async def _initialize_session(self) -> None:
        """Ensures an active aiohttp session is available."""
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(
                limit=self.config.max_connections * 2,
                limit_per_host=self.config.max_connections,
                ttl_dns_cache=300,
                enable_cleanup_closed=True,
            )
            self._session = aiohttp.ClientSession(
                connector=connector,
                headers={"Accept": "application/json"},
                timeout=aiohttp.ClientTimeout(
                    total=self.config.request_timeout, connect=15
                ),
            )
            log.debug(
                f"Created session for {self.base_url} "
                f"with limit_per_host={self.config.max_connections}"
            )

    async def get_session(self) -> aiohttp.ClientSession:
        await self._initialize_session()
        return self._session

    @property
    def transfer_timeout(self) -> aiohttp.ClientTimeout:
        """Timeout for object-store transfers: no total cap, bounded socket reads."""
        return aiohttp.ClientTimeout(
            total=None, sock_connect=15, sock_read=self.config.transfer_timeout
        )

    async def close(self) -> None:
        """Gracefully closes the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()
            log.debug("Artifact service session closed.")

    async def __aenter__(self) -> "ArtifactAPIClient":
        await self._initialize_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def url_for(self, path: str) -> str:
        """Joins a service path onto the configured base URL."""
        return self.base_url + "/" + path.lstrip("/")

    @staticmethod
    async def error_detail(response: aiohttp.ClientResponse) -> str:
        """
        Extracts a human-readable reason from an error response.

        The service answers failures with ``{"error": "..."}``; anything else
        falls back to the raw text or the HTTP reason phrase.
        """
        try:
            text = await response.text()
        except (aiohttp.ClientError, UnicodeDecodeError):
            text = ""
        if text:
            try:
                body = json.loads(text)
            except ValueError:
                return text.strip()[:200]
            if isinstance(body, dict) and body.get("error"):
                return str(body["error"])
        return response.reason or "Unknown error"

    async def request_json(
        self,
        method: str,
        url: str,
        error_cls: Type[ArtifactClientError],
        action: str,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Makes a JSON API call and returns the decoded body.

        Args:
            method: HTTP method.
            url: Absolute URL (service endpoint or a URL handed out by the service).
            error_cls: Exception raised for any failure of this call.
            action: Short description used in error messages, e.g. "generate upload token".
            payload: Optional JSON body.

        Raises:
            error_cls: On a non-2xx status (with ``status`` set), an undecodable
                body, or a transport failure (``status`` None).
        """
        session = await self.get_session()
        start_time = time.monotonic()

        try:
            async with session.request(method, url, json=payload) as r:
                duration_ms = (time.monotonic() - start_time) * 1000
                log.debug(f"{method} {url} -> {r.status} in {duration_ms:.0f}ms")

                if not 200 <= r.status < 300:
                    detail = await self.error_detail(r)
                    raise error_cls(f"Failed to {action}: {detail}", status=r.status)

                try:
                    return await r.json(content_type=None)
                except ValueError as e:
                    raise error_cls(
                        f"Failed to {action}: response was not valid JSON",
                        status=r.status,
                    ) from e

        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            log.debug(f"{method} {url} failed: {e!r}")
            raise error_cls(f"Failed to {action}: {e or type(e).__name__}") from e
