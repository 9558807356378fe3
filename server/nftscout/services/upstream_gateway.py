"""Read-only gateway to the upstream marketplace API.

Requests go to the primary (v2) base URL first. A 404 there is retried once
against the secondary (v3) base URL with the same path and query; no other
retries happen at this layer. Non-2xx responses are raised as ``UpstreamError``
carrying the upstream status and body text.
"""

import logging
from collections.abc import Mapping, Sequence

import httpx

from nftscout.core.config import get_settings
from nftscout.core.errors import (
    MethodNotSupportedError,
    UpstreamConnectionError,
    UpstreamError,
    UpstreamNotFoundError,
)

logger = logging.getLogger(__name__)

# Maximum upstream body length carried in error details
MAX_ERROR_DETAILS = 2000


class UpstreamGateway:
    """Forward GET requests to the upstream API with v2 -> v3 fallback."""

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        primary_url: str | None = None,
        secondary_url: str | None = None,
        user_agent: str | None = None,
        timeout: float | None = None,
    ) -> None:
        settings = get_settings()
        self.primary_url = (primary_url or settings.upstream_primary_url).rstrip("/")
        self.secondary_url = (secondary_url or settings.upstream_secondary_url).rstrip("/")
        self.headers = {
            "Accept": "application/json",
            "User-Agent": user_agent or settings.upstream_user_agent,
        }
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=timeout if timeout is not None else settings.upstream_timeout_seconds
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def build_url(self, base_url: str, path: str) -> str:
        return f"{base_url}/{path.lstrip('/')}"

    async def fetch(
        self,
        path: str,
        params: Mapping[str, str] | Sequence[tuple[str, str]] | None = None,
        method: str = "GET",
    ):
        """Return the decoded JSON body for ``path`` from the upstream API."""
        if method.upper() != "GET":
            raise MethodNotSupportedError(method.upper())

        url = self.build_url(self.primary_url, path)
        logger.debug("Upstream request (primary): %s %s", url, dict(params or {}))
        response = await self._get(url, params)

        if response.status_code == 404:
            url = self.build_url(self.secondary_url, path)
            logger.info("Primary upstream returned 404, trying secondary: %s", url)
            response = await self._get(url, params)

        if response.is_success:
            try:
                return response.json()
            except ValueError as e:
                raise UpstreamError(
                    502, "Upstream API returned invalid JSON", response.text[:MAX_ERROR_DETAILS]
                ) from e

        details = response.text[:MAX_ERROR_DETAILS]
        message = f"Upstream API error: {response.status_code} {response.reason_phrase}"
        logger.warning("%s for %s: %s", message, path, details[:200])
        if response.status_code == 404:
            raise UpstreamNotFoundError(message, details)
        raise UpstreamError(response.status_code, message, details)

    async def _get(self, url: str, params) -> httpx.Response:
        try:
            return await self._client.get(url, params=params, headers=self.headers)
        except httpx.TransportError as e:
            logger.warning("Upstream request failed for %s: %s", url, e)
            raise UpstreamConnectionError(str(e) or type(e).__name__) from e
