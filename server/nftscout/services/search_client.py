"""HTTP client for the external NFT search backend."""

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from nftscout.core.cancellation import CancellationToken
from nftscout.core.config import get_settings
from nftscout.core.errors import SearchError
from nftscout.schemas.search import SearchResponse, SearchResult

logger = logging.getLogger(__name__)


def _error_message(response: httpx.Response) -> str:
    """Prefer the backend's own message, fall back to the status line."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ("message", "error", "detail"):
            if isinstance(body.get(key), str) and body[key]:
                return body[key]
    return f"HTTP {response.status_code}: {response.reason_phrase}"


def parse_search_response(data: Any, page: int) -> SearchResponse:
    """Build a SearchResponse, tolerating the unpaginated backend variant.

    Items that fail validation are dropped rather than failing the page.
    """
    if isinstance(data, list):
        raw_results, data = data, {}
    elif isinstance(data, dict):
        raw_results = data.get("results") or []
    else:
        raise SearchError("Search service returned an invalid response")

    results: list[SearchResult] = []
    for item in raw_results:
        try:
            results.append(SearchResult.model_validate(item))
        except ValidationError as e:
            logger.debug("Skipping malformed search result: %s", e)

    total = data.get("total")
    current_page = data.get("page")
    return SearchResponse(
        results=results,
        total=total if isinstance(total, int) else len(results),
        page=current_page if isinstance(current_page, int) else page,
        has_more=bool(data.get("hasMore", data.get("has_more", False))),
    )


class SearchClient:
    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        base_url: str | None = None,
        path: str | None = None,
        timeout: float | None = None,
    ) -> None:
        settings = get_settings()
        base_url = (base_url or settings.search_backend_url).rstrip("/")
        self.url = f"{base_url}/{(path or settings.search_backend_path).lstrip('/')}"
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=timeout if timeout is not None else settings.search_timeout_seconds
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def search(
        self,
        query: str,
        page: int = 1,
        limit: int = 20,
        token: CancellationToken | None = None,
    ) -> SearchResponse:
        """Run one search request.

        Raises OperationCancelledError if ``token`` is cancelled before the
        response arrives, SearchError for any other failure.
        """
        token = token or CancellationToken()
        params = {"q": query, "page": page, "limit": limit}
        try:
            response = await token.run(
                self._client.get(self.url, params=params, headers={"Accept": "application/json"})
            )
        except httpx.TimeoutException as e:
            raise SearchError("Search request timed out") from e
        except httpx.TransportError as e:
            logger.warning("Search backend unreachable: %s", e)
            raise SearchError("Search service is unreachable") from e

        if not response.is_success:
            message = _error_message(response)
            logger.warning("Search backend error %s for %r: %s", response.status_code, query, message)
            raise SearchError(message)

        try:
            data = response.json()
        except ValueError as e:
            raise SearchError("Search service returned an invalid response") from e
        return parse_search_response(data, page)
