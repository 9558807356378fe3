"""Shared collection service in front of the upstream gateway.

One instance per process (built in the application lifespan and injected),
so the response cache, the in-flight map and the request spacing are shared by
every caller:

- responses are cached per endpoint for a short TTL; failures never are;
- concurrent requests for the same endpoint share one pending task;
- outbound calls are spaced at least ``min_request_interval`` apart;
- 429, 5xx and connection failures are retried with linear backoff.

The ``get_*_collections`` helpers normalize upstream payloads (lamports -> SOL)
and fail open, since trending data is decorative.
"""

import asyncio
import functools
import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any
from urllib.parse import parse_qsl, quote, urlencode, urlsplit

from pydantic import ValidationError

from nftscout.core.config import get_settings
from nftscout.core.errors import UpstreamError, UpstreamUnavailableError
from nftscout.core.time import monotonic
from nftscout.schemas.collection import TimeframeCollections, TrendingCollection
from nftscout.services.collection_merge import merge_timeframes
from nftscout.services.upstream_gateway import UpstreamGateway

logger = logging.getLogger(__name__)

LAMPORTS_PER_SOL = 10**9

POPULAR_COLLECTIONS_PATH = "/marketplace/popular_collections"
TRENDING_COLLECTIONS_PATH = "/marketplace/trending_collections"
PLACEHOLDER_IMAGE = "/placeholder-collection.jpg"
PLACEHOLDER_SYMBOL = "unknown"


@dataclass
class CacheEntry:
    value: Any
    stored_at: float

    def is_fresh(self, now: float, ttl: float) -> bool:
        return now - self.stored_at < ttl


def lamports_to_sol(value: Any) -> float | None:
    """Convert an upstream lamport amount (int, float or numeric string) to SOL."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        try:
            value = float(value)
        except ValueError:
            return None
    if not isinstance(value, int | float) or math.isnan(value):
        return None
    return value / LAMPORTS_PER_SOL


def split_endpoint(endpoint: str) -> tuple[str, list[tuple[str, str]]]:
    """Split ``/path?a=1&b=2`` into the path and its query pairs."""
    parts = urlsplit(endpoint)
    return parts.path, parse_qsl(parts.query, keep_blank_values=True)


def is_retryable(error: UpstreamError) -> bool:
    return error.status_code == 429 or error.status_code >= 500


def _has_valid_symbol(item: Any) -> bool:
    if not isinstance(item, dict):
        return False
    symbol = item.get("symbol")
    return (
        isinstance(symbol, str)
        and bool(symbol.strip())
        and symbol != PLACEHOLDER_SYMBOL
        and not symbol.startswith(f"{PLACEHOLDER_SYMBOL}-")
    )


def _normalize_popular(item: dict, rank: int, time_range: str) -> TrendingCollection:
    symbol = item["symbol"]
    return TrendingCollection(
        symbol=symbol,
        name=item.get("name") or symbol,
        image=item.get("image") or PLACEHOLDER_IMAGE,
        floor_price=lamports_to_sol(item.get("floorPrice")),
        volume_all=lamports_to_sol(item.get("volumeAll")),
        description=item.get("description") or "",
        verified=bool(item.get("verified")),
        featured=bool(item.get("featured")),
        has_cnfts=bool(item.get("hasCNFTs")),
        rank=rank,
        time_range=time_range,
    )


def _normalize_trending(item: dict, rank: int) -> TrendingCollection:
    symbol = item["symbol"]
    sparkline = item.get("sparkline")
    return TrendingCollection(
        symbol=symbol,
        name=item.get("name") or symbol,
        image=item.get("image") or PLACEHOLDER_IMAGE,
        floor_price=lamports_to_sol(item.get("floorPrice")),
        volume_1d=lamports_to_sol(item.get("volume24hr")),
        avg_price_24hr=lamports_to_sol(item.get("avgPrice24hr")),
        top_bid=lamports_to_sol(item.get("topBid")),
        listed_count=item.get("listedCount") or 0,
        sales_1d=item.get("sales24hr") or 0,
        floor_change_1d=item.get("floorChange24hr") or 0,
        sparkline=sparkline if isinstance(sparkline, list) else [],
        description=item.get("description") or "",
        twitter=item.get("twitter") or "",
        discord=item.get("discord") or "",
        website=item.get("website") or "",
        verified=bool(item.get("verified")),
        featured=bool(item.get("featured")),
        rank=rank,
        time_range="24h",
    )


def fallback_collections(time_range: str) -> list[TrendingCollection]:
    """Fixed sample data served in development when the upstream is unreachable."""
    return [
        TrendingCollection(
            symbol="mad_lads",
            name="Mad Lads",
            image="https://creator-hub-prod.s3.us-east-2.amazonaws.com/mad_lads_pfp_1682211343777.png",
            floor_price=179.99,
            volume_all=2812.52,
            description="Mad Lads NFT Collection",
            verified=True,
            featured=True,
            has_cnfts=False,
            rank=1,
            time_range=time_range,
        ),
        TrendingCollection(
            symbol="tensorians",
            name="TENSORIANS",
            image="https://bafkreictk4t6dafy4p7bgpbvgrop76aajnlzllpue6wr4ynkyj3xxsejte.ipfs.nftstorage.link/",
            floor_price=59.0,
            volume_all=838.33,
            description="Tensorians NFT Collection",
            verified=True,
            featured=False,
            has_cnfts=True,
            rank=2,
            time_range=time_range,
        ),
    ]


class CollectionCacheService:
    def __init__(
        self,
        gateway: UpstreamGateway,
        cache_ttl: float | None = None,
        min_request_interval: float | None = None,
        max_retries: int | None = None,
        retry_backoff: float | None = None,
        rate_limit_backoff: float | None = None,
        use_fallback: bool | None = None,
        timeframes: Sequence[str] | None = None,
    ) -> None:
        settings = get_settings()
        self._gateway = gateway
        self.cache_ttl = settings.collection_cache_ttl_seconds if cache_ttl is None else cache_ttl
        self.min_request_interval = (
            settings.min_request_interval_ms / 1000
            if min_request_interval is None
            else min_request_interval
        )
        self.max_retries = settings.max_retries if max_retries is None else max_retries
        self.retry_backoff = (
            settings.retry_backoff_seconds if retry_backoff is None else retry_backoff
        )
        self.rate_limit_backoff = (
            settings.rate_limit_backoff_seconds
            if rate_limit_backoff is None
            else rate_limit_backoff
        )
        self.use_fallback = settings.is_fallback_enabled if use_fallback is None else use_fallback
        self.timeframes = list(timeframes or settings.timeframes)

        self._cache: dict[str, CacheEntry] = {}
        self._in_flight: dict[str, asyncio.Task] = {}
        self._throttle_lock = asyncio.Lock()
        self._last_request_at = float("-inf")
        self._generation = 0

    # -- core request path -------------------------------------------------

    async def request(self, endpoint: str) -> Any:
        """Return the upstream payload for ``endpoint`` (path plus query string).

        Serves a fresh cached copy when there is one, otherwise joins the
        in-flight request for the same endpoint or starts a new one.
        """
        entry = self._cache.get(endpoint)
        if entry is not None:
            if entry.is_fresh(monotonic(), self.cache_ttl):
                logger.debug("Cache hit for %s", endpoint)
                return entry.value
            del self._cache[endpoint]

        task = self._in_flight.get(endpoint)
        if task is None:
            task = asyncio.ensure_future(self._fetch(endpoint))
            self._in_flight[endpoint] = task
            task.add_done_callback(functools.partial(self._settle, endpoint))
        else:
            logger.debug("Joining in-flight request for %s", endpoint)
        # Shielded: one caller giving up must not cancel the shared fetch
        return await asyncio.shield(task)

    def _settle(self, endpoint: str, task: asyncio.Task) -> None:
        if self._in_flight.get(endpoint) is task:
            del self._in_flight[endpoint]
        if not task.cancelled():
            task.exception()  # waiters re-raise it; avoids "never retrieved" noise

    async def _throttle(self) -> None:
        async with self._throttle_lock:
            wait = self._last_request_at + self.min_request_interval - monotonic()
            if wait > 0:
                await asyncio.sleep(wait)
            self._last_request_at = monotonic()

    def _backoff(self, error: UpstreamError, attempt: int) -> float:
        base = self.rate_limit_backoff if error.status_code == 429 else self.retry_backoff
        return base * (attempt + 1)

    async def _fetch(self, endpoint: str) -> Any:
        generation = self._generation
        path, params = split_endpoint(endpoint)
        last_error: UpstreamError | None = None

        for attempt in range(self.max_retries + 1):
            await self._throttle()
            try:
                data = await self._gateway.fetch(path, params)
            except UpstreamError as e:
                if not is_retryable(e):
                    raise
                last_error = e
                logger.warning(
                    "Upstream request attempt %d/%d failed for %s: %s",
                    attempt + 1,
                    self.max_retries + 1,
                    endpoint,
                    e.message,
                )
                if attempt < self.max_retries:
                    await asyncio.sleep(self._backoff(e, attempt))
                continue

            if generation == self._generation:
                now = monotonic()
                self._evict_expired(now)
                self._cache[endpoint] = CacheEntry(value=data, stored_at=now)
            return data

        logger.error(
            "Upstream request failed after %d attempts for %s", self.max_retries + 1, endpoint
        )
        raise UpstreamUnavailableError(endpoint, last_error.details or last_error.message) from (
            last_error
        )

    def _evict_expired(self, now: float) -> None:
        stale = [
            key for key, entry in self._cache.items() if not entry.is_fresh(now, self.cache_ttl)
        ]
        for key in stale:
            del self._cache[key]
        if stale:
            logger.debug("Evicted %d expired cache entries", len(stale))

    def clear_cache(self) -> int:
        """Drop all cached responses. Requests already in flight are not cached."""
        count = len(self._cache)
        self._cache.clear()
        self._generation += 1
        return count

    async def aclose(self) -> None:
        tasks = list(self._in_flight.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._in_flight.clear()

    # -- collection helpers ------------------------------------------------

    def _fail_open(self, time_range: str) -> list[TrendingCollection]:
        if self.use_fallback:
            logger.info("Serving fallback collections for %s", time_range)
            return fallback_collections(time_range)
        return []

    async def get_popular_collections(self, time_range: str = "1h") -> list[TrendingCollection]:
        """Popular collections for one timeframe, ranked in upstream order."""
        endpoint = f"{POPULAR_COLLECTIONS_PATH}?{urlencode({'timeRange': time_range})}"
        try:
            data = await self.request(endpoint)
        except Exception as e:
            logger.error("Failed to fetch popular collections for %s: %s", time_range, e)
            return self._fail_open(time_range)

        if not isinstance(data, list):
            logger.warning("Upstream returned non-list popular collections for %s", time_range)
            return self._fail_open(time_range)

        collections: list[TrendingCollection] = []
        for item in data:
            if not _has_valid_symbol(item):
                continue
            try:
                collections.append(_normalize_popular(item, len(collections) + 1, time_range))
            except ValidationError as e:
                logger.debug("Skipping malformed collection %r: %s", item.get("symbol"), e)

        logger.info("Fetched %d collections for %s", len(collections), time_range)
        return collections

    async def get_all_timeframe_collections(
        self, timeframes: Sequence[str] | None = None
    ) -> TimeframeCollections:
        """Fetch every timeframe concurrently and merge them.

        A bucket that fails yields an empty list; the others are still merged.
        """
        timeframes = list(timeframes or self.timeframes)
        results = await asyncio.gather(
            *(self.get_popular_collections(tf) for tf in timeframes),
            return_exceptions=True,
        )

        timeframe_data: dict[str, list[TrendingCollection]] = {}
        for timeframe, result in zip(timeframes, results, strict=True):
            if isinstance(result, BaseException):
                logger.warning("Failed to fetch %s collections: %s", timeframe, result)
                timeframe_data[timeframe] = []
            else:
                timeframe_data[timeframe] = result

        return TimeframeCollections(
            collections=merge_timeframes(timeframe_data, timeframes),
            timeframe_data=timeframe_data,
        )

    async def get_trending_collections(self, limit: int = 25) -> list[TrendingCollection]:
        endpoint = (
            f"{TRENDING_COLLECTIONS_PATH}?{urlencode({'timeRange': '24h', 'limit': limit})}"
        )
        try:
            data = await self.request(endpoint)
        except Exception as e:
            logger.error("Failed to fetch trending collections: %s", e)
            return []

        if not isinstance(data, list):
            logger.warning("Upstream returned non-list trending collections")
            return []

        collections: list[TrendingCollection] = []
        for item in data:
            if not _has_valid_symbol(item):
                continue
            try:
                collections.append(_normalize_trending(item, len(collections) + 1))
            except ValidationError as e:
                logger.debug("Skipping malformed collection %r: %s", item.get("symbol"), e)
        return collections

    async def get_collection_stats(self, symbol: str) -> Any:
        return await self.request(f"/collections/{quote(symbol, safe='')}/stats")

    async def get_collection_metadata(self, symbol: str) -> Any:
        return await self.request(f"/collections/{quote(symbol, safe='')}")
