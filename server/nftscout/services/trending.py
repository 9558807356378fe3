"""Trending collections with a session-scoped cache.

The session cache holds the merged timeframe data for several minutes so views
that are torn down and rebuilt within a session do not refetch. It is separate
from (and longer-lived than) the collection service's per-endpoint cache.
"""

import asyncio
import json
import logging
from collections.abc import Sequence

from nftscout.core.config import get_settings
from nftscout.core.time import now_ms
from nftscout.schemas.collection import TimeframeCollections, TrendingCollection
from nftscout.services.collection_cache import CollectionCacheService
from nftscout.services.session_store import KeyValueStore

logger = logging.getLogger(__name__)

CACHE_KEY = "trending-collections-cache"
LOAD_ERROR_MESSAGE = "Failed to load collections"


class TrendingAggregator:
    def __init__(
        self,
        service: CollectionCacheService,
        store: KeyValueStore,
        ttl: float | None = None,
        timeframes: Sequence[str] | None = None,
    ) -> None:
        settings = get_settings()
        self._service = service
        self._store = store
        self.ttl = settings.trending_cache_ttl_seconds if ttl is None else ttl
        self.timeframes = list(timeframes or settings.timeframes)

        self.collections: list[TrendingCollection] = []
        self.timeframe_data: dict[str, list[TrendingCollection]] = {}
        self.loading = False
        self.error: str | None = None

    async def load(self) -> TimeframeCollections | None:
        """Use the session cache when it is fresh, otherwise fetch."""
        # Store I/O may hit the filesystem; keep it off the event loop
        cached = await asyncio.to_thread(self._read_cache)
        if cached is not None:
            logger.debug("Using cached trending collections")
            self._apply(cached)
            return cached
        return await self.refresh()

    async def refresh(self) -> TimeframeCollections | None:
        """Fetch every configured timeframe and replace the cached copy."""
        self.loading = True
        try:
            result = await self._service.get_all_timeframe_collections(self.timeframes)
        except Exception:
            logger.exception("Error fetching trending collections")
            self.collections = []
            self.timeframe_data = {}
            self.error = LOAD_ERROR_MESSAGE
            return None
        finally:
            self.loading = False

        self._apply(result)
        await asyncio.to_thread(self._write_cache, result)
        return result

    def invalidate(self) -> None:
        try:
            self._store.delete(CACHE_KEY)
        except Exception as e:
            logger.warning("Failed to clear trending cache: %s", e)

    def _apply(self, result: TimeframeCollections) -> None:
        self.collections = result.collections
        self.timeframe_data = result.timeframe_data
        self.error = None

    def _read_cache(self) -> TimeframeCollections | None:
        try:
            raw = self._store.get(CACHE_KEY)
        except Exception as e:
            logger.warning("Failed to read trending cache: %s", e)
            return None
        if raw is None:
            return None

        try:
            payload = json.loads(raw)
            timestamp = int(payload["timestamp"])
            data = TimeframeCollections.model_validate(payload["data"])
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("Discarding unreadable trending cache: %s", e)
            return None

        age_ms = now_ms() - timestamp
        if age_ms < 0 or age_ms >= self.ttl * 1000:
            logger.debug("Trending cache expired (age %d ms)", age_ms)
            return None
        if not any(data.timeframe_data.values()):
            return None
        return data

    def _write_cache(self, result: TimeframeCollections) -> None:
        # An all-empty result is not worth pinning for the whole TTL
        if not any(result.timeframe_data.values()):
            return
        payload = {
            "data": result.model_dump(mode="json", by_alias=True),
            "timestamp": now_ms(),
        }
        try:
            self._store.set(CACHE_KEY, json.dumps(payload), ttl=self.ttl)
        except Exception as e:
            logger.warning("Failed to write trending cache: %s", e)
