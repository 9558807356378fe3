from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse

from nftscout.api.deps import get_collection_service, get_trending_aggregator
from nftscout.core.config import get_settings
from nftscout.schemas.collection import Timeframe, TimeframeCollections, TrendingCollection
from nftscout.schemas.common import CacheClearResponse, ErrorResponse
from nftscout.services.collection_cache import CollectionCacheService
from nftscout.services.trending import TrendingAggregator

router = APIRouter()
settings = get_settings()


@router.get("/popular", response_model=list[TrendingCollection])
async def popular_collections(
    time_range: Timeframe = Query("1h", alias="timeRange"),
    service: CollectionCacheService = Depends(get_collection_service),
) -> list[TrendingCollection]:
    return await service.get_popular_collections(time_range)


@router.get("/trending", response_model=list[TrendingCollection])
async def trending_collections(
    limit: int = Query(25, ge=1, le=100),
    service: CollectionCacheService = Depends(get_collection_service),
) -> list[TrendingCollection]:
    return await service.get_trending_collections(limit)


@router.get(
    "/timeframes",
    response_model=TimeframeCollections,
    responses={502: {"model": ErrorResponse}},
)
async def timeframe_collections(
    aggregator: TrendingAggregator = Depends(get_trending_aggregator),
) -> TimeframeCollections | JSONResponse:
    """Merged trending view across all configured timeframes (session cached)."""
    result = await aggregator.load()
    if result is None:
        return JSONResponse(
            status_code=502, content=ErrorResponse(error=aggregator.error).model_dump()
        )
    return result


@router.delete("/cache", response_model=CacheClearResponse)
def clear_collection_cache(
    service: CollectionCacheService = Depends(get_collection_service),
    aggregator: TrendingAggregator = Depends(get_trending_aggregator),
) -> CacheClearResponse:
    """Drop cached upstream responses and the session trending cache (dev only)."""
    if settings.is_production:
        raise HTTPException(status_code=403, detail="Cache clearing is disabled in production")
    count = service.clear_cache()
    aggregator.invalidate()
    return CacheClearResponse(message=f"Cleared {count} cached upstream responses")


@router.get("/{symbol}/stats")
async def collection_stats(
    symbol: str,
    service: CollectionCacheService = Depends(get_collection_service),
) -> Any:
    return await service.get_collection_stats(symbol)


@router.get("/{symbol}")
async def collection_metadata(
    symbol: str,
    service: CollectionCacheService = Depends(get_collection_service),
) -> Any:
    return await service.get_collection_metadata(symbol)
