from fastapi import APIRouter, Depends, HTTPException, Query, Request

from nftscout.api.deps import get_search_client
from nftscout.core.config import get_settings
from nftscout.core.errors import SearchError
from nftscout.core.rate_limit import limiter
from nftscout.schemas.search import SearchResponse
from nftscout.services.search_client import SearchClient

router = APIRouter()
settings = get_settings()


@router.get("", response_model=SearchResponse)
@limiter.limit(lambda: f"{settings.search_rate_limit_per_minute}/minute")
async def search(
    request: Request,
    q: str = Query(..., min_length=1, max_length=200),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.search_page_size, ge=1, le=100),
    client: SearchClient = Depends(get_search_client),
) -> SearchResponse:
    query = q.strip()
    if not query:
        raise HTTPException(status_code=422, detail="Query must not be blank")
    try:
        return await client.search(query, page=page, limit=limit)
    except SearchError as e:
        raise HTTPException(status_code=502, detail=str(e)) from e
