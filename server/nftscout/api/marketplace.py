"""Local proxy to the upstream marketplace API (GET only)."""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from nftscout.api.deps import get_gateway
from nftscout.core.config import get_settings
from nftscout.core.errors import UpstreamError
from nftscout.core.rate_limit import limiter
from nftscout.schemas.common import ErrorResponse
from nftscout.services.upstream_gateway import UpstreamGateway

router = APIRouter()
settings = get_settings()
logger = logging.getLogger(__name__)

PROXY_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE"]
ERROR_RESPONSES = {status: {"model": ErrorResponse} for status in (404, 405, 500, 503)}


@router.api_route("/{path:path}", methods=PROXY_METHODS, responses=ERROR_RESPONSES)
@limiter.limit(lambda: f"{settings.proxy_rate_limit_per_minute}/minute")
async def proxy(
    request: Request,
    path: str,
    gateway: UpstreamGateway = Depends(get_gateway),
) -> JSONResponse:
    """Forward path and query string upstream; relay the JSON body verbatim."""
    try:
        data = await gateway.fetch(
            path, params=request.query_params.multi_items(), method=request.method
        )
    except UpstreamError as e:
        return JSONResponse(status_code=e.status_code, content=e.to_dict())
    except Exception as e:
        logger.exception("Marketplace proxy error for %s", path)
        return JSONResponse(
            status_code=500,
            content={"error": "Failed to fetch from upstream marketplace API", "details": str(e)},
        )
    return JSONResponse(content=data)
