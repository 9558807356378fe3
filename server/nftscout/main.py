import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi import Request as FastAPIRequest
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded

from nftscout.api import api_router
from nftscout.core.config import get_settings
from nftscout.core.errors import UpstreamError
from nftscout.core.rate_limit import limiter, rate_limit_exceeded_handler
from nftscout.services.collection_cache import CollectionCacheService
from nftscout.services.search_client import SearchClient
from nftscout.services.session_store import create_session_store
from nftscout.services.upstream_gateway import UpstreamGateway

settings = get_settings()

# Module loggers (cache, gateway, search) emit INFO diagnostics instead of being
# silenced by Python's default WARNING level.
logging.getLogger("nftscout").setLevel(logging.INFO)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the process-wide services once and share them through app.state."""
    gateway = UpstreamGateway()
    app.state.gateway = gateway
    app.state.collection_service = CollectionCacheService(gateway)
    app.state.session_store = create_session_store(settings.session_store_path)
    app.state.search_client = SearchClient()
    logger.info(
        "Services started (upstream=%s, search=%s)",
        gateway.primary_url,
        app.state.search_client.url,
    )
    try:
        yield
    finally:
        await app.state.collection_service.aclose()
        await app.state.search_client.aclose()
        await gateway.aclose()


app = FastAPI(
    title="nftscout API",
    description="Search and trending-collection discovery for a Solana NFT marketplace",
    version="0.1.0",
    lifespan=lifespan,
    # Disable API docs in production
    docs_url=None if settings.is_production else "/docs",
    redoc_url=None if settings.is_production else "/redoc",
    openapi_url=None if settings.is_production else "/openapi.json",
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)


@app.exception_handler(UpstreamError)
async def upstream_error_handler(request: FastAPIRequest, exc: UpstreamError) -> JSONResponse:
    """Relay upstream failures with their status code and body."""
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def global_exception_handler(request: FastAPIRequest, exc: Exception) -> JSONResponse:
    """Catch unhandled exceptions and return a generic 500 response."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    content = {"error": "Internal server error"}
    if not settings.is_production:
        content["details"] = str(exc)
    return JSONResponse(status_code=500, content=content)


# CORS
if settings.cors_origins.strip() == "*":
    # Allow all origins for local development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["GET", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )
else:
    origins = [origin.strip() for origin in settings.cors_origins.split(",")]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=False,
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["Accept", "Content-Type"],
    )

app.include_router(api_router, prefix="/api")


@app.get("/health")
def health_check():
    return {"status": "ok"}
