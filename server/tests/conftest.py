"""Pytest configuration and fixtures for nftscout tests."""

from collections.abc import Callable, Generator
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from fastapi.testclient import TestClient

from nftscout.main import app
from nftscout.services.collection_cache import CollectionCacheService
from nftscout.services.upstream_gateway import UpstreamGateway

PRIMARY_URL = "https://upstream.test/v2"
SECONDARY_URL = "https://upstream.test/v3/rtp/solana"


@pytest.fixture(scope="function")
def client() -> Generator[TestClient, None, None]:
    """Test client; dependency overrides set by a test are cleared afterwards."""
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def mock_gateway() -> MagicMock:
    """Gateway double whose ``fetch`` is an AsyncMock tests can program."""
    gateway = MagicMock(spec=UpstreamGateway)
    gateway.fetch = AsyncMock(return_value=[])
    return gateway


@pytest.fixture
def make_service() -> Callable[..., CollectionCacheService]:
    """Build a CollectionCacheService with no spacing or backoff delays."""

    def _make(gateway, **overrides) -> CollectionCacheService:
        options = {
            "cache_ttl": 30.0,
            "min_request_interval": 0.0,
            "max_retries": 2,
            "retry_backoff": 0.0,
            "rate_limit_backoff": 0.0,
            "use_fallback": False,
            "timeframes": ["1h", "1d", "7d"],
        }
        options.update(overrides)
        return CollectionCacheService(gateway, **options)

    return _make


@pytest.fixture
def make_gateway() -> Callable[..., UpstreamGateway]:
    """Build an UpstreamGateway backed by an httpx.MockTransport handler."""

    def _make(handler) -> UpstreamGateway:
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return UpstreamGateway(
            client=http_client,
            primary_url=PRIMARY_URL,
            secondary_url=SECONDARY_URL,
            user_agent="nftscout-tests",
        )

    return _make
