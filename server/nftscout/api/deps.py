"""Request-scoped access to the process-wide services built in the lifespan."""

from fastapi import Depends, Request

from nftscout.services.collection_cache import CollectionCacheService
from nftscout.services.search_client import SearchClient
from nftscout.services.session_store import KeyValueStore
from nftscout.services.trending import TrendingAggregator
from nftscout.services.upstream_gateway import UpstreamGateway


def get_gateway(request: Request) -> UpstreamGateway:
    return request.app.state.gateway


def get_collection_service(request: Request) -> CollectionCacheService:
    return request.app.state.collection_service


def get_session_store(request: Request) -> KeyValueStore:
    return request.app.state.session_store


def get_search_client(request: Request) -> SearchClient:
    return request.app.state.search_client


def get_trending_aggregator(
    service: CollectionCacheService = Depends(get_collection_service),
    store: KeyValueStore = Depends(get_session_store),
) -> TrendingAggregator:
    """A fresh aggregator per request over the shared service and session store."""
    return TrendingAggregator(service, store)
