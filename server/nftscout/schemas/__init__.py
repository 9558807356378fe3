from nftscout.schemas.collection import Timeframe, TimeframeCollections, TrendingCollection
from nftscout.schemas.common import CacheClearResponse, ErrorResponse
from nftscout.schemas.search import SearchResponse, SearchResult

__all__ = [
    "Timeframe",
    "TimeframeCollections",
    "TrendingCollection",
    "CacheClearResponse",
    "ErrorResponse",
    "SearchResponse",
    "SearchResult",
]
