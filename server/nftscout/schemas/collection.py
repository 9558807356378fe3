"""Collection models returned to the presentation layer (camelCase on the wire)."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Timeframe = Literal["1h", "1d", "7d", "30d"]


class TrendingCollection(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    symbol: str
    name: str
    image: str
    # Monetary fields are in SOL (converted from lamports)
    floor_price: float | None = Field(default=None, alias="floorPrice")
    volume_all: float | None = Field(default=None, alias="volumeAll")
    volume_1d: float | None = Field(default=None, alias="volume1d")
    avg_price_24hr: float | None = Field(default=None, alias="avgPrice24hr")
    top_bid: float | None = Field(default=None, alias="topBid")
    listed_count: int | None = Field(default=None, alias="listedCount")
    sales_1d: int | None = Field(default=None, alias="sales1d")
    floor_change_1d: float | None = Field(default=None, alias="floorChange1d")
    sparkline: list[float] = []
    description: str = ""
    twitter: str = ""
    discord: str = ""
    website: str = ""
    verified: bool = False
    featured: bool = False
    has_cnfts: bool = Field(default=False, alias="hasCNFTs")
    rank: int | None = None
    time_range: Timeframe | Literal["24h"] | None = Field(default=None, alias="timeRange")
    primary_timeframe: Timeframe | None = Field(default=None, alias="primaryTimeframe")
    other_timeframes: list[Timeframe] = Field(default_factory=list, alias="otherTimeframes")


class TimeframeCollections(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    collections: list[TrendingCollection] = []
    timeframe_data: dict[str, list[TrendingCollection]] = Field(
        default_factory=dict, alias="timeframeData"
    )
