from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Rarity = Literal["Common", "Rare", "Epic", "Legendary"]


class SearchResult(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    mint_address: str
    nft_name: str
    score: float  # relevance, usually 0-1 but not clamped by the backend
    image: str | None = None
    price: float | None = None
    collection: str | None = None
    rarity: Rarity | None = None
    volume_24h: float | None = Field(default=None, alias="volume24h")
    last_sale: float | None = Field(default=None, alias="lastSale")


class SearchResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    results: list[SearchResult] = []
    total: int = 0
    page: int = 1
    has_more: bool = Field(default=False, alias="hasMore")
