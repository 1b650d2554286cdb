from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from stylist.schemas.outfit import OutfitOut
from stylist.services.domain import Marketplace, ScoredProduct


class OutfitProductsIn(BaseModel):
    outfit: OutfitOut
    budget: Literal["low", "medium", "high"] | None = None
    gender: Literal["female", "male"] | None = None
    marketplaces: list[Marketplace] | None = None


class ScoredProductOut(BaseModel):
    id: str
    name: str
    price: float
    original_price: float | None = None
    discount: int | None = None
    rating: float
    reviews: int
    image_url: str
    purchase_url: str
    marketplace: Marketplace
    colors: list[str] = Field(default_factory=list)
    sizes: list[str] = Field(default_factory=list)
    brand: str = ""
    relevance_score: float
    match_reason: str
    item_name: str = ""
    synthetic: bool = False

    @classmethod
    def from_scored(cls, scored: ScoredProduct) -> "ScoredProductOut":
        p = scored.product
        return cls(
            id=p.id,
            name=p.name,
            price=p.price,
            original_price=p.original_price,
            discount=p.discount,
            rating=p.rating,
            reviews=p.reviews,
            image_url=p.image_url,
            purchase_url=p.purchase_url,
            marketplace=p.marketplace,
            colors=p.colors,
            sizes=p.sizes,
            brand=p.brand,
            relevance_score=scored.relevance_score,
            match_reason=scored.match_reason,
            item_name=scored.item_name,
            synthetic=p.synthetic,
        )
