from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from stylist.services.domain import GeneratedOutfit, OutfitItemSpec, OutfitRequest


class OutfitRequestIn(BaseModel):
    gender: Literal["female", "male"] = "female"
    body_type: str = ""
    measurements: dict[str, float] = Field(default_factory=dict)
    style_preferences: list[str] = Field(default_factory=list)
    color_preferences: list[str] = Field(default_factory=list)
    occasion: str = "casual"
    season: str = "spring"
    budget: Literal["low", "medium", "high"] = "medium"

    def to_domain(self) -> OutfitRequest:
        return OutfitRequest(
            gender=self.gender,
            body_type=self.body_type,
            measurements=dict(self.measurements),
            style_preferences=tuple(self.style_preferences),
            color_preferences=tuple(self.color_preferences),
            occasion=self.occasion,
            season=self.season,
            budget=self.budget,
        )


class OutfitItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    category: str
    name: str
    description: str = ""
    colors: list[str] = Field(default_factory=list)
    style: str = ""
    fit: str = ""
    price: str = ""

    def to_domain(self) -> OutfitItemSpec:
        return OutfitItemSpec(
            category=self.category,
            name=self.name,
            description=self.description,
            colors=tuple(self.colors),
            style=self.style,
            fit=self.fit,
            price=self.price,
        )


class OutfitOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: str
    occasion: str
    season: str
    items: list[OutfitItemOut] = Field(min_length=1)
    total_price: str
    style_notes: str
    color_palette: list[str] = Field(default_factory=list)
    confidence: float = Field(ge=0.0, le=1.0)
    source: str = "model"
    why_it_works: str = ""
    is_fallback: bool = False

    def to_domain(self) -> GeneratedOutfit:
        return GeneratedOutfit(
            id=self.id,
            name=self.name,
            description=self.description,
            occasion=self.occasion,
            season=self.season,
            items=tuple(item.to_domain() for item in self.items),
            total_price=self.total_price,
            style_notes=self.style_notes,
            color_palette=tuple(self.color_palette),
            confidence=self.confidence,
            source=self.source,
            why_it_works=self.why_it_works,
        )
