from __future__ import annotations

import random
import re
import string
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable


class Marketplace(str, Enum):
    WILDBERRIES = "wildberries"
    OZON = "ozon"
    LAMODA = "lamoda"


BUDGET_RANGES: dict[str, tuple[float, float]] = {
    "low": (1000.0, 5000.0),
    "medium": (3000.0, 15000.0),
    "high": (8000.0, 50000.0),
}


@dataclass(frozen=True, slots=True)
class OutfitRequest:
    gender: str = "female"
    body_type: str = ""
    measurements: dict[str, float] = field(default_factory=dict)
    style_preferences: tuple[str, ...] = ()
    color_preferences: tuple[str, ...] = ()
    occasion: str = "casual"
    season: str = "spring"
    budget: str = "medium"


@dataclass(frozen=True, slots=True)
class OutfitItemSpec:
    category: str
    name: str
    description: str = ""
    colors: tuple[str, ...] = ()
    style: str = ""
    fit: str = ""
    price: str = ""

    @property
    def cache_key(self) -> str:
        return "|".join([self.category.lower(), self.name.lower(), ",".join(c.lower() for c in self.colors)])


@dataclass(frozen=True, slots=True)
class GeneratedOutfit:
    id: str
    name: str
    description: str
    occasion: str
    season: str
    items: tuple[OutfitItemSpec, ...]
    total_price: str
    style_notes: str
    color_palette: tuple[str, ...]
    confidence: float
    source: str = "model"
    why_it_works: str = ""

    @property
    def is_fallback(self) -> bool:
        return self.source in {"template", "generic"}


@dataclass(slots=True)
class CandidateProduct:
    id: str
    name: str
    price: float
    marketplace: Marketplace
    purchase_url: str
    image_url: str = "/placeholder.svg"
    original_price: float | None = None
    discount: int | None = None
    rating: float = 0.0
    reviews: int = 0
    colors: list[str] = field(default_factory=list)
    sizes: list[str] = field(default_factory=list)
    category: str = ""
    brand: str = ""
    synthetic: bool = False


@dataclass(frozen=True, slots=True)
class ScoredProduct:
    product: CandidateProduct
    relevance_score: float
    match_reason: str
    item_name: str = ""

    @property
    def key(self) -> tuple[str, str]:
        return (self.product.marketplace.value, self.product.id)


_NUMBER_RE = re.compile(r"\d[\d\s]*(?:[.,]\d+)?")


def parse_price_range(text: str | None) -> tuple[float, float] | None:
    """`"2000-4000"` -> (2000.0, 4000.0); a single number gives a degenerate range."""
    if not text:
        return None
    numbers: list[float] = []
    for match in _NUMBER_RE.findall(text):
        cleaned = re.sub(r"\s+", "", match).replace(",", ".")
        try:
            numbers.append(float(cleaned))
        except ValueError:
            continue
    if not numbers:
        return None
    low, high = numbers[0], numbers[1] if len(numbers) > 1 else numbers[0]
    return (min(low, high), max(low, high))


def budget_range(item: OutfitItemSpec, budget: str | None = None) -> tuple[float, float] | None:
    parsed = parse_price_range(item.price)
    if parsed is not None and parsed[1] > 0:
        return parsed
    if budget:
        return BUDGET_RANGES.get(budget.lower())
    return None


_ID_ALPHABET = string.ascii_lowercase + string.digits


def new_outfit_id(rng: random.Random, epoch_ms: int) -> str:
    return f"outfit_{epoch_ms}_{''.join(rng.choices(_ID_ALPHABET, k=9))}"


def calculate_total_price(items: Iterable[OutfitItemSpec], default: str = "5000 ₽") -> str:
    total = 0.0
    for item in items:
        parsed = parse_price_range(item.price)
        if parsed is not None:
            total += (parsed[0] + parsed[1]) / 2
    if total <= 0:
        return default
    return f"{round(total)} ₽"
