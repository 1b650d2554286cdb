from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from stylist.core.config import Settings
from stylist.services.domain import CandidateProduct, OutfitItemSpec, ScoredProduct
from stylist.services.vocabulary import canonical_category, normalize_text


@dataclass(frozen=True, slots=True)
class RelevanceWeights:
    category: float = 0.3
    name: float = 0.4
    color: float = 0.2
    style: float = 0.1
    min_score: float = 0.3

    @classmethod
    def from_settings(cls, s: Settings) -> "RelevanceWeights":
        return cls(
            category=s.relevance_weight_category,
            name=s.relevance_weight_name,
            color=s.relevance_weight_color,
            style=s.relevance_weight_style,
            min_score=s.min_relevance_score,
        )


def _name_tokens(text: str) -> list[str]:
    return [word for word in normalize_text(text).split() if len(word) > 2]


def category_matches(item: OutfitItemSpec, product: CandidateProduct) -> bool:
    item_category = canonical_category(item.category) or canonical_category(item.name)
    product_category = product.category or canonical_category(product.name)
    if item_category and product_category:
        return item_category == product_category
    raw = normalize_text(item.category)
    name = normalize_text(product.name)
    return bool(raw) and (raw in name or (bool(name) and name in raw))


def score_product(
    item: OutfitItemSpec,
    product: CandidateProduct,
    weights: RelevanceWeights = RelevanceWeights(),
) -> ScoredProduct:
    product_name = normalize_text(product.name)
    score = 0.0
    reasons: list[str] = []

    if category_matches(item, product):
        score += weights.category
        reasons.append("категория")

    tokens = _name_tokens(item.name)
    if tokens:
        matched = sum(1 for token in tokens if token in product_name)
        if matched:
            fraction = matched / len(tokens)
            score += weights.name * fraction
            reasons.append(f"название ({round(fraction * 100)}%)")

    item_colors = [normalize_text(c) for c in item.colors if c.strip()]
    if item_colors:
        product_colors = [normalize_text(c) for c in product.colors]
        matched = sum(1 for color in item_colors if any(color in pc for pc in product_colors))
        if matched:
            fraction = matched / len(item_colors)
            score += weights.color * fraction
            reasons.append(f"цвет ({round(fraction * 100)}%)")

    style = normalize_text(item.style)
    if style and style in product_name:
        score += weights.style
        reasons.append("стиль")

    score = min(max(score, 0.0), 1.0)
    return ScoredProduct(
        product=product,
        relevance_score=round(score, 4),
        match_reason=", ".join(reasons) or "нет совпадений",
        item_name=item.name,
    )


def _in_budget(product: CandidateProduct, budget: tuple[float, float] | None) -> bool:
    if budget is None:
        return False
    low, high = budget
    return low <= product.price <= high


def rank_products(
    item: OutfitItemSpec,
    candidates: Iterable[CandidateProduct],
    weights: RelevanceWeights = RelevanceWeights(),
    budget: tuple[float, float] | None = None,
) -> list[ScoredProduct]:
    """Score, filter by threshold, sort, and drop (marketplace, id) duplicates."""
    scored = [score_product(item, product, weights) for product in candidates]
    scored = [s for s in scored if s.relevance_score >= weights.min_score]
    scored.sort(
        key=lambda s: (
            -s.relevance_score,
            -s.product.rating,
            not _in_budget(s.product, budget),
            -(s.product.discount or 0),
        )
    )
    return dedupe_scored(scored)


def dedupe_scored(scored: Iterable[ScoredProduct]) -> list[ScoredProduct]:
    seen: set[tuple[str, str]] = set()
    out: list[ScoredProduct] = []
    for entry in scored:
        if entry.key in seen:
            continue
        seen.add(entry.key)
        out.append(entry)
    return out
