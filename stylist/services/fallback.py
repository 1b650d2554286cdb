from __future__ import annotations

import logging
import random
from typing import Callable

from stylist.services.domain import (
    CandidateProduct,
    GeneratedOutfit,
    Marketplace,
    OutfitItemSpec,
    OutfitRequest,
    ScoredProduct,
    calculate_total_price,
    new_outfit_id,
)
from stylist.services.marketplaces import search_page_url
from stylist.services.outfit_templates import TEMPLATES, OutfitTemplate, find_matching_template
from stylist.services.vocabulary import BODY_TYPE_FITS

logger = logging.getLogger(__name__)

SYNTHETIC_CONFIDENCE = 0.7


class FallbackLadder:
    """Synthetic stand-ins used whenever a real data source fails."""

    def __init__(
        self,
        rng: random.Random | None = None,
        clock: Callable[[], int] | None = None,
        templates: tuple[OutfitTemplate, ...] = TEMPLATES,
    ) -> None:
        self._rng = rng or random.Random()
        self._clock = clock or (lambda: 0)
        self._templates = templates

    def synthetic_outfit(self, request: OutfitRequest) -> GeneratedOutfit:
        template = find_matching_template(
            request.gender,
            request.style_preferences,
            request.occasion,
            request.season,
            request.body_type,
            templates=self._templates,
        )
        outfit_id = new_outfit_id(self._rng, self._clock())
        if template is not None:
            logger.info("fallback_outfit_from_template template=%s", template.id)
            return GeneratedOutfit(
                id=outfit_id,
                name=template.name,
                description=template.description,
                occasion=request.occasion,
                season=request.season,
                items=template.items,
                total_price=template.total_price,
                style_notes=template.style_notes,
                color_palette=template.color_palette,
                confidence=SYNTHETIC_CONFIDENCE,
                source="template",
            )

        logger.info("fallback_outfit_generic gender=%s occasion=%s", request.gender, request.occasion)
        items = generic_items(request)
        return GeneratedOutfit(
            id=outfit_id,
            name="Базовый образ",
            description="Универсальный комплект из базовых вещей",
            occasion=request.occasion,
            season=request.season,
            items=items,
            total_price=calculate_total_price(items),
            style_notes="Базовые вещи нейтральных оттенков легко сочетаются между собой",
            color_palette=tuple(request.color_preferences) or ("черный", "белый", "серый"),
            confidence=SYNTHETIC_CONFIDENCE,
            source="generic",
        )

    def synthetic_products(
        self,
        item: OutfitItemSpec,
        marketplace: Marketplace,
        query: str,
    ) -> list[ScoredProduct]:
        rng = self._rng
        url = search_page_url(marketplace, query or item.name)
        key = _slug(f"{item.category} {item.name}")
        colors = list(item.colors) or ["черный"]

        price = rng.randint(1000, 6000)
        discount = rng.randint(10, 40)
        recommended = CandidateProduct(
            id=f"fallback_{key}_1",
            name=f"{item.name} (рекомендуемый)",
            price=float(price),
            original_price=float(round(price / (1 - discount / 100))),
            discount=discount,
            rating=round(rng.uniform(4.0, 4.5), 1),
            reviews=rng.randint(50, 549),
            marketplace=marketplace,
            purchase_url=url,
            colors=colors,
            sizes=["S", "M", "L", "XL"],
            category=item.category,
            synthetic=True,
        )
        popular = CandidateProduct(
            id=f"fallback_{key}_2",
            name=f"{item.name} (популярный)",
            price=float(rng.randint(800, 4800)),
            rating=round(rng.uniform(4.2, 4.5), 1),
            reviews=rng.randint(100, 599),
            marketplace=marketplace,
            purchase_url=url,
            colors=colors,
            sizes=["S", "M", "L"],
            category=item.category,
            synthetic=True,
        )
        logger.info("fallback_products_synthetic item=%s marketplace=%s", item.name, marketplace.value)
        return [
            ScoredProduct(recommended, 0.8, "рекомендуемый товар", item_name=item.name),
            ScoredProduct(popular, 0.7, "популярный товар", item_name=item.name),
        ]


def generic_items(request: OutfitRequest) -> tuple[OutfitItemSpec, ...]:
    fit = BODY_TYPE_FITS.get(request.body_type, "стандартный")
    style = request.style_preferences[0] if request.style_preferences else request.occasion or "casual"
    color = request.color_preferences[0] if request.color_preferences else "черный"
    top = "Блузка" if request.gender == "female" else "Рубашка"
    return (
        OutfitItemSpec("top", top, "Базовый верх", (color,), style, fit, "2000-4000"),
        OutfitItemSpec("bottom", "Брюки", "Базовые брюки прямого кроя", ("черный",), style, fit, "3000-6000"),
        OutfitItemSpec("footwear", "Кроссовки", "Универсальная обувь", ("белый",), style, "стандартный", "4000-8000"),
        OutfitItemSpec("accessory", "Сумка", "Универсальный аксессуар", ("бежевый",), style, "стандартный", "1500-3000"),
    )


def _slug(value: str) -> str:
    return "_".join(value.lower().split()) or "item"
