from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass

import httpx

from stylist.core.errors import NetworkError
from stylist.services.cache import TTLCache
from stylist.services.domain import CandidateProduct, Marketplace, OutfitItemSpec
from stylist.services.marketplaces import SearchQuery, Tier, default_tiers, normalize_product
from stylist.services.vocabulary import (
    CATEGORY_SEARCH_TERMS,
    GENDER_KEYWORDS,
    OCCASION_KEYWORDS,
    SEASON_KEYWORDS,
    STYLE_KEYWORDS,
    canonical_category,
    normalize_text,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SearchContext:
    occasion: str = ""
    season: str = ""
    gender: str | None = None


@dataclass(frozen=True, slots=True)
class Ok:
    products: list[CandidateProduct]


@dataclass(frozen=True, slots=True)
class Err:
    error: Exception


TierResult = Ok | Err


def build_search_query(item: OutfitItemSpec, context: SearchContext) -> str:
    parts: list[str] = [item.name]
    term = CATEGORY_SEARCH_TERMS.get(canonical_category(f"{item.category} {item.name}"))
    if term:
        parts.append(term)
    parts.extend(item.colors)
    parts.append(STYLE_KEYWORDS.get(normalize_text(item.style), ""))
    parts.append(OCCASION_KEYWORDS.get(normalize_text(context.occasion), ""))
    parts.append(SEASON_KEYWORDS.get(normalize_text(context.season), ""))
    parts.append(GENDER_KEYWORDS.get(context.gender or "", ""))

    words: list[str] = []
    seen: set[str] = set()
    for part in parts:
        for word in part.split():
            key = normalize_text(word)
            if key and key not in seen:
                seen.add(key)
                words.append(word)
    return " ".join(words)


class ProductResolver:
    """Walks a marketplace's tiers in order and returns the first non-empty result."""

    def __init__(
        self,
        http: httpx.AsyncClient,
        *,
        tiers: dict[Marketplace, list[Tier]] | None = None,
        rng: random.Random | None = None,
        cache: TTLCache[list[CandidateProduct]] | None = None,
        page_size: int = 20,
        dest: str = "-1257786",
    ) -> None:
        self._http = http
        self._tiers = tiers if tiers is not None else default_tiers()
        self._rng = rng or random.Random()
        self._cache = cache if cache is not None else TTLCache(ttl_seconds=300)
        self._page_size = page_size
        self._dest = dest

    async def resolve(
        self,
        item: OutfitItemSpec,
        context: SearchContext,
        marketplace: Marketplace,
    ) -> list[CandidateProduct]:
        cache_key = f"{marketplace.value}|{item.cache_key}|{context.occasion}|{context.season}"
        cached = self._cache.get(cache_key)
        if cached is not None:
            logger.info("product_cache_hit marketplace=%s item=%s", marketplace.value, item.name)
            return list(cached)

        query = SearchQuery(
            text=build_search_query(item, context),
            item=item,
            gender=context.gender,
            limit=self._page_size,
            dest=self._dest,
        )
        for tier in self._tiers.get(marketplace, []):
            result = await self.attempt(tier, marketplace, query)
            if isinstance(result, Ok) and result.products:
                logger.info(
                    "product_tier_ok marketplace=%s tier=%s count=%d",
                    marketplace.value,
                    tier.name,
                    len(result.products),
                )
                self._cache.set(cache_key, result.products)
                return list(result.products)

        logger.warning("product_tiers_exhausted marketplace=%s query=%s", marketplace.value, query.text)
        return []

    async def attempt(self, tier: Tier, marketplace: Marketplace, query: SearchQuery) -> TierResult:
        try:
            raw = await asyncio.wait_for(tier.fetch(self._http, query, self._rng), timeout=tier.timeout)
        except asyncio.TimeoutError:
            logger.warning("product_tier_timeout tier=%s timeout=%.1f", tier.name, tier.timeout)
            return Err(NetworkError(f"{tier.name} timed out after {tier.timeout}s"))
        except Exception as exc:
            logger.warning("product_tier_failed tier=%s error=%s", tier.name, exc)
            return Err(exc)

        products: list[CandidateProduct] = []
        seen: set[str] = set()
        for index, record in enumerate(raw):
            try:
                product = normalize_product(record, marketplace, index, self._rng)
            except Exception as exc:
                logger.warning("product_record_skipped tier=%s index=%d error=%s", tier.name, index, exc)
                continue
            if product is not None and product.id not in seen:
                seen.add(product.id)
                products.append(product)
        return Ok(products)
