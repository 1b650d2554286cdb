from __future__ import annotations

import asyncio
import logging
import random
from typing import Any, Callable, Sequence

import httpx

from stylist.core.config import Settings
from stylist.core.context import outfit_id_ctx
from stylist.core.errors import StylistError
from stylist.services.cache import TTLCache
from stylist.services.chat_client import ChatClient, ChatConfig, now_ms
from stylist.services.domain import (
    GeneratedOutfit,
    Marketplace,
    OutfitItemSpec,
    OutfitRequest,
    ScoredProduct,
    budget_range,
)
from stylist.services.fallback import FallbackLadder
from stylist.services.marketplaces import default_tiers
from stylist.services.outfit_parser import parse_outfit_response
from stylist.services.outfit_prompt import build_outfit_prompt
from stylist.services.product_resolver import ProductResolver, SearchContext, build_search_query
from stylist.services.relevance import RelevanceWeights, dedupe_scored, rank_products
from stylist.services.vocabulary import detect_gender

logger = logging.getLogger(__name__)


def parse_marketplaces(names: Sequence[str]) -> list[Marketplace]:
    markets: list[Marketplace] = []
    for name in names:
        try:
            market = Marketplace(name.strip().lower())
        except ValueError:
            logger.warning("unknown_marketplace_ignored name=%s", name)
            continue
        if market not in markets:
            markets.append(market)
    return markets or [Marketplace.WILDBERRIES]


class StylistService:
    """Outfit generation and product matching; both operations always resolve to a result."""

    def __init__(
        self,
        chat: ChatClient,
        resolver: ProductResolver,
        ladder: FallbackLadder,
        *,
        weights: RelevanceWeights = RelevanceWeights(),
        marketplaces: Sequence[Marketplace] = (Marketplace.WILDBERRIES,),
        products_per_item: int = 5,
        generation_timeout_sec: float = 40.0,
        rng: random.Random | None = None,
        clock: Callable[[], int] = now_ms,
        owned_clients: Sequence[httpx.AsyncClient] = (),
    ) -> None:
        self.chat = chat
        self.resolver = resolver
        self.ladder = ladder
        self.weights = weights
        self.marketplaces = list(marketplaces) or [Marketplace.WILDBERRIES]
        self.products_per_item = max(1, products_per_item)
        self.generation_timeout_sec = generation_timeout_sec
        self._rng = rng or random.Random()
        self._clock = clock
        self._owned_clients = list(owned_clients)

    @classmethod
    def from_settings(cls, s: Settings) -> "StylistService":
        rng = random.Random()
        chat_http = httpx.AsyncClient(verify=s.chat_verify_tls)
        market_http = httpx.AsyncClient(follow_redirects=True)
        resolver = ProductResolver(
            market_http,
            tiers=default_tiers(s.marketplace_timeout_sec, s.html_timeout_sec),
            rng=rng,
            cache=TTLCache(ttl_seconds=s.product_cache_ttl_sec),
            page_size=s.marketplace_page_size,
            dest=s.wb_dest,
        )
        return cls(
            ChatClient(ChatConfig.from_settings(s), chat_http),
            resolver,
            FallbackLadder(rng=rng, clock=now_ms),
            weights=RelevanceWeights.from_settings(s),
            marketplaces=parse_marketplaces(s.enabled_marketplaces),
            products_per_item=s.products_per_item,
            generation_timeout_sec=s.generation_timeout_sec,
            rng=rng,
            owned_clients=(chat_http, market_http),
        )

    async def aclose(self) -> None:
        for client in self._owned_clients:
            await client.aclose()

    async def generate_outfit(self, request: OutfitRequest) -> GeneratedOutfit:
        prompt = build_outfit_prompt(request)
        try:
            text = await asyncio.wait_for(self.chat.generate_text(prompt), timeout=self.generation_timeout_sec)
        except asyncio.TimeoutError:
            logger.warning("outfit_generation_timeout_using_fallback timeout=%.1f", self.generation_timeout_sec)
            outfit = self.ladder.synthetic_outfit(request)
        except StylistError as exc:
            logger.warning("outfit_generation_failed_using_fallback error=%s", exc)
            outfit = self.ladder.synthetic_outfit(request)
        except Exception:
            logger.exception("outfit_generation_crashed_using_fallback")
            outfit = self.ladder.synthetic_outfit(request)
        else:
            outfit = parse_outfit_response(
                text,
                request,
                fallback=self.ladder.synthetic_outfit,
                rng=self._rng,
                epoch_ms=self._clock(),
            )

        token = outfit_id_ctx.set(outfit.id)
        try:
            logger.info(
                "outfit_generated source=%s items=%d confidence=%.2f",
                outfit.source,
                len(outfit.items),
                outfit.confidence,
            )
        finally:
            outfit_id_ctx.reset(token)
        return outfit

    async def search_products_for_outfit(
        self,
        outfit: GeneratedOutfit,
        *,
        budget: str | None = None,
        gender: str | None = None,
        marketplaces: Sequence[Marketplace] | None = None,
    ) -> list[ScoredProduct]:
        markets = list(marketplaces or self.marketplaces)
        context = SearchContext(
            occasion=outfit.occasion,
            season=outfit.season,
            gender=gender or detect_gender(f"{outfit.name} {outfit.description}"),
        )
        token = outfit_id_ctx.set(outfit.id)
        try:
            groups = await asyncio.gather(
                *(self._products_for_item(item, context, markets, budget) for item in outfit.items)
            )
            results = _merge_groups(groups, lambda index: self._refill(outfit.items[index], context, markets))
            logger.info("outfit_products_ready items=%d products=%d", len(outfit.items), len(results))
            return results
        finally:
            outfit_id_ctx.reset(token)

    async def _products_for_item(
        self,
        item: OutfitItemSpec,
        context: SearchContext,
        markets: list[Marketplace],
        budget: str | None,
    ) -> list[ScoredProduct]:
        batches: list[Any] = await asyncio.gather(
            *(self.resolver.resolve(item, context, market) for market in markets),
            return_exceptions=True,
        )
        candidates = []
        for market, batch in zip(markets, batches):
            if isinstance(batch, Exception):
                logger.warning("product_search_failed marketplace=%s item=%s error=%s", market.value, item.name, batch)
                continue
            candidates.extend(batch)

        ranked = rank_products(item, candidates, self.weights, budget_range(item, budget))
        if not ranked:
            logger.warning(
                "product_search_empty_using_fallback item=%s candidates=%d",
                item.name,
                len(candidates),
            )
            ranked = self.ladder.synthetic_products(item, markets[0], build_search_query(item, context))
        return ranked[: self.products_per_item]

    def _refill(self, item: OutfitItemSpec, context: SearchContext, markets: list[Marketplace]) -> list[ScoredProduct]:
        logger.info("product_slot_taken_by_other_items_using_fallback item=%s", item.name)
        return self.ladder.synthetic_products(item, markets[0], build_search_query(item, context))[: self.products_per_item]


def _merge_groups(
    groups: Sequence[list[ScoredProduct]],
    refill: Callable[[int], list[ScoredProduct]],
) -> list[ScoredProduct]:
    """Concatenate per-item results without repeating a product; a slot emptied by that is refilled."""
    seen: set[tuple[str, str]] = set()
    merged: list[ScoredProduct] = []
    for index, group in enumerate(groups):
        fresh = dedupe_scored(entry for entry in group if entry.key not in seen)
        if not fresh and group:
            fresh = refill(index)
        for entry in fresh:
            seen.add(entry.key)
        merged.extend(fresh)
    return merged
