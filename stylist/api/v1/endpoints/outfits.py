from __future__ import annotations

from fastapi import APIRouter, Depends

from stylist.api.deps import get_stylist_service
from stylist.schemas.outfit import OutfitOut, OutfitRequestIn
from stylist.schemas.product import OutfitProductsIn, ScoredProductOut
from stylist.services.stylist import StylistService

router = APIRouter()


@router.post("/outfits/generate", response_model=OutfitOut)
async def generate_outfit(
    payload: OutfitRequestIn,
    service: StylistService = Depends(get_stylist_service),
) -> OutfitOut:
    outfit = await service.generate_outfit(payload.to_domain())
    return OutfitOut.model_validate(outfit)


@router.post("/outfits/products", response_model=list[ScoredProductOut])
async def outfit_products(
    payload: OutfitProductsIn,
    service: StylistService = Depends(get_stylist_service),
) -> list[ScoredProductOut]:
    products = await service.search_products_for_outfit(
        payload.outfit.to_domain(),
        budget=payload.budget,
        gender=payload.gender,
        marketplaces=payload.marketplaces,
    )
    return [ScoredProductOut.from_scored(p) for p in products]
