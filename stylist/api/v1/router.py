from __future__ import annotations

from fastapi import APIRouter

from stylist.api.v1.endpoints import chat
from stylist.api.v1.endpoints import outfits

api_router = APIRouter(prefix="/v1")
api_router.include_router(outfits.router, tags=["outfits"])
api_router.include_router(chat.router, tags=["chat"])
