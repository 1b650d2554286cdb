from __future__ import annotations

from fastapi import APIRouter, Depends

from stylist.api.deps import get_stylist_service
from stylist.services.stylist import StylistService

router = APIRouter()


@router.get("/chat/status")
async def chat_status(service: StylistService = Depends(get_stylist_service)) -> dict:
    return await service.chat.check_connection()
