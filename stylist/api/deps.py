from __future__ import annotations

from fastapi import HTTPException, Request, status

from stylist.services.stylist import StylistService


def get_stylist_service(request: Request) -> StylistService:
    service = getattr(request.app.state, "stylist", None)
    if service is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Stylist service is not ready")
    return service
