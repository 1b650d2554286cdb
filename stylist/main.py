from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from stylist.api.v1.router import api_router
from stylist.core.config import settings
from stylist.core.logging import configure_logging
from stylist.middleware.request_context import RequestContextMiddleware
from stylist.services.stylist import StylistService

configure_logging(settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="Stylist API", version="0.1.0")
app.add_middleware(RequestContextMiddleware)
cors_origins = {
    settings.frontend_url.rstrip("/"),
    "http://localhost:5173",
    "http://127.0.0.1:5173",
}
extra_origins = [
    origin.strip().rstrip("/")
    for origin in settings.cors_extra_origins.split(",")
    if origin.strip()
]
cors_origins.update(extra_origins)
app.add_middleware(
    CORSMiddleware,
    allow_origins=sorted(cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(api_router)


@app.on_event("startup")
async def startup() -> None:
    app.state.stylist = StylistService.from_settings(settings)
    if not settings.chat_credentials_configured:
        logger.warning("chat_credentials_missing_fallback_mode")
    logger.info("startup_complete marketplaces=%s", ",".join(m.value for m in app.state.stylist.marketplaces))


@app.on_event("shutdown")
async def shutdown() -> None:
    service = getattr(app.state, "stylist", None)
    if service is not None:
        await service.aclose()


@app.get("/healthz")
def healthz() -> dict:
    return {"status": "ok"}
