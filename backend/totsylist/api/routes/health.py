"""Health check endpoint.

Reports whether Gemini is configured without calling it, so the check stays
fast and free. Always returns 200 so load balancers keep routing.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter

from totsylist.config import settings

logger = structlog.get_logger()

router = APIRouter(tags=["health"])

VERSION = "0.1.0"


@router.get("/health")
async def health_check() -> dict:
    """Health check endpoint: confirms the API process is alive."""
    return {
        "status": "ok",
        "version": VERSION,
        "environment": settings.environment,
        "gemini": "configured" if settings.gemini_api_key else "not_configured",
        "model": settings.gemini_model,
    }
