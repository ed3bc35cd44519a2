"""
Health check and status endpoints.
"""
from fastapi import APIRouter, Request

from portal.core import settings
from portal.core.datetime_utils import utc_now

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """
    Health check endpoint.
    Reports whether the item bank was loaded and how many sessions are live.
    """
    service = getattr(request.app.state, "assessment_service", None)
    return {
        "status": "healthy" if service is not None else "degraded",
        "timestamp": utc_now().isoformat(),
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "item_bank_size": len(service.engine.item_bank) if service else 0,
        "active_sessions": len(service.sessions) if service else 0,
    }


@router.get("/ping")
async def ping():
    """
    Simple ping endpoint for basic connectivity testing.
    """
    return {"message": "pong"}
