"""System endpoints for health checks."""

from datetime import datetime, timezone
from fastapi import APIRouter

from ..core.config import settings

router = APIRouter(prefix="/system", tags=["System"])


@router.get("/health", summary="Service health check")
async def health_check() -> dict:
    """Check the health and status of the API."""
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc),
        "version": settings.APP_VERSION,
        "app_name": settings.APP_NAME
    }
