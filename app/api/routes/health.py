"""
Health and version endpoints
"""
import asyncio
import time
from datetime import datetime, timezone
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from app.api.dependencies import get_media_service
from app.core.config import settings
from app.core.database import check_connection, get_db
from app.services.media_service import MediaService
import logging

router = APIRouter()
logger = logging.getLogger(__name__)

STARTED_AT = time.monotonic()


def _uptime() -> dict:
    seconds = time.monotonic() - STARTED_AT
    return {
        "seconds": round(seconds, 1),
        "formatted": f"{int(seconds // 60)}m {int(seconds % 60)}s",
    }


@router.get("/health")
async def health():
    """Liveness probe"""
    return {
        "success": True,
        "status": "healthy",
        "service": settings.APP_NAME,
        "environment": settings.ENVIRONMENT,
        "uptime": _uptime(),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/health/deep")
async def deep_health(
    db: Session = Depends(get_db),
    media: MediaService = Depends(get_media_service),
):
    """
    Readiness probe: database and media host connectivity

    Returns 503 when either dependency is unreachable.
    """
    try:
        database_ok = await asyncio.wait_for(
            asyncio.to_thread(check_connection, db.get_bind()),
            timeout=settings.HEALTH_CHECK_TIMEOUT_SECONDS,
        )
    except asyncio.TimeoutError:
        logger.warning("Database ping timed out")
        database_ok = False
    media_ok = await media.ping(timeout=settings.HEALTH_CHECK_TIMEOUT_SECONDS)

    healthy = database_ok and media_ok
    body = {
        "success": healthy,
        "status": "healthy" if healthy else "unhealthy",
        "checks": {
            "database": "healthy" if database_ok else "unhealthy",
            "media": "healthy" if media_ok else "unhealthy",
        },
        "uptime": _uptime(),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if not healthy:
        body["message"] = "One or more dependencies are unavailable"
    return JSONResponse(status_code=200 if healthy else 503, content=body)


@router.get("/version")
async def version():
    """Service name and version"""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "storage": "cloudinary",
    }
