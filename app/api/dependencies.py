"""
Shared API dependencies
"""
from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session
from app.core.config import settings
from app.core.database import get_db
from app.core.rate_limiter import SlidingWindowRateLimiter, resolve_client_ip
from app.services.listing_service import ListingService
from app.services.media_service import MediaService

# Stricter limiter for endpoints that accept image uploads
upload_limiter = SlidingWindowRateLimiter(
    limit=settings.UPLOAD_RATE_LIMIT_MAX_REQUESTS,
    window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
)


def get_media_service() -> MediaService:
    """Get the shared media service instance"""
    return MediaService.get_instance()


def get_listing_service(
    db: Session = Depends(get_db),
    media: MediaService = Depends(get_media_service),
) -> ListingService:
    """Get listing service bound to the request's database session"""
    return ListingService(db, media)


async def enforce_upload_rate_limit(request: Request):
    """Reject callers that exceed the upload request budget"""
    if not settings.RATE_LIMIT_ENABLED:
        return
    client_ip = resolve_client_ip(request, trusted_proxy=settings.TRUST_PROXY_HEADERS)
    allowed, retry_after = upload_limiter.hit(f"upload:{client_ip}")
    if not allowed:
        raise HTTPException(
            status_code=429,
            detail="Too many upload requests, please try again later.",
            headers={"Retry-After": str(retry_after)},
        )
