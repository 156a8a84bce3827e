"""
Listings endpoints
"""
from fastapi import APIRouter, Depends, Query, Request
from starlette.datastructures import UploadFile
from typing import Any, Dict, List, Optional, Tuple
from app.api.dependencies import enforce_upload_rate_limit, get_listing_service
from app.api.schemas.listing import (
    DeleteImageRequest,
    ErrorResponse,
    ImageListsEnvelope,
    ListingBase,
    ListingEnvelope,
    MessageResponse,
    StatisticsResponse,
)
from app.core.config import settings
from app.core.errors import ValidationError
from app.services.listing_service import ListingService
from app.services.media_service import ImageFile
import logging

router = APIRouter(responses={
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    429: {"model": ErrorResponse},
})
logger = logging.getLogger(__name__)

# Multipart field carrying image files
IMAGE_FIELD = "images"


async def read_listing_payload(request: Request) -> Tuple[Dict[str, Any], List[ImageFile]]:
    """
    Split a request into plain fields and image buffers.

    Multipart and urlencoded forms may repeat a key to send a list; JSON
    bodies carry no files.
    """
    content_type = request.headers.get("content-type", "")

    if content_type.startswith(("multipart/form-data", "application/x-www-form-urlencoded")):
        form = await request.form(max_files=settings.MAX_IMAGES_PER_LISTING)
        fields: Dict[str, Any] = {}
        files: List[ImageFile] = []
        for key, value in form.multi_items():
            if isinstance(value, UploadFile):
                content = await value.read()
                # Browsers send an empty part when no file was chosen
                if key != IMAGE_FIELD or (not value.filename and not content):
                    continue
                files.append(ImageFile(
                    content=content,
                    filename=value.filename,
                    content_type=value.content_type,
                ))
                continue
            if key in fields:
                existing = fields[key]
                fields[key] = (existing if isinstance(existing, list) else [existing]) + [value]
            else:
                fields[key] = value
        return fields, files

    body = await request.body()
    if not body.strip():
        return {}, []
    try:
        payload = await request.json()
    except ValueError:
        raise ValidationError("Invalid JSON body")
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload, []


@router.get("", response_model=List[ListingBase])
async def get_listings(
    status: Optional[str] = Query(
        None, description="Filter by status (available, sold, reserved)"),
    listing_type: Optional[str] = Query(
        None, alias="type", description="Filter by land type"),
    location: Optional[str] = Query(
        None, description="Case-insensitive location substring"),
    service: ListingService = Depends(get_listing_service),
):
    """
    Get listings, newest first

    - **status**: Filter by status
    - **type**: Filter by land type (e.g. land-res, ranch)
    - **location**: Matches any listing whose location contains this text
    """
    listings = service.list_listings(status=status, listing_type=listing_type, location=location)
    return [listing.to_dict() for listing in listings]


@router.get("/statistics", response_model=StatisticsResponse)
async def get_statistics(service: ListingService = Depends(get_listing_service)):
    """
    Get listing counts, overall and per status and type
    """
    return {"success": True, "data": service.statistics()}


@router.get("/{listing_id}", response_model=ListingEnvelope)
async def get_listing(listing_id: str, service: ListingService = Depends(get_listing_service)):
    """
    Get a single listing by id
    """
    listing = service.get_listing(listing_id)
    return {"success": True, "data": listing.to_dict()}


@router.post(
    "",
    status_code=201,
    response_model=ListingEnvelope,
    dependencies=[Depends(enforce_upload_rate_limit)],
)
async def create_listing(request: Request, service: ListingService = Depends(get_listing_service)):
    """
    Create a listing

    Multipart form with listing fields and up to 10 files under **images**,
    or a JSON body when there are no images.
    """
    fields, files = await read_listing_payload(request)
    logger.info("Adding new listing (%s images attached)", len(files))
    listing = await service.create(fields, files)
    return {
        "success": True,
        "message": "Listing created successfully",
        "data": listing.to_dict(),
    }


@router.api_route(
    "/{listing_id}",
    methods=["PATCH", "PUT"],
    response_model=ListingEnvelope,
    dependencies=[Depends(enforce_upload_rate_limit)],
)
async def update_listing(
    listing_id: str,
    request: Request,
    service: ListingService = Depends(get_listing_service),
):
    """
    Partially update a listing

    Only the fields sent are changed. New files under **images** are appended;
    a JSON list under **images** keeps only those existing images.
    """
    fields, files = await read_listing_payload(request)
    logger.info("Updating listing %s (%s new images)", listing_id, len(files))
    listing = await service.update(listing_id, fields, files)
    return {
        "success": True,
        "message": "Listing updated successfully",
        "data": listing.to_dict(),
    }


@router.delete("/{listing_id}/image", response_model=ImageListsEnvelope)
async def delete_listing_image(
    listing_id: str,
    payload: DeleteImageRequest,
    service: ListingService = Depends(get_listing_service),
):
    """
    Remove one image from a listing

    - **mediaId**: media host id of the image
    """
    media_id = (payload.mediaId or payload.publicId or "").strip()
    if not media_id:
        raise ValidationError(errors=["mediaId is required"])

    listing = await service.delete_image(listing_id, media_id)
    return {
        "success": True,
        "message": "Image deleted successfully",
        "data": {"images": listing.images or [], "mediaIds": listing.media_ids or []},
    }


@router.delete("/{listing_id}", response_model=MessageResponse)
async def delete_listing(listing_id: str, service: ListingService = Depends(get_listing_service)):
    """
    Delete a listing and its images
    """
    outcomes = await service.delete(listing_id)
    failed = [o for o in outcomes if not o.ok]
    message = "Listing deleted successfully"
    if failed:
        message += f" ({len(failed)} of {len(outcomes)} images could not be removed from media storage)"
    return {"success": True, "message": message}
