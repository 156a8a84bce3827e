"""
Listing service
Orchestrates listing CRUD against the database and the media host
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import NotFoundError, StoreError, UploadError, ValidationError
from app.models.land_listing import LandListing
from app.services.listing_validation import (
    format_price,
    normalize_type,
    validate_listing_fields,
)
from app.services.media_service import (
    DeleteOutcome,
    ImageFile,
    MediaService,
    UploadedImage,
)

logger = logging.getLogger(__name__)


class ListingService:
    """Service class for listing operations"""

    def __init__(self, db: Session, media: MediaService):
        self.db = db
        self.media = media

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_listings(
        self,
        status: Optional[str] = None,
        listing_type: Optional[str] = None,
        location: Optional[str] = None,
    ) -> List[LandListing]:
        """
        Get listings, newest first

        Args:
            status: Exact status filter
            listing_type: Land type filter (aliases accepted)
            location: Case-insensitive substring of the location
        """
        query = self.db.query(LandListing)

        if status:
            query = query.filter(LandListing.status == status.strip().lower())

        if listing_type:
            canonical = normalize_type(listing_type) or listing_type.strip().lower()
            query = query.filter(LandListing.type == canonical)

        if location:
            query = query.filter(LandListing.location.ilike(f"%{location.strip()}%"))

        return query.order_by(LandListing.created_at.desc()).all()

    def get_listing(self, listing_id: str) -> LandListing:
        listing = self.db.query(LandListing).filter(
            LandListing.id == listing_id
        ).first()
        if not listing:
            raise NotFoundError("Listing not found")
        return listing

    def statistics(self) -> Dict[str, Any]:
        """Listing counts, overall and per status/type"""
        total = self.db.query(func.count(LandListing.id)).scalar() or 0
        by_status = dict(
            self.db.query(LandListing.status, func.count(LandListing.id))
            .group_by(LandListing.status).all()
        )
        by_type = dict(
            self.db.query(LandListing.type, func.count(LandListing.id))
            .group_by(LandListing.type).all()
        )
        return {
            'totalListings': total,
            'byStatus': by_status,
            'byType': by_type,
            'lastUpdated': datetime.now(timezone.utc).isoformat(),
        }

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create(self, fields: Dict[str, Any],
                     images: Sequence[ImageFile] = ()) -> LandListing:
        """
        Validate, upload images, then persist a new listing.

        A listing is created with however many uploads succeeded; if every
        attempted upload failed nothing is created.
        """
        result = validate_listing_fields(fields)
        if not result.ok:
            raise ValidationError(errors=result.errors)
        self._check_image_cap(len(images))

        uploaded = await self._upload_batch(images)

        try:
            listing = LandListing(**result.data)
            listing.set_images([u.url for u in uploaded], [u.media_id for u in uploaded])
            self.db.add(listing)
            self._commit()
            self.db.refresh(listing)
        except Exception:
            self.db.rollback()
            await self._discard([u.media_id for u in uploaded], "listing creation failed")
            raise

        logger.info("Created listing %s with %s images", listing.id, len(uploaded))
        return listing

    async def update(self, listing_id: str, fields: Dict[str, Any],
                     images: Sequence[ImageFile] = ()) -> LandListing:
        """
        Apply a partial update. New images are appended; an explicit
        ``images`` list keeps only those existing images.
        """
        listing = self.get_listing(listing_id)

        result = validate_listing_fields(fields, partial=True)
        if not result.ok:
            raise ValidationError(errors=result.errors)
        data = dict(result.data)

        current_images = list(listing.images or [])
        current_media_ids = list(listing.media_ids or [])
        dropped: List[str] = []
        if 'images' in data:
            current_images, current_media_ids, dropped = self._apply_keep_list(
                current_images, current_media_ids, data.pop('images'))

        if 'price' in data and data['price'] is None:
            data['price'] = format_price(data.get('price_num', listing.price_num))

        self._check_image_cap(len(current_images) + len(images))

        uploaded = await self._upload_batch(images)

        try:
            for attribute, value in data.items():
                setattr(listing, attribute, value)
            listing.set_images(
                current_images + [u.url for u in uploaded],
                current_media_ids + [u.media_id for u in uploaded],
            )
            listing.updated_at = datetime.now(timezone.utc)
            self._commit()
            self.db.refresh(listing)
        except Exception:
            self.db.rollback()
            await self._discard([u.media_id for u in uploaded], "listing update failed")
            raise

        if dropped:
            await self._discard(dropped, "images removed by update")

        logger.info("Updated listing %s (%s new images)", listing.id, len(uploaded))
        return listing

    async def delete_image(self, listing_id: str, media_id: str) -> LandListing:
        """
        Remove one image from a listing. The record is saved first; remote
        deletion follows and may fail without affecting the result.
        """
        listing = self.get_listing(listing_id)

        media_ids = list(listing.media_ids or [])
        if media_id not in media_ids:
            raise NotFoundError("Image not found in listing")

        position = media_ids.index(media_id)
        images = list(listing.images or [])
        del media_ids[position]
        del images[position]

        try:
            listing.set_images(images, media_ids)
            listing.updated_at = datetime.now(timezone.utc)
            self._commit()
            self.db.refresh(listing)
        except Exception:
            self.db.rollback()
            raise

        await self._discard([media_id], "image removed")
        return listing

    async def delete(self, listing_id: str) -> List[DeleteOutcome]:
        """
        Delete a listing and, best-effort, its remote images. The record is
        removed even if every remote deletion fails.
        """
        listing = self.get_listing(listing_id)

        outcomes = await self._discard(list(listing.media_ids or []), "listing deleted")

        try:
            self.db.delete(listing)
            self._commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info("Deleted listing %s", listing_id)
        return outcomes

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _commit(self):
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.error("Integrity error while saving listing: %s", e)
            raise StoreError("Duplicate entry found", conflict=True)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Database error while saving listing: %s", e, exc_info=True)
            raise StoreError("Database error")

    @staticmethod
    def _check_image_cap(count: int):
        if count > settings.MAX_IMAGES_PER_LISTING:
            raise ValidationError(
                errors=[f"Cannot have more than {settings.MAX_IMAGES_PER_LISTING} images"])

    @staticmethod
    def _apply_keep_list(
        images: List[str], media_ids: List[str], keep: List[str]
    ) -> Tuple[List[str], List[str], List[str]]:
        """
        Keep only the images in ``keep`` (in the client's order), carrying the
        media id stored at each kept image's position.

        Returns (images, media_ids, dropped_media_ids).
        """
        used = set()
        kept_images, kept_media_ids, errors = [], [], []
        for url in keep:
            position = next(
                (i for i, existing in enumerate(images) if existing == url and i not in used),
                None,
            )
            if position is None:
                errors.append(f"Image not found in listing: {url}")
                continue
            used.add(position)
            kept_images.append(images[position])
            kept_media_ids.append(media_ids[position])
        if errors:
            raise ValidationError(errors=errors)
        dropped = [m for i, m in enumerate(media_ids) if i not in used]
        return kept_images, kept_media_ids, dropped

    async def _upload_batch(self, images: Sequence[ImageFile]) -> List[UploadedImage]:
        """
        Upload concurrently and keep the successes in input order. Raises
        UploadError only when files were sent and none succeeded.
        """
        if not images:
            return []

        outcomes = await self.media.upload_many(images)
        uploaded = [o.image for o in outcomes if o.ok]
        if not uploaded:
            failures = [o.error for o in outcomes if o.error is not None]
            reasons = {e.reason for e in failures}
            reason = reasons.pop() if len(reasons) == 1 else 'remote'
            raise UploadError(
                "Failed to upload any images. Please try again.",
                reason=reason,
                errors=[e.message for e in failures],
            )
        return uploaded

    async def _discard(self, media_ids: List[str], context: str) -> List[DeleteOutcome]:
        """Best-effort remote deletion; never raises"""
        if not media_ids:
            return []
        logger.info("Deleting %s remote images (%s)", len(media_ids), context)
        try:
            outcomes = await self.media.delete_many(media_ids)
        except Exception as e:
            logger.error("Remote image cleanup failed (%s): %s", context, e, exc_info=True)
            return [DeleteOutcome(media_id=m, ok=False, error=str(e)) for m in media_ids]
        failed = [o.media_id for o in outcomes if not o.ok]
        if failed:
            logger.warning("Could not delete %s remote images: %s", len(failed), failed)
        return outcomes
