"""
Maintenance service
Repairs stored listings whose display price or media ids have drifted
"""
import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional
from urllib.parse import urlparse

from sqlalchemy.orm import Session

from app.models.land_listing import LandListing
from app.services.listing_validation import format_price

logger = logging.getLogger(__name__)

# Cloudinary transformation parameter keys, as in "c_limit" or "q_auto:good"
TRANSFORMATION_KEYS = {
    "a", "ac", "af", "ar", "b", "bo", "br", "c", "co", "cs", "d", "dl", "dn", "dpr",
    "du", "e", "eo", "f", "fl", "fn", "fps", "g", "h", "if", "ki", "l", "o", "p",
    "pg", "q", "r", "so", "sp", "t", "u", "vc", "vs", "w", "x", "y", "z",
}


def _is_transformation(segment: str) -> bool:
    if "," in segment:
        return True
    key, sep, _ = segment.partition("_")
    return bool(sep) and key in TRANSFORMATION_KEYS


def parse_cloudinary_public_id(url: str) -> str:
    """
    Extract the public id from a Cloudinary delivery URL, e.g.
    https://res.cloudinary.com/demo/image/upload/v123/land/plot.jpg -> land/plot
    Returns '' for anything else.
    """
    raw = (url or "").strip()
    if not raw:
        return ""
    parsed = urlparse(raw)
    if "cloudinary.com" not in (parsed.netloc or "").lower():
        return ""
    path = (parsed.path or "").strip("/")
    if "/upload/" not in path:
        return ""
    parts = [p for p in path.split("/upload/", 1)[-1].split("/") if p]
    # Drop transformation segments and the version
    while parts and _is_transformation(parts[0]):
        parts = parts[1:]
    if parts and re.match(r'^v\d+$', parts[0]):
        parts = parts[1:]
    if not parts:
        return ""
    final = "/".join(parts)
    if "." in parts[-1]:
        final = final.rsplit(".", 1)[0]
    return final


@dataclass
class RepairReport:
    listing_id: str
    changes: List[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.changes)


def repair_listing(listing: LandListing) -> RepairReport:
    """
    Fix one listing in place:
    - regenerate a missing or zero display price from price_num
    - rebuild media_ids from Cloudinary URLs when the image lists disagree;
      images whose id cannot be recovered are dropped
    """
    report = RepairReport(listing_id=listing.id)

    if listing.price_num is not None and listing.price_num > 0 and (
            not listing.price or not re.search(r'[1-9]', listing.price)):
        new_price = format_price(listing.price_num)
        report.changes.append(f"price: {listing.price!r} -> {new_price!r}")
        listing.price = new_price

    images = list(listing.images or [])
    media_ids = list(listing.media_ids or [])
    if len(images) != len(media_ids):
        kept_images, kept_ids = [], []
        for url in images:
            public_id = parse_cloudinary_public_id(url)
            if public_id:
                kept_images.append(url)
                kept_ids.append(public_id)
            else:
                report.changes.append(f"dropped image without media id: {url}")
        listing.set_images(kept_images, kept_ids)
        report.changes.append(
            f"media ids rebuilt: {len(media_ids)} -> {len(kept_ids)}")

    return report


class MaintenanceService:
    """Batch repairs over the listings table"""

    def __init__(self, db: Session):
        self.db = db

    def repair_all(self, dry_run: bool = False,
                   limit: Optional[int] = None) -> List[RepairReport]:
        query = self.db.query(LandListing).order_by(LandListing.created_at.asc())
        if limit:
            query = query.limit(limit)

        reports = []
        for listing in query.all():
            report = repair_listing(listing)
            if report.changed:
                logger.info("Listing %s: %s", listing.id, "; ".join(report.changes))
                reports.append(report)

        if dry_run:
            self.db.rollback()
            logger.info("Dry run: %s listings would change", len(reports))
        else:
            self.db.commit()
            logger.info("Repaired %s listings", len(reports))
        return reports
