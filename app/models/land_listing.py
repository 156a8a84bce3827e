"""
SQLAlchemy model for land listings
"""
import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, String, Text, Float, DateTime, JSON, Index
from sqlalchemy.orm import validates
from app.core.config import settings
from app.core.database import Base
from app.core.errors import ValidationError

# Canonical land types, as stored
LISTING_TYPES = (
    'land-res',
    'land-comm',
    'ranch',
    'plot',
    'subdivision-ready',
    'title-deed-ready',
)

LISTING_STATUSES = ('available', 'sold', 'reserved')


def _utcnow():
    return datetime.now(timezone.utc)


def _new_id():
    return uuid.uuid4().hex


def _as_number(value):
    # Whole prices serialize as integers
    if value is not None and float(value).is_integer():
        return int(value)
    return value


class LandListing(Base):
    """
    Model for storing land-for-sale listings
    """
    __tablename__ = "land_listings"

    # Primary key
    id = Column(String(32), primary_key=True, default=_new_id)

    # Basic information
    title = Column(String(200), nullable=False)
    location = Column(Text, nullable=False, index=True)  # lower-cased
    type = Column(String(50), nullable=False, index=True)
    status = Column(String(20), nullable=False, default='available', index=True)

    # Pricing
    price = Column(Text, nullable=False)  # Display string, 'KES 850,000'
    price_num = Column(Float, nullable=False, index=True)

    # Land details
    plot_size = Column(Text, nullable=False)
    title_type = Column(Text, nullable=False, default='')
    amenities = Column(JSON, nullable=False, default=list)
    verification_checklist = Column(JSON, nullable=False, default=list)
    documents_available = Column(JSON, nullable=False, default=list)
    map_link = Column(Text, nullable=True)
    description = Column(Text, nullable=False, default='')

    # Contact
    whatsapp = Column(String(15), nullable=False, default=settings.DEFAULT_WHATSAPP)

    # Images, parallel lists
    images = Column(JSON, nullable=False, default=list)
    media_ids = Column(JSON, nullable=False, default=list)

    # Timestamps
    created_at = Column(DateTime(timezone=True), default=_utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        Index('ix_land_listings_location_type_status', 'location', 'type', 'status'),
    )

    @validates('type')
    def _validate_type(self, key, value):
        if value not in LISTING_TYPES:
            raise ValidationError(errors=[f"{value} is not a valid land type"])
        return value

    @validates('status')
    def _validate_status(self, key, value):
        if value not in LISTING_STATUSES:
            raise ValidationError(errors=[f"{value} is not a valid status"])
        return value

    @validates('price_num')
    def _validate_price_num(self, key, value):
        if value is None or value < 0:
            raise ValidationError(errors=["Price must be positive"])
        return value

    @validates('images', 'media_ids')
    def _validate_image_cap(self, key, value):
        if value is not None and len(value) > settings.MAX_IMAGES_PER_LISTING:
            raise ValidationError(
                errors=[f"Cannot have more than {settings.MAX_IMAGES_PER_LISTING} images"])
        return value

    def set_images(self, images, media_ids):
        """Replace both image lists together"""
        if len(images) != len(media_ids):
            raise ValueError("images and media_ids must have the same length")
        self.images = list(images)
        self.media_ids = list(media_ids)

    def __repr__(self):
        return f"<LandListing(id='{self.id}', title='{self.title}', location='{self.location}')>"

    def to_dict(self):
        """Convert model to dictionary"""
        return {
            'id': self.id,
            'title': self.title,
            'location': self.location,
            'type': self.type,
            'status': self.status,
            'price': self.price,
            'priceNum': _as_number(self.price_num),
            'plotSize': self.plot_size,
            'titleType': self.title_type or '',
            'amenities': list(self.amenities or []),
            'verificationChecklist': list(self.verification_checklist or []),
            'documentsAvailable': list(self.documents_available or []),
            'mapLink': self.map_link,
            'description': self.description or '',
            'whatsapp': self.whatsapp,
            'images': list(self.images or []),
            'mediaIds': list(self.media_ids or []),
            'createdAt': self.created_at.isoformat() if self.created_at else None,
            'updatedAt': self.updated_at.isoformat() if self.updated_at else None,
        }
