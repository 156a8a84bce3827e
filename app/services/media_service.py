"""
Media upload service
Wraps Cloudinary uploads/deletions for listing images
"""
import asyncio
import io
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence
from urllib.parse import urlparse

import cloudinary
import cloudinary.api
import cloudinary.uploader
from PIL import Image, UnidentifiedImageError

from app.core.config import settings
from app.core.errors import UploadError

logger = logging.getLogger(__name__)

# Pillow format name -> stored format
ALLOWED_FORMATS = {
    'JPEG': 'jpeg',
    'PNG': 'png',
    'WEBP': 'webp',
    'GIF': 'gif',
}

# Bounded dimensions, automatic quality and delivery format
UPLOAD_TRANSFORMATION = [
    {'width': 1920, 'height': 1080, 'crop': 'limit'},
    {'quality': 'auto:good'},
    {'fetch_format': 'auto'},
]


@dataclass
class ImageFile:
    """An incoming image buffer"""
    content: bytes
    filename: Optional[str] = None
    content_type: Optional[str] = None


@dataclass
class UploadedImage:
    url: str
    media_id: str
    width: Optional[int] = None
    height: Optional[int] = None
    format: Optional[str] = None
    byte_size: Optional[int] = None
    original_name: Optional[str] = None


@dataclass
class UploadOutcome:
    """Result of one upload in a batch, tagged with its input position"""
    index: int
    filename: Optional[str]
    image: Optional[UploadedImage] = None
    error: Optional[UploadError] = None

    @property
    def ok(self) -> bool:
        return self.image is not None


@dataclass
class DeleteOutcome:
    media_id: str
    ok: bool
    error: Optional[str] = None


def configure_cloudinary():
    """Apply credentials from settings to the Cloudinary SDK"""
    if settings.CLOUDINARY_URL:
        # cloudinary://<api_key>:<api_secret>@<cloud_name>
        parsed = urlparse(settings.CLOUDINARY_URL)
        cloudinary.config(
            cloud_name=parsed.hostname,
            api_key=parsed.username,
            api_secret=parsed.password,
            secure=True,
        )
        logger.info("Cloudinary configured via CLOUDINARY_URL")
    elif settings.CLOUDINARY_CLOUD_NAME:
        cloudinary.config(
            cloud_name=settings.CLOUDINARY_CLOUD_NAME,
            api_key=settings.CLOUDINARY_API_KEY,
            api_secret=settings.CLOUDINARY_API_SECRET,
            secure=True,
        )
        logger.info("Cloudinary configured with individual credentials")
    else:
        logger.warning("Cloudinary credentials not configured")


def detect_image_format(content: bytes) -> Optional[str]:
    """Sniff the raster format of ``content``; None when not an allowed image"""
    try:
        with Image.open(io.BytesIO(content)) as img:
            return ALLOWED_FORMATS.get(img.format)
    except (UnidentifiedImageError, OSError):
        return None


class MediaService:
    """Upload and delete listing images on the media host"""

    _instance: Optional['MediaService'] = None

    def __init__(
        self,
        folder: Optional[str] = None,
        timeout: Optional[float] = None,
        max_bytes: Optional[int] = None,
    ):
        self.folder = folder or settings.CLOUDINARY_FOLDER
        self.timeout = timeout or settings.CLOUDINARY_TIMEOUT_SECONDS
        self.max_bytes = max_bytes or settings.MAX_UPLOAD_BYTES

    @classmethod
    def get_instance(cls) -> 'MediaService':
        """Get or create the shared media service"""
        if cls._instance is None:
            configure_cloudinary()
            cls._instance = cls()
        return cls._instance

    def check_file(self, image: ImageFile, position: int = 1) -> str:
        """
        Reject a buffer before any network call. Returns the detected format.
        """
        if not image.content:
            raise UploadError(f"File {position} is empty", reason="empty")
        if len(image.content) > self.max_bytes:
            limit_mb = self.max_bytes // (1024 * 1024)
            raise UploadError(
                f"File {position} exceeds {limit_mb}MB limit", reason="size")
        image_format = detect_image_format(image.content)
        if image_format is None:
            raise UploadError(
                f"File {position} is not an allowed image (jpeg, png, webp, gif)",
                reason="format")
        return image_format

    async def upload(self, image: ImageFile, folder: Optional[str] = None,
                     position: int = 1) -> UploadedImage:
        """Upload one buffer, raising UploadError on rejection or failure"""
        self.check_file(image, position)
        logger.info("Uploading file %s (%.2fMB)", position,
                    len(image.content) / 1024 / 1024)
        try:
            result = await asyncio.wait_for(
                asyncio.to_thread(
                    cloudinary.uploader.upload,
                    io.BytesIO(image.content),
                    folder=folder or self.folder,
                    resource_type='image',
                    transformation=UPLOAD_TRANSFORMATION,
                    timeout=self.timeout,
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            raise UploadError(f"File {position} upload timed out", reason="timeout")
        except Exception as e:
            raise UploadError(f"File {position} upload failed: {e}", reason="remote")

        logger.info("File %s uploaded: %s", position, result.get('public_id'))
        return UploadedImage(
            url=result['secure_url'],
            media_id=result['public_id'],
            width=result.get('width'),
            height=result.get('height'),
            format=result.get('format'),
            byte_size=result.get('bytes'),
            original_name=image.filename,
        )

    async def upload_many(self, images: Sequence[ImageFile],
                          folder: Optional[str] = None) -> List[UploadOutcome]:
        """
        Upload every buffer concurrently. Each file succeeds or fails on its
        own; outcomes come back in input order.
        """

        async def attempt(index: int, image: ImageFile) -> UploadOutcome:
            try:
                uploaded = await self.upload(image, folder=folder, position=index + 1)
                return UploadOutcome(index=index, filename=image.filename, image=uploaded)
            except UploadError as e:
                logger.error("Failed to upload file %s (%s): %s",
                             index + 1, image.filename, e.message)
                return UploadOutcome(index=index, filename=image.filename, error=e)

        outcomes = await asyncio.gather(
            *(attempt(i, image) for i, image in enumerate(images)))
        succeeded = sum(1 for o in outcomes if o.ok)
        if images:
            logger.info("Uploaded %s/%s files", succeeded, len(images))
        return sorted(outcomes, key=lambda o: o.index)

    async def delete(self, media_id: str) -> bool:
        """Best-effort removal of one asset; failures are logged, never raised"""
        try:
            result = await asyncio.wait_for(
                asyncio.to_thread(cloudinary.uploader.destroy, media_id, invalidate=True),
                timeout=self.timeout,
            )
        except Exception as e:
            logger.warning("Failed to delete media %s: %s", media_id, e)
            return False
        if result.get('result') != 'ok':
            logger.warning("Media deletion for %s returned: %s", media_id, result.get('result'))
            return False
        logger.info("Deleted media %s", media_id)
        return True

    async def delete_many(self, media_ids: Sequence[str]) -> List[DeleteOutcome]:
        """Delete assets concurrently, one outcome per id"""

        async def attempt(media_id: str) -> DeleteOutcome:
            try:
                ok = await self.delete(media_id)
            except Exception as e:
                logger.warning("Failed to delete media %s: %s", media_id, e)
                return DeleteOutcome(media_id=media_id, ok=False, error=str(e))
            return DeleteOutcome(media_id=media_id, ok=ok,
                                 error=None if ok else "deletion failed")

        return list(await asyncio.gather(*(attempt(m) for m in media_ids)))

    async def ping(self, timeout: Optional[float] = None) -> bool:
        """Check connectivity to the media host"""
        try:
            await asyncio.wait_for(
                asyncio.to_thread(cloudinary.api.ping),
                timeout=timeout or settings.HEALTH_CHECK_TIMEOUT_SECONDS,
            )
            return True
        except Exception as e:
            logger.warning("Cloudinary ping failed: %s", e)
            return False
