"""Shared pytest fixtures and configuration."""

import os
import pytest
from typing import List, Optional, Set

# Set test environment variables before the app reads its settings
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("CLOUDINARY_CLOUD_NAME", "test-cloud")
os.environ.setdefault("CLOUDINARY_API_KEY", "test-key")
os.environ.setdefault("CLOUDINARY_API_SECRET", "test-secret")

from fastapi.testclient import TestClient  # noqa: E402

from app.api.dependencies import get_media_service, upload_limiter  # noqa: E402
from app.core.database import Base, SessionLocal, engine, get_db  # noqa: E402
from app.core.errors import UploadError  # noqa: E402
from app.main import app  # noqa: E402
from app.models import land_listing  # noqa: E402,F401
from app.services.media_service import ImageFile, MediaService, UploadedImage  # noqa: E402
from tests.utils.factories import make_image_bytes  # noqa: E402


class FakeMediaService(MediaService):
    """
    In-memory stand-in for the Cloudinary adapter.

    Files whose name is in ``fail_names`` fail to upload; ``delete_fails``
    makes every remote deletion fail.
    """

    def __init__(self):
        super().__init__(folder="test/listings", timeout=1, max_bytes=5 * 1024 * 1024)
        self.fail_names: Set[str] = set()
        self.delete_fails = False
        self.ping_ok = True
        self.uploaded: List[str] = []
        self.deleted: List[str] = []
        self._counter = 0

    async def upload(self, image: ImageFile, folder: Optional[str] = None,
                     position: int = 1) -> UploadedImage:
        image_format = self.check_file(image, position)
        if image.filename in self.fail_names:
            raise UploadError(f"File {position} upload failed: remote rejected", reason="remote")
        self._counter += 1
        media_id = f"{folder or self.folder}/img{self._counter}"
        self.uploaded.append(media_id)
        return UploadedImage(
            url=f"https://res.cloudinary.com/test-cloud/image/upload/v1/{media_id}.{image_format}",
            media_id=media_id,
            width=10,
            height=10,
            format=image_format,
            byte_size=len(image.content),
            original_name=image.filename,
        )

    async def delete(self, media_id: str) -> bool:
        if self.delete_fails:
            raise ConnectionError("media host unavailable")
        self.deleted.append(media_id)
        return True

    async def ping(self, timeout: Optional[float] = None) -> bool:
        return self.ping_ok


@pytest.fixture
def fake_media():
    """Fake media service for testing."""
    return FakeMediaService()


@pytest.fixture
def db_session():
    """Fresh in-memory database per test."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db_session, fake_media):
    """API client wired to the test database and fake media service."""

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_media_service] = lambda: fake_media
    app.state.rate_limiter.reset()
    upload_limiter.reset()
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def png_file():
    """A small valid PNG image."""
    return ImageFile(content=make_image_bytes("PNG"), filename="plot.png",
                     content_type="image/png")


@pytest.fixture
def sample_fields():
    """Valid listing creation fields."""
    return {
        "title": "Plot A",
        "location": "Kitengela",
        "type": "land-res",
        "priceNum": 500000,
        "plotSize": "1/8 acre",
        "whatsapp": "254700000000",
    }
