"""Integration tests for the listing service against an in-memory database."""

import pytest
from freezegun import freeze_time
from sqlalchemy.exc import OperationalError
from unittest.mock import AsyncMock, patch
from app.core.errors import NotFoundError, StoreError, UploadError, ValidationError
from app.models.land_listing import LandListing
from app.services.listing_service import ListingService
from app.services.media_service import ImageFile
from tests.utils.factories import create_listing_fields, make_image_bytes


def _images(*names):
    return [ImageFile(content=make_image_bytes("PNG"), filename=name, content_type="image/png")
            for name in names]


@pytest.fixture
def service(db_session, fake_media):
    return ListingService(db_session, fake_media)


@pytest.mark.integration
@pytest.mark.asyncio
async def test_create_with_images(service, sample_fields):
    """Test a listing is saved with parallel image and media id lists."""
    listing = await service.create(sample_fields, _images("a.png", "b.png"))

    assert listing.id
    assert listing.price == "KES 500,000"
    assert len(listing.images) == 2
    assert len(listing.media_ids) == 2
    assert listing.images[0].endswith(listing.media_ids[0] + ".png")


@pytest.mark.integration
@pytest.mark.asyncio
async def test_create_keeps_successful_uploads(service, fake_media, sample_fields):
    """Test k of N successful uploads still creates the listing."""
    fake_media.fail_names = {"b.png"}

    listing = await service.create(sample_fields, _images("a.png", "b.png", "c.png"))

    assert len(listing.images) == 2
    assert len(listing.media_ids) == 2
    assert listing.media_ids == fake_media.uploaded


@pytest.mark.integration
@pytest.mark.asyncio
async def test_create_fails_when_every_upload_fails(service, fake_media, db_session, sample_fields):
    """Test nothing is created when all uploads fail."""
    fake_media.fail_names = {"a.png", "b.png"}

    with pytest.raises(UploadError) as exc_info:
        await service.create(sample_fields, _images("a.png", "b.png"))

    assert exc_info.value.message == "Failed to upload any images. Please try again."
    assert len(exc_info.value.errors) == 2
    assert db_session.query(LandListing).count() == 0


@pytest.mark.integration
@pytest.mark.asyncio
async def test_create_invalid_fields_uploads_nothing(service, fake_media, db_session):
    """Test validation runs before any upload."""
    with pytest.raises(ValidationError):
        await service.create({"title": "No location"}, _images("a.png"))

    assert fake_media.uploaded == []
    assert db_session.query(LandListing).count() == 0


@pytest.mark.integration
@pytest.mark.asyncio
async def test_create_rejects_more_than_ten_images(service, fake_media, sample_fields):
    """Test the per-listing image cap."""
    names = [f"{i}.png" for i in range(11)]

    with pytest.raises(ValidationError):
        await service.create(sample_fields, _images(*names))

    assert fake_media.uploaded == []


@pytest.mark.integration
@pytest.mark.asyncio
async def test_partial_update_leaves_other_fields(service, sample_fields):
    """Test fields absent from an update are unchanged."""
    listing = await service.create(dict(sample_fields, description="Near the road"))

    updated = await service.update(listing.id, {"status": "sold"})

    assert updated.status == "sold"
    assert updated.description == "Near the road"
    assert updated.title == "Plot A"
    assert updated.price == "KES 500,000"


@pytest.mark.integration
@pytest.mark.asyncio
async def test_update_price_num_regenerates_price(service, sample_fields):
    """Test a new priceNum rebuilds the display price."""
    listing = await service.create(sample_fields)

    updated = await service.update(listing.id, {"priceNum": "1,200,000"})

    assert updated.price_num == 1200000
    assert updated.price == "KES 1,200,000"


@pytest.mark.integration
@pytest.mark.asyncio
async def test_update_currency_only_price_uses_stored_number(service, sample_fields):
    """Test a digitless price is rebuilt from the stored priceNum."""
    listing = await service.create(sample_fields)

    updated = await service.update(listing.id, {"price": "KES"})

    assert updated.price == "KES 500,000"


@pytest.mark.integration
@pytest.mark.asyncio
async def test_update_appends_new_images(service, sample_fields):
    """Test uploaded images are appended to existing ones."""
    listing = await service.create(sample_fields, _images("a.png"))
    first = list(listing.images)

    updated = await service.update(listing.id, {}, _images("b.png", "c.png"))

    assert len(updated.images) == 3
    assert updated.images[0] == first[0]
    assert len(updated.media_ids) == 3


@pytest.mark.integration
@pytest.mark.asyncio
async def test_update_keep_list_drops_and_reorders(service, fake_media, sample_fields):
    """Test an explicit images list keeps only those images, in order."""
    listing = await service.create(sample_fields, _images("a.png", "b.png", "c.png"))
    images, media_ids = list(listing.images), list(listing.media_ids)

    updated = await service.update(listing.id, {"images": [images[2], images[0]]})

    assert updated.images == [images[2], images[0]]
    assert updated.media_ids == [media_ids[2], media_ids[0]]
    assert fake_media.deleted == [media_ids[1]]


@pytest.mark.integration
@pytest.mark.asyncio
async def test_update_keep_list_unknown_url(service, sample_fields):
    """Test a keep-list naming a foreign image is rejected."""
    listing = await service.create(sample_fields, _images("a.png"))

    with pytest.raises(ValidationError):
        await service.update(listing.id, {"images": ["https://example.com/other.jpg"]})


@pytest.mark.integration
@pytest.mark.asyncio
async def test_update_cap_counts_existing_images(service, sample_fields):
    """Test existing plus new images may not exceed ten."""
    listing = await service.create(sample_fields, _images(*[f"{i}.png" for i in range(9)]))

    with pytest.raises(ValidationError):
        await service.update(listing.id, {}, _images("x.png", "y.png"))


@pytest.mark.integration
@pytest.mark.asyncio
async def test_update_failed_uploads_leave_listing(service, fake_media, sample_fields):
    """Test an update whose uploads all fail changes nothing."""
    listing = await service.create(sample_fields)
    fake_media.fail_names = {"a.png"}

    with pytest.raises(UploadError):
        await service.update(listing.id, {"status": "sold"}, _images("a.png"))

    assert service.get_listing(listing.id).status == "available"


@pytest.mark.integration
@pytest.mark.asyncio
async def test_update_missing_listing(service):
    """Test updating an unknown id raises NotFoundError."""
    with pytest.raises(NotFoundError):
        await service.update("missing", {"status": "sold"})


@pytest.mark.integration
@pytest.mark.asyncio
async def test_update_bumps_updated_at(service, db_session, sample_fields):
    """Test updatedAt moves forward while createdAt stays put."""
    with freeze_time("2024-01-01 12:00:00"):
        listing = LandListing(
            title="Old plot", location="thika", type="plot", status="available",
            price="KES 100,000", price_num=100000, plot_size="1/4 acre",
            whatsapp="254700000000", images=[], media_ids=[],
        )
        db_session.add(listing)
        db_session.commit()
        db_session.refresh(listing)
    created_at = listing.created_at
    previous_updated_at = listing.updated_at

    updated = await service.update(listing.id, {"title": "Renamed plot"})

    assert updated.created_at == created_at
    assert updated.updated_at > previous_updated_at


@pytest.mark.integration
@pytest.mark.asyncio
async def test_delete_image(service, fake_media, sample_fields):
    """Test removing one image keeps the lists aligned."""
    listing = await service.create(sample_fields, _images("a.png", "b.png"))
    images, media_ids = list(listing.images), list(listing.media_ids)

    updated = await service.delete_image(listing.id, media_ids[0])

    assert updated.images == [images[1]]
    assert updated.media_ids == [media_ids[1]]
    assert fake_media.deleted == [media_ids[0]]


@pytest.mark.integration
@pytest.mark.asyncio
async def test_delete_image_unknown_id(service, sample_fields):
    """Test an unknown media id is 404 and the listing is untouched."""
    listing = await service.create(sample_fields, _images("a.png"))
    before = list(listing.images)

    with pytest.raises(NotFoundError) as exc_info:
        await service.delete_image(listing.id, "not/there")

    assert exc_info.value.message == "Image not found in listing"
    assert service.get_listing(listing.id).images == before


@pytest.mark.integration
@pytest.mark.asyncio
async def test_delete_image_remote_failure_still_saves(service, fake_media, sample_fields):
    """Test the record is updated even if remote deletion fails."""
    listing = await service.create(sample_fields, _images("a.png"))
    fake_media.delete_fails = True

    updated = await service.delete_image(listing.id, listing.media_ids[0])

    assert updated.images == []
    assert updated.media_ids == []


@pytest.mark.integration
@pytest.mark.asyncio
async def test_delete_listing_despite_remote_failures(service, fake_media, db_session, sample_fields):
    """Test the listing is deleted even when every remote deletion fails."""
    listing = await service.create(sample_fields, _images("a.png", "b.png"))
    listing_id = listing.id
    fake_media.delete_fails = True

    outcomes = await service.delete(listing_id)

    assert len(outcomes) == 2
    assert not any(o.ok for o in outcomes)
    with pytest.raises(NotFoundError):
        service.get_listing(listing_id)


@pytest.mark.integration
@pytest.mark.asyncio
async def test_delete_listing_removes_remote_images(service, fake_media, sample_fields):
    """Test each media id is deleted from the media host."""
    listing = await service.create(sample_fields, _images("a.png", "b.png"))
    media_ids = list(listing.media_ids)

    outcomes = await service.delete(listing.id)

    assert all(o.ok for o in outcomes)
    assert sorted(fake_media.deleted) == sorted(media_ids)


@pytest.mark.integration
@pytest.mark.asyncio
async def test_list_filters(service):
    """Test status, type and location filters combine."""
    await service.create(create_listing_fields(listing_type="land-res", location="Kitengela East"))
    await service.create(create_listing_fields(listing_type="ranch", location="Kitengela"))
    sold = await service.create(create_listing_fields(listing_type="land-res", location="Nakuru"))
    await service.update(sold.id, {"status": "sold"})

    assert len(service.list_listings()) == 3
    assert len(service.list_listings(location="kitengela")) == 2
    assert len(service.list_listings(listing_type="residential-plot")) == 2
    assert len(service.list_listings(listing_type="land-res", location="KITENGELA")) == 1
    assert [l.id for l in service.list_listings(status="sold")] == [sold.id]


@pytest.mark.integration
@pytest.mark.asyncio
async def test_statistics(service):
    """Test listing counts by status and type."""
    await service.create(create_listing_fields(listing_type="plot"))
    await service.create(create_listing_fields(listing_type="plot"))
    await service.create(create_listing_fields(listing_type="ranch", status="reserved"))

    stats = service.statistics()

    assert stats["totalListings"] == 3
    assert stats["byType"] == {"plot": 2, "ranch": 1}
    assert stats["byStatus"] == {"available": 2, "reserved": 1}


@pytest.mark.integration
@pytest.mark.asyncio
async def test_delete_survives_media_outage(service, fake_media, sample_fields):
    """Test a failing batch delete call never blocks listing removal."""
    listing = await service.create(sample_fields, _images("a.png"))
    fake_media.delete_many = AsyncMock(side_effect=ConnectionError("media host down"))

    outcomes = await service.delete(listing.id)

    assert [o.ok for o in outcomes] == [False]
    fake_media.delete_many.assert_awaited_once()
    assert service.list_listings() == []


def _commit_failure():
    return OperationalError("COMMIT", {}, Exception("connection lost"))


@pytest.mark.integration
@pytest.mark.asyncio
async def test_create_store_failure_removes_uploads(service, fake_media, db_session, sample_fields):
    """Test uploaded assets are deleted when the new listing cannot be saved."""
    with patch.object(db_session, "commit", side_effect=_commit_failure()):
        with pytest.raises(StoreError) as exc_info:
            await service.create(sample_fields, _images("a.png", "b.png"))

    assert exc_info.value.status_code == 500
    assert len(fake_media.uploaded) == 2
    assert sorted(fake_media.deleted) == sorted(fake_media.uploaded)
    assert db_session.query(LandListing).count() == 0


@pytest.mark.integration
@pytest.mark.asyncio
async def test_update_store_failure_removes_new_uploads(service, fake_media, db_session,
                                                        sample_fields):
    """Test a failed update save deletes its new uploads and keeps the row."""
    listing = await service.create(sample_fields)
    listing_id = listing.id

    with patch.object(db_session, "commit", side_effect=_commit_failure()):
        with pytest.raises(StoreError):
            await service.update(listing_id, {"status": "sold"}, _images("a.png"))

    assert fake_media.deleted == fake_media.uploaded
    assert len(fake_media.deleted) == 1
    stored = service.get_listing(listing_id)
    assert stored.status == "available"
    assert stored.images == []


@pytest.mark.integration
@pytest.mark.asyncio
async def test_long_free_text_fields_are_saved(service, sample_fields):
    """Test long map links and locations are stored in full."""
    map_link = "https://www.google.com/maps/place/" + "x" * 600
    location = "Kitengela " + "East " * 60

    listing = await service.create(dict(sample_fields, mapLink=map_link, location=location))

    stored = service.get_listing(listing.id)
    assert stored.map_link == map_link
    assert stored.location == location.strip().lower()
