"""Family store backed by Supabase tables and storage."""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import uuid4

from photo_lifecycle.domain.errors import (
    BlobNotFoundError,
    BlobStoreError,
    InvalidPairingCodeError,
    NotPairedError,
    PairingCodeExpiredError,
    RequestNotFoundError,
)
from photo_lifecycle.domain.families import PAIRING_CODE_TTL, Family, SubscriptionTier
from photo_lifecycle.domain.photos import Photo
from photo_lifecycle.domain.requests import (
    OriginRole,
    PhotoRequest,
    RequestStatus,
    fulfill,
)
from photo_lifecycle.domain.snapshots import FamilySnapshot
from photo_lifecycle.services.family_store import (
    UPLOAD_CONTENT_TYPE,
    FamilyStore,
    photo_blob_path,
)
from photo_lifecycle.services.image_cache import PhotoFetcher
from photo_lifecycle.services.images import prepare_upload
from photo_lifecycle.services.lifecycle import (
    BlobStore,
    FamilyRepository,
    PhotoLifecycleEngine,
    PhotoRepository,
    PhotoRequestRepository,
)
from photo_lifecycle.services.snapshots import PhotoSnapshotFeed

logger = logging.getLogger(__name__)


@dataclass
class SupabaseFamilyStore(FamilyStore):
    """Server-synced family store for one signed-in user."""

    user_id: str
    family_repository: FamilyRepository
    request_repository: PhotoRequestRepository
    photo_repository: PhotoRepository
    blob_store: BlobStore
    fetch_photo: PhotoFetcher
    engine: PhotoLifecycleEngine
    family_id: str | None = None
    feed: PhotoSnapshotFeed | None = None

    def create_family(self) -> Family:
        """Create a family with a 24 hour pairing code."""
        now = datetime.now(tz=UTC)
        family = self.family_repository.create_family(
            Family(
                id=str(uuid4()),
                created_at=now,
                created_by=self.user_id,
                pairing_code=str(uuid4()),
                pairing_expires_at=now + PAIRING_CODE_TTL,
            )
        )
        self.family_id = family.id
        return family

    def join_family(self, pairing_code: str) -> Family:
        """Select the family owning a valid pairing code."""
        family = self.family_repository.find_by_pairing_code(pairing_code)
        if family is None:
            raise InvalidPairingCodeError(pairing_code)
        if family.pairing_expires_at and family.pairing_expires_at < datetime.now(
            tz=UTC
        ):
            raise PairingCodeExpiredError(pairing_code)
        self.family_id = family.id
        self.refresh()
        return family

    def create_request(self) -> PhotoRequest:
        family_id = self._require_family()
        request = self.request_repository.create_request(
            PhotoRequest(
                id=str(uuid4()),
                family_id=family_id,
                created_at=datetime.now(tz=UTC),
                created_by=self.user_id,
            )
        )
        self.refresh()
        return request

    def send_photos(self, images: list[bytes]) -> PhotoRequest:
        """Upload unsolicited photos under a request born fulfilled."""
        family_id = self._require_family()
        now = datetime.now(tz=UTC)
        request = self.request_repository.create_request(
            PhotoRequest(
                id=str(uuid4()),
                family_id=family_id,
                created_at=now,
                created_by=self.user_id,
                origin_role=OriginRole.FULFILLER,
                status=RequestStatus.FULFILLED,
                fulfilled_at=now,
                fulfilled_by=self.user_id,
            )
        )
        self._upload(request, images)
        self.refresh()
        return request

    def fulfill_request(self, request_id: str, images: list[bytes]) -> PhotoRequest:
        """Upload photos for a pending request and mark it fulfilled."""
        self._require_family()
        request = self.request_repository.get_request(request_id)
        if request is None:
            raise RequestNotFoundError(request_id)
        fulfilled = fulfill(request, self.user_id, datetime.now(tz=UTC))
        self._upload(request, images)
        self.request_repository.update_request(fulfilled)
        self.refresh()
        return fulfilled

    def all_photos(self) -> dict[str, list[Photo]]:
        return {
            request_id: list(photos)
            for request_id, photos in self.snapshot().photos_by_request.items()
        }

    def snapshot(self) -> FamilySnapshot:
        """Query the current requests and their photos."""
        family_id = self._require_family()
        requests = self.request_repository.list_requests(family_id)
        photos = {
            request.id: tuple(self.photo_repository.list_photos(request.id))
            for request in requests
            if request.status is RequestStatus.FULFILLED
        }
        return FamilySnapshot(requests=tuple(requests), photos_by_request=photos)

    def refresh(self) -> FamilySnapshot:
        """Publish a fresh snapshot to subscribers."""
        snapshot = self.snapshot()
        if self.feed is not None:
            self.feed.publish(snapshot)
        return snapshot

    async def load_image_data(self, photo: Photo) -> bytes:
        return await self.fetch_photo(photo)

    def delete_photo(self, photo: Photo) -> None:
        """Delete the blob, then the record."""
        self._require_family()
        try:
            self.blob_store.delete(photo.blob_path)
        except BlobNotFoundError:
            logger.info("Blob %s was already gone", photo.blob_path)
        self.photo_repository.delete_photo(photo.id)
        self.refresh()

    def delete_request(self, request_id: str) -> None:
        """Delete a request after removing its photos and their blobs."""
        self._require_family()
        request = self.request_repository.get_request(request_id)
        if request is None:
            raise RequestNotFoundError(request_id)
        if request.status is RequestStatus.FULFILLED:
            for photo in self.photo_repository.list_photos(request.id):
                try:
                    self.blob_store.delete(photo.blob_path)
                except BlobStoreError:
                    logger.exception("Failed to delete blob %s", photo.blob_path)
                self.photo_repository.delete_photo(photo.id)
        self.request_repository.delete_request(request.id)
        self.refresh()

    def report_photo(self, photo: Photo) -> None:
        """Record a report and block the photo for every client."""
        self._require_family()
        self.photo_repository.create_report(
            photo, reported_by=self.user_id, created_at=datetime.now(tz=UTC)
        )
        self.photo_repository.set_blocked(photo.id, blocked=True)
        self.refresh()

    def update_subscription_tier(self, tier: SubscriptionTier) -> None:
        self.family_repository.update_subscription_tier(self._require_family(), tier)

    def restore_trashed_photos(self, now: datetime) -> int:
        family_id = self._require_family()
        restored = self.engine.restore_trashed_photos(family_id, now)
        self.refresh()
        return restored

    def _upload(self, request: PhotoRequest, images: list[bytes]) -> None:
        for data in images:
            photo_id = str(uuid4())
            path = photo_blob_path(request.family_id, request.id, photo_id)
            self.blob_store.put(path, prepare_upload(data), UPLOAD_CONTENT_TYPE)
            self.photo_repository.create_photo(
                Photo(
                    id=photo_id,
                    request_id=request.id,
                    family_id=request.family_id,
                    created_at=datetime.now(tz=UTC),
                    created_by=self.user_id,
                    blob_path=path,
                )
            )

    def _require_family(self) -> str:
        if self.family_id is None:
            raise NotPairedError("Not connected to a family yet")
        return self.family_id
