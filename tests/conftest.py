"""Shared test fixtures."""

import io
from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from uuid import uuid4

import pytest
from PIL import Image

from photo_lifecycle.config import Settings
from photo_lifecycle.containers import AppContainer
from photo_lifecycle.domain.errors import BlobNotFoundError, BlobStoreError
from photo_lifecycle.domain.families import Family, SubscriptionTier
from photo_lifecycle.domain.photos import RECOVERY_WINDOW, Photo, PhotoStatus
from photo_lifecycle.domain.requests import PhotoRequest, RequestStatus
from photo_lifecycle.services.cleanup import CleanupCoordinator
from photo_lifecycle.services.lifecycle import (
    BlobStore,
    FamilyRepository,
    PhotoLifecycleEngine,
    PhotoRepository,
    PhotoRequestRepository,
)

T0 = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)


def make_jpeg(width: int = 640, height: int = 480, color: str = "red") -> bytes:
    """Return real JPEG bytes for image tests."""
    buf = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buf, format="JPEG")
    return buf.getvalue()


def image_size(data: bytes) -> tuple[int, int]:
    with Image.open(io.BytesIO(data)) as image:
        return image.size


def make_photo(
    photo_id: str | None = None,
    request_id: str = "request-1",
    family_id: str = "family-1",
    created_at: datetime = T0,
    **overrides: object,
) -> Photo:
    photo_id = photo_id or str(uuid4())
    return Photo(
        id=photo_id,
        request_id=request_id,
        family_id=family_id,
        created_at=created_at,
        created_by="user-1",
        blob_path=f"families/{family_id}/requests/{request_id}/{photo_id}.jpg",
        **overrides,  # type: ignore[arg-type]
    )


def make_trashed(photo: Photo, trashed_at: datetime) -> Photo:
    """Return the photo as the soft-delete job leaves it."""
    return replace(
        photo,
        status=PhotoStatus.TRASHED,
        trashed_at=trashed_at,
        purge_at=trashed_at + RECOVERY_WINDOW,
    )


@dataclass
class InMemoryFamilyRepository(FamilyRepository):
    """In-memory family repository for tests."""

    families: dict[str, Family] = field(default_factory=dict)
    tier_queries: list[SubscriptionTier | None] = field(default_factory=list)

    def add(
        self, family_id: str, tier: SubscriptionTier = SubscriptionTier.FREE
    ) -> Family:
        family = Family(
            id=family_id,
            created_at=T0,
            created_by="user-1",
            pairing_code=f"code-{family_id}",
            subscription_tier=tier,
        )
        self.families[family_id] = family
        return family

    def list_families(self, tier: SubscriptionTier | None = None) -> list[Family]:
        self.tier_queries.append(tier)
        return [
            family
            for family in self.families.values()
            if tier is None or family.subscription_tier is tier
        ]

    def get_family(self, family_id: str) -> Family | None:
        return self.families.get(family_id)

    def create_family(self, family: Family) -> Family:
        self.families[family.id] = family
        return family

    def find_by_pairing_code(self, pairing_code: str) -> Family | None:
        for family in self.families.values():
            if family.pairing_code == pairing_code:
                return family
        return None

    def update_subscription_tier(self, family_id: str, tier: SubscriptionTier) -> None:
        self.families[family_id] = replace(
            self.families[family_id], subscription_tier=tier
        )


@dataclass
class InMemoryPhotoRequestRepository(PhotoRequestRepository):
    """In-memory request repository with per-family failure injection."""

    requests: dict[str, PhotoRequest] = field(default_factory=dict)
    failing_families: set[str] = field(default_factory=set)

    def add(
        self,
        request_id: str,
        family_id: str,
        status: RequestStatus = RequestStatus.FULFILLED,
    ) -> PhotoRequest:
        request = PhotoRequest(
            id=request_id,
            family_id=family_id,
            created_at=T0,
            created_by="user-1",
            status=status,
        )
        self.requests[request_id] = request
        return request

    def list_requests(self, family_id: str) -> list[PhotoRequest]:
        if family_id in self.failing_families:
            raise RuntimeError(f"query failed for {family_id}")
        matches = [r for r in self.requests.values() if r.family_id == family_id]
        return sorted(matches, key=lambda request: request.created_at, reverse=True)

    def get_request(self, request_id: str) -> PhotoRequest | None:
        return self.requests.get(request_id)

    def create_request(self, request: PhotoRequest) -> PhotoRequest:
        self.requests[request.id] = request
        return request

    def update_request(self, request: PhotoRequest) -> None:
        self.requests[request.id] = request

    def delete_request(self, request_id: str) -> None:
        self.requests.pop(request_id, None)


@dataclass
class InMemoryPhotoRepository(PhotoRepository):
    """In-memory photo repository that records each batched write."""

    photos: dict[str, Photo] = field(default_factory=dict)
    trash_batches: list[list[str]] = field(default_factory=list)
    restore_batches: list[list[str]] = field(default_factory=list)
    reports: list[tuple[str, str]] = field(default_factory=list)
    failing_trash_ids: set[str] = field(default_factory=set)
    failing_delete_ids: set[str] = field(default_factory=set)

    def add(self, photo: Photo) -> Photo:
        self.photos[photo.id] = photo
        return photo

    def list_photos(
        self, request_id: str, status: PhotoStatus | None = None
    ) -> list[Photo]:
        return [
            photo
            for photo in self.photos.values()
            if photo.request_id == request_id
            and (status is None or photo.status is status)
        ]

    def create_photo(self, photo: Photo) -> Photo:
        self.photos[photo.id] = photo
        return photo

    def trash_photos(
        self, photo_ids: Sequence[str], trashed_at: datetime, purge_at: datetime
    ) -> None:
        if self.failing_trash_ids.intersection(photo_ids):
            raise RuntimeError("batch write failed")
        self.trash_batches.append(list(photo_ids))
        for photo_id in photo_ids:
            photo = self.photos[photo_id]
            if photo.status is PhotoStatus.ACTIVE:
                self.photos[photo_id] = replace(
                    photo,
                    status=PhotoStatus.TRASHED,
                    trashed_at=trashed_at,
                    purge_at=purge_at,
                )

    def restore_photos(self, photo_ids: Sequence[str]) -> None:
        self.restore_batches.append(list(photo_ids))
        for photo_id in photo_ids:
            self.photos[photo_id] = replace(
                self.photos[photo_id],
                status=PhotoStatus.ACTIVE,
                trashed_at=None,
                purge_at=None,
            )

    def delete_photo(self, photo_id: str) -> None:
        if photo_id in self.failing_delete_ids:
            raise RuntimeError("delete failed")
        self.photos.pop(photo_id, None)

    def set_blocked(self, photo_id: str, blocked: bool) -> None:
        self.photos[photo_id] = replace(self.photos[photo_id], is_blocked=blocked)

    def create_report(
        self, photo: Photo, reported_by: str, created_at: datetime
    ) -> None:
        self.reports.append((photo.id, reported_by))


@dataclass
class InMemoryBlobStore(BlobStore):
    """Blob store fake; missing paths raise ``BlobNotFoundError`` on delete."""

    blobs: dict[str, bytes] = field(default_factory=dict)
    failing_paths: set[str] = field(default_factory=set)
    deleted: list[str] = field(default_factory=list)

    def put(self, path: str, data: bytes, content_type: str) -> None:
        self.blobs[path] = data

    def delete(self, path: str) -> None:
        if path in self.failing_paths:
            raise BlobStoreError(f"{path}: storage unavailable")
        if path not in self.blobs:
            raise BlobNotFoundError(path)
        del self.blobs[path]
        self.deleted.append(path)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_service_key="service-key",
        cron_secret="cron-secret",
    )


@pytest.fixture
def family_repository() -> InMemoryFamilyRepository:
    return InMemoryFamilyRepository()


@pytest.fixture
def request_repository() -> InMemoryPhotoRequestRepository:
    return InMemoryPhotoRequestRepository()


@pytest.fixture
def photo_repository() -> InMemoryPhotoRepository:
    return InMemoryPhotoRepository()


@pytest.fixture
def blob_store() -> InMemoryBlobStore:
    return InMemoryBlobStore()


@pytest.fixture
def engine(
    family_repository: InMemoryFamilyRepository,
    request_repository: InMemoryPhotoRequestRepository,
    photo_repository: InMemoryPhotoRepository,
    blob_store: InMemoryBlobStore,
) -> PhotoLifecycleEngine:
    return PhotoLifecycleEngine(
        family_repository=family_repository,
        request_repository=request_repository,
        photo_repository=photo_repository,
        blob_store=blob_store,
    )


@pytest.fixture
def container(settings: Settings, engine: PhotoLifecycleEngine) -> AppContainer:
    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        lifecycle_engine=engine,
        cleanup_coordinator=CleanupCoordinator(engine=engine),
        close_resources=close_resources,
    )
