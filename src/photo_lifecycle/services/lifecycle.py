"""Photo expiration, soft-delete, restore and purge jobs."""

import logging
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from photo_lifecycle.domain.errors import BlobNotFoundError, FamilyNotFoundError
from photo_lifecycle.domain.families import Family, SubscriptionTier
from photo_lifecycle.domain.jobs import (
    LocalCleanupResult,
    PurgeResult,
    SoftDeleteResult,
)
from photo_lifecycle.domain.photos import (
    RECOVERY_WINDOW,
    Photo,
    PhotoStatus,
    is_due_for_purge,
    is_due_for_trash,
    is_expired,
    is_recoverable,
)
from photo_lifecycle.domain.requests import PhotoRequest
from photo_lifecycle.services.family_store import FamilyStore

logger = logging.getLogger(__name__)

# PostgREST and Firestore both cap a single write around this many rows.
BATCH_LIMIT = 500


class FamilyRepository(Protocol):
    """Persistence interface for families."""

    def list_families(self, tier: SubscriptionTier | None = None) -> list[Family]:
        """Return all families, optionally only those on one tier."""

    def get_family(self, family_id: str) -> Family | None:
        """Return a family by id, if present."""

    def create_family(self, family: Family) -> Family:
        """Persist a new family and return it."""

    def find_by_pairing_code(self, pairing_code: str) -> Family | None:
        """Return the family that owns a pairing code, if any."""

    def update_subscription_tier(self, family_id: str, tier: SubscriptionTier) -> None:
        """Change the subscription tier of a family."""


class PhotoRequestRepository(Protocol):
    """Persistence interface for photo requests."""

    def list_requests(self, family_id: str) -> list[PhotoRequest]:
        """Return the requests of a family, newest first."""

    def get_request(self, request_id: str) -> PhotoRequest | None:
        """Return a request by id, if present."""

    def create_request(self, request: PhotoRequest) -> PhotoRequest:
        """Persist a new request and return it."""

    def update_request(self, request: PhotoRequest) -> None:
        """Persist the status fields of a request."""

    def delete_request(self, request_id: str) -> None:
        """Delete a request record."""


class PhotoRepository(Protocol):
    """Persistence interface for photo records."""

    def list_photos(
        self, request_id: str, status: PhotoStatus | None = None
    ) -> list[Photo]:
        """Return the photos of a request, optionally filtered by status."""

    def create_photo(self, photo: Photo) -> Photo:
        """Persist a new photo record and return it."""

    def trash_photos(
        self, photo_ids: Sequence[str], trashed_at: datetime, purge_at: datetime
    ) -> None:
        """Mark photos trashed in a single atomic write."""

    def restore_photos(self, photo_ids: Sequence[str]) -> None:
        """Mark photos active and clear trash fields in a single atomic write."""

    def delete_photo(self, photo_id: str) -> None:
        """Delete a photo record."""

    def set_blocked(self, photo_id: str, blocked: bool) -> None:
        """Set the moderation flag of a photo."""

    def create_report(
        self, photo: Photo, reported_by: str, created_at: datetime
    ) -> None:
        """Record a moderation report for a photo."""


class BlobStore(Protocol):
    """Object storage keyed by path."""

    def put(self, path: str, data: bytes, content_type: str) -> None:
        """Store bytes at a path."""

    def delete(self, path: str) -> None:
        """Delete a path.

        Deleting a missing path either succeeds or raises ``BlobNotFoundError``.
        """


@dataclass
class PhotoLifecycleEngine:
    """Applies the photo state machine across all families."""

    family_repository: FamilyRepository
    request_repository: PhotoRequestRepository
    photo_repository: PhotoRepository
    blob_store: BlobStore
    batch_limit: int = BATCH_LIMIT

    def soft_delete_expired_photos(self, now: datetime) -> SoftDeleteResult:
        """Trash expired active photos of every free-tier family.

        Exempt families are never queried. A family whose requests cannot be
        listed, or a request whose photos cannot be trashed, is logged and
        counted and the job moves on. Batches committed before a failure stay
        committed.
        """
        families = self.family_repository.list_families(tier=SubscriptionTier.FREE)
        trashed = 0
        families_failed = 0
        requests_failed = 0
        for family in families:
            try:
                requests = self.request_repository.list_requests(family.id)
            except Exception:
                families_failed += 1
                logger.exception(
                    "Soft delete could not list requests for family %s", family.id
                )
                continue
            for request in requests:
                committed, ok = self._trash_request(request, now)
                trashed += committed
                if not ok:
                    requests_failed += 1
        result = SoftDeleteResult(
            families_scanned=len(families),
            photos_trashed=trashed,
            families_failed=families_failed,
            requests_failed=requests_failed,
        )
        logger.info(
            "Soft delete trashed %s photos across %s families "
            "(%s families failed, %s requests failed)",
            result.photos_trashed,
            result.families_scanned,
            result.families_failed,
            result.requests_failed,
        )
        return result

    def purge_expired_trash(self, now: datetime) -> PurgeResult:
        """Permanently delete trashed photos whose purge time has passed.

        Runs for every family regardless of tier. Blob failures other than
        not-found are counted but the record is still deleted, leaving an
        orphaned blob for a later sweep.
        """
        families = self.family_repository.list_families()
        deleted = 0
        errors = 0
        for family in families:
            try:
                requests = self.request_repository.list_requests(family.id)
            except Exception:
                errors += 1
                logger.exception(
                    "Purge could not list requests for family %s", family.id
                )
                continue
            for request in requests:
                request_deleted, request_errors = self._purge_request(request, now)
                deleted += request_deleted
                errors += request_errors
        logger.info("Purged %s trashed photos with %s errors", deleted, errors)
        return PurgeResult(photos_deleted=deleted, errors=errors)

    def restore_trashed_photos(self, family_id: str, now: datetime) -> int:
        """Reactivate trashed photos still inside their recovery window.

        Photos past ``purge_at`` stay trashed; the purge job claims them.
        """
        self._require_family(family_id)
        restored = 0
        for request in self.request_repository.list_requests(family_id):
            photos = self.photo_repository.list_photos(
                request.id, status=PhotoStatus.TRASHED
            )
            ids = [photo.id for photo in photos if is_recoverable(photo, now)]
            for batch in _chunked(ids, self.batch_limit):
                self.photo_repository.restore_photos(batch)
                restored += len(batch)
        logger.info("Restored %s photos for family %s", restored, family_id)
        return restored

    def family_photos(self, family_id: str) -> list[Photo]:
        """Return every photo of a family across all of its requests."""
        self._require_family(family_id)
        return [
            photo
            for request in self.request_repository.list_requests(family_id)
            for photo in self.photo_repository.list_photos(request.id)
        ]

    def _require_family(self, family_id: str) -> Family:
        family = self.family_repository.get_family(family_id)
        if family is None:
            raise FamilyNotFoundError(family_id)
        return family

    def _trash_request(self, request: PhotoRequest, now: datetime) -> tuple[int, bool]:
        purge_at = now + RECOVERY_WINDOW
        committed = 0
        try:
            photos = self.photo_repository.list_photos(
                request.id, status=PhotoStatus.ACTIVE
            )
            due = [photo.id for photo in photos if is_due_for_trash(photo, now)]
            for batch in _chunked(due, self.batch_limit):
                self.photo_repository.trash_photos(
                    batch, trashed_at=now, purge_at=purge_at
                )
                committed += len(batch)
        except Exception:
            logger.exception("Soft delete failed for request %s", request.id)
            return committed, False
        return committed, True

    def _purge_request(self, request: PhotoRequest, now: datetime) -> tuple[int, int]:
        try:
            photos = self.photo_repository.list_photos(
                request.id, status=PhotoStatus.TRASHED
            )
        except Exception:
            logger.exception("Purge could not list photos for request %s", request.id)
            return 0, 1
        deleted = 0
        errors = 0
        for photo in photos:
            if not is_due_for_purge(photo, now):
                continue
            if not self._delete_blob(photo):
                errors += 1
            try:
                self.photo_repository.delete_photo(photo.id)
            except Exception:
                errors += 1
                logger.exception("Failed to delete photo record %s", photo.id)
                continue
            deleted += 1
        return deleted, errors

    def _delete_blob(self, photo: Photo) -> bool:
        if not photo.blob_path:
            return True
        try:
            self.blob_store.delete(photo.blob_path)
        except BlobNotFoundError:
            return True
        except Exception:
            logger.exception(
                "Failed to delete blob %s for photo %s", photo.blob_path, photo.id
            )
            return False
        return True


def delete_expired_local_photos(
    store: FamilyStore, now: datetime
) -> LocalCleanupResult:
    """Hard-delete every expired photo held by a local-only store.

    Local mode has no scheduler, so there is no trash step or recovery window.
    """
    deleted = 0
    errors = 0
    for photos in store.all_photos().values():
        for photo in photos:
            if not is_expired(photo, now):
                continue
            try:
                store.delete_photo(photo)
            except Exception:
                errors += 1
                logger.exception("Failed to delete expired photo %s", photo.id)
                continue
            deleted += 1
    valid_ids = store.snapshot().valid_photo_ids
    if deleted or errors:
        logger.info("Deleted %s expired local photos (%s errors)", deleted, errors)
    return LocalCleanupResult(
        photos_deleted=deleted, errors=errors, valid_photo_ids=valid_ids
    )


def _chunked(items: Sequence[str], size: int) -> Iterator[list[str]]:
    for start in range(0, len(items), size):
        yield list(items[start : start + size])
