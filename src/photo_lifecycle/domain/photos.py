"""Domain models and lifecycle rules for shared photos."""

from collections.abc import Iterable
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from enum import Enum

PHOTO_TTL = timedelta(days=30)
RECOVERY_WINDOW = timedelta(days=30)
SEVEN_DAY_WARNING = timedelta(days=7)
FINAL_WARNING = timedelta(days=3)
RECENTLY_REMOVED = timedelta(days=1)


class PhotoStatus(str, Enum):
    """Lifecycle status of a photo record."""

    ACTIVE = "active"
    TRASHED = "trashed"


class PhotoVariant(str, Enum):
    """Cached rendition of a photo."""

    THUMBNAIL = "thumb"
    FULL = "full"


class BannerState(str, Enum):
    """Expiration notice shown to the family."""

    NONE = "none"
    SEVEN_DAY_WARNING = "seven_day_warning"
    REMOVED = "removed"
    FINAL_WARNING = "final_warning"


@dataclass(frozen=True)
class Photo:
    """A photo uploaded for a request.

    ``trashed_at`` and ``purge_at`` are either both set or both empty.
    ``is_blocked`` is a moderation flag and is independent of ``status``.
    """

    id: str
    request_id: str
    family_id: str
    created_at: datetime
    created_by: str
    blob_path: str
    is_blocked: bool = False
    status: PhotoStatus = PhotoStatus.ACTIVE
    expires_at: datetime | None = None
    trashed_at: datetime | None = None
    purge_at: datetime | None = None

    @property
    def is_trashed(self) -> bool:
        """Return True when the photo has been soft-deleted."""
        return self.status is PhotoStatus.TRASHED


def effective_expires_at(photo: Photo) -> datetime:
    """Return the explicit expiry, or creation time plus the photo TTL."""
    if photo.expires_at is not None:
        return photo.expires_at
    return photo.created_at + PHOTO_TTL


def is_expired(photo: Photo, now: datetime) -> bool:
    """Trashed photos always count as expired."""
    return photo.is_trashed or now >= effective_expires_at(photo)


def is_recoverable(photo: Photo, now: datetime) -> bool:
    """Return True while a trashed photo is inside its recovery window."""
    return photo.is_trashed and photo.purge_at is not None and now < photo.purge_at


def days_until_expiry(photo: Photo, now: datetime) -> int:
    """Return whole days left before expiry, never negative."""
    if photo.is_trashed:
        return 0
    return _days_between(now, effective_expires_at(photo))


def days_until_purge(photo: Photo, now: datetime) -> int | None:
    """Return whole days left before purge for trashed photos."""
    if not photo.is_trashed or photo.purge_at is None:
        return None
    return _days_between(now, photo.purge_at)


def restore(photo: Photo) -> Photo:
    """Return the photo back in the active state."""
    return replace(photo, status=PhotoStatus.ACTIVE, trashed_at=None, purge_at=None)


def is_due_for_trash(photo: Photo, now: datetime) -> bool:
    """Return True for active photos whose expiry has passed."""
    return not photo.is_trashed and effective_expires_at(photo) <= now


def is_due_for_purge(photo: Photo, now: datetime) -> bool:
    """Return True for trashed photos whose recovery window has closed."""
    return photo.is_trashed and photo.purge_at is not None and photo.purge_at <= now


def visible_photos(photos: Iterable[Photo], now: datetime) -> list[Photo]:
    """Return photos that normal gallery views should show."""
    return [
        photo for photo in photos if not photo.is_blocked and not is_expired(photo, now)
    ]


def trashed_photos(photos: Iterable[Photo], now: datetime) -> list[Photo]:
    """Return trashed photos that can still be restored, soonest purge first."""
    recoverable = [photo for photo in photos if is_recoverable(photo, now)]
    return sorted(recoverable, key=lambda photo: photo.purge_at or now)


def expiration_banner_state(photos: Iterable[Photo], now: datetime) -> BannerState:
    """Pick the most urgent expiration notice for a set of photos."""
    state = BannerState.NONE
    for photo in photos:
        if photo.is_blocked:
            continue
        if is_recoverable(photo, now):
            if photo.purge_at and photo.purge_at - now <= FINAL_WARNING:
                return BannerState.FINAL_WARNING
            if photo.trashed_at and now - photo.trashed_at <= RECENTLY_REMOVED:
                state = BannerState.REMOVED
        elif not photo.is_trashed and state is BannerState.NONE:
            remaining = effective_expires_at(photo) - now
            if timedelta(0) < remaining <= SEVEN_DAY_WARNING:
                state = BannerState.SEVEN_DAY_WARNING
    return state


def _days_between(start: datetime, end: datetime) -> int:
    return max(0, (end - start).days)
