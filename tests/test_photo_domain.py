"""Tests for photo lifecycle rules."""

from datetime import timedelta

import pytest

from photo_lifecycle.domain.errors import RequestAlreadyFulfilledError
from photo_lifecycle.domain.families import SubscriptionTier
from photo_lifecycle.domain.photos import (
    BannerState,
    PhotoStatus,
    days_until_expiry,
    days_until_purge,
    effective_expires_at,
    expiration_banner_state,
    is_due_for_purge,
    is_due_for_trash,
    is_expired,
    is_recoverable,
    restore,
    trashed_photos,
    visible_photos,
)
from photo_lifecycle.domain.requests import PhotoRequest, RequestStatus, fulfill
from photo_lifecycle.domain.snapshots import FamilySnapshot
from tests.conftest import T0, make_photo, make_trashed


def test_effective_expiry_defaults_to_thirty_days() -> None:
    photo = make_photo()
    assert effective_expires_at(photo) == T0 + timedelta(days=30)

    explicit = make_photo(expires_at=T0 + timedelta(days=2))
    assert effective_expires_at(explicit) == T0 + timedelta(days=2)


def test_is_expired_boundaries() -> None:
    photo = make_photo()
    assert not is_expired(photo, T0 + timedelta(days=29, hours=23))
    assert is_expired(photo, T0 + timedelta(days=30))
    assert is_expired(make_trashed(photo, T0), T0)


def test_days_until_expiry_rounds_down_and_clamps() -> None:
    photo = make_photo()
    assert days_until_expiry(photo, T0) == 30
    assert days_until_expiry(photo, T0 + timedelta(days=29, hours=1)) == 0
    assert days_until_expiry(photo, T0 + timedelta(days=40)) == 0
    assert days_until_expiry(make_trashed(photo, T0), T0) == 0


def test_days_until_purge_counts_recovery_window() -> None:
    now = T0 + timedelta(days=31)
    trashed = make_trashed(make_photo(), now)

    assert days_until_purge(trashed, now) == 30
    assert days_until_purge(trashed, now + timedelta(days=29, hours=1)) == 0
    assert days_until_purge(make_photo(), now) is None


def test_recoverable_until_purge_time() -> None:
    trashed = make_trashed(make_photo(), T0)

    assert is_recoverable(trashed, T0 + timedelta(days=29))
    assert not is_recoverable(trashed, T0 + timedelta(days=30))
    assert is_due_for_purge(trashed, T0 + timedelta(days=30))
    assert not is_recoverable(make_photo(), T0)


def test_restore_clears_trash_fields() -> None:
    restored = restore(make_trashed(make_photo(), T0))

    assert restored.status is PhotoStatus.ACTIVE
    assert restored.trashed_at is None
    assert restored.purge_at is None


def test_due_for_trash_only_when_active_and_expired() -> None:
    photo = make_photo()
    later = T0 + timedelta(days=31)

    assert is_due_for_trash(photo, later)
    assert not is_due_for_trash(photo, T0)
    assert not is_due_for_trash(make_trashed(photo, later), later)


def test_visible_photos_hide_blocked_and_expired() -> None:
    now = T0 + timedelta(days=10)
    fresh = make_photo("fresh")
    blocked = make_photo("blocked", is_blocked=True)
    old = make_photo("old", created_at=T0 - timedelta(days=25))
    removed = make_trashed(make_photo("removed"), now)

    visible = visible_photos([fresh, blocked, old, removed], now)

    assert [photo.id for photo in visible] == ["fresh"]


def test_trashed_photos_sorted_by_purge_time() -> None:
    now = T0 + timedelta(days=20)
    later = make_trashed(make_photo("later"), T0 + timedelta(days=5))
    sooner = make_trashed(make_photo("sooner"), T0 + timedelta(days=1))
    gone = make_trashed(make_photo("gone"), T0 - timedelta(days=40))

    listed = trashed_photos([later, sooner, gone, make_photo("active")], now)

    assert [photo.id for photo in listed] == ["sooner", "later"]


def test_banner_none_for_fresh_photos() -> None:
    assert expiration_banner_state([make_photo()], T0) is BannerState.NONE
    assert expiration_banner_state([], T0) is BannerState.NONE


def test_banner_seven_day_warning() -> None:
    now = T0 + timedelta(days=24)
    assert expiration_banner_state([make_photo()], now) is BannerState.SEVEN_DAY_WARNING


def test_banner_removed_within_a_day_of_trash() -> None:
    now = T0 + timedelta(days=31)
    trashed = make_trashed(make_photo(), now - timedelta(hours=2))

    assert expiration_banner_state([trashed], now) is BannerState.REMOVED
    assert (
        expiration_banner_state([trashed], now + timedelta(days=2)) is BannerState.NONE
    )


def test_banner_final_warning_wins() -> None:
    now = T0 + timedelta(days=60)
    recently_removed = make_trashed(make_photo("recent"), now - timedelta(hours=1))
    nearly_purged = make_trashed(make_photo("old"), now - timedelta(days=28))
    expiring = make_photo("expiring", created_at=now - timedelta(days=25))

    state = expiration_banner_state([expiring, recently_removed, nearly_purged], now)

    assert state is BannerState.FINAL_WARNING


def test_banner_removed_beats_seven_day_warning() -> None:
    now = T0 + timedelta(days=60)
    expiring = make_photo("expiring", created_at=now - timedelta(days=25))
    recently_removed = make_trashed(make_photo("recent"), now - timedelta(hours=1))

    assert (
        expiration_banner_state([expiring, recently_removed], now)
        is BannerState.REMOVED
    )


def test_banner_ignores_blocked_photos() -> None:
    now = T0 + timedelta(days=24)
    blocked = make_photo(is_blocked=True)
    assert expiration_banner_state([blocked], now) is BannerState.NONE


def test_fulfill_moves_pending_to_fulfilled() -> None:
    request = PhotoRequest(id="r1", family_id="f1", created_at=T0, created_by="u1")

    fulfilled = fulfill(request, "u2", T0)

    assert fulfilled.status is RequestStatus.FULFILLED
    assert fulfilled.fulfilled_by == "u2"
    assert fulfilled.fulfilled_at == T0
    with pytest.raises(RequestAlreadyFulfilledError):
        fulfill(fulfilled, "u2", T0)


def test_only_free_tier_expires() -> None:
    assert not SubscriptionTier.FREE.is_exempt
    assert SubscriptionTier.PREMIUM.is_exempt


def test_snapshot_valid_ids_exclude_blocked() -> None:
    kept = make_photo("kept")
    blocked = make_photo("blocked", is_blocked=True)
    trashed = make_trashed(make_photo("trashed"), T0)
    snapshot = FamilySnapshot(
        photos_by_request={"request-1": (kept, blocked, trashed)}
    )

    assert snapshot.valid_photo_ids == frozenset({"kept", "trashed"})
    assert len(snapshot.photos) == 3
