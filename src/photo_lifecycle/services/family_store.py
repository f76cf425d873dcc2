"""Storage capability shared by the local and Supabase backends."""

from datetime import datetime
from typing import Protocol

from photo_lifecycle.domain.families import Family, SubscriptionTier
from photo_lifecycle.domain.photos import Photo
from photo_lifecycle.domain.requests import PhotoRequest
from photo_lifecycle.domain.snapshots import FamilySnapshot

UPLOAD_CONTENT_TYPE = "image/jpeg"


def photo_blob_path(family_id: str, request_id: str, photo_id: str) -> str:
    """Return the blob path used for an uploaded photo."""
    return f"families/{family_id}/requests/{request_id}/{photo_id}.jpg"


class FamilyStore(Protocol):
    """Family-scoped operations used by clients.

    The lifecycle engine and image cache depend on this interface only, never
    on which backend is active.
    """

    family_id: str | None

    def create_family(self) -> Family:
        """Create a family owned by the current user and select it."""

    def join_family(self, pairing_code: str) -> Family:
        """Join a family by pairing code and select it."""

    def create_request(self) -> PhotoRequest:
        """Create a pending request for photos."""

    def send_photos(self, images: list[bytes]) -> PhotoRequest:
        """Upload photos without a request; the request is born fulfilled."""

    def fulfill_request(self, request_id: str, images: list[bytes]) -> PhotoRequest:
        """Upload photos for a pending request and mark it fulfilled."""

    def all_photos(self) -> dict[str, list[Photo]]:
        """Return a copy of the known photos keyed by request id."""

    def snapshot(self) -> FamilySnapshot:
        """Return the current requests and photos."""

    async def load_image_data(self, photo: Photo) -> bytes:
        """Return the original bytes of a photo."""

    def delete_photo(self, photo: Photo) -> None:
        """Delete a photo's bytes and record."""

    def delete_request(self, request_id: str) -> None:
        """Delete a request together with its photos and their bytes."""

    def report_photo(self, photo: Photo) -> None:
        """Report a photo for moderation and hide it immediately."""

    def update_subscription_tier(self, tier: SubscriptionTier) -> None:
        """Record the current family's subscription tier."""

    def restore_trashed_photos(self, now: datetime) -> int:
        """Restore recoverable trashed photos and return how many."""
