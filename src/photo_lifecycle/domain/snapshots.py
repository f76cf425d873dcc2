"""Point-in-time views of a family's requests and photos."""

from dataclasses import dataclass, field

from photo_lifecycle.domain.photos import Photo
from photo_lifecycle.domain.requests import PhotoRequest


@dataclass(frozen=True)
class FamilySnapshot:
    """Immutable snapshot published whenever family records change."""

    requests: tuple[PhotoRequest, ...] = ()
    photos_by_request: dict[str, tuple[Photo, ...]] = field(default_factory=dict)

    @property
    def photos(self) -> list[Photo]:
        return [photo for group in self.photos_by_request.values() for photo in group]

    @property
    def valid_photo_ids(self) -> frozenset[str]:
        """Ids the image cache may keep: existing photos that are not blocked."""
        return frozenset(photo.id for photo in self.photos if not photo.is_blocked)
