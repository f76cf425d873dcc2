"""Result models for lifecycle jobs."""

from dataclasses import asdict, dataclass


@dataclass(frozen=True)
class SoftDeleteResult:
    """Counts reported by the soft-delete job."""

    families_scanned: int
    photos_trashed: int
    families_failed: int = 0
    requests_failed: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass(frozen=True)
class PurgeResult:
    """Counts reported by the purge job."""

    photos_deleted: int
    errors: int

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass(frozen=True)
class LocalCleanupResult:
    """Outcome of a local-mode expiry sweep."""

    photos_deleted: int
    errors: int
    valid_photo_ids: frozenset[str]
