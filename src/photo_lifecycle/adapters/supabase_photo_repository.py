"""Supabase-backed photo repository."""

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from supabase import Client

from photo_lifecycle.adapters.supabase_paging import PAGE_SIZE, select_all
from photo_lifecycle.domain.photos import Photo, PhotoStatus
from photo_lifecycle.services.lifecycle import PhotoRepository

_COLUMNS = (
    "id, request_id, family_id, created_at, created_by, blob_path, is_blocked, "
    "status, expires_at, trashed_at, purge_at"
)


@dataclass
class SupabasePhotoRepository(PhotoRepository):
    """Supabase implementation for photo records.

    Multi-row transitions are single ``in`` filtered statements, so each
    batch commits atomically.
    """

    client: Client
    page_size: int = PAGE_SIZE

    def list_photos(
        self, request_id: str, status: PhotoStatus | None = None
    ) -> list[Photo]:
        """Return photos of a request, optionally filtered by status."""

        def build_query() -> Any:
            query = (
                self.client.table("photos")
                .select(_COLUMNS)
                .eq("request_id", request_id)
            )
            if status is not None:
                query = query.eq("status", status.value)
            return query.order("created_at", desc=False).order("id")

        rows = select_all(build_query, self.page_size)
        return [_parse_photo(row) for row in rows]

    def create_photo(self, photo: Photo) -> Photo:
        """Insert a photo row and return it."""
        response = (
            self.client.table("photos")
            .insert(
                {
                    "id": photo.id,
                    "request_id": photo.request_id,
                    "family_id": photo.family_id,
                    "created_at": photo.created_at.isoformat(),
                    "created_by": photo.created_by,
                    "blob_path": photo.blob_path,
                    "is_blocked": photo.is_blocked,
                    "status": photo.status.value,
                    "expires_at": _isoformat(photo.expires_at),
                }
            )
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to create photo")
        return _parse_photo(response.data[0])

    def trash_photos(
        self, photo_ids: Sequence[str], trashed_at: datetime, purge_at: datetime
    ) -> None:
        """Mark photos trashed in one statement."""
        if not photo_ids:
            return
        self.client.table("photos").update(
            {
                "status": PhotoStatus.TRASHED.value,
                "trashed_at": trashed_at.isoformat(),
                "purge_at": purge_at.isoformat(),
            }
        ).in_("id", list(photo_ids)).eq("status", PhotoStatus.ACTIVE.value).execute()

    def restore_photos(self, photo_ids: Sequence[str]) -> None:
        """Mark photos active again in one statement."""
        if not photo_ids:
            return
        self.client.table("photos").update(
            {
                "status": PhotoStatus.ACTIVE.value,
                "trashed_at": None,
                "purge_at": None,
            }
        ).in_("id", list(photo_ids)).execute()

    def delete_photo(self, photo_id: str) -> None:
        """Delete a photo row."""
        self.client.table("photos").delete().eq("id", photo_id).execute()

    def set_blocked(self, photo_id: str, blocked: bool) -> None:
        """Update the moderation flag of a photo."""
        self.client.table("photos").update({"is_blocked": blocked}).eq(
            "id", photo_id
        ).execute()

    def create_report(
        self, photo: Photo, reported_by: str, created_at: datetime
    ) -> None:
        """Insert a moderation report row."""
        self.client.table("photo_reports").insert(
            {
                "photo_id": photo.id,
                "request_id": photo.request_id,
                "family_id": photo.family_id,
                "blob_path": photo.blob_path,
                "reported_by": reported_by,
                "created_at": created_at.isoformat(),
            }
        ).execute()


def _isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _parse_datetime(value: object) -> datetime | None:
    if isinstance(value, str) and value:
        return datetime.fromisoformat(value)
    return None


def _parse_photo(row: dict[str, object]) -> Photo:
    return Photo(
        id=str(row["id"]),
        request_id=str(row["request_id"]),
        family_id=str(row.get("family_id") or ""),
        created_at=datetime.fromisoformat(str(row["created_at"])),
        created_by=str(row.get("created_by") or ""),
        blob_path=str(row.get("blob_path") or ""),
        is_blocked=bool(row.get("is_blocked", False)),
        status=PhotoStatus(row.get("status") or PhotoStatus.ACTIVE.value),
        expires_at=_parse_datetime(row.get("expires_at")),
        trashed_at=_parse_datetime(row.get("trashed_at")),
        purge_at=_parse_datetime(row.get("purge_at")),
    )
