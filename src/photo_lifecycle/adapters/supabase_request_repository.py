"""Supabase-backed photo request repository."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from supabase import Client

from photo_lifecycle.adapters.supabase_paging import PAGE_SIZE, select_all
from photo_lifecycle.domain.requests import OriginRole, PhotoRequest, RequestStatus
from photo_lifecycle.services.lifecycle import PhotoRequestRepository

_COLUMNS = (
    "id, family_id, created_at, created_by, origin_role, status, "
    "fulfilled_at, fulfilled_by"
)


@dataclass
class SupabasePhotoRequestRepository(PhotoRequestRepository):
    """Supabase implementation for photo requests."""

    client: Client
    page_size: int = PAGE_SIZE

    def list_requests(self, family_id: str) -> list[PhotoRequest]:
        """Return the requests of a family, newest first."""

        def build_query() -> Any:
            return (
                self.client.table("photo_requests")
                .select(_COLUMNS)
                .eq("family_id", family_id)
                .order("created_at", desc=True)
                .order("id")
            )

        rows = select_all(build_query, self.page_size)
        return [_parse_request(row) for row in rows]

    def get_request(self, request_id: str) -> PhotoRequest | None:
        """Return a request by id, if present."""
        response = (
            self.client.table("photo_requests")
            .select(_COLUMNS)
            .eq("id", request_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_request(response.data[0])

    def create_request(self, request: PhotoRequest) -> PhotoRequest:
        """Insert a request row and return it."""
        response = (
            self.client.table("photo_requests")
            .insert(
                {
                    "id": request.id,
                    "family_id": request.family_id,
                    "created_at": request.created_at.isoformat(),
                    "created_by": request.created_by,
                    "origin_role": request.origin_role.value,
                    **_status_fields(request),
                }
            )
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to create photo request")
        return _parse_request(response.data[0])

    def update_request(self, request: PhotoRequest) -> None:
        """Persist the status fields of a request."""
        self.client.table("photo_requests").update(_status_fields(request)).eq(
            "id", request.id
        ).execute()

    def delete_request(self, request_id: str) -> None:
        """Delete a request row."""
        self.client.table("photo_requests").delete().eq("id", request_id).execute()


def _status_fields(request: PhotoRequest) -> dict[str, object]:
    return {
        "status": request.status.value,
        "fulfilled_at": request.fulfilled_at.isoformat()
        if request.fulfilled_at
        else None,
        "fulfilled_by": request.fulfilled_by,
    }


def _parse_request(row: dict[str, object]) -> PhotoRequest:
    fulfilled_raw = row.get("fulfilled_at")
    return PhotoRequest(
        id=str(row["id"]),
        family_id=str(row["family_id"]),
        created_at=datetime.fromisoformat(str(row["created_at"])),
        created_by=str(row.get("created_by") or ""),
        origin_role=OriginRole(row.get("origin_role") or OriginRole.REQUESTER.value),
        status=RequestStatus(row.get("status") or RequestStatus.PENDING.value),
        fulfilled_at=datetime.fromisoformat(fulfilled_raw)
        if isinstance(fulfilled_raw, str) and fulfilled_raw
        else None,
        fulfilled_by=row.get("fulfilled_by"),
    )
