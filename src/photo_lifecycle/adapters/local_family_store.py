"""Family store kept entirely on the local disk."""

import asyncio
import json
import logging
import os
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from pathlib import Path
from uuid import uuid4

from photo_lifecycle.domain.errors import InvalidPairingCodeError, RequestNotFoundError
from photo_lifecycle.domain.families import Family, SubscriptionTier
from photo_lifecycle.domain.photos import Photo, PhotoStatus, is_recoverable, restore
from photo_lifecycle.domain.requests import (
    OriginRole,
    PhotoRequest,
    RequestStatus,
    fulfill,
)
from photo_lifecycle.domain.snapshots import FamilySnapshot
from photo_lifecycle.services.family_store import FamilyStore
from photo_lifecycle.services.snapshots import PhotoSnapshotFeed

logger = logging.getLogger(__name__)

LOCAL_FAMILY_ID = "local-demo"
LOCAL_PAIRING_CODE = "1234"
_STATE_FILE = "local_store.json"


@dataclass
class LocalFamilyStore(FamilyStore):
    """Single-family demo store persisted as JSON plus photo files."""

    data_dir: Path
    user_id: str = "local-user"
    family_id: str | None = LOCAL_FAMILY_ID
    feed: PhotoSnapshotFeed | None = None
    _requests: list[PhotoRequest] = field(init=False, default_factory=list)
    _photos: dict[str, list[Photo]] = field(init=False, default_factory=dict)

    def __post_init__(self) -> None:
        self.data_dir = Path(self.data_dir)
        self._photo_dir.mkdir(parents=True, exist_ok=True)
        self._load()

    def create_family(self) -> Family:
        return self._family()

    def join_family(self, pairing_code: str) -> Family:
        if pairing_code != LOCAL_PAIRING_CODE:
            raise InvalidPairingCodeError(
                f'Invalid pairing code. Use "{LOCAL_PAIRING_CODE}" in demo mode.'
            )
        return self._family()

    def create_request(self) -> PhotoRequest:
        request = PhotoRequest(
            id=str(uuid4()),
            family_id=LOCAL_FAMILY_ID,
            created_at=datetime.now(tz=UTC),
            created_by=self.user_id,
        )
        self._requests.insert(0, request)
        self._save()
        return request

    def send_photos(self, images: list[bytes]) -> PhotoRequest:
        now = datetime.now(tz=UTC)
        request = PhotoRequest(
            id=str(uuid4()),
            family_id=LOCAL_FAMILY_ID,
            created_at=now,
            created_by=self.user_id,
            origin_role=OriginRole.FULFILLER,
            status=RequestStatus.FULFILLED,
            fulfilled_at=now,
            fulfilled_by=self.user_id,
        )
        self._requests.insert(0, request)
        self._store_images(request.id, images)
        self._save()
        return request

    def fulfill_request(self, request_id: str, images: list[bytes]) -> PhotoRequest:
        index = self._index_of(request_id)
        fulfilled = fulfill(self._requests[index], self.user_id, datetime.now(tz=UTC))
        self._store_images(request_id, images)
        self._requests[index] = fulfilled
        self._save()
        return fulfilled

    def all_photos(self) -> dict[str, list[Photo]]:
        return {request_id: list(photos) for request_id, photos in self._photos.items()}

    def snapshot(self) -> FamilySnapshot:
        return FamilySnapshot(
            requests=tuple(self._requests),
            photos_by_request={
                request_id: tuple(photos) for request_id, photos in self._photos.items()
            },
        )

    async def load_image_data(self, photo: Photo) -> bytes:
        return await asyncio.to_thread(Path(photo.blob_path).read_bytes)

    def delete_photo(self, photo: Photo) -> None:
        photos = self._photos.get(photo.request_id, [])
        self._photos[photo.request_id] = [p for p in photos if p.id != photo.id]
        Path(photo.blob_path).unlink(missing_ok=True)
        self._save()

    def delete_request(self, request_id: str) -> None:
        index = self._index_of(request_id)
        for photo in self._photos.pop(request_id, []):
            Path(photo.blob_path).unlink(missing_ok=True)
        del self._requests[index]
        self._save()

    def report_photo(self, photo: Photo) -> None:
        logger.info("Blocking reported photo %s", photo.id)
        self._photos[photo.request_id] = [
            replace(current, is_blocked=True) if current.id == photo.id else current
            for current in self._photos.get(photo.request_id, [])
        ]
        self._save()

    def update_subscription_tier(self, tier: SubscriptionTier) -> None:
        """Tiers are not tracked locally."""

    def restore_trashed_photos(self, now: datetime) -> int:
        restored = 0
        for request_id, photos in self._photos.items():
            updated = []
            for photo in photos:
                if is_recoverable(photo, now):
                    photo = restore(photo)
                    restored += 1
                updated.append(photo)
            self._photos[request_id] = updated
        if restored:
            self._save()
        return restored

    @property
    def _photo_dir(self) -> Path:
        return self.data_dir / "photos"

    def _family(self) -> Family:
        self.family_id = LOCAL_FAMILY_ID
        return Family(
            id=LOCAL_FAMILY_ID,
            created_at=datetime.now(tz=UTC),
            created_by=self.user_id,
            pairing_code=LOCAL_PAIRING_CODE,
        )

    def _index_of(self, request_id: str) -> int:
        for index, request in enumerate(self._requests):
            if request.id == request_id:
                return index
        raise RequestNotFoundError(request_id)

    def _store_images(self, request_id: str, images: list[bytes]) -> None:
        stored = []
        for data in images:
            photo_id = str(uuid4())
            path = self._photo_dir / f"{photo_id}.jpg"
            path.write_bytes(data)
            stored.append(
                Photo(
                    id=photo_id,
                    request_id=request_id,
                    family_id=LOCAL_FAMILY_ID,
                    created_at=datetime.now(tz=UTC),
                    created_by=self.user_id,
                    blob_path=str(path),
                )
            )
        self._photos.setdefault(request_id, []).extend(stored)

    def _save(self) -> None:
        payload = {
            "requests": [_request_to_json(request) for request in self._requests],
            "photos_by_request": {
                request_id: [_photo_to_json(photo) for photo in photos]
                for request_id, photos in self._photos.items()
            },
        }
        path = self.data_dir / _STATE_FILE
        tmp_path = path.with_name(f".{path.name}.tmp")
        try:
            tmp_path.write_text(json.dumps(payload))
            os.replace(tmp_path, path)
        except OSError:
            tmp_path.unlink(missing_ok=True)
            raise
        if self.feed is not None:
            self.feed.publish(self.snapshot())

    def _load(self) -> None:
        path = self.data_dir / _STATE_FILE
        try:
            payload = json.loads(path.read_text())
        except FileNotFoundError:
            return
        except (OSError, ValueError):
            logger.warning("Ignoring unreadable local store at %s", path)
            return
        self._requests = [
            _request_from_json(row) for row in payload.get("requests", [])
        ]
        self._photos = {
            request_id: [_photo_from_json(row) for row in rows]
            for request_id, rows in payload.get("photos_by_request", {}).items()
        }


def _isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _parse_datetime(value: object) -> datetime | None:
    if isinstance(value, str) and value:
        return datetime.fromisoformat(value)
    return None


def _request_to_json(request: PhotoRequest) -> dict[str, object]:
    return {
        "id": request.id,
        "family_id": request.family_id,
        "created_at": request.created_at.isoformat(),
        "created_by": request.created_by,
        "origin_role": request.origin_role.value,
        "status": request.status.value,
        "fulfilled_at": _isoformat(request.fulfilled_at),
        "fulfilled_by": request.fulfilled_by,
    }


def _request_from_json(row: dict[str, object]) -> PhotoRequest:
    return PhotoRequest(
        id=str(row["id"]),
        family_id=str(row.get("family_id") or LOCAL_FAMILY_ID),
        created_at=datetime.fromisoformat(str(row["created_at"])),
        created_by=str(row.get("created_by") or ""),
        origin_role=OriginRole(row.get("origin_role") or OriginRole.REQUESTER.value),
        status=RequestStatus(row.get("status") or RequestStatus.PENDING.value),
        fulfilled_at=_parse_datetime(row.get("fulfilled_at")),
        fulfilled_by=row.get("fulfilled_by"),
    )


def _photo_to_json(photo: Photo) -> dict[str, object]:
    return {
        "id": photo.id,
        "request_id": photo.request_id,
        "family_id": photo.family_id,
        "created_at": photo.created_at.isoformat(),
        "created_by": photo.created_by,
        "blob_path": photo.blob_path,
        "is_blocked": photo.is_blocked,
        "status": photo.status.value,
        "expires_at": _isoformat(photo.expires_at),
        "trashed_at": _isoformat(photo.trashed_at),
        "purge_at": _isoformat(photo.purge_at),
    }


def _photo_from_json(row: dict[str, object]) -> Photo:
    return Photo(
        id=str(row["id"]),
        request_id=str(row["request_id"]),
        family_id=str(row.get("family_id") or LOCAL_FAMILY_ID),
        created_at=datetime.fromisoformat(str(row["created_at"])),
        created_by=str(row.get("created_by") or ""),
        blob_path=str(row.get("blob_path") or ""),
        is_blocked=bool(row.get("is_blocked", False)),
        status=PhotoStatus(row.get("status") or PhotoStatus.ACTIVE.value),
        expires_at=_parse_datetime(row.get("expires_at")),
        trashed_at=_parse_datetime(row.get("trashed_at")),
        purge_at=_parse_datetime(row.get("purge_at")),
    )
