"""Supabase Storage implementation of the blob store."""

from dataclasses import dataclass

from supabase import Client

from photo_lifecycle.domain.errors import BlobNotFoundError, BlobStoreError
from photo_lifecycle.services.lifecycle import BlobStore

_NOT_FOUND_STATUSES = {"404", 404}


@dataclass
class SupabaseBlobStore(BlobStore):
    """Stores photo bytes in a Supabase Storage bucket."""

    client: Client
    bucket: str

    def put(self, path: str, data: bytes, content_type: str) -> None:
        """Upload bytes to a path, replacing any existing object."""
        try:
            self.client.storage.from_(self.bucket).upload(
                path=path,
                file=data,
                file_options={"content-type": content_type, "upsert": "true"},
            )
        except Exception as exc:
            raise _translate(exc, path) from exc

    def delete(self, path: str) -> None:
        """Remove a path. Storage reports missing paths as an empty result."""
        try:
            self.client.storage.from_(self.bucket).remove([path])
        except Exception as exc:
            error = _translate(exc, path)
            if isinstance(error, BlobNotFoundError):
                return
            raise error from exc


def _translate(exc: Exception, path: str) -> BlobStoreError:
    status = getattr(exc, "status", None) or getattr(exc, "statusCode", None)
    if status in _NOT_FOUND_STATUSES or "not found" in str(exc).lower():
        return BlobNotFoundError(path)
    return BlobStoreError(f"{path}: {exc}")
