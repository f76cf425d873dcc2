"""Async download of photo bytes from Supabase Storage."""

from dataclasses import dataclass
from urllib.parse import quote

import httpx

from photo_lifecycle.domain.errors import BlobNotFoundError
from photo_lifecycle.domain.photos import Photo

MAX_DOWNLOAD_BYTES = 10 * 1024 * 1024


@dataclass
class HttpxBlobFetcher:
    """Downloads photo originals for the image cache."""

    storage_url: str
    bucket: str
    api_key: str
    http_client: httpx.AsyncClient

    @classmethod
    def create(cls, supabase_url: str, bucket: str, api_key: str) -> "HttpxBlobFetcher":
        """Create a fetcher with a managed httpx session."""
        return cls(
            storage_url=f"{supabase_url.rstrip('/')}/storage/v1",
            bucket=bucket,
            api_key=api_key,
            http_client=httpx.AsyncClient(),
        )

    async def fetch_photo(self, photo: Photo) -> bytes:
        """Download the original bytes of a photo."""
        url = (
            f"{self.storage_url}/object/authenticated/"
            f"{self.bucket}/{quote(photo.blob_path)}"
        )
        response = await self.http_client.get(
            url,
            headers={
                "apikey": self.api_key,
                "Authorization": f"Bearer {self.api_key}",
            },
            timeout=20,
        )
        if response.status_code == httpx.codes.NOT_FOUND:
            raise BlobNotFoundError(photo.blob_path)
        response.raise_for_status()
        if len(response.content) > MAX_DOWNLOAD_BYTES:
            raise RuntimeError(f"Photo {photo.id} exceeds the download size limit")
        return response.content

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()
