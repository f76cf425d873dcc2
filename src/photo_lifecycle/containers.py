"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path

from supabase import Client, create_client

from photo_lifecycle.adapters.httpx_blob_fetcher import HttpxBlobFetcher
from photo_lifecycle.adapters.local_family_store import LocalFamilyStore
from photo_lifecycle.adapters.supabase_blob_store import SupabaseBlobStore
from photo_lifecycle.adapters.supabase_family_repository import (
    SupabaseFamilyRepository,
)
from photo_lifecycle.adapters.supabase_family_store import SupabaseFamilyStore
from photo_lifecycle.adapters.supabase_photo_repository import SupabasePhotoRepository
from photo_lifecycle.adapters.supabase_request_repository import (
    SupabasePhotoRequestRepository,
)
from photo_lifecycle.config import Settings
from photo_lifecycle.services.cleanup import CleanupCoordinator
from photo_lifecycle.services.family_store import FamilyStore
from photo_lifecycle.services.image_cache import ImageCache
from photo_lifecycle.services.lifecycle import PhotoLifecycleEngine
from photo_lifecycle.services.snapshots import PhotoSnapshotFeed


@dataclass
class AppContainer:
    """Holds server-side dependencies for the scheduled jobs."""

    settings: Settings
    lifecycle_engine: PhotoLifecycleEngine
    cleanup_coordinator: CleanupCoordinator
    close_resources: Callable[[], Awaitable[None]]


@dataclass
class ClientContainer:
    """Holds one client session: its store, image cache and coordinator."""

    settings: Settings
    family_store: FamilyStore
    image_cache: ImageCache
    snapshot_feed: PhotoSnapshotFeed
    cleanup_coordinator: CleanupCoordinator
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default server container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    engine = _build_engine(supabase_client, resolved_settings)

    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=resolved_settings,
        lifecycle_engine=engine,
        cleanup_coordinator=CleanupCoordinator(engine=engine),
        close_resources=close_resources,
    )


def build_client_container(
    settings: Settings | None = None, user_id: str = "local-user"
) -> ClientContainer:
    """Create a client session for the configured backend."""
    resolved_settings = settings or Settings()
    feed = PhotoSnapshotFeed()
    image_cache = ImageCache(
        cache_dir=Path(resolved_settings.cache_dir),
        max_disk_bytes=resolved_settings.cache_max_disk_bytes,
        thumbnail_slots=resolved_settings.cache_thumbnail_slots,
        full_slots=resolved_settings.cache_full_slots,
    )

    if resolved_settings.backend == "local":
        family_store: FamilyStore = LocalFamilyStore(
            data_dir=Path(resolved_settings.local_data_dir),
            user_id=user_id,
            feed=feed,
        )
        coordinator = CleanupCoordinator(image_cache=image_cache, local_only=True)

        async def close_local() -> None:
            feed.close()

        return ClientContainer(
            settings=resolved_settings,
            family_store=family_store,
            image_cache=image_cache,
            snapshot_feed=feed,
            cleanup_coordinator=coordinator,
            close_resources=close_local,
        )

    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    engine = _build_engine(supabase_client, resolved_settings)
    fetcher = HttpxBlobFetcher.create(
        supabase_url=resolved_settings.supabase_url,
        bucket=resolved_settings.storage_bucket,
        api_key=resolved_settings.supabase_service_key,
    )
    family_store = SupabaseFamilyStore(
        user_id=user_id,
        family_repository=engine.family_repository,
        request_repository=engine.request_repository,
        photo_repository=engine.photo_repository,
        blob_store=engine.blob_store,
        fetch_photo=fetcher.fetch_photo,
        engine=engine,
        feed=feed,
    )

    async def close_resources() -> None:
        feed.close()
        await fetcher.close()

    return ClientContainer(
        settings=resolved_settings,
        family_store=family_store,
        image_cache=image_cache,
        snapshot_feed=feed,
        cleanup_coordinator=CleanupCoordinator(engine=engine, image_cache=image_cache),
        close_resources=close_resources,
    )


def _build_engine(client: Client, settings: Settings) -> PhotoLifecycleEngine:
    return PhotoLifecycleEngine(
        family_repository=SupabaseFamilyRepository(client),
        request_repository=SupabasePhotoRequestRepository(client),
        photo_repository=SupabasePhotoRepository(client),
        blob_store=SupabaseBlobStore(client, bucket=settings.storage_bucket),
    )
