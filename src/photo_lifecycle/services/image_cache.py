"""Two-tier photo cache with deduplicated fetches and LRU disk eviction."""

import asyncio
import logging
import os
import time
from collections.abc import Awaitable, Callable, Collection
from dataclasses import dataclass, field
from pathlib import Path

from photo_lifecycle.domain.photos import Photo, PhotoVariant
from photo_lifecycle.services.cache import MemoryCache
from photo_lifecycle.services.images import (
    FULL_QUALITY,
    derive_thumbnail,
    reencode_jpeg,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_DISK_BYTES = 200 * 1024 * 1024
EVICTION_TARGET_RATIO = 0.75
EVICTION_INTERVAL_SECONDS = 30.0
DEFAULT_THUMBNAIL_SLOTS = 100
DEFAULT_FULL_SLOTS = 20
CACHE_FILE_EXTENSION = ".jpg"

PhotoFetcher = Callable[[Photo], Awaitable[bytes]]


def cache_filename(photo_id: str, variant: PhotoVariant) -> str:
    """Return the on-disk name for one variant of a photo."""
    return f"{photo_id}_{variant.value}{CACHE_FILE_EXTENSION}"


def parse_cache_filename(name: str) -> tuple[str, PhotoVariant] | None:
    """Recover the photo id and variant from a cache file name."""
    stem, extension = os.path.splitext(name)
    if extension != CACHE_FILE_EXTENSION:
        return None
    photo_id, separator, suffix = stem.rpartition("_")
    if not separator or not photo_id:
        return None
    try:
        return photo_id, PhotoVariant(suffix)
    except ValueError:
        return None


@dataclass
class ImageCache:
    """Memory and disk cache for photo bytes.

    Cache tables (memory tiers and the in-flight fetch table) are only touched
    on the event loop, between awaits, so the loop is their single
    serialization point. Disk I/O and image work run in worker threads.
    """

    cache_dir: Path
    max_disk_bytes: int = DEFAULT_MAX_DISK_BYTES
    thumbnail_slots: int = DEFAULT_THUMBNAIL_SLOTS
    full_slots: int = DEFAULT_FULL_SLOTS
    eviction_interval: float = EVICTION_INTERVAL_SECONDS
    clock: Callable[[], float] = time.monotonic
    _memory: dict[PhotoVariant, MemoryCache] = field(init=False)
    _in_flight: dict[str, asyncio.Task[bytes | None]] = field(
        init=False, default_factory=dict
    )
    _last_eviction_check: float | None = field(init=False, default=None)

    def __post_init__(self) -> None:
        self.cache_dir = Path(self.cache_dir)
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self._memory = {
            PhotoVariant.THUMBNAIL: MemoryCache(self.thumbnail_slots),
            PhotoVariant.FULL: MemoryCache(self.full_slots),
        }

    async def load(
        self, photo: Photo, variant: PhotoVariant, fetch: PhotoFetcher
    ) -> bytes | None:
        """Return photo bytes for a variant, or None when they cannot be loaded.

        Lookup order: memory, disk, thumbnail derived from a cached full-size
        file, then a single shared fetch that fills both variants.
        """
        memory = self._memory[variant]
        cached = memory.get(photo.id)
        if cached is not None:
            return cached

        path = self._path(photo.id, variant)
        data = await asyncio.to_thread(_read_file, path)
        if data is not None:
            memory.set(photo.id, data)
            await asyncio.to_thread(_touch_file, path)
            return data

        if variant is PhotoVariant.THUMBNAIL:
            thumb = await self._thumbnail_from_disk(photo.id)
            if thumb is not None:
                return thumb

        return await self._fetch_shared(photo, variant, fetch)

    async def evict(self, photo_id: str) -> None:
        """Drop both variants of a photo from memory and disk."""
        for memory in self._memory.values():
            memory.pop(photo_id)
        self._cancel_fetch(photo_id)
        paths = [self._path(photo_id, variant) for variant in PhotoVariant]
        await asyncio.to_thread(_remove_files, paths)

    async def evict_expired(self, valid_photo_ids: Collection[str]) -> int:
        """Drop every cached photo whose id is not in ``valid_photo_ids``.

        Returns the number of files removed from disk.
        """
        valid = frozenset(valid_photo_ids)
        for memory in self._memory.values():
            for photo_id in memory.keys():
                if photo_id not in valid:
                    memory.pop(photo_id)
        for photo_id in list(self._in_flight):
            if photo_id not in valid:
                self._cancel_fetch(photo_id)
        removed = await asyncio.to_thread(self._remove_invalid_files, valid)
        if removed:
            logger.info("Evicted %s cache files for removed photos", removed)
        return removed

    async def clear_all(self) -> None:
        """Drop memory entries, cancel in-flight fetches and empty the disk cache.

        Cancellation is best effort: a fetch past its last await may still
        finish writing.
        """
        for memory in self._memory.values():
            memory.clear()
        for task in self._in_flight.values():
            task.cancel()
        self._in_flight.clear()
        await asyncio.to_thread(self._remove_all_files)

    async def evict_disk_if_needed(self, force: bool = False) -> int:
        """Trim the disk cache to 75% of its budget when it is over budget.

        Checks are throttled to one per ``eviction_interval`` seconds unless
        ``force`` is set. Returns the number of files removed.
        """
        now = self.clock()
        if (
            not force
            and self._last_eviction_check is not None
            and now - self._last_eviction_check < self.eviction_interval
        ):
            return 0
        self._last_eviction_check = now
        return await asyncio.to_thread(self._evict_least_recently_used)

    def disk_usage(self) -> int:
        """Return the bytes used by cache files."""
        return sum(size for _, _, size in self._scan())

    @property
    def in_flight_count(self) -> int:
        return len(self._in_flight)

    async def _fetch_shared(
        self, photo: Photo, variant: PhotoVariant, fetch: PhotoFetcher
    ) -> bytes | None:
        # Another caller may have finished the fetch while we read from disk.
        cached = self._memory[variant].get(photo.id)
        if cached is not None:
            return cached

        task = self._in_flight.get(photo.id)
        if task is None:
            task = asyncio.create_task(self._download_and_store(photo, fetch))
            self._in_flight[photo.id] = task
            task.add_done_callback(
                lambda done, photo_id=photo.id: self._clear_fetch(photo_id, done)
            )
        try:
            full = await asyncio.shield(task)
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
            return None
        if full is None or variant is PhotoVariant.FULL:
            return full
        return await self._thumbnail_from_bytes(photo.id, full)

    async def _download_and_store(
        self, photo: Photo, fetch: PhotoFetcher
    ) -> bytes | None:
        try:
            original = await fetch(photo)
        except Exception:
            logger.warning("Failed to fetch photo %s", photo.id, exc_info=True)
            return None
        try:
            full, thumb = await asyncio.to_thread(_render_variants, original)
        except Exception:
            logger.warning("Failed to decode photo %s", photo.id, exc_info=True)
            return None

        self._memory[PhotoVariant.FULL].set(photo.id, full)
        self._memory[PhotoVariant.THUMBNAIL].set(photo.id, thumb)
        await asyncio.to_thread(
            _write_file, self._path(photo.id, PhotoVariant.FULL), full
        )
        await asyncio.to_thread(
            _write_file, self._path(photo.id, PhotoVariant.THUMBNAIL), thumb
        )
        await self.evict_disk_if_needed()
        return full

    async def _thumbnail_from_disk(self, photo_id: str) -> bytes | None:
        full_path = self._path(photo_id, PhotoVariant.FULL)
        full = await asyncio.to_thread(_read_file, full_path)
        if full is None:
            return None
        thumb = await self._thumbnail_from_bytes(photo_id, full)
        if thumb is None:
            return None
        self._memory[PhotoVariant.FULL].set(photo_id, full)
        await asyncio.to_thread(
            _write_file, self._path(photo_id, PhotoVariant.THUMBNAIL), thumb
        )
        await asyncio.to_thread(_touch_file, full_path)
        return thumb

    async def _thumbnail_from_bytes(self, photo_id: str, full: bytes) -> bytes | None:
        memory = self._memory[PhotoVariant.THUMBNAIL]
        cached = memory.get(photo_id)
        if cached is not None:
            return cached
        try:
            thumb = await asyncio.to_thread(derive_thumbnail, full)
        except Exception:
            logger.warning("Failed to derive thumbnail for %s", photo_id, exc_info=True)
            return None
        memory.set(photo_id, thumb)
        return thumb

    def _clear_fetch(self, photo_id: str, task: asyncio.Task[bytes | None]) -> None:
        if self._in_flight.get(photo_id) is task:
            del self._in_flight[photo_id]

    def _cancel_fetch(self, photo_id: str) -> None:
        task = self._in_flight.pop(photo_id, None)
        if task is not None:
            task.cancel()

    def _path(self, photo_id: str, variant: PhotoVariant) -> Path:
        return self.cache_dir / cache_filename(photo_id, variant)

    def _scan(self) -> list[tuple[Path, float, int]]:
        entries = []
        try:
            with os.scandir(self.cache_dir) as it:
                for entry in it:
                    if parse_cache_filename(entry.name) is None:
                        continue
                    try:
                        stat = entry.stat()
                    except OSError:
                        continue
                    entries.append((Path(entry.path), stat.st_mtime, stat.st_size))
        except OSError:
            logger.warning("Failed to scan cache directory %s", self.cache_dir)
        return entries

    def _evict_least_recently_used(self) -> int:
        entries = self._scan()
        total = sum(size for _, _, size in entries)
        if total <= self.max_disk_bytes:
            return 0
        target = int(self.max_disk_bytes * EVICTION_TARGET_RATIO)
        removed = 0
        for path, _, size in sorted(entries, key=lambda entry: entry[1]):
            if total <= target:
                break
            if _remove_file(path):
                removed += 1
                total -= size
        logger.info("Disk cache eviction removed %s files", removed)
        return removed

    def _remove_invalid_files(self, valid: frozenset[str]) -> int:
        removed = 0
        for path, _, _ in self._scan():
            parsed = parse_cache_filename(path.name)
            if parsed and parsed[0] not in valid and _remove_file(path):
                removed += 1
        return removed

    def _remove_all_files(self) -> None:
        try:
            with os.scandir(self.cache_dir) as it:
                paths = [Path(entry.path) for entry in it if entry.is_file()]
        except OSError:
            logger.warning("Failed to scan cache directory %s", self.cache_dir)
            return
        _remove_files(paths)


def _render_variants(original: bytes) -> tuple[bytes, bytes]:
    return reencode_jpeg(original, FULL_QUALITY), derive_thumbnail(original)


def _read_file(path: Path) -> bytes | None:
    try:
        return path.read_bytes()
    except FileNotFoundError:
        return None
    except OSError:
        logger.warning("Failed to read cache file %s", path, exc_info=True)
        return None


def _write_file(path: Path, data: bytes) -> None:
    tmp_path = path.with_name(f".{path.name}.tmp")
    try:
        tmp_path.write_bytes(data)
        os.replace(tmp_path, path)
    except OSError:
        logger.warning("Failed to write cache file %s", path, exc_info=True)
        _remove_file(tmp_path)


def _touch_file(path: Path) -> None:
    try:
        os.utime(path)
    except OSError:
        logger.debug("Failed to touch cache file %s", path)


def _remove_file(path: Path) -> bool:
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    except OSError:
        logger.warning("Failed to remove cache file %s", path, exc_info=True)
        return False
    return True


def _remove_files(paths: list[Path]) -> None:
    for path in paths:
        _remove_file(path)
