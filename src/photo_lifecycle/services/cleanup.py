"""Sequencing of lifecycle jobs and cache reconciliation."""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime

from photo_lifecycle.domain.families import SubscriptionTier
from photo_lifecycle.domain.jobs import (
    LocalCleanupResult,
    PurgeResult,
    SoftDeleteResult,
)
from photo_lifecycle.domain.snapshots import FamilySnapshot
from photo_lifecycle.services.family_store import FamilyStore
from photo_lifecycle.services.image_cache import ImageCache
from photo_lifecycle.services.lifecycle import (
    PhotoLifecycleEngine,
    delete_expired_local_photos,
)
from photo_lifecycle.services.snapshots import PhotoSnapshotFeed

logger = logging.getLogger(__name__)


@dataclass
class CleanupCoordinator:
    """Runs lifecycle jobs and keeps the image cache in step with them.

    Servers hold an engine and trigger the two daily jobs separately. Clients
    hold an image cache and run the startup pass; ``local_only`` clients have
    no scheduler and hard-delete expired photos themselves.
    """

    engine: PhotoLifecycleEngine | None = None
    image_cache: ImageCache | None = None
    local_only: bool = False

    def run_soft_delete(self, now: datetime | None = None) -> SoftDeleteResult:
        """Run the daily soft-delete job."""
        return self._require_engine().soft_delete_expired_photos(_resolve(now))

    def run_purge(self, now: datetime | None = None) -> PurgeResult:
        """Run the daily purge job."""
        return self._require_engine().purge_expired_trash(_resolve(now))

    def restore_family(self, family_id: str, now: datetime | None = None) -> int:
        """Restore a family's recoverable photos, e.g. after an upgrade."""
        return self._require_engine().restore_trashed_photos(family_id, _resolve(now))

    async def run_startup_cleanup(
        self,
        store: FamilyStore,
        tier: SubscriptionTier,
        now: datetime | None = None,
    ) -> LocalCleanupResult | None:
        """Delete expired local photos for free tiers, then reconcile the cache.

        Does nothing until the store is paired with a family, since an unpaired
        store has no photos to expire or to reconcile against.
        """
        if store.family_id is None:
            logger.info("Skipping startup cleanup, store is not paired")
            return None
        result = None
        if self.local_only and not tier.is_exempt:
            result = delete_expired_local_photos(store, _resolve(now))
            valid_ids = result.valid_photo_ids
        else:
            valid_ids = store.snapshot().valid_photo_ids
        if self.image_cache is not None:
            await self.image_cache.evict_expired(valid_ids)
        return result

    async def reconcile(self, snapshot: FamilySnapshot) -> int:
        """Evict cached photos that no longer exist in ``snapshot``."""
        if self.image_cache is None:
            return 0
        return await self.image_cache.evict_expired(snapshot.valid_photo_ids)

    async def follow(self, feed: PhotoSnapshotFeed) -> None:
        """Reconcile the cache against every snapshot until the feed closes."""
        async for snapshot in feed.subscribe():
            try:
                await self.reconcile(snapshot)
            except Exception:
                logger.exception("Cache reconciliation failed")

    def _require_engine(self) -> PhotoLifecycleEngine:
        if self.engine is None:
            raise RuntimeError("Lifecycle engine is not configured")
        return self.engine


def _resolve(now: datetime | None) -> datetime:
    return now or datetime.now(tz=UTC)
