"""Push-style feed of family snapshots."""

import asyncio
from collections.abc import AsyncIterator
from dataclasses import dataclass, field

from photo_lifecycle.domain.snapshots import FamilySnapshot


@dataclass
class PhotoSnapshotFeed:
    """Broadcasts the latest family snapshot to subscribers.

    Subscribers that fall behind skip straight to the newest snapshot.
    """

    _latest: FamilySnapshot | None = None
    _subscribers: list[asyncio.Queue[FamilySnapshot | None]] = field(
        default_factory=list
    )

    @property
    def latest(self) -> FamilySnapshot | None:
        return self._latest

    def publish(self, snapshot: FamilySnapshot) -> None:
        """Record a new snapshot and hand it to every subscriber."""
        self._latest = snapshot
        for queue in self._subscribers:
            _replace(queue, snapshot)

    def close(self) -> None:
        """End every active subscription."""
        for queue in self._subscribers:
            _replace(queue, None)

    async def subscribe(self) -> AsyncIterator[FamilySnapshot]:
        """Yield the latest snapshot, then each newer one until closed."""
        queue: asyncio.Queue[FamilySnapshot | None] = asyncio.Queue(maxsize=1)
        if self._latest is not None:
            queue.put_nowait(self._latest)
        self._subscribers.append(queue)
        try:
            while True:
                snapshot = await queue.get()
                if snapshot is None:
                    return
                yield snapshot
        finally:
            self._subscribers.remove(queue)


def _replace(
    queue: asyncio.Queue[FamilySnapshot | None], item: FamilySnapshot | None
) -> None:
    if queue.full():
        queue.get_nowait()
    queue.put_nowait(item)
