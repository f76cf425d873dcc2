"""Scheduled job endpoints guarded by the cron secret."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from photo_lifecycle.domain.photos import (
    days_until_expiry,
    expiration_banner_state,
    trashed_photos,
    visible_photos,
)

if TYPE_CHECKING:
    from photo_lifecycle.containers import AppContainer

router = APIRouter(tags=["jobs"])

_EXPIRING_SOON_DAYS = 7


def _get_cron_secret(request: Request) -> str:
    container: AppContainer = request.app.state.container
    return container.settings.cron_secret


async def require_cron(
    authorization: str | None = Header(default=None),
    cron_secret: str = Depends(_get_cron_secret),
) -> None:
    """Ensure requests carry ``Authorization: Bearer <cron secret>``."""
    if not authorization or authorization != f"Bearer {cron_secret}":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


@router.get("/jobs/soft-delete", dependencies=[Depends(require_cron)])
def soft_delete(request: Request) -> dict[str, int]:
    """Trash expired photos of free-tier families."""
    container: AppContainer = request.app.state.container
    return container.cleanup_coordinator.run_soft_delete().to_dict()


@router.get("/jobs/purge", dependencies=[Depends(require_cron)])
def purge(request: Request) -> dict[str, int]:
    """Permanently delete trash whose recovery window has closed."""
    container: AppContainer = request.app.state.container
    return container.cleanup_coordinator.run_purge().to_dict()


@router.post("/families/{family_id}/restore", dependencies=[Depends(require_cron)])
def restore_family(family_id: str, request: Request) -> dict[str, int]:
    """Bring back every recoverable photo of a family."""
    container: AppContainer = request.app.state.container
    return {"restored": container.cleanup_coordinator.restore_family(family_id)}


@router.get("/families/{family_id}/expiration", dependencies=[Depends(require_cron)])
def family_expiration(family_id: str, request: Request) -> dict[str, object]:
    """Return the expiration banner for a family with supporting counts."""
    container: AppContainer = request.app.state.container
    now = datetime.now(tz=UTC)
    photos = container.lifecycle_engine.family_photos(family_id)
    visible = visible_photos(photos, now)
    return {
        "state": expiration_banner_state(photos, now).value,
        "visible": len(visible),
        "expiring_soon": sum(
            1
            for photo in visible
            if days_until_expiry(photo, now) < _EXPIRING_SOON_DAYS
        ),
        "trashed": len(trashed_photos(photos, now)),
    }
