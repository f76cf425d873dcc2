"""Domain models for photo requests."""

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum

from photo_lifecycle.domain.errors import RequestAlreadyFulfilledError


class RequestStatus(str, Enum):
    """Status of a photo request."""

    PENDING = "pending"
    FULFILLED = "fulfilled"


class OriginRole(str, Enum):
    """Participant role that created a request."""

    REQUESTER = "requester"
    FULFILLER = "fulfiller"


@dataclass(frozen=True)
class PhotoRequest:
    """A request for photos inside a family.

    ``fulfilled_at`` and ``fulfilled_by`` are set exactly when the status is
    fulfilled.
    """

    id: str
    family_id: str
    created_at: datetime
    created_by: str
    origin_role: OriginRole = OriginRole.REQUESTER
    status: RequestStatus = RequestStatus.PENDING
    fulfilled_at: datetime | None = None
    fulfilled_by: str | None = None


def fulfill(request: PhotoRequest, user_id: str, now: datetime) -> PhotoRequest:
    """Return the request moved from pending to fulfilled."""
    if request.status is RequestStatus.FULFILLED:
        raise RequestAlreadyFulfilledError(request.id)
    return replace(
        request,
        status=RequestStatus.FULFILLED,
        fulfilled_at=now,
        fulfilled_by=user_id,
    )
