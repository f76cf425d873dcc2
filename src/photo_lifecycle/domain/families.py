"""Domain models for families."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

PAIRING_CODE_TTL = timedelta(hours=24)


class SubscriptionTier(str, Enum):
    """Subscription tier of a family."""

    FREE = "free"
    PREMIUM = "premium"

    @property
    def is_exempt(self) -> bool:
        """Return True when photos of this tier never expire."""
        return self is not SubscriptionTier.FREE


@dataclass(frozen=True)
class Family:
    """Sharing group that owns requests and photos."""

    id: str
    created_at: datetime
    created_by: str
    pairing_code: str
    pairing_expires_at: datetime | None = None
    subscription_tier: SubscriptionTier = SubscriptionTier.FREE
