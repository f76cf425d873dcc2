"""Supabase-backed family repository."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from supabase import Client

from photo_lifecycle.adapters.supabase_paging import PAGE_SIZE, select_all
from photo_lifecycle.domain.families import Family, SubscriptionTier
from photo_lifecycle.services.lifecycle import FamilyRepository

_COLUMNS = (
    "id, created_at, created_by, pairing_code, pairing_expires_at, subscription_tier"
)


@dataclass
class SupabaseFamilyRepository(FamilyRepository):
    """Supabase implementation for family persistence."""

    client: Client
    page_size: int = PAGE_SIZE

    def list_families(self, tier: SubscriptionTier | None = None) -> list[Family]:
        """Return families, optionally filtered by tier."""

        def build_query() -> Any:
            query = self.client.table("families").select(_COLUMNS)
            if tier is not None:
                query = query.eq("subscription_tier", tier.value)
            return query.order("id")

        rows = select_all(build_query, self.page_size)
        return [_parse_family(row) for row in rows]

    def get_family(self, family_id: str) -> Family | None:
        """Return a family by id, if present."""
        response = (
            self.client.table("families")
            .select(_COLUMNS)
            .eq("id", family_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_family(response.data[0])

    def create_family(self, family: Family) -> Family:
        """Insert a family row and return it."""
        response = (
            self.client.table("families")
            .insert(
                {
                    "id": family.id,
                    "created_at": family.created_at.isoformat(),
                    "created_by": family.created_by,
                    "pairing_code": family.pairing_code,
                    "pairing_expires_at": family.pairing_expires_at.isoformat()
                    if family.pairing_expires_at
                    else None,
                    "subscription_tier": family.subscription_tier.value,
                }
            )
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to create family")
        return _parse_family(response.data[0])

    def find_by_pairing_code(self, pairing_code: str) -> Family | None:
        """Return the family with a pairing code, if any."""
        response = (
            self.client.table("families")
            .select(_COLUMNS)
            .eq("pairing_code", pairing_code)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_family(response.data[0])

    def update_subscription_tier(self, family_id: str, tier: SubscriptionTier) -> None:
        """Update the tier column of a family."""
        self.client.table("families").update({"subscription_tier": tier.value}).eq(
            "id", family_id
        ).execute()


def _parse_family(row: dict[str, object]) -> Family:
    expires_raw = row.get("pairing_expires_at")
    tier_raw = row.get("subscription_tier") or SubscriptionTier.FREE.value
    return Family(
        id=str(row["id"]),
        created_at=datetime.fromisoformat(str(row["created_at"])),
        created_by=str(row.get("created_by") or ""),
        pairing_code=str(row.get("pairing_code") or ""),
        pairing_expires_at=datetime.fromisoformat(expires_raw)
        if isinstance(expires_raw, str) and expires_raw
        else None,
        subscription_tier=SubscriptionTier(tier_raw),
    )
