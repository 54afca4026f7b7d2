from datetime import datetime
from typing import Any
from pydantic import BaseModel, Field

from perkwallet.schemas.ledger import LedgerEntry


class PerkResponse(BaseModel):
    """Catalog entry."""
    perk_type: str
    title: str
    price: int
    category: str
    features: list[str]
    ranking_boost: int
    spin: bool
    # Fixed perks: duration_days. Spin perks: floor and max of the wheel
    duration_days: int | None = None
    min_days: int | None = None
    max_days: int | None = None
    guaranteed_days: int | None = None


class PurchaseRequest(BaseModel):
    perk_type: str = Field(..., min_length=1, max_length=50)


class EntitlementResponse(BaseModel):
    id: int
    store_id: int
    perk_type: str
    price_paid: int
    granted_duration_days: int
    expires_at: datetime
    is_active: bool
    purchased_at: datetime
    ledger_entry_id: int | None
    metadata: dict[str, Any]

    class Config:
        from_attributes = True


class ActivePerkResponse(BaseModel):
    entitlement: EntitlementResponse
    remaining_days: int
    expiring_soon: bool

    class Config:
        from_attributes = True


class StorePerksResponse(BaseModel):
    store_id: int
    ranking_boost: int
    perks: list[ActivePerkResponse]


class PurchaseResponse(BaseModel):
    entitlement: EntitlementResponse
    payment: LedgerEntry
    balance_after: int

    class Config:
        from_attributes = True
