from datetime import datetime
from typing import Any
from pydantic import BaseModel, Field

from perkwallet.records import RequestStatus, RequestType


class WalletRequestCreate(BaseModel):
    """Schema for submitting a deposit or withdrawal."""
    type: RequestType
    amount: int = Field(..., gt=0)
    evidence_ref: str | None = Field(None, max_length=500)


class WalletRequestResponse(BaseModel):
    id: int
    user_id: int
    type: RequestType
    amount: int
    evidence_ref: str | None
    status: RequestStatus
    admin_notes: str | None
    reviewed_by: int | None
    reviewed_at: datetime | None
    ledger_entry_id: int | None
    created_at: datetime

    class Config:
        from_attributes = True


class ApproveRequest(BaseModel):
    reviewer_id: int | None = None
    notes: str | None = Field(None, max_length=1000)


class RejectRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=1000)
    reviewer_id: int | None = None


class BalanceDiscrepancyResponse(BaseModel):
    account_id: int
    user_id: int
    legacy_balance: int
    ledger_balance: int
    difference: int

    class Config:
        from_attributes = True


class ConsistencyReport(BaseModel):
    discrepancies: list[BalanceDiscrepancyResponse]
    stale_pending_entries: int


class PerkRevenueResponse(BaseModel):
    perk_type: str
    sales: int
    total_revenue: int

    class Config:
        from_attributes = True


class FreezeRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=1000)
    actor_id: int | None = None


class UnfreezeRequest(BaseModel):
    actor_id: int | None = None


class WalletStatusResponse(BaseModel):
    """Wallet freeze state after an admin action."""
    user_id: int
    account_id: int
    version: int
    frozen: bool
    frozen_at: datetime | None
    frozen_by: int | None
    freeze_reason: str | None


class AuditLogResponse(BaseModel):
    id: int
    actor_id: int | None
    action: str
    target_type: str
    target_id: int
    description: str
    metadata: dict[str, Any]
    created_at: datetime

    class Config:
        from_attributes = True
