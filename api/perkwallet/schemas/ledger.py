from datetime import datetime
from typing import Any
from pydantic import BaseModel

from perkwallet.records import EntryKind, EntryStatus


class LedgerEntry(BaseModel):
    """Single ledger entry response."""
    id: int
    account_id: int
    kind: EntryKind
    amount: int
    status: EntryStatus
    reference: str
    balance_after: int
    metadata: dict[str, Any]
    created_at: datetime

    class Config:
        from_attributes = True


class BalanceResponse(BaseModel):
    """Wallet balance summary."""
    user_id: int
    account_id: int
    # Folded from the ledger; the figure purchases are checked against
    balance: int
    legacy_balance: int
    version: int
    frozen: bool = False
    freeze_reason: str | None = None
