"""Plain records passed between the services and the wallet store."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class EntryKind(str, Enum):
    """Kinds of balance-affecting ledger events."""
    # Credits
    DEPOSIT = 'deposit'
    EARNING = 'earning'
    REFUND = 'refund'

    # Debits
    WITHDRAWAL = 'withdrawal'
    PAYMENT = 'payment'


class EntryStatus(str, Enum):
    PENDING = 'pending'
    PROCESSING = 'processing'
    SUCCESS = 'success'
    FAILED = 'failed'
    REVERSED = 'reversed'


class RequestType(str, Enum):
    DEPOSIT = 'deposit'
    WITHDRAWAL = 'withdrawal'


class RequestStatus(str, Enum):
    PENDING = 'pending'
    APPROVED = 'approved'
    REJECTED = 'rejected'


@dataclass(frozen=True, slots=True)
class WalletAccount:
    id: int
    user_id: int
    legacy_balance: int
    version: int
    created_at: datetime
    updated_at: datetime
    frozen_at: Optional[datetime] = None
    frozen_by: Optional[int] = None
    freeze_reason: Optional[str] = None

    @property
    def is_frozen(self) -> bool:
        return self.frozen_at is not None


@dataclass(frozen=True, slots=True)
class Store:
    id: int
    owner_id: int
    name: str


@dataclass(frozen=True, slots=True)
class LedgerEntry:
    id: int
    account_id: int
    kind: EntryKind
    amount: int
    status: EntryStatus
    reference: str
    balance_after: int
    created_at: datetime
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class PerkEntitlement:
    id: int
    store_id: int
    perk_type: str
    price_paid: int
    granted_duration_days: int
    expires_at: datetime
    is_active: bool
    purchased_at: datetime
    ledger_entry_id: Optional[int] = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def is_live(self, now: datetime) -> bool:
        return self.is_active and self.expires_at >= now


@dataclass(frozen=True, slots=True)
class WalletRequest:
    id: int
    user_id: int
    type: RequestType
    amount: int
    evidence_ref: Optional[str]
    status: RequestStatus
    created_at: datetime
    admin_notes: Optional[str] = None
    reviewed_by: Optional[int] = None
    reviewed_at: Optional[datetime] = None
    ledger_entry_id: Optional[int] = None


@dataclass(frozen=True, slots=True)
class AuditLog:
    """Append-only record of an administrator action."""
    id: int
    actor_id: Optional[int]
    action: str
    target_type: str
    target_id: int
    description: str
    created_at: datetime
    metadata: dict[str, Any] = field(default_factory=dict)
