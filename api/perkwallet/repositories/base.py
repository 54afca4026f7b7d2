"""Repository protocol for the wallet engine.

All reads and writes go through a unit of work. Leaving the
``unit_of_work()`` block normally commits every staged write together;
leaving it with an exception discards all of them.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, AsyncContextManager, Protocol, Sequence

from perkwallet.records import (
    AuditLog,
    EntryKind,
    EntryStatus,
    LedgerEntry,
    PerkEntitlement,
    RequestStatus,
    RequestType,
    Store,
    WalletAccount,
    WalletRequest,
)


class WalletUnitOfWork(Protocol):
    # Accounts
    async def get_account(self, user_id: int) -> WalletAccount | None:
        ...

    async def get_account_by_id(self, account_id: int) -> WalletAccount | None:
        ...

    async def create_account(self, user_id: int) -> WalletAccount:
        """Open an empty wallet.

        Raises ConcurrentModification if another unit of work created the
        user's wallet first, so the caller can retry and read it.
        """
        ...

    async def list_accounts(self) -> Sequence[WalletAccount]:
        ...

    async def advance_account(self, account: WalletAccount, delta: int) -> WalletAccount:
        """Apply ``delta`` to the running balance and bump the version.

        Compare-and-swap on ``account.version``: raises ConcurrentModification
        if the stored version moved, InsufficientBalance if the running
        balance would go negative.
        """
        ...

    async def set_freeze(
        self,
        account: WalletAccount,
        *,
        frozen_at: datetime | None,
        frozen_by: int | None,
        reason: str | None,
    ) -> WalletAccount:
        """Freeze (or, with ``frozen_at=None``, unfreeze) and bump the version.

        Same compare-and-swap on ``account.version`` as advance_account.
        """
        ...

    # Ledger
    async def list_entries(self, account_id: int) -> Sequence[LedgerEntry]:
        ...

    async def list_history(
        self,
        account_id: int,
        limit: int,
        offset: int,
        kind: EntryKind | None = None,
    ) -> Sequence[LedgerEntry]:
        ...

    async def get_entry(self, entry_id: int) -> LedgerEntry | None:
        ...

    async def add_entry(
        self,
        *,
        account_id: int,
        kind: EntryKind,
        amount: int,
        status: EntryStatus,
        reference: str,
        balance_after: int,
        metadata: dict[str, Any],
        created_at: datetime,
    ) -> LedgerEntry:
        ...

    async def set_entry_status(self, entry: LedgerEntry, status: EntryStatus) -> LedgerEntry:
        """Move a pending entry to ``status``; raises InvalidTransition otherwise."""
        ...

    async def list_pending_entries(self, created_before: datetime) -> Sequence[LedgerEntry]:
        ...

    # Stores & entitlements
    async def get_store(self, store_id: int) -> Store | None:
        ...

    async def create_store(self, owner_id: int, name: str) -> Store:
        ...

    async def add_entitlement(
        self,
        *,
        store_id: int,
        perk_type: str,
        price_paid: int,
        granted_duration_days: int,
        expires_at: datetime,
        purchased_at: datetime,
        ledger_entry_id: int | None,
        metadata: dict[str, Any],
    ) -> PerkEntitlement:
        ...

    async def list_entitlements(self, store_id: int) -> Sequence[PerkEntitlement]:
        ...

    async def list_active_entitlements(
        self, store_id: int, now: datetime,
    ) -> Sequence[PerkEntitlement]:
        """Entitlements with is_active and expires_at >= now, soonest expiry first."""
        ...

    async def list_entitlements_expiring(
        self, now: datetime, until: datetime,
    ) -> Sequence[PerkEntitlement]:
        ...

    async def list_all_entitlements(self) -> Sequence[PerkEntitlement]:
        ...

    # Wallet requests
    async def add_request(
        self,
        *,
        user_id: int,
        type: RequestType,
        amount: int,
        evidence_ref: str | None,
        created_at: datetime,
    ) -> WalletRequest:
        ...

    async def get_request(self, request_id: int) -> WalletRequest | None:
        ...

    async def list_requests(
        self,
        user_id: int | None = None,
        status: RequestStatus | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Sequence[WalletRequest]:
        ...

    async def resolve_request(
        self,
        request: WalletRequest,
        *,
        status: RequestStatus,
        admin_notes: str | None,
        reviewed_by: int | None,
        reviewed_at: datetime,
        ledger_entry_id: int | None,
    ) -> WalletRequest:
        """Transition a pending request; raises AlreadyProcessed if it was resolved meanwhile."""
        ...

    # Audit trail
    async def add_audit(
        self,
        *,
        actor_id: int | None,
        action: str,
        target_type: str,
        target_id: int,
        description: str,
        metadata: dict[str, Any],
        created_at: datetime,
    ) -> AuditLog:
        ...

    async def list_audit_logs(
        self,
        target_type: str | None = None,
        target_id: int | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Sequence[AuditLog]:
        """Newest first."""
        ...


class WalletStore(Protocol):
    def unit_of_work(self) -> AsyncContextManager[WalletUnitOfWork]:
        ...
