"""Dict-backed wallet store.

Used by the test-suite and for local runs without PostgreSQL. It honours the
same contract as the SQL store: writes are staged per unit of work and
applied together at commit, after the account versions and request statuses
read inside the unit of work are checked against the committed state.
"""

from __future__ import annotations

import asyncio
import itertools
from collections import defaultdict
from contextlib import asynccontextmanager
from dataclasses import replace
from datetime import datetime
from typing import Any, AsyncIterator

from perkwallet.exceptions import (
    AccountNotFound,
    AlreadyProcessed,
    ConcurrentModification,
    InsufficientBalance,
    InvalidTransition,
)
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
from perkwallet.timeutil import utcnow


class InMemoryWalletStore:
    def __init__(self):
        self.accounts: dict[int, WalletAccount] = {}
        self.stores: dict[int, Store] = {}
        self.entries: dict[int, LedgerEntry] = {}
        self.entitlements: dict[int, PerkEntitlement] = {}
        self.requests: dict[int, WalletRequest] = {}
        self.audit_logs: dict[int, AuditLog] = {}
        self._sequences: dict[str, Any] = defaultdict(lambda: itertools.count(1))
        self._commit_lock = asyncio.Lock()

    def next_id(self, table: str) -> int:
        return next(self._sequences[table])

    @asynccontextmanager
    async def unit_of_work(self) -> AsyncIterator['InMemoryUnitOfWork']:
        uow = InMemoryUnitOfWork(self)
        yield uow
        await uow.commit()


class InMemoryUnitOfWork:
    def __init__(self, store: InMemoryWalletStore):
        self._store = store
        self._accounts: dict[int, WalletAccount] = {}
        self._new_account_ids: set[int] = set()
        # account id -> version read before the first change
        self._expected_versions: dict[int, int] = {}
        self._stores: dict[int, Store] = {}
        self._entries: dict[int, LedgerEntry] = {}
        self._pending_transitions: set[int] = set()
        self._entitlements: dict[int, PerkEntitlement] = {}
        self._requests: dict[int, WalletRequest] = {}
        self._resolved_requests: set[int] = set()
        self._audit_logs: dict[int, AuditLog] = {}

    # ── Commit ────────────────────────────────────────────────────────────────

    async def commit(self) -> None:
        store = self._store
        async with store._commit_lock:
            for account_id, expected in self._expected_versions.items():
                if account_id in self._new_account_ids:
                    continue
                if store.accounts[account_id].version != expected:
                    raise ConcurrentModification(account_id, expected)

            for account_id in self._new_account_ids:
                user_id = self._accounts[account_id].user_id
                if any(a.user_id == user_id for a in store.accounts.values()):
                    raise ConcurrentModification(account_id, 0)

            for request_id in self._resolved_requests:
                committed = store.requests[request_id]
                if committed.status != RequestStatus.PENDING:
                    raise AlreadyProcessed(request_id, committed.status.value)

            for entry_id in self._pending_transitions:
                if store.entries[entry_id].status != EntryStatus.PENDING:
                    raise InvalidTransition(f'Ledger entry {entry_id} was already settled')

            store.accounts.update(self._accounts)
            store.stores.update(self._stores)
            store.entries.update(self._entries)
            store.entitlements.update(self._entitlements)
            store.requests.update(self._requests)
            store.audit_logs.update(self._audit_logs)

    async def _io(self) -> None:
        # Suspend like a real round-trip so concurrent units of work interleave
        await asyncio.sleep(0)

    # ── Accounts ──────────────────────────────────────────────────────────────

    def _all_accounts(self) -> dict[int, WalletAccount]:
        return {**self._store.accounts, **self._accounts}

    async def get_account(self, user_id: int) -> WalletAccount | None:
        await self._io()
        for account in self._all_accounts().values():
            if account.user_id == user_id:
                return account
        return None

    async def get_account_by_id(self, account_id: int) -> WalletAccount | None:
        await self._io()
        return self._all_accounts().get(account_id)

    async def create_account(self, user_id: int) -> WalletAccount:
        existing = await self.get_account(user_id)
        if existing is not None:
            # Another unit of work got there first; the caller retries and reads it
            raise ConcurrentModification(existing.id, 0)
        now = utcnow()
        account = WalletAccount(
            id=self._store.next_id('accounts'),
            user_id=user_id,
            legacy_balance=0,
            version=0,
            created_at=now,
            updated_at=now,
        )
        self._accounts[account.id] = account
        self._new_account_ids.add(account.id)
        return account

    async def list_accounts(self) -> list[WalletAccount]:
        return sorted(self._all_accounts().values(), key=lambda a: a.id)

    async def advance_account(self, account: WalletAccount, delta: int) -> WalletAccount:
        current = self._all_accounts().get(account.id)
        if current is None:
            raise AccountNotFound(f'Account {account.id} not found')
        if current.version != account.version:
            raise ConcurrentModification(account.id, account.version)
        if current.legacy_balance + delta < 0:
            raise InsufficientBalance(-delta, current.legacy_balance)

        updated = replace(
            current,
            legacy_balance=current.legacy_balance + delta,
            version=current.version + 1,
            updated_at=utcnow(),
        )
        self._accounts[account.id] = updated
        self._expected_versions.setdefault(account.id, account.version)
        return updated

    async def set_freeze(
        self,
        account: WalletAccount,
        *,
        frozen_at: datetime | None,
        frozen_by: int | None,
        reason: str | None,
    ) -> WalletAccount:
        current = self._all_accounts().get(account.id)
        if current is None:
            raise AccountNotFound(f'Account {account.id} not found')
        if current.version != account.version:
            raise ConcurrentModification(account.id, account.version)

        updated = replace(
            current,
            frozen_at=frozen_at,
            frozen_by=frozen_by,
            freeze_reason=reason,
            version=current.version + 1,
            updated_at=utcnow(),
        )
        self._accounts[account.id] = updated
        self._expected_versions.setdefault(account.id, account.version)
        return updated

    # ── Ledger ────────────────────────────────────────────────────────────────

    def _all_entries(self) -> dict[int, LedgerEntry]:
        return {**self._store.entries, **self._entries}

    async def list_entries(self, account_id: int) -> list[LedgerEntry]:
        await self._io()
        return sorted(
            (e for e in self._all_entries().values() if e.account_id == account_id),
            key=lambda e: e.id,
        )

    async def list_history(
        self,
        account_id: int,
        limit: int,
        offset: int,
        kind: EntryKind | None = None,
    ) -> list[LedgerEntry]:
        entries = [
            e for e in await self.list_entries(account_id)
            if kind is None or e.kind == kind
        ]
        entries.sort(key=lambda e: (e.created_at, e.id), reverse=True)
        return entries[offset:offset + limit]

    async def get_entry(self, entry_id: int) -> LedgerEntry | None:
        return self._all_entries().get(entry_id)

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
        entry = LedgerEntry(
            id=self._store.next_id('entries'),
            account_id=account_id,
            kind=kind,
            amount=amount,
            status=status,
            reference=reference,
            balance_after=balance_after,
            created_at=created_at,
            metadata=dict(metadata),
        )
        self._entries[entry.id] = entry
        return entry

    async def set_entry_status(self, entry: LedgerEntry, status: EntryStatus) -> LedgerEntry:
        current = self._all_entries().get(entry.id)
        if current is None or current.status != EntryStatus.PENDING:
            raise InvalidTransition(f'Ledger entry {entry.id} is not pending')
        updated = replace(current, status=status)
        self._entries[entry.id] = updated
        if entry.id in self._store.entries:
            self._pending_transitions.add(entry.id)
        return updated

    async def list_pending_entries(self, created_before: datetime) -> list[LedgerEntry]:
        return sorted(
            (
                e for e in self._all_entries().values()
                if e.status == EntryStatus.PENDING and e.created_at < created_before
            ),
            key=lambda e: e.created_at,
        )

    # ── Stores & entitlements ─────────────────────────────────────────────────

    async def get_store(self, store_id: int) -> Store | None:
        await self._io()
        return {**self._store.stores, **self._stores}.get(store_id)

    async def create_store(self, owner_id: int, name: str) -> Store:
        store = Store(id=self._store.next_id('stores'), owner_id=owner_id, name=name)
        self._stores[store.id] = store
        return store

    def _all_entitlements(self) -> dict[int, PerkEntitlement]:
        return {**self._store.entitlements, **self._entitlements}

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
        entitlement = PerkEntitlement(
            id=self._store.next_id('entitlements'),
            store_id=store_id,
            perk_type=perk_type,
            price_paid=price_paid,
            granted_duration_days=granted_duration_days,
            expires_at=expires_at,
            is_active=True,
            purchased_at=purchased_at,
            ledger_entry_id=ledger_entry_id,
            metadata=dict(metadata),
        )
        self._entitlements[entitlement.id] = entitlement
        return entitlement

    async def list_entitlements(self, store_id: int) -> list[PerkEntitlement]:
        return sorted(
            (e for e in self._all_entitlements().values() if e.store_id == store_id),
            key=lambda e: e.purchased_at,
            reverse=True,
        )

    async def list_active_entitlements(
        self, store_id: int, now: datetime,
    ) -> list[PerkEntitlement]:
        await self._io()
        return sorted(
            (
                e for e in self._all_entitlements().values()
                if e.store_id == store_id and e.is_live(now)
            ),
            key=lambda e: e.expires_at,
        )

    async def list_entitlements_expiring(
        self, now: datetime, until: datetime,
    ) -> list[PerkEntitlement]:
        return sorted(
            (
                e for e in self._all_entitlements().values()
                if e.is_active and now <= e.expires_at <= until
            ),
            key=lambda e: e.expires_at,
        )

    async def list_all_entitlements(self) -> list[PerkEntitlement]:
        return sorted(self._all_entitlements().values(), key=lambda e: e.id)

    # ── Wallet requests ───────────────────────────────────────────────────────

    def _all_requests(self) -> dict[int, WalletRequest]:
        return {**self._store.requests, **self._requests}

    async def add_request(
        self,
        *,
        user_id: int,
        type: RequestType,
        amount: int,
        evidence_ref: str | None,
        created_at: datetime,
    ) -> WalletRequest:
        request = WalletRequest(
            id=self._store.next_id('requests'),
            user_id=user_id,
            type=type,
            amount=amount,
            evidence_ref=evidence_ref,
            status=RequestStatus.PENDING,
            created_at=created_at,
        )
        self._requests[request.id] = request
        return request

    async def get_request(self, request_id: int) -> WalletRequest | None:
        await self._io()
        return self._all_requests().get(request_id)

    async def list_requests(
        self,
        user_id: int | None = None,
        status: RequestStatus | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[WalletRequest]:
        requests = [
            r for r in self._all_requests().values()
            if (user_id is None or r.user_id == user_id)
            and (status is None or r.status == status)
        ]
        requests.sort(key=lambda r: (r.created_at, r.id), reverse=True)
        return requests[offset:offset + limit]

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
        current = self._all_requests().get(request.id)
        if current.status != RequestStatus.PENDING:
            raise AlreadyProcessed(request.id, current.status.value)
        resolved = replace(
            current,
            status=status,
            admin_notes=admin_notes,
            reviewed_by=reviewed_by,
            reviewed_at=reviewed_at,
            ledger_entry_id=ledger_entry_id,
        )
        self._requests[request.id] = resolved
        if request.id in self._store.requests:
            self._resolved_requests.add(request.id)
        return resolved

    # ── Audit trail ───────────────────────────────────────────────────────────

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
        log = AuditLog(
            id=self._store.next_id('audit_logs'),
            actor_id=actor_id,
            action=action,
            target_type=target_type,
            target_id=target_id,
            description=description,
            created_at=created_at,
            metadata=dict(metadata),
        )
        self._audit_logs[log.id] = log
        return log

    async def list_audit_logs(
        self,
        target_type: str | None = None,
        target_id: int | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[AuditLog]:
        logs = [
            log for log in {**self._store.audit_logs, **self._audit_logs}.values()
            if (target_type is None or log.target_type == target_type)
            and (target_id is None or log.target_id == target_id)
        ]
        logs.sort(key=lambda log: (log.created_at, log.id), reverse=True)
        return logs[offset:offset + limit]
