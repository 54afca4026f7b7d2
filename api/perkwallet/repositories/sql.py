"""SQLAlchemy implementation of the wallet store."""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator

from sqlalchemy import select, update, desc
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from perkwallet.exceptions import (
    AccountNotFound,
    AlreadyProcessed,
    ConcurrentModification,
    InsufficientBalance,
    InvalidTransition,
)
from perkwallet.models import (
    AuditLog as AuditLogModel,
    LedgerEntry as LedgerEntryModel,
    PerkEntitlement as PerkEntitlementModel,
    Store as StoreModel,
    WalletAccount as WalletAccountModel,
    WalletRequest as WalletRequestModel,
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


class SqlWalletStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    @asynccontextmanager
    async def unit_of_work(self) -> AsyncIterator['SqlUnitOfWork']:
        async with self.session_factory() as session:
            async with session.begin():
                yield SqlUnitOfWork(session)


class SqlUnitOfWork:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    # ── Accounts ──────────────────────────────────────────────────────────────

    async def get_account(self, user_id: int) -> WalletAccount | None:
        stmt = select(WalletAccountModel).where(WalletAccountModel.user_id == user_id)
        row = await self.session.scalar(stmt)
        return _to_account(row) if row else None

    async def get_account_by_id(self, account_id: int) -> WalletAccount | None:
        row = await self.session.get(WalletAccountModel, account_id)
        return _to_account(row) if row else None

    async def create_account(self, user_id: int) -> WalletAccount:
        now = utcnow()
        row = WalletAccountModel(
            user_id=user_id, legacy_balance=0, version=0, created_at=now, updated_at=now,
        )
        try:
            async with self.session.begin_nested():
                self.session.add(row)
                await self.session.flush()
        except IntegrityError:
            # user_id is unique: a concurrent unit of work opened this wallet first
            raise ConcurrentModification(0, 0)
        return _to_account(row)

    async def list_accounts(self) -> list[WalletAccount]:
        result = await self.session.execute(
            select(WalletAccountModel).order_by(WalletAccountModel.id)
        )
        return [_to_account(row) for row in result.scalars().all()]

    async def advance_account(self, account: WalletAccount, delta: int) -> WalletAccount:
        stmt = (
            update(WalletAccountModel)
            .where(
                WalletAccountModel.id == account.id,
                WalletAccountModel.version == account.version,
                WalletAccountModel.legacy_balance + delta >= 0,
            )
            .values(
                legacy_balance=WalletAccountModel.legacy_balance + delta,
                version=WalletAccountModel.version + 1,
                updated_at=utcnow(),
            )
            .returning(WalletAccountModel)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        row = result.scalars().first()
        if row is not None:
            await self.session.refresh(row)
            return _to_account(row)

        # Nothing matched: tell a version conflict apart from an overdraw
        current = await self.session.execute(
            select(WalletAccountModel.version, WalletAccountModel.legacy_balance)
            .where(WalletAccountModel.id == account.id)
        )
        found = current.first()
        if found is None:
            raise AccountNotFound(f'Account {account.id} not found')
        version, legacy_balance = found
        if version != account.version:
            raise ConcurrentModification(account.id, account.version)
        raise InsufficientBalance(-delta, legacy_balance)

    async def set_freeze(
        self,
        account: WalletAccount,
        *,
        frozen_at: datetime | None,
        frozen_by: int | None,
        reason: str | None,
    ) -> WalletAccount:
        result = await self.session.execute(
            update(WalletAccountModel)
            .where(
                WalletAccountModel.id == account.id,
                WalletAccountModel.version == account.version,
            )
            .values(
                frozen_at=frozen_at,
                frozen_by=frozen_by,
                freeze_reason=reason,
                version=WalletAccountModel.version + 1,
                updated_at=utcnow(),
            )
            .returning(WalletAccountModel)
            .execution_options(synchronize_session=False)
        )
        row = result.scalars().first()
        if row is None:
            if await self.session.get(WalletAccountModel, account.id) is None:
                raise AccountNotFound(f'Account {account.id} not found')
            raise ConcurrentModification(account.id, account.version)
        await self.session.refresh(row)
        return _to_account(row)

    # ── Ledger ────────────────────────────────────────────────────────────────

    async def list_entries(self, account_id: int) -> list[LedgerEntry]:
        result = await self.session.execute(
            select(LedgerEntryModel)
            .where(LedgerEntryModel.account_id == account_id)
            .order_by(LedgerEntryModel.id)
        )
        return [_to_entry(row) for row in result.scalars().all()]

    async def list_history(
        self,
        account_id: int,
        limit: int,
        offset: int,
        kind: EntryKind | None = None,
    ) -> list[LedgerEntry]:
        query = (
            select(LedgerEntryModel)
            .where(LedgerEntryModel.account_id == account_id)
            .order_by(desc(LedgerEntryModel.created_at), desc(LedgerEntryModel.id))
        )
        if kind:
            query = query.where(LedgerEntryModel.kind == kind.value)
        query = query.limit(limit).offset(offset)

        result = await self.session.execute(query)
        return [_to_entry(row) for row in result.scalars().all()]

    async def get_entry(self, entry_id: int) -> LedgerEntry | None:
        row = await self.session.get(LedgerEntryModel, entry_id)
        return _to_entry(row) if row else None

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
        row = LedgerEntryModel(
            account_id=account_id,
            kind=kind.value,
            amount=amount,
            status=status.value,
            reference=reference,
            balance_after=balance_after,
            extra=dict(metadata),
            created_at=created_at,
        )
        self.session.add(row)
        await self.session.flush()
        return _to_entry(row)

    async def set_entry_status(self, entry: LedgerEntry, status: EntryStatus) -> LedgerEntry:
        result = await self.session.execute(
            update(LedgerEntryModel)
            .where(
                LedgerEntryModel.id == entry.id,
                LedgerEntryModel.status == EntryStatus.PENDING.value,
            )
            .values(status=status.value)
            .returning(LedgerEntryModel)
            .execution_options(synchronize_session=False)
        )
        row = result.scalars().first()
        if row is None:
            raise InvalidTransition(f'Ledger entry {entry.id} is not pending')
        await self.session.refresh(row)
        return _to_entry(row)

    async def list_pending_entries(self, created_before: datetime) -> list[LedgerEntry]:
        result = await self.session.execute(
            select(LedgerEntryModel)
            .where(
                LedgerEntryModel.status == EntryStatus.PENDING.value,
                LedgerEntryModel.created_at < created_before,
            )
            .order_by(LedgerEntryModel.created_at)
        )
        return [_to_entry(row) for row in result.scalars().all()]

    # ── Stores & entitlements ─────────────────────────────────────────────────

    async def get_store(self, store_id: int) -> Store | None:
        row = await self.session.get(StoreModel, store_id)
        return _to_store(row) if row else None

    async def create_store(self, owner_id: int, name: str) -> Store:
        row = StoreModel(owner_id=owner_id, name=name)
        self.session.add(row)
        await self.session.flush()
        return _to_store(row)

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
        row = PerkEntitlementModel(
            store_id=store_id,
            perk_type=perk_type,
            price_paid=price_paid,
            granted_duration_days=granted_duration_days,
            expires_at=expires_at,
            is_active=True,
            purchased_at=purchased_at,
            ledger_entry_id=ledger_entry_id,
            extra=dict(metadata),
        )
        self.session.add(row)
        await self.session.flush()
        return _to_entitlement(row)

    async def list_entitlements(self, store_id: int) -> list[PerkEntitlement]:
        result = await self.session.execute(
            select(PerkEntitlementModel)
            .where(PerkEntitlementModel.store_id == store_id)
            .order_by(desc(PerkEntitlementModel.purchased_at))
        )
        return [_to_entitlement(row) for row in result.scalars().all()]

    async def list_active_entitlements(
        self, store_id: int, now: datetime,
    ) -> list[PerkEntitlement]:
        result = await self.session.execute(
            select(PerkEntitlementModel)
            .where(
                PerkEntitlementModel.store_id == store_id,
                PerkEntitlementModel.is_active.is_(True),
                PerkEntitlementModel.expires_at >= now,
            )
            .order_by(PerkEntitlementModel.expires_at)
        )
        return [_to_entitlement(row) for row in result.scalars().all()]

    async def list_entitlements_expiring(
        self, now: datetime, until: datetime,
    ) -> list[PerkEntitlement]:
        result = await self.session.execute(
            select(PerkEntitlementModel)
            .where(
                PerkEntitlementModel.is_active.is_(True),
                PerkEntitlementModel.expires_at >= now,
                PerkEntitlementModel.expires_at <= until,
            )
            .order_by(PerkEntitlementModel.expires_at)
        )
        return [_to_entitlement(row) for row in result.scalars().all()]

    async def list_all_entitlements(self) -> list[PerkEntitlement]:
        result = await self.session.execute(
            select(PerkEntitlementModel).order_by(PerkEntitlementModel.id)
        )
        return [_to_entitlement(row) for row in result.scalars().all()]

    # ── Wallet requests ───────────────────────────────────────────────────────

    async def add_request(
        self,
        *,
        user_id: int,
        type: RequestType,
        amount: int,
        evidence_ref: str | None,
        created_at: datetime,
    ) -> WalletRequest:
        row = WalletRequestModel(
            user_id=user_id,
            type=type.value,
            amount=amount,
            evidence_ref=evidence_ref,
            status=RequestStatus.PENDING.value,
            created_at=created_at,
        )
        self.session.add(row)
        await self.session.flush()
        return _to_request(row)

    async def get_request(self, request_id: int) -> WalletRequest | None:
        row = await self.session.get(WalletRequestModel, request_id)
        return _to_request(row) if row else None

    async def list_requests(
        self,
        user_id: int | None = None,
        status: RequestStatus | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[WalletRequest]:
        query = select(WalletRequestModel).order_by(
            desc(WalletRequestModel.created_at), desc(WalletRequestModel.id)
        )
        if user_id is not None:
            query = query.where(WalletRequestModel.user_id == user_id)
        if status:
            query = query.where(WalletRequestModel.status == status.value)
        query = query.limit(limit).offset(offset)

        result = await self.session.execute(query)
        return [_to_request(row) for row in result.scalars().all()]

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
        result = await self.session.execute(
            update(WalletRequestModel)
            .where(
                WalletRequestModel.id == request.id,
                WalletRequestModel.status == RequestStatus.PENDING.value,
            )
            .values(
                status=status.value,
                admin_notes=admin_notes,
                reviewed_by=reviewed_by,
                reviewed_at=reviewed_at,
                ledger_entry_id=ledger_entry_id,
            )
            .returning(WalletRequestModel)
            .execution_options(synchronize_session=False)
        )
        row = result.scalars().first()
        if row is None:
            current = await self.session.get(WalletRequestModel, request.id)
            raise AlreadyProcessed(request.id, current.status if current else 'missing')
        await self.session.refresh(row)
        return _to_request(row)

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
        row = AuditLogModel(
            actor_id=actor_id,
            action=action,
            target_type=target_type,
            target_id=target_id,
            description=description,
            extra=dict(metadata),
            created_at=created_at,
        )
        self.session.add(row)
        await self.session.flush()
        return _to_audit(row)

    async def list_audit_logs(
        self,
        target_type: str | None = None,
        target_id: int | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[AuditLog]:
        query = select(AuditLogModel).order_by(
            desc(AuditLogModel.created_at), desc(AuditLogModel.id)
        )
        if target_type:
            query = query.where(AuditLogModel.target_type == target_type)
        if target_id is not None:
            query = query.where(AuditLogModel.target_id == target_id)
        query = query.limit(limit).offset(offset)

        result = await self.session.execute(query)
        return [_to_audit(row) for row in result.scalars().all()]


def _to_account(row: WalletAccountModel) -> WalletAccount:
    return WalletAccount(
        id=row.id,
        user_id=row.user_id,
        legacy_balance=row.legacy_balance,
        version=row.version,
        created_at=row.created_at,
        updated_at=row.updated_at,
        frozen_at=row.frozen_at,
        frozen_by=row.frozen_by,
        freeze_reason=row.freeze_reason,
    )


def _to_audit(row: AuditLogModel) -> AuditLog:
    return AuditLog(
        id=row.id,
        actor_id=row.actor_id,
        action=row.action,
        target_type=row.target_type,
        target_id=row.target_id,
        description=row.description,
        created_at=row.created_at,
        metadata=dict(row.extra or {}),
    )


def _to_store(row: StoreModel) -> Store:
    return Store(id=row.id, owner_id=row.owner_id, name=row.name)


def _to_entry(row: LedgerEntryModel) -> LedgerEntry:
    return LedgerEntry(
        id=row.id,
        account_id=row.account_id,
        kind=EntryKind(row.kind),
        amount=row.amount,
        status=EntryStatus(row.status),
        reference=row.reference,
        balance_after=row.balance_after,
        created_at=row.created_at,
        metadata=dict(row.extra or {}),
    )


def _to_entitlement(row: PerkEntitlementModel) -> PerkEntitlement:
    return PerkEntitlement(
        id=row.id,
        store_id=row.store_id,
        perk_type=row.perk_type,
        price_paid=row.price_paid,
        granted_duration_days=row.granted_duration_days,
        expires_at=row.expires_at,
        is_active=row.is_active,
        purchased_at=row.purchased_at,
        ledger_entry_id=row.ledger_entry_id,
        metadata=dict(row.extra or {}),
    )


def _to_request(row: WalletRequestModel) -> WalletRequest:
    return WalletRequest(
        id=row.id,
        user_id=row.user_id,
        type=RequestType(row.type),
        amount=row.amount,
        evidence_ref=row.evidence_ref,
        status=RequestStatus(row.status),
        created_at=row.created_at,
        admin_notes=row.admin_notes,
        reviewed_by=row.reviewed_by,
        reviewed_at=row.reviewed_at,
        ledger_entry_id=row.ledger_entry_id,
    )
