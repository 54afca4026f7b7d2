"""Wallet requests: user-submitted deposits and withdrawals, reviewed by an admin.

A request moves pending -> approved or pending -> rejected exactly once.
Approval posts the matching ledger entry in the same unit of work as the
status change, so ``legacy_balance`` is only ever moved through the ledger.
Each resolution also writes one audit record in that unit of work.
"""
import logging
from datetime import datetime
from typing import Callable

from perkwallet.config import settings
from perkwallet.events import BalanceChanged, EventBus
from perkwallet.exceptions import (
    AccountNotFound,
    AlreadyProcessed,
    InsufficientBalance,
    RequestNotFound,
    WalletFrozen,
)
from perkwallet.records import (
    EntryKind,
    RequestStatus,
    RequestType,
    WalletAccount,
    WalletRequest,
)
from perkwallet.repositories.base import WalletStore, WalletUnitOfWork
from perkwallet.services.balance_service import compute_balance
from perkwallet.services.ledger_service import LedgerService
from perkwallet.services.notification_service import Notifier, dispatch
from perkwallet.services.retry import retry_on_conflict
from perkwallet.timeutil import utcnow

logger = logging.getLogger(__name__)


class WalletRequestService:
    def __init__(
        self,
        store: WalletStore,
        notifier: Notifier,
        events: EventBus | None = None,
        clock: Callable[[], datetime] = utcnow,
        fee_percent: int | None = None,
        retries: int | None = None,
    ):
        self.store = store
        self.notifier = notifier
        self.events = events
        self.clock = clock
        self.fee_percent = settings.wallet_fee_percent if fee_percent is None else fee_percent
        if not 0 <= self.fee_percent < 100:
            raise ValueError('Wallet fee must be between 0 and 99 percent')
        self.retries = settings.purchase_retry_attempts if retries is None else retries
        self.ledger = LedgerService(store, retries=0, clock=clock)

    # ── User side ─────────────────────────────────────────────────────────────

    async def submit(
        self,
        user_id: int,
        type: RequestType,
        amount: int,
        evidence_ref: str | None = None,
    ) -> WalletRequest:
        """Queue a deposit or withdrawal for review."""
        if amount <= 0:
            raise ValueError('Request amount must be positive')

        async def attempt():
            async with self.store.unit_of_work() as uow:
                account = await uow.get_account(user_id)
                if account is None:
                    account = await uow.create_account(user_id)
                if account.is_frozen:
                    raise WalletFrozen(user_id, account.freeze_reason)
                if type == RequestType.WITHDRAWAL:
                    balance = compute_balance(await uow.list_entries(account.id))
                    if balance < amount:
                        raise InsufficientBalance(amount, balance)
                return await uow.add_request(
                    user_id=user_id,
                    type=type,
                    amount=amount,
                    evidence_ref=evidence_ref,
                    created_at=self.clock(),
                )

        request = await retry_on_conflict(attempt, self.retries, f'submit({user_id}, {type.value})')
        logger.info(f'User {user_id} submitted {type.value} request {request.id} for {amount}')
        return request

    async def list_for_user(self, user_id: int, limit: int = 50, offset: int = 0) -> list[WalletRequest]:
        async with self.store.unit_of_work() as uow:
            return list(await uow.list_requests(user_id=user_id, limit=limit, offset=offset))

    # ── Admin side ────────────────────────────────────────────────────────────

    async def get_request(self, request_id: int) -> WalletRequest:
        async with self.store.unit_of_work() as uow:
            request = await uow.get_request(request_id)
        if request is None:
            raise RequestNotFound(f'Wallet request {request_id} not found')
        return request

    async def list_requests(
        self,
        status: RequestStatus | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[WalletRequest]:
        async with self.store.unit_of_work() as uow:
            return list(await uow.list_requests(status=status, limit=limit, offset=offset))

    def net_amount(self, amount: int) -> int:
        """Amount after the processing fee (floored to whole units)."""
        return amount - amount * self.fee_percent // 100

    async def approve_request(
        self,
        request_id: int,
        reviewer_id: int | None = None,
        notes: str | None = None,
    ) -> WalletRequest:
        """Approve a pending request and move the balance through the ledger.

        Deposits credit the amount net of the fee. Withdrawals debit the full
        amount and record the net payout owed to the user.
        """
        resolved, account, balance = await retry_on_conflict(
            lambda: self._approve_once(request_id, reviewer_id, notes),
            self.retries,
            f'approve_request({request_id})',
        )
        logger.info(
            f'Wallet request {request_id} approved by {reviewer_id}: '
            f'{resolved.type.value} {resolved.amount}, balance now {balance}'
        )

        if self.events is not None:
            await self.events.publish(BalanceChanged(
                account_id=account.id,
                user_id=account.user_id,
                balance=balance,
                reason=f'{resolved.type.value}_approved',
            ))
        await self._notify(resolved, balance)
        return resolved

    async def _approve_once(
        self, request_id: int, reviewer_id: int | None, notes: str | None,
    ) -> tuple[WalletRequest, WalletAccount, int]:
        async with self.store.unit_of_work() as uow:
            request = await uow.get_request(request_id)
            if request is None:
                raise RequestNotFound(f'Wallet request {request_id} not found')
            if request.status != RequestStatus.PENDING:
                raise AlreadyProcessed(request_id, request.status.value)

            account = await uow.get_account(request.user_id)
            if account is None:
                raise AccountNotFound(f'User {request.user_id} has no wallet')
            # The request stays pending until the wallet is unfrozen
            if account.is_frozen:
                raise WalletFrozen(account.user_id, account.freeze_reason)

            metadata = {
                'wallet_request_id': request.id,
                'original_amount': request.amount,
                'fee_percentage': self.fee_percent,
                'processed_by': reviewer_id,
            }
            if request.type == RequestType.DEPOSIT:
                kind, amount, prefix = EntryKind.DEPOSIT, self.net_amount(request.amount), 'DEP'
            else:
                kind, amount, prefix = EntryKind.WITHDRAWAL, request.amount, 'WTH'
                metadata['net_payout'] = self.net_amount(request.amount)

            entry, account = await self.ledger.record(
                uow, account, kind, amount, reference=f'{prefix}-{request.id}', metadata=metadata,
            )
            resolved = await uow.resolve_request(
                request,
                status=RequestStatus.APPROVED,
                admin_notes=notes,
                reviewed_by=reviewer_id,
                reviewed_at=self.clock(),
                ledger_entry_id=entry.id,
            )
            await self._audit(uow, resolved, {'amount': amount, 'ledger_entry_id': entry.id})

        return resolved, account, entry.balance_after

    async def reject_request(
        self,
        request_id: int,
        reason: str,
        reviewer_id: int | None = None,
    ) -> WalletRequest:
        """Reject a pending request. No balance moves."""
        async with self.store.unit_of_work() as uow:
            request = await uow.get_request(request_id)
            if request is None:
                raise RequestNotFound(f'Wallet request {request_id} not found')
            if request.status != RequestStatus.PENDING:
                raise AlreadyProcessed(request_id, request.status.value)
            resolved = await uow.resolve_request(
                request,
                status=RequestStatus.REJECTED,
                admin_notes=reason,
                reviewed_by=reviewer_id,
                reviewed_at=self.clock(),
                ledger_entry_id=None,
            )
            await self._audit(uow, resolved, {'amount': resolved.amount, 'reason': reason})

        logger.info(f'Wallet request {request_id} rejected by {reviewer_id}: {reason}')
        await self._notify(resolved, None)
        return resolved

    async def _audit(self, uow: WalletUnitOfWork, request: WalletRequest, details: dict) -> None:
        await uow.add_audit(
            actor_id=request.reviewed_by,
            action=f'wallet_request_{request.status.value}',
            target_type='wallet_requests',
            target_id=request.id,
            description=f'{request.type.value} {request.status.value} for user {request.user_id}',
            metadata=details,
            created_at=request.reviewed_at,
        )

    async def _notify(self, request: WalletRequest, balance: int | None) -> None:
        approved = request.status == RequestStatus.APPROVED
        default_body = 'Your request was approved.' if approved else 'Your request was rejected.'
        await dispatch(
            self.notifier,
            request.user_id,
            f'Wallet {request.type.value} {request.status.value}',
            request.admin_notes or default_body,
            {
                'wallet_request_id': request.id,
                'status': request.status.value,
                'balance': balance,
            },
        )
