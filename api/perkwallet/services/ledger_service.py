import logging
from datetime import datetime
from typing import Any, Callable

from perkwallet.config import settings
from perkwallet.events import BalanceChanged, EventBus
from perkwallet.exceptions import AccountNotFound, InsufficientBalance
from perkwallet.records import EntryKind, EntryStatus, LedgerEntry, WalletAccount
from perkwallet.repositories.base import WalletStore, WalletUnitOfWork
from perkwallet.services.balance_service import compute_balance, signed_amount
from perkwallet.services.retry import retry_on_conflict
from perkwallet.timeutil import utcnow

logger = logging.getLogger(__name__)


class LedgerService:
    """Handles all balance movements. Every ledger append goes through here.

    ``record`` is the single write path: it appends the entry and moves the
    account's running balance in the caller's unit of work, so the ledger
    fold and ``legacy_balance`` can only change together.
    """

    def __init__(
        self,
        store: WalletStore,
        events: EventBus | None = None,
        retries: int | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.events = events
        self.clock = clock
        self.retries = settings.purchase_retry_attempts if retries is None else retries

    async def record(
        self,
        uow: WalletUnitOfWork,
        account: WalletAccount,
        kind: EntryKind,
        amount: int,
        reference: str,
        metadata: dict[str, Any] | None = None,
        status: EntryStatus = EntryStatus.SUCCESS,
        balance: int | None = None,
    ) -> tuple[LedgerEntry, WalletAccount]:
        """Append an entry inside ``uow``. Raises InsufficientBalance on overdraw.

        ``balance`` may carry a fold the caller already computed in the same
        unit of work.
        """
        if amount <= 0:
            raise ValueError('Ledger amount must be positive')

        if balance is None:
            balance = compute_balance(await uow.list_entries(account.id))

        delta = signed_amount(kind, amount) if status == EntryStatus.SUCCESS else 0
        if balance + delta < 0:
            raise InsufficientBalance(amount, balance)

        entry = await uow.add_entry(
            account_id=account.id,
            kind=kind,
            amount=amount,
            status=status,
            reference=reference,
            balance_after=balance + delta,
            metadata=metadata or {},
            created_at=self.clock(),
        )
        if delta:
            account = await uow.advance_account(account, delta)
        return entry, account

    async def ensure_account(self, user_id: int) -> WalletAccount:
        """Get the user's wallet, creating an empty one on first use."""
        async def attempt():
            async with self.store.unit_of_work() as uow:
                account = await uow.get_account(user_id)
                if account is None:
                    account = await uow.create_account(user_id)
                    logger.info(f'Created wallet account {account.id} for user {user_id}')
                return account

        return await retry_on_conflict(attempt, self.retries, f'ensure_account({user_id})')

    async def get_account(self, user_id: int) -> WalletAccount:
        async with self.store.unit_of_work() as uow:
            account = await uow.get_account(user_id)
        if account is None:
            raise AccountNotFound(f'User {user_id} has no wallet')
        return account

    async def get_balance(self, user_id: int) -> int:
        """Ledger-derived balance for a user."""
        async with self.store.unit_of_work() as uow:
            account = await uow.get_account(user_id)
            if account is None:
                raise AccountNotFound(f'User {user_id} has no wallet')
            entries = await uow.list_entries(account.id)
        return compute_balance(entries)

    async def get_history(
        self,
        user_id: int,
        limit: int = 50,
        offset: int = 0,
        kind: EntryKind | None = None,
    ) -> list[LedgerEntry]:
        """Get ledger entries for a user, newest first."""
        async with self.store.unit_of_work() as uow:
            account = await uow.get_account(user_id)
            if account is None:
                raise AccountNotFound(f'User {user_id} has no wallet')
            return list(await uow.list_history(account.id, limit, offset, kind))

    async def post(
        self,
        user_id: int,
        kind: EntryKind,
        amount: int,
        reference: str,
        metadata: dict[str, Any] | None = None,
        status: EntryStatus = EntryStatus.SUCCESS,
    ) -> LedgerEntry:
        """Append one entry in its own transaction (earnings, refunds, provider callbacks)."""
        async def attempt():
            async with self.store.unit_of_work() as uow:
                account = await uow.get_account(user_id)
                if account is None:
                    raise AccountNotFound(f'User {user_id} has no wallet')
                return await self.record(
                    uow, account, kind, amount, reference, metadata, status=status,
                )

        entry, account = await retry_on_conflict(
            attempt, self.retries, f'post({kind.value}, user={user_id})',
        )
        logger.info(
            f'Posted {kind.value} {amount} ({entry.status.value}) '
            f'to account {account.id}, ref={reference}'
        )
        if entry.status == EntryStatus.SUCCESS:
            await self._publish(account, entry.balance_after, kind.value)
        return entry

    async def settle_entry(self, entry_id: int, succeeded: bool) -> LedgerEntry:
        """Move a pending entry to success or failed.

        Success applies the entry to the running balance under the same
        version check as any other write.
        """
        async def attempt():
            async with self.store.unit_of_work() as uow:
                entry = await uow.get_entry(entry_id)
                if entry is None:
                    raise ValueError(f'Ledger entry {entry_id} not found')
                account = await uow.get_account_by_id(entry.account_id)
                if not succeeded:
                    return await uow.set_entry_status(entry, EntryStatus.FAILED), account, None

                balance = compute_balance(await uow.list_entries(account.id))
                delta = signed_amount(entry.kind, entry.amount)
                if balance + delta < 0:
                    raise InsufficientBalance(entry.amount, balance)
                settled = await uow.set_entry_status(entry, EntryStatus.SUCCESS)
                account = await uow.advance_account(account, delta)
                return settled, account, balance + delta

        settled, account, balance = await retry_on_conflict(
            attempt, self.retries, f'settle_entry({entry_id})',
        )
        logger.info(f'Ledger entry {entry_id} settled as {settled.status.value}')
        if balance is not None:
            await self._publish(account, balance, f'{settled.kind.value}_settled')
        return settled

    async def _publish(self, account: WalletAccount, balance: int, reason: str) -> None:
        if self.events is None:
            return
        await self.events.publish(BalanceChanged(
            account_id=account.id,
            user_id=account.user_id,
            balance=balance,
            reason=reason,
        ))
