"""Perk purchase: debit the store owner's wallet and grant the entitlement.

The payment entry, the entitlement row and the account version bump are
written in one unit of work: either the seller is charged and the perk is
granted, or neither is visible.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable
from uuid import uuid4

from perkwallet.config import settings
from perkwallet.events import BalanceChanged, EventBus, PerkActivated
from perkwallet.exceptions import (
    AccountNotFound,
    InsufficientBalance,
    PerkAlreadyActive,
    StoreNotFound,
    WalletFrozen,
)
from perkwallet.records import EntryKind, LedgerEntry, PerkEntitlement, WalletAccount
from perkwallet.repositories.base import WalletStore
from perkwallet.services.balance_service import compute_balance
from perkwallet.services.ledger_service import LedgerService
from perkwallet.services.notification_service import Notifier, dispatch
from perkwallet.services.perk_catalog import (
    FixedDuration,
    PerkCatalog,
    PerkDefinition,
    catalog as default_catalog,
)
from perkwallet.services.retry import retry_on_conflict
from perkwallet.services.spin_service import SpinRandomizer
from perkwallet.timeutil import utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PurchaseReceipt:
    entitlement: PerkEntitlement
    payment: LedgerEntry
    balance_after: int


class PerkPurchaseService:
    """Handles the seller's perk purchase flow."""

    def __init__(
        self,
        store: WalletStore,
        notifier: Notifier,
        events: EventBus | None = None,
        catalog: PerkCatalog | None = None,
        randomizer: SpinRandomizer | None = None,
        clock: Callable[[], datetime] = utcnow,
        retries: int | None = None,
    ):
        self.store = store
        self.notifier = notifier
        self.events = events
        self.catalog = catalog or default_catalog
        self.randomizer = randomizer or SpinRandomizer()
        self.clock = clock
        self.retries = settings.purchase_retry_attempts if retries is None else retries
        self.ledger = LedgerService(store, retries=0, clock=clock)

    async def purchase(self, store_id: int, perk_type: str) -> PurchaseReceipt:
        """Buy ``perk_type`` for a store. Raises before any write on every precondition."""
        perk = self.catalog.get(perk_type)

        receipt, owner = await retry_on_conflict(
            lambda: self._purchase_once(store_id, perk),
            self.retries,
            f'purchase({store_id}, {perk_type})',
        )
        entitlement = receipt.entitlement
        logger.info(
            f'Store {store_id} bought {perk_type} for {perk.price}: '
            f'{entitlement.granted_duration_days} days, expires {entitlement.expires_at.isoformat()}'
        )

        await self._announce(owner, receipt, perk)
        return receipt

    async def _purchase_once(
        self, store_id: int, perk: PerkDefinition,
    ) -> tuple[PurchaseReceipt, WalletAccount]:
        async with self.store.unit_of_work() as uow:
            store = await uow.get_store(store_id)
            if store is None:
                raise StoreNotFound(f'Store {store_id} not found')

            account = await uow.get_account(store.owner_id)
            if account is None:
                raise AccountNotFound(f'Owner of store {store_id} has no wallet')
            if account.is_frozen:
                raise WalletFrozen(account.user_id, account.freeze_reason)

            now = self.clock()
            active = await uow.list_active_entitlements(store_id, now)
            if any(e.perk_type == perk.perk_type for e in active):
                raise PerkAlreadyActive(store_id, perk.perk_type)

            # 1-2. Balance check against the ledger
            balance = compute_balance(await uow.list_entries(account.id))
            if balance < perk.price:
                raise InsufficientBalance(perk.price, balance)

            # 3-4. Duration
            duration_meta = self._draw_duration(perk)
            days = duration_meta['drawn_days']
            expires_at = now + timedelta(days=days)

            # 5. Debit + grant, committed together with the version check
            payment, account = await self.ledger.record(
                uow,
                account,
                EntryKind.PAYMENT,
                perk.price,
                reference=f'PERK-{uuid4().hex[:12].upper()}',
                metadata={'perk_type': perk.perk_type, 'store_id': store_id, **duration_meta},
                balance=balance,
            )
            entitlement = await uow.add_entitlement(
                store_id=store_id,
                perk_type=perk.perk_type,
                price_paid=perk.price,
                granted_duration_days=days,
                expires_at=expires_at,
                purchased_at=now,
                ledger_entry_id=payment.id,
                metadata={**duration_meta, 'features': list(perk.features)},
            )

        return PurchaseReceipt(entitlement, payment, payment.balance_after), account

    def _draw_duration(self, perk: PerkDefinition) -> dict:
        if isinstance(perk.duration, FixedDuration):
            return {'drawn_days': perk.duration.days, 'spin': False}
        spin = self.randomizer.draw(perk.duration.min_days, perk.duration.max_days)
        return {
            'drawn_days': spin.days,
            'spin': True,
            'spin_floor_days': spin.floor_days,
            'spin_max_days': spin.max_days,
        }

    async def _announce(
        self, owner: WalletAccount, receipt: PurchaseReceipt, perk: PerkDefinition,
    ) -> None:
        # 6. Post-commit side effects; none of them can undo the purchase
        entitlement = receipt.entitlement
        if self.events is not None:
            await self.events.publish(BalanceChanged(
                account_id=owner.id,
                user_id=owner.user_id,
                balance=receipt.balance_after,
                reason='perk_purchase',
            ))
            await self.events.publish(PerkActivated(
                store_id=entitlement.store_id,
                owner_id=owner.user_id,
                perk_type=entitlement.perk_type,
                granted_duration_days=entitlement.granted_duration_days,
                expires_at=entitlement.expires_at,
            ))

        await dispatch(
            self.notifier,
            owner.user_id,
            f'{perk.title} activated',
            f'Your {perk.title} is now active for {entitlement.granted_duration_days} days!',
            {
                'perk_type': entitlement.perk_type,
                'duration_days': entitlement.granted_duration_days,
                'entitlement_id': entitlement.id,
            },
        )
