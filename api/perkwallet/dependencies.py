"""FastAPI dependency wiring for the wallet engine.

Tests override ``get_wallet_store`` and ``get_notifier`` to run the same
routes against the in-memory store.
"""
from functools import lru_cache

from fastapi import Depends

from perkwallet.db.database import async_session
from perkwallet.events import EventBus, bus
from perkwallet.repositories.base import WalletStore
from perkwallet.repositories.sql import SqlWalletStore
from perkwallet.services.admin_service import WalletAdminService
from perkwallet.services.entitlement_service import EntitlementTracker
from perkwallet.services.ledger_service import LedgerService
from perkwallet.services.notification_service import Notifier, WebSocketNotifier
from perkwallet.services.purchase_service import PerkPurchaseService
from perkwallet.services.reconciliation_service import ReconciliationService
from perkwallet.services.wallet_request_service import WalletRequestService
from perkwallet.services.ws_manager import manager


@lru_cache
def get_wallet_store() -> WalletStore:
    return SqlWalletStore(async_session)


def get_event_bus() -> EventBus:
    return bus


def get_notifier() -> Notifier:
    return WebSocketNotifier(manager)


def get_ledger_service(
    store: WalletStore = Depends(get_wallet_store),
    events: EventBus = Depends(get_event_bus),
) -> LedgerService:
    return LedgerService(store, events)


def get_purchase_service(
    store: WalletStore = Depends(get_wallet_store),
    notifier: Notifier = Depends(get_notifier),
    events: EventBus = Depends(get_event_bus),
) -> PerkPurchaseService:
    return PerkPurchaseService(store, notifier, events)


def get_entitlement_tracker(
    store: WalletStore = Depends(get_wallet_store),
) -> EntitlementTracker:
    return EntitlementTracker(store)


def get_wallet_request_service(
    store: WalletStore = Depends(get_wallet_store),
    notifier: Notifier = Depends(get_notifier),
    events: EventBus = Depends(get_event_bus),
) -> WalletRequestService:
    return WalletRequestService(store, notifier, events)


def get_reconciliation_service(
    store: WalletStore = Depends(get_wallet_store),
) -> ReconciliationService:
    return ReconciliationService(store)


def get_wallet_admin_service(
    store: WalletStore = Depends(get_wallet_store),
    notifier: Notifier = Depends(get_notifier),
) -> WalletAdminService:
    return WalletAdminService(store, notifier)
