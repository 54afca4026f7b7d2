import random
from datetime import datetime, timedelta

import pytest
from httpx import AsyncClient, ASGITransport

from perkwallet.dependencies import get_event_bus, get_notifier, get_wallet_store
from perkwallet.events import EventBus
from perkwallet.exceptions import NotificationDispatchFailure
from perkwallet.main import app
from perkwallet.records import EntryKind
from perkwallet.repositories.memory import InMemoryWalletStore
from perkwallet.services.admin_service import WalletAdminService
from perkwallet.services.entitlement_service import EntitlementTracker
from perkwallet.services.ledger_service import LedgerService
from perkwallet.services.purchase_service import PerkPurchaseService
from perkwallet.services.spin_service import SpinRandomizer
from perkwallet.services.wallet_request_service import WalletRequestService


START = datetime(2026, 3, 1, 12, 0, 0)


class FrozenClock:
    """Injectable clock that only moves when a test says so."""

    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class RecordingNotifier:
    def __init__(self):
        self.sent = []

    async def notify(self, user_id, title, body, metadata=None):
        self.sent.append({'user_id': user_id, 'title': title, 'body': body, 'metadata': metadata})


class FailingNotifier:
    async def notify(self, user_id, title, body, metadata=None):
        raise NotificationDispatchFailure('push gateway unavailable')


@pytest.fixture
def store():
    return InMemoryWalletStore()


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def events():
    return EventBus()


@pytest.fixture
def published(events):
    """Every event published on the test bus, in order."""
    seen = []

    async def record(event):
        seen.append(event)

    events.subscribe(record)
    return seen


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def randomizer(rng):
    return SpinRandomizer(rng, floor_ratio=0.2)


@pytest.fixture
def ledger(store, events):
    return LedgerService(store, events)


@pytest.fixture
def purchases(store, notifier, events, randomizer, clock):
    return PerkPurchaseService(store, notifier, events, randomizer=randomizer, clock=clock)


@pytest.fixture
def tracker(store, clock):
    return EntitlementTracker(store, clock=clock, expiring_soon_days=3)


@pytest.fixture
def wallet_requests(store, notifier, events, clock):
    return WalletRequestService(store, notifier, events, clock=clock, fee_percent=0)


@pytest.fixture
def admin(store, notifier, clock):
    return WalletAdminService(store, notifier, clock=clock)


@pytest.fixture
def make_seller(store, ledger):
    """Create a wallet, a store for it and an opening deposit."""
    async def _make(owner_id: int, balance: int = 0, name: str | None = None):
        await ledger.ensure_account(owner_id)
        async with store.unit_of_work() as uow:
            shop = await uow.create_store(owner_id, name or f'Store {owner_id}')
        if balance:
            await ledger.post(owner_id, EntryKind.DEPOSIT, balance, f'SEED-{owner_id}')
        return shop

    return _make


@pytest.fixture
async def client(store, notifier, events):
    """Async HTTP client running the app against the in-memory store."""
    app.dependency_overrides[get_wallet_store] = lambda: store
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_event_bus] = lambda: events
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url='http://test') as ac:
        yield ac
    app.dependency_overrides.clear()
