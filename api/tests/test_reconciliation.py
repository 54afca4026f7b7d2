from dataclasses import replace
from datetime import timedelta

from perkwallet.records import EntryKind, EntryStatus
from perkwallet.services.ledger_service import LedgerService
from perkwallet.services.reconciliation_service import ReconciliationService
from perkwallet.timeutil import utcnow


async def test_consistent_ledger_has_no_discrepancies(store, ledger, purchases, make_seller):
    shop = await make_seller(1, balance=300)
    await make_seller(2, balance=50)
    await purchases.purchase(shop.id, 'boosted_visibility')

    assert await ReconciliationService(store).check_accounts() == []


async def test_drift_is_reported(store, ledger, make_seller):
    await make_seller(1, balance=100)
    account = await ledger.get_account(1)
    store.accounts[account.id] = replace(account, legacy_balance=130)

    [issue] = await ReconciliationService(store).check_accounts()

    assert issue.account_id == account.id
    assert issue.user_id == 1
    assert issue.legacy_balance == 130
    assert issue.ledger_balance == 100
    assert issue.difference == 30


async def test_stale_pending_entries(store, ledger):
    await ledger.ensure_account(1)
    pending = await ledger.post(1, EntryKind.DEPOSIT, 40, 'DEP-P', status=EntryStatus.PENDING)

    now = ReconciliationService(store)
    later = ReconciliationService(store, clock=lambda: utcnow() + timedelta(hours=25))

    assert await now.stale_pending_entries() == []
    assert [e.id for e in await later.stale_pending_entries()] == [pending.id]


async def test_stale_pending_entries_follow_the_injected_clock(store, events, clock):
    ledger = LedgerService(store, events, clock=clock)
    await ledger.ensure_account(1)
    pending = await ledger.post(1, EntryKind.DEPOSIT, 40, 'DEP-P', status=EntryStatus.PENDING)
    assert pending.created_at == clock.now

    reconciliation = ReconciliationService(store, clock=clock)
    clock.advance(hours=23)
    assert await reconciliation.stale_pending_entries() == []
    clock.advance(hours=2)
    assert [e.id for e in await reconciliation.stale_pending_entries()] == [pending.id]


async def test_perk_revenue(store, purchases, make_seller, clock):
    first = await make_seller(1, balance=500)
    second = await make_seller(2, balance=500)
    await purchases.purchase(first.id, 'verified_badge')
    await purchases.purchase(second.id, 'verified_badge')
    await purchases.purchase(first.id, 'premium_theme')

    report = await ReconciliationService(store).perk_revenue()

    assert [(r.perk_type, r.sales, r.total_revenue) for r in report] == [
        ('premium_theme', 1, 150),
        ('verified_badge', 2, 58),
    ]
