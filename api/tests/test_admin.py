"""
Wallet freezes and the admin audit trail

Tests cover:
1. A frozen wallet refuses new requests, approvals and perk purchases
2. Unfreezing restores the wallet and leaves pending requests approvable
3. Every freeze and unfreeze writes exactly one audit row
"""
import asyncio

import pytest

from perkwallet.exceptions import AccountNotFound, InvalidTransition, WalletFrozen
from perkwallet.records import RequestStatus, RequestType

ADMIN = 900


class TestFreeze:
    async def test_freeze_blocks_new_requests(self, admin, ledger, wallet_requests, notifier):
        await ledger.ensure_account(7)

        account = await admin.freeze_wallet(7, 'Suspected chargeback', ADMIN)

        assert account.is_frozen
        assert account.frozen_by == ADMIN
        assert account.freeze_reason == 'Suspected chargeback'
        assert notifier.sent[-1]['title'] == 'Wallet frozen'
        with pytest.raises(WalletFrozen) as exc:
            await wallet_requests.submit(7, RequestType.DEPOSIT, 100)
        assert exc.value.user_id == 7

    async def test_approval_waits_for_unfreeze(self, store, admin, ledger, wallet_requests):
        request = await wallet_requests.submit(7, RequestType.DEPOSIT, 500)
        await admin.freeze_wallet(7, 'KYC review', ADMIN)

        with pytest.raises(WalletFrozen):
            await wallet_requests.approve_request(request.id, ADMIN)
        assert (await wallet_requests.get_request(request.id)).status == RequestStatus.PENDING
        assert store.entries == {}

        await admin.unfreeze_wallet(7, ADMIN)
        approved = await wallet_requests.approve_request(request.id, ADMIN)
        assert approved.status == RequestStatus.APPROVED
        assert await ledger.get_balance(7) == 500

    async def test_rejection_still_allowed(self, admin, wallet_requests):
        request = await wallet_requests.submit(7, RequestType.DEPOSIT, 500)
        await admin.freeze_wallet(7, 'KYC review', ADMIN)

        rejected = await wallet_requests.reject_request(request.id, 'Account under review', ADMIN)
        assert rejected.status == RequestStatus.REJECTED

    async def test_purchase_refused(self, store, admin, ledger, purchases, make_seller):
        shop = await make_seller(1, balance=100)
        await admin.freeze_wallet(1, 'Fraud report', ADMIN)

        with pytest.raises(WalletFrozen):
            await purchases.purchase(shop.id, 'verified_badge')
        assert store.entitlements == {}
        assert await ledger.get_balance(1) == 100

    async def test_freeze_during_purchase_wins(self, store, admin, ledger, purchases, make_seller):
        shop = await make_seller(1, balance=100)

        results = await asyncio.gather(
            admin.freeze_wallet(1, 'Fraud report', ADMIN),
            purchases.purchase(shop.id, 'verified_badge'),
            return_exceptions=True,
        )

        assert not isinstance(results[0], Exception)
        account = await ledger.get_account(1)
        assert account.is_frozen
        # Either the purchase committed before the freeze or it was refused
        if isinstance(results[1], Exception):
            assert isinstance(results[1], WalletFrozen)
            assert await ledger.get_balance(1) == 100
        else:
            assert await ledger.get_balance(1) == 71
        assert account.legacy_balance == await ledger.get_balance(1)

    async def test_double_freeze(self, admin, ledger):
        await ledger.ensure_account(7)
        await admin.freeze_wallet(7, 'First', ADMIN)
        with pytest.raises(InvalidTransition):
            await admin.freeze_wallet(7, 'Second', ADMIN)

    async def test_unfreeze_requires_freeze(self, admin, ledger):
        await ledger.ensure_account(7)
        with pytest.raises(InvalidTransition):
            await admin.unfreeze_wallet(7, ADMIN)

    async def test_unknown_wallet(self, admin):
        with pytest.raises(AccountNotFound):
            await admin.freeze_wallet(404, 'Nope', ADMIN)


class TestAuditTrail:
    async def test_freeze_and_unfreeze_each_write_one_row(self, store, admin, ledger, clock):
        await ledger.ensure_account(7)

        await admin.freeze_wallet(7, 'KYC review', ADMIN)
        clock.advance(hours=2)
        await admin.unfreeze_wallet(7, ADMIN + 1)

        logs = await admin.list_audit_logs(target_type='wallet', target_id=7)
        assert [log.action for log in logs] == ['unfreeze_wallet', 'freeze_wallet']
        assert logs[0].actor_id == ADMIN + 1
        assert logs[0].metadata == {'previous_reason': 'KYC review'}
        assert logs[1].metadata == {'reason': 'KYC review'}
        assert logs[1].created_at < logs[0].created_at
        assert len(store.audit_logs) == 2

    async def test_refused_freeze_writes_nothing(self, store, admin, ledger):
        await ledger.ensure_account(7)
        await admin.freeze_wallet(7, 'First', ADMIN)
        with pytest.raises(InvalidTransition):
            await admin.freeze_wallet(7, 'Second', ADMIN)
        assert len(store.audit_logs) == 1

    async def test_listing_filters_by_target(self, admin, ledger, wallet_requests):
        request = await wallet_requests.submit(7, RequestType.DEPOSIT, 100)
        await wallet_requests.approve_request(request.id, ADMIN)
        await admin.freeze_wallet(7, 'KYC review', ADMIN)

        assert len(await admin.list_audit_logs()) == 2
        requests_only = await admin.list_audit_logs(target_type='wallet_requests')
        assert [log.target_id for log in requests_only] == [request.id]
