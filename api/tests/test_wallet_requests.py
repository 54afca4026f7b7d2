import asyncio

import pytest

from perkwallet.exceptions import AlreadyProcessed, InsufficientBalance, RequestNotFound
from perkwallet.records import EntryKind, RequestStatus, RequestType
from perkwallet.services.wallet_request_service import WalletRequestService

ADMIN = 900


class TestDeposit:
    async def test_approval_credits_once(self, store, ledger, wallet_requests, clock):
        request = await wallet_requests.submit(7, RequestType.DEPOSIT, 500, 'receipt-1.png')
        assert request.status == RequestStatus.PENDING
        assert await ledger.get_balance(7) == 0

        approved = await wallet_requests.approve_request(request.id, ADMIN, 'Looks good')

        assert approved.status == RequestStatus.APPROVED
        assert approved.reviewed_by == ADMIN
        assert approved.reviewed_at == clock.now
        assert approved.admin_notes == 'Looks good'
        assert approved.ledger_entry_id is not None
        entry = store.entries[approved.ledger_entry_id]
        assert entry.kind == EntryKind.DEPOSIT
        assert entry.reference == f'DEP-{request.id}'
        assert entry.created_at == clock.now
        assert await ledger.get_balance(7) == 500

        with pytest.raises(AlreadyProcessed):
            await wallet_requests.approve_request(request.id, ADMIN)
        assert await ledger.get_balance(7) == 500
        assert (await ledger.get_account(7)).legacy_balance == 500

    async def test_concurrent_approvals_credit_once(self, ledger, wallet_requests):
        request = await wallet_requests.submit(7, RequestType.DEPOSIT, 500)

        results = await asyncio.gather(
            wallet_requests.approve_request(request.id, ADMIN),
            wallet_requests.approve_request(request.id, ADMIN + 1),
            return_exceptions=True,
        )

        failures = [r for r in results if isinstance(r, Exception)]
        assert len(failures) == 1
        assert isinstance(failures[0], AlreadyProcessed)
        assert await ledger.get_balance(7) == 500

    async def test_fee_is_deducted(self, store, ledger, notifier, clock):
        service = WalletRequestService(store, notifier, clock=clock, fee_percent=2)
        request = await service.submit(7, RequestType.DEPOSIT, 500)
        approved = await service.approve_request(request.id, ADMIN)

        assert await ledger.get_balance(7) == 490
        metadata = store.entries[approved.ledger_entry_id].metadata
        assert metadata['original_amount'] == 500
        assert metadata['fee_percentage'] == 2

    def test_invalid_fee(self, store, notifier):
        with pytest.raises(ValueError):
            WalletRequestService(store, notifier, fee_percent=100)

    async def test_approval_notifies_user(self, wallet_requests, notifier):
        request = await wallet_requests.submit(7, RequestType.DEPOSIT, 100)
        await wallet_requests.approve_request(request.id, ADMIN)
        assert notifier.sent[-1]['user_id'] == 7
        assert notifier.sent[-1]['title'] == 'Wallet deposit approved'
        assert notifier.sent[-1]['metadata']['balance'] == 100


class TestReject:
    async def test_reject_moves_nothing(self, store, ledger, wallet_requests, notifier):
        request = await wallet_requests.submit(7, RequestType.DEPOSIT, 500)

        rejected = await wallet_requests.reject_request(request.id, 'Receipt unreadable', ADMIN)

        assert rejected.status == RequestStatus.REJECTED
        assert rejected.admin_notes == 'Receipt unreadable'
        assert rejected.ledger_entry_id is None
        assert store.entries == {}
        assert await ledger.get_balance(7) == 0
        assert notifier.sent[-1]['body'] == 'Receipt unreadable'

    async def test_terminal_states_are_final(self, wallet_requests):
        request = await wallet_requests.submit(7, RequestType.DEPOSIT, 500)
        await wallet_requests.reject_request(request.id, 'No', ADMIN)

        with pytest.raises(AlreadyProcessed):
            await wallet_requests.approve_request(request.id, ADMIN)
        with pytest.raises(AlreadyProcessed):
            await wallet_requests.reject_request(request.id, 'Again', ADMIN)

    async def test_unknown_request(self, wallet_requests):
        with pytest.raises(RequestNotFound):
            await wallet_requests.approve_request(404, ADMIN)


class TestWithdrawal:
    async def test_withdrawal_debits_on_approval(self, ledger, wallet_requests):
        deposit = await wallet_requests.submit(7, RequestType.DEPOSIT, 500)
        await wallet_requests.approve_request(deposit.id, ADMIN)

        withdrawal = await wallet_requests.submit(7, RequestType.WITHDRAWAL, 200)
        assert await ledger.get_balance(7) == 500

        await wallet_requests.approve_request(withdrawal.id, ADMIN)
        assert await ledger.get_balance(7) == 300

    async def test_withdrawal_records_net_payout(self, store, ledger, notifier, clock):
        service = WalletRequestService(store, notifier, clock=clock, fee_percent=2)
        await ledger.ensure_account(7)
        await ledger.post(7, EntryKind.DEPOSIT, 500, 'DEP-SEED')

        withdrawal = await service.submit(7, RequestType.WITHDRAWAL, 250)
        approved = await service.approve_request(withdrawal.id, ADMIN)

        entry = store.entries[approved.ledger_entry_id]
        assert entry.amount == 250
        assert entry.metadata['fee_percentage'] == 2
        assert entry.metadata['net_payout'] == 245
        assert await ledger.get_balance(7) == 250

    async def test_submit_requires_funds(self, wallet_requests):
        with pytest.raises(InsufficientBalance):
            await wallet_requests.submit(7, RequestType.WITHDRAWAL, 1)

    async def test_short_funds_at_approval_keep_request_pending(self, ledger, wallet_requests):
        deposit = await wallet_requests.submit(7, RequestType.DEPOSIT, 500)
        await wallet_requests.approve_request(deposit.id, ADMIN)

        big = await wallet_requests.submit(7, RequestType.WITHDRAWAL, 400)
        small = await wallet_requests.submit(7, RequestType.WITHDRAWAL, 300)
        await wallet_requests.approve_request(small.id, ADMIN)

        with pytest.raises(InsufficientBalance):
            await wallet_requests.approve_request(big.id, ADMIN)

        assert (await wallet_requests.get_request(big.id)).status == RequestStatus.PENDING
        assert await ledger.get_balance(7) == 200


class TestQueue:
    async def test_concurrent_first_submissions(self, store, wallet_requests):
        results = await asyncio.gather(
            wallet_requests.submit(11, RequestType.DEPOSIT, 100),
            wallet_requests.submit(11, RequestType.DEPOSIT, 200),
            return_exceptions=True,
        )

        assert not [r for r in results if isinstance(r, Exception)]
        assert len(store.accounts) == 1
        assert sorted(r.amount for r in store.requests.values()) == [100, 200]

    async def test_submit_validates_amount(self, wallet_requests):
        with pytest.raises(ValueError):
            await wallet_requests.submit(7, RequestType.DEPOSIT, 0)

    async def test_listing_filters(self, wallet_requests):
        first = await wallet_requests.submit(7, RequestType.DEPOSIT, 100)
        await wallet_requests.submit(8, RequestType.DEPOSIT, 200)
        await wallet_requests.approve_request(first.id, ADMIN)

        assert [r.user_id for r in await wallet_requests.list_for_user(7)] == [7]
        pending = await wallet_requests.list_requests(RequestStatus.PENDING)
        assert [r.user_id for r in pending] == [8]
        assert len(await wallet_requests.list_requests()) == 2


class TestAuditTrail:
    async def test_one_row_per_approval(self, store, wallet_requests, clock):
        request = await wallet_requests.submit(7, RequestType.DEPOSIT, 500)
        await wallet_requests.approve_request(request.id, ADMIN)

        logs = list(store.audit_logs.values())
        assert len(logs) == 1
        assert logs[0].action == 'wallet_request_approved'
        assert logs[0].actor_id == ADMIN
        assert logs[0].target_type == 'wallet_requests'
        assert logs[0].target_id == request.id
        assert logs[0].description == 'deposit approved for user 7'
        assert logs[0].metadata['amount'] == 500
        assert logs[0].created_at == clock.now

    async def test_one_row_per_rejection(self, store, wallet_requests):
        request = await wallet_requests.submit(7, RequestType.DEPOSIT, 500)
        await wallet_requests.reject_request(request.id, 'Receipt unreadable', ADMIN)

        logs = list(store.audit_logs.values())
        assert [log.action for log in logs] == ['wallet_request_rejected']
        assert logs[0].metadata['reason'] == 'Receipt unreadable'

    async def test_losing_approval_leaves_no_row(self, store, wallet_requests):
        request = await wallet_requests.submit(7, RequestType.DEPOSIT, 500)

        await asyncio.gather(
            wallet_requests.approve_request(request.id, ADMIN),
            wallet_requests.approve_request(request.id, ADMIN + 1),
            return_exceptions=True,
        )

        assert len(store.audit_logs) == 1

    async def test_failed_approval_leaves_no_row(self, store, wallet_requests):
        request = await wallet_requests.submit(7, RequestType.DEPOSIT, 500)
        await wallet_requests.approve_request(request.id, ADMIN)
        withdrawal = await wallet_requests.submit(7, RequestType.WITHDRAWAL, 500)
        await wallet_requests.submit(7, RequestType.WITHDRAWAL, 500)
        await wallet_requests.approve_request(withdrawal.id, ADMIN)
        audits_before = len(store.audit_logs)

        pending = await wallet_requests.list_requests(RequestStatus.PENDING)
        with pytest.raises(InsufficientBalance):
            await wallet_requests.approve_request(pending[0].id, ADMIN)
        assert len(store.audit_logs) == audits_before
