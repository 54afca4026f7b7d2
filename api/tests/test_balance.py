import pytest

from perkwallet.exceptions import AccountNotFound, InsufficientBalance, InvalidTransition
from perkwallet.records import EntryKind, EntryStatus, LedgerEntry
from perkwallet.services.balance_service import BalanceCalculator, compute_balance, signed_amount

from conftest import START


def entry(kind, amount, status=EntryStatus.SUCCESS, id=1):
    return LedgerEntry(
        id=id,
        account_id=1,
        kind=kind,
        amount=amount,
        status=status,
        reference=f'T-{id}',
        balance_after=0,
        created_at=START,
    )


class TestComputeBalance:
    def test_only_successful_entries_count(self):
        entries = [
            entry(EntryKind.DEPOSIT, 100, id=1),
            entry(EntryKind.PAYMENT, 30, id=2),
            entry(EntryKind.WITHDRAWAL, 50, EntryStatus.PENDING, id=3),
            entry(EntryKind.REFUND, 10, EntryStatus.FAILED, id=4),
            entry(EntryKind.EARNING, 5, EntryStatus.REVERSED, id=5),
        ]
        assert compute_balance(entries) == 70

    def test_empty_ledger_is_zero(self):
        assert compute_balance([]) == 0

    def test_negative_result_is_not_clamped(self):
        assert compute_balance([entry(EntryKind.PAYMENT, 30)]) == -30

    def test_sign_comes_from_kind(self):
        assert signed_amount(EntryKind.EARNING, 7) == 7
        assert signed_amount(EntryKind.REFUND, 7) == 7
        assert signed_amount(EntryKind.WITHDRAWAL, 7) == -7

    def test_unknown_kind_rejected(self):
        with pytest.raises(ValueError):
            signed_amount('bogus', 1)


class TestLedgerService:
    async def test_post_moves_ledger_and_running_balance_together(self, store, ledger):
        account = await ledger.ensure_account(1)
        await ledger.post(1, EntryKind.DEPOSIT, 100, 'DEP-1')
        await ledger.post(1, EntryKind.PAYMENT, 40, 'PAY-1')

        assert await ledger.get_balance(1) == 60
        assert await BalanceCalculator(store).balance(account.id) == 60
        assert store.accounts[account.id].legacy_balance == 60
        assert store.accounts[account.id].version == 2

    async def test_balance_after_is_recorded(self, ledger):
        await ledger.ensure_account(1)
        first = await ledger.post(1, EntryKind.DEPOSIT, 100, 'DEP-1')
        second = await ledger.post(1, EntryKind.PAYMENT, 25, 'PAY-1')
        assert first.balance_after == 100
        assert second.balance_after == 75

    async def test_overdraw_rejected_without_writing(self, store, ledger):
        await ledger.ensure_account(1)
        await ledger.post(1, EntryKind.DEPOSIT, 10, 'DEP-1')

        with pytest.raises(InsufficientBalance) as exc:
            await ledger.post(1, EntryKind.WITHDRAWAL, 11, 'WTH-1')

        assert exc.value.required == 11
        assert exc.value.available == 10
        assert len(store.entries) == 1

    async def test_non_positive_amount_rejected(self, ledger):
        await ledger.ensure_account(1)
        with pytest.raises(ValueError):
            await ledger.post(1, EntryKind.DEPOSIT, 0, 'DEP-0')

    async def test_unknown_user(self, ledger):
        with pytest.raises(AccountNotFound):
            await ledger.get_balance(404)

    async def test_ensure_account_is_idempotent(self, store, ledger):
        first = await ledger.ensure_account(1)
        second = await ledger.ensure_account(1)
        assert first.id == second.id
        assert len(store.accounts) == 1

    async def test_pending_entry_settles_once(self, store, ledger):
        account = await ledger.ensure_account(1)
        pending = await ledger.post(1, EntryKind.EARNING, 50, 'EARN-1', status=EntryStatus.PENDING)

        assert await ledger.get_balance(1) == 0
        assert store.accounts[account.id].legacy_balance == 0

        settled = await ledger.settle_entry(pending.id, succeeded=True)
        assert settled.status == EntryStatus.SUCCESS
        assert await ledger.get_balance(1) == 50
        assert store.accounts[account.id].legacy_balance == 50

        with pytest.raises(InvalidTransition):
            await ledger.settle_entry(pending.id, succeeded=False)

    async def test_failed_settlement_leaves_balance(self, ledger):
        await ledger.ensure_account(1)
        pending = await ledger.post(1, EntryKind.DEPOSIT, 50, 'DEP-1', status=EntryStatus.PENDING)
        failed = await ledger.settle_entry(pending.id, succeeded=False)
        assert failed.status == EntryStatus.FAILED
        assert await ledger.get_balance(1) == 0

    async def test_history_newest_first_with_kind_filter(self, ledger):
        await ledger.ensure_account(1)
        await ledger.post(1, EntryKind.DEPOSIT, 100, 'DEP-1')
        await ledger.post(1, EntryKind.PAYMENT, 10, 'PAY-1')
        await ledger.post(1, EntryKind.PAYMENT, 20, 'PAY-2')

        history = await ledger.get_history(1)
        assert [e.reference for e in history] == ['PAY-2', 'PAY-1', 'DEP-1']

        payments = await ledger.get_history(1, kind=EntryKind.PAYMENT, limit=1)
        assert [e.reference for e in payments] == ['PAY-2']

    async def test_post_publishes_balance_change(self, ledger, published):
        await ledger.ensure_account(1)
        await ledger.post(1, EntryKind.DEPOSIT, 100, 'DEP-1')
        assert published[-1].balance == 100
        assert published[-1].reason == 'deposit'
