"""Balance calculation.

The spendable balance is always a fold over the ledger: successful credits
minus successful debits. Nothing is clamped, so a negative result stays
visible to reconciliation.
"""
from typing import Iterable

from perkwallet.records import EntryKind, EntryStatus, LedgerEntry
from perkwallet.repositories.base import WalletStore

CREDIT_KINDS = frozenset({EntryKind.DEPOSIT, EntryKind.EARNING, EntryKind.REFUND})
DEBIT_KINDS = frozenset({EntryKind.WITHDRAWAL, EntryKind.PAYMENT})


def signed_amount(kind: EntryKind, amount: int) -> int:
    """Ledger amounts are stored positive; the kind decides the sign."""
    if kind in CREDIT_KINDS:
        return amount
    if kind in DEBIT_KINDS:
        return -amount
    raise ValueError(f'Unknown ledger entry kind: {kind}')


def compute_balance(entries: Iterable[LedgerEntry]) -> int:
    return sum(
        signed_amount(entry.kind, entry.amount)
        for entry in entries
        if entry.status == EntryStatus.SUCCESS
    )


class BalanceCalculator:
    """Reads an account's ledger and folds it into a balance."""

    def __init__(self, store: WalletStore):
        self.store = store

    async def balance(self, account_id: int) -> int:
        async with self.store.unit_of_work() as uow:
            entries = await uow.list_entries(account_id)
        return compute_balance(entries)
