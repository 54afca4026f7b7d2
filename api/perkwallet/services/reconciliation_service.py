"""Finance consistency checks for the admin dashboard.

Compares each account's running ``legacy_balance`` with the balance folded
from its ledger, and flags pending entries that never settled.
"""
import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from perkwallet.records import LedgerEntry
from perkwallet.repositories.base import WalletStore
from perkwallet.services.balance_service import compute_balance
from perkwallet.timeutil import utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class BalanceDiscrepancy:
    account_id: int
    user_id: int
    legacy_balance: int
    ledger_balance: int

    @property
    def difference(self) -> int:
        return self.legacy_balance - self.ledger_balance


@dataclass(frozen=True, slots=True)
class PerkRevenue:
    perk_type: str
    sales: int
    total_revenue: int


class ReconciliationService:
    def __init__(self, store: WalletStore, clock: Callable[[], datetime] = utcnow):
        self.store = store
        self.clock = clock

    async def check_accounts(self) -> list[BalanceDiscrepancy]:
        """Accounts whose running balance disagrees with the ledger, or whose ledger is negative."""
        issues = []
        async with self.store.unit_of_work() as uow:
            for account in await uow.list_accounts():
                ledger_balance = compute_balance(await uow.list_entries(account.id))
                if ledger_balance != account.legacy_balance or ledger_balance < 0:
                    issues.append(BalanceDiscrepancy(
                        account_id=account.id,
                        user_id=account.user_id,
                        legacy_balance=account.legacy_balance,
                        ledger_balance=ledger_balance,
                    ))

        for issue in issues:
            logger.warning(
                f'Balance mismatch on account {issue.account_id}: '
                f'legacy={issue.legacy_balance} ledger={issue.ledger_balance}'
            )
        return issues

    async def stale_pending_entries(self, older_than: timedelta = timedelta(hours=24)) -> list[LedgerEntry]:
        async with self.store.unit_of_work() as uow:
            return list(await uow.list_pending_entries(self.clock() - older_than))

    async def perk_revenue(self) -> list[PerkRevenue]:
        """Revenue per perk type from every entitlement sold, highest first."""
        sales: dict[str, int] = defaultdict(int)
        totals: dict[str, int] = defaultdict(int)
        async with self.store.unit_of_work() as uow:
            for entitlement in await uow.list_all_entitlements():
                sales[entitlement.perk_type] += 1
                totals[entitlement.perk_type] += entitlement.price_paid

        report = [
            PerkRevenue(perk_type=perk_type, sales=sales[perk_type], total_revenue=total)
            for perk_type, total in totals.items()
        ]
        report.sort(key=lambda r: (-r.total_revenue, r.perk_type))
        return report
