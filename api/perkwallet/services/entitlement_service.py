"""Entitlement tracker: which perks a store holds right now, and for how long.

Read-only. An entitlement is active while ``is_active`` is set and
``expires_at`` has not passed; nothing deactivates it on expiry.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from perkwallet.config import settings
from perkwallet.records import PerkEntitlement
from perkwallet.repositories.base import WalletStore
from perkwallet.services.perk_catalog import PerkCatalog, catalog as default_catalog
from perkwallet.timeutil import utcnow

ONE_DAY = timedelta(days=1)


def remaining_days(entitlement: PerkEntitlement, now: datetime) -> int:
    """Whole days left, rounded up; 0 once expires_at is reached."""
    left = entitlement.expires_at - now
    if left <= timedelta(0):
        return 0
    # ceil(left / 1 day) without floating point
    return -(-left // ONE_DAY)


def is_expiring_soon(
    entitlement: PerkEntitlement, now: datetime, threshold_days: int | None = None,
) -> bool:
    threshold = settings.expiring_soon_days if threshold_days is None else threshold_days
    return remaining_days(entitlement, now) <= threshold


@dataclass(frozen=True, slots=True)
class ActivePerk:
    """An active entitlement with its countdown, as shown on the perks screen."""
    entitlement: PerkEntitlement
    remaining_days: int
    expiring_soon: bool


class EntitlementTracker:
    def __init__(
        self,
        store: WalletStore,
        catalog: PerkCatalog | None = None,
        clock: Callable[[], datetime] = utcnow,
        expiring_soon_days: int | None = None,
    ):
        self.store = store
        self.catalog = catalog or default_catalog
        self.clock = clock
        self.expiring_soon_days = (
            settings.expiring_soon_days if expiring_soon_days is None else expiring_soon_days
        )

    async def active_for(self, store_id: int) -> list[PerkEntitlement]:
        """Active entitlements for a store, most urgent renewal first."""
        async with self.store.unit_of_work() as uow:
            return list(await uow.list_active_entitlements(store_id, self.clock()))

    async def active_perks(self, store_id: int) -> list[ActivePerk]:
        now = self.clock()
        return [
            ActivePerk(
                entitlement=e,
                remaining_days=remaining_days(e, now),
                expiring_soon=is_expiring_soon(e, now, self.expiring_soon_days),
            )
            for e in await self.active_for(store_id)
        ]

    async def has_perk(self, store_id: int, perk_type: str) -> bool:
        return any(e.perk_type == perk_type for e in await self.active_for(store_id))

    async def ranking_boost(self, store_id: int) -> int:
        """Listing rank bonus from active perks. Unknown perk types add nothing."""
        boost = 0
        for perk_type in {e.perk_type for e in await self.active_for(store_id)}:
            if perk_type in self.catalog:
                boost += self.catalog.get(perk_type).ranking_boost
        return boost

    async def history(self, store_id: int) -> list[PerkEntitlement]:
        """Every entitlement ever granted to the store, newest first."""
        async with self.store.unit_of_work() as uow:
            return list(await uow.list_entitlements(store_id))

    async def expiring_soon(self) -> list[PerkEntitlement]:
        """Active entitlements across all stores that are inside the renewal window."""
        now = self.clock()
        until = now + timedelta(days=self.expiring_soon_days)
        async with self.store.unit_of_work() as uow:
            return list(await uow.list_entitlements_expiring(now, until))
