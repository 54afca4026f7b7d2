"""
Reminder Worker

Background service that handles periodic wallet/perk tasks:
- Daily: Remind store owners whose perks expire within the renewal window
- Daily: Log ledger vs. running-balance discrepancies for finance

Uses APScheduler for job scheduling.
"""
import asyncio
import logging
from datetime import datetime
from typing import Callable

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from perkwallet.config import settings
from perkwallet.repositories.base import WalletStore
from perkwallet.services.entitlement_service import EntitlementTracker, remaining_days
from perkwallet.services.notification_service import Notifier, dispatch
from perkwallet.services.perk_catalog import catalog
from perkwallet.services.reconciliation_service import ReconciliationService
from perkwallet.timeutil import utcnow

logger = logging.getLogger('reminder_worker')


class ReminderWorker:
    """Background worker for perk reminders and balance checks."""

    def __init__(
        self,
        store: WalletStore,
        notifier: Notifier,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.notifier = notifier
        self.clock = clock
        self.tracker = EntitlementTracker(store, clock=clock)
        self.reconciliation = ReconciliationService(store, clock=clock)
        self.scheduler = AsyncIOScheduler()

    async def start(self):
        """Start the worker and scheduler."""
        logger.info('Starting Reminder Worker...')

        self.scheduler.add_job(
            self._run_expiry_reminders,
            CronTrigger(hour=settings.reminder_hour_utc, minute=0),
            id='expiry_reminders',
            name='Perk Expiry Reminders',
            replace_existing=True,
        )

        self.scheduler.add_job(
            self._run_reconciliation,
            CronTrigger(hour=(settings.reminder_hour_utc + 1) % 24, minute=0),
            id='reconciliation',
            name='Wallet Balance Reconciliation',
            replace_existing=True,
        )

        self.scheduler.start()
        logger.info('Scheduler started. Jobs:')
        for job in self.scheduler.get_jobs():
            logger.info(f'  - {job.name}: next run at {job.next_run_time}')

        # Keep running
        try:
            while True:
                await asyncio.sleep(60)
        except (KeyboardInterrupt, SystemExit, asyncio.CancelledError):
            logger.info('Shutting down...')
            self.scheduler.shutdown()

    async def _run_expiry_reminders(self) -> dict:
        """Notify owners of entitlements inside the expiring-soon window."""
        logger.info('Running expiry reminders...')
        now = self.clock()
        expiring = await self.tracker.expiring_soon()

        sent = failed = 0
        async with self.store.unit_of_work() as uow:
            owners = {}
            for entitlement in expiring:
                if entitlement.store_id not in owners:
                    store = await uow.get_store(entitlement.store_id)
                    owners[entitlement.store_id] = store.owner_id if store else None

        for entitlement in expiring:
            owner_id = owners.get(entitlement.store_id)
            if owner_id is None:
                continue
            days = remaining_days(entitlement, now)
            title = (
                catalog.get(entitlement.perk_type).title
                if entitlement.perk_type in catalog else entitlement.perk_type
            )
            ok = await dispatch(
                self.notifier,
                owner_id,
                f'{title} expires soon',
                f'Your {title} expires in {days} day{"s" if days != 1 else ""}. Renew to keep it active.',
                {
                    'entitlement_id': entitlement.id,
                    'perk_type': entitlement.perk_type,
                    'remaining_days': days,
                },
            )
            if ok:
                sent += 1
            else:
                failed += 1

        result = {'expiring': len(expiring), 'sent': sent, 'failed': failed}
        logger.info(f'Reminder result: {result}')
        return result

    async def _run_reconciliation(self) -> dict:
        """Log accounts whose running balance disagrees with the ledger."""
        logger.info('Running reconciliation...')
        try:
            issues = await self.reconciliation.check_accounts()
            stale = await self.reconciliation.stale_pending_entries()
        except Exception as e:
            logger.error(f'Reconciliation failed: {e}', exc_info=True)
            raise

        result = {'discrepancies': len(issues), 'stale_pending': len(stale)}
        logger.info(f'Reconciliation result: {result}')
        return result

    async def run_once(self, job_type: str = 'reminders'):
        """Run a single job immediately (for testing)."""
        if job_type == 'reminders':
            return await self._run_expiry_reminders()
        elif job_type == 'reconciliation':
            return await self._run_reconciliation()
        else:
            raise ValueError(f'Unknown job type: {job_type}')


async def main():
    """Entry point for the worker."""
    logging.basicConfig(
        level=settings.log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )

    from perkwallet.db.database import async_session
    from perkwallet.repositories.sql import SqlWalletStore
    from perkwallet.services.notification_service import WebSocketNotifier
    from perkwallet.services.ws_manager import manager

    worker = ReminderWorker(SqlWalletStore(async_session), WebSocketNotifier(manager))
    await worker.start()


if __name__ == '__main__':
    asyncio.run(main())
