"""Administrator wallet controls: freeze, unfreeze and the audit trail.

A frozen wallet accepts no new requests, no approvals and no perk
purchases. Freezing bumps the account version, so an approval or purchase
already in flight conflicts at commit and re-reads the frozen state.
"""
import logging
from datetime import datetime
from typing import Callable

from perkwallet.config import settings
from perkwallet.exceptions import AccountNotFound, InvalidTransition
from perkwallet.records import AuditLog, WalletAccount
from perkwallet.repositories.base import WalletStore
from perkwallet.services.notification_service import Notifier, dispatch
from perkwallet.services.retry import retry_on_conflict
from perkwallet.timeutil import utcnow

logger = logging.getLogger(__name__)


class WalletAdminService:
    def __init__(
        self,
        store: WalletStore,
        notifier: Notifier,
        clock: Callable[[], datetime] = utcnow,
        retries: int | None = None,
    ):
        self.store = store
        self.notifier = notifier
        self.clock = clock
        self.retries = settings.purchase_retry_attempts if retries is None else retries

    async def freeze_wallet(self, user_id: int, reason: str, actor_id: int | None = None) -> WalletAccount:
        """Freeze a wallet. Raises InvalidTransition if it is already frozen."""
        async def attempt():
            async with self.store.unit_of_work() as uow:
                account = await self._account(uow, user_id)
                if account.is_frozen:
                    raise InvalidTransition(f'Wallet of user {user_id} is already frozen')
                now = self.clock()
                account = await uow.set_freeze(account, frozen_at=now, frozen_by=actor_id, reason=reason)
                await uow.add_audit(
                    actor_id=actor_id,
                    action='freeze_wallet',
                    target_type='wallet',
                    target_id=user_id,
                    description=f'Froze wallet of user {user_id}',
                    metadata={'reason': reason},
                    created_at=now,
                )
                return account

        account = await retry_on_conflict(attempt, self.retries, f'freeze_wallet({user_id})')
        logger.info(f'Wallet of user {user_id} frozen by {actor_id}: {reason}')
        await dispatch(
            self.notifier,
            user_id,
            'Wallet frozen',
            'Your wallet has been frozen. Please contact support.',
            {'reason': reason},
        )
        return account

    async def unfreeze_wallet(self, user_id: int, actor_id: int | None = None) -> WalletAccount:
        """Lift a freeze. Raises InvalidTransition if the wallet is not frozen."""
        async def attempt():
            async with self.store.unit_of_work() as uow:
                account = await self._account(uow, user_id)
                if not account.is_frozen:
                    raise InvalidTransition(f'Wallet of user {user_id} is not frozen')
                previous_reason = account.freeze_reason
                account = await uow.set_freeze(account, frozen_at=None, frozen_by=None, reason=None)
                await uow.add_audit(
                    actor_id=actor_id,
                    action='unfreeze_wallet',
                    target_type='wallet',
                    target_id=user_id,
                    description=f'Unfroze wallet of user {user_id}',
                    metadata={'previous_reason': previous_reason},
                    created_at=self.clock(),
                )
                return account

        account = await retry_on_conflict(attempt, self.retries, f'unfreeze_wallet({user_id})')
        logger.info(f'Wallet of user {user_id} unfrozen by {actor_id}')
        await dispatch(
            self.notifier,
            user_id,
            'Wallet unfrozen',
            'Your wallet is active again.',
        )
        return account

    async def list_audit_logs(
        self,
        target_type: str | None = None,
        target_id: int | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[AuditLog]:
        async with self.store.unit_of_work() as uow:
            return list(await uow.list_audit_logs(target_type, target_id, limit, offset))

    @staticmethod
    async def _account(uow, user_id: int) -> WalletAccount:
        account = await uow.get_account(user_id)
        if account is None:
            raise AccountNotFound(f'User {user_id} has no wallet')
        return account
