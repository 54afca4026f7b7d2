"""Wallet and perk domain exceptions.

Every error carries a stable ``code`` so the HTTP layer can report it
without string matching.
"""


class WalletError(Exception):
    """Base class for wallet engine errors."""

    code = 'WALLET_ERROR'


class InsufficientBalance(WalletError):
    """Raised when an account cannot cover a debit."""

    code = 'INSUFFICIENT_BALANCE'

    def __init__(self, required: int, available: int):
        self.required = required
        self.available = available
        super().__init__(f'Need {required} but only have {available}')


class PerkAlreadyActive(WalletError):
    """Raised when a store already holds an unexpired entitlement for a perk."""

    code = 'PERK_ALREADY_ACTIVE'

    def __init__(self, store_id: int, perk_type: str):
        self.store_id = store_id
        self.perk_type = perk_type
        super().__init__(f'Perk {perk_type} is already active for store {store_id}')


class ConcurrentModification(WalletError):
    """Raised when an account changed between the balance check and the commit."""

    code = 'CONCURRENT_MODIFICATION'

    def __init__(self, account_id: int, expected_version: int):
        self.account_id = account_id
        self.expected_version = expected_version
        super().__init__(
            f'Account {account_id} moved past version {expected_version}'
        )


class CatalogLookupFailed(WalletError):
    """Raised for a perk type that is not in the catalog."""

    code = 'CATALOG_LOOKUP_FAILED'

    def __init__(self, perk_type: str):
        self.perk_type = perk_type
        super().__init__(f'Unknown perk type: {perk_type}')


class AlreadyProcessed(WalletError):
    """Raised when a wallet request has already been approved or rejected."""

    code = 'ALREADY_PROCESSED'

    def __init__(self, request_id: int, status: str):
        self.request_id = request_id
        self.status = status
        super().__init__(f'Wallet request {request_id} is already {status}')


class NotificationDispatchFailure(WalletError):
    """Raised by a notifier that could not deliver a message."""

    code = 'NOTIFICATION_DISPATCH_FAILURE'


class AccountNotFound(WalletError):
    code = 'ACCOUNT_NOT_FOUND'


class StoreNotFound(WalletError):
    code = 'STORE_NOT_FOUND'


class RequestNotFound(WalletError):
    code = 'REQUEST_NOT_FOUND'


class InvalidTransition(WalletError):
    """Raised for a ledger entry status change other than pending -> success/failed."""

    code = 'INVALID_TRANSITION'


class WalletFrozen(WalletError):
    """Raised when money would move in or out of a frozen wallet."""

    code = 'WALLET_FROZEN'

    def __init__(self, user_id: int, reason: str | None = None):
        self.user_id = user_id
        self.reason = reason
        super().__init__(f'Wallet of user {user_id} is frozen. Please contact support.')
