from perkwallet.schemas.ledger import LedgerEntry, BalanceResponse
from perkwallet.schemas.perk import (
    PerkResponse,
    PurchaseRequest,
    PurchaseResponse,
    EntitlementResponse,
    ActivePerkResponse,
    StorePerksResponse,
)
from perkwallet.schemas.wallet_request import (
    WalletRequestCreate,
    WalletRequestResponse,
    ApproveRequest,
    RejectRequest,
    ConsistencyReport,
    PerkRevenueResponse,
)

__all__ = [
    'LedgerEntry',
    'BalanceResponse',
    'PerkResponse',
    'PurchaseRequest',
    'PurchaseResponse',
    'EntitlementResponse',
    'ActivePerkResponse',
    'StorePerksResponse',
    'WalletRequestCreate',
    'WalletRequestResponse',
    'ApproveRequest',
    'RejectRequest',
    'ConsistencyReport',
    'PerkRevenueResponse',
]
