from perkwallet.models.ledger import WalletAccount, LedgerEntry
from perkwallet.models.perk import Store, PerkEntitlement
from perkwallet.models.wallet_request import WalletRequest
from perkwallet.models.audit import AuditLog

__all__ = [
    'WalletAccount',
    'LedgerEntry',
    'Store',
    'PerkEntitlement',
    'WalletRequest',
    'AuditLog',
]
