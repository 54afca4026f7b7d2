from perkwallet.repositories.base import WalletStore, WalletUnitOfWork
from perkwallet.repositories.memory import InMemoryWalletStore
from perkwallet.repositories.sql import SqlWalletStore

__all__ = [
    'WalletStore',
    'WalletUnitOfWork',
    'InMemoryWalletStore',
    'SqlWalletStore',
]
