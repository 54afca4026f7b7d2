"""Seed script: wipe all data and create fresh demo sellers ready for testing.

Usage (from inside the api container):
    python seed.py

Usage (from host, via docker):
    docker compose exec api python seed.py
"""
import asyncio

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from perkwallet.db.database import engine, async_session, init_db
from perkwallet.records import RequestType
from perkwallet.repositories.sql import SqlWalletStore
from perkwallet.services.notification_service import WebSocketNotifier
from perkwallet.services.ws_manager import manager
from perkwallet.services.wallet_request_service import WalletRequestService


# Demo sellers to create
TEST_SELLERS = [
    {'user_id': 1, 'store': 'Alice Ceramics', 'deposit': 500},
    {'user_id': 2, 'store': 'Bob Vintage', 'deposit': 200},
    {'user_id': 3, 'store': 'Eve Prints', 'deposit': 80},
]

ADMIN_ID = 100


async def wipe_all(db: AsyncSession):
    """Truncate all tables in dependency-safe order."""
    tables = [
        'audit_logs',
        'wallet_requests',
        'perk_entitlements',
        'ledger_entries',
        'stores',
        'wallet_accounts',
    ]
    for table in tables:
        await db.execute(text(f'TRUNCATE TABLE {table} RESTART IDENTITY CASCADE'))
    await db.commit()
    print('✓ All tables wiped')


async def create_sellers(store: SqlWalletStore):
    """Create sellers, their stores, and an approved opening deposit."""
    requests = WalletRequestService(store, WebSocketNotifier(manager), fee_percent=0)

    for s in TEST_SELLERS:
        request = await requests.submit(s['user_id'], RequestType.DEPOSIT, s['deposit'], 'seed')
        async with store.unit_of_work() as uow:
            shop = await uow.create_store(s['user_id'], s['store'])
        await requests.approve_request(request.id, ADMIN_ID, 'Seed deposit')

        print(f'  ✓ {s["store"]} (user {s["user_id"]}): {s["deposit"]} credits, store id={shop.id}')


async def main():
    print()
    print('=' * 50)
    print('  Perk Wallet Seed Script')
    print('=' * 50)
    print()

    await init_db()

    async with async_session() as db:
        print('[1/2] Wiping all data...')
        await wipe_all(db)

    print('[2/2] Creating demo sellers...')
    await create_sellers(SqlWalletStore(async_session))

    await engine.dispose()

    print()
    print('Done! Ready for testing.')
    print()
    print('  Sellers:')
    for s in TEST_SELLERS:
        print(f'    user {s["user_id"]}  -  {s["store"]}  -  {s["deposit"]:,} credits')
    print()


if __name__ == '__main__':
    asyncio.run(main())
