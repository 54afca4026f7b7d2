import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from perkwallet.config import settings
from perkwallet.db.database import init_db
from perkwallet.events import bus
from perkwallet.exceptions import (
    AccountNotFound,
    AlreadyProcessed,
    CatalogLookupFailed,
    ConcurrentModification,
    InsufficientBalance,
    InvalidTransition,
    PerkAlreadyActive,
    RequestNotFound,
    StoreNotFound,
    WalletError,
    WalletFrozen,
)
from perkwallet.routes import admin, perks, realtime, wallets

logger = logging.getLogger(__name__)

# Domain error -> HTTP status
STATUS_CODES: dict[type[WalletError], int] = {
    InsufficientBalance: 402,
    PerkAlreadyActive: 409,
    ConcurrentModification: 409,
    AlreadyProcessed: 409,
    InvalidTransition: 409,
    CatalogLookupFailed: 404,
    AccountNotFound: 404,
    StoreNotFound: 404,
    RequestNotFound: 404,
    WalletFrozen: 403,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize and cleanup resources."""
    logging.basicConfig(
        level=settings.log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )
    await init_db()
    unsubscribe = bus.subscribe(realtime.forward_event)
    yield
    unsubscribe()


app = FastAPI(
    title='Perk Wallet API',
    description='Wallet ledger and store perk entitlements',
    version='0.1.0',
    lifespan=lifespan,
)

# CORS for mobile app
app.add_middleware(
    CORSMiddleware,
    allow_origins=['*'],
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)


@app.exception_handler(WalletError)
async def wallet_error_handler(request: Request, exc: WalletError):
    status_code = STATUS_CODES.get(type(exc), 400)
    logger.warning(f'{exc.code} on {request.method} {request.url.path}: {exc}')
    return JSONResponse(
        status_code=status_code,
        content={'detail': str(exc), 'code': exc.code},
    )


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    return JSONResponse(
        status_code=400,
        content={'detail': str(exc), 'code': 'INVALID_INPUT'},
    )


# Routes
app.include_router(perks.router, prefix='/api/perks', tags=['perks'])
app.include_router(wallets.router, prefix='/api/wallets', tags=['wallets'])
app.include_router(admin.router, prefix='/api/admin', tags=['admin'])
app.include_router(realtime.router, tags=['realtime'])


@app.get('/health')
async def health_check():
    """Health check endpoint."""
    return {'status': 'ok', 'service': 'perkwallet-api', 'env': settings.env}
