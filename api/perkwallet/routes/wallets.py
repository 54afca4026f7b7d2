"""Wallet balance, ledger history and user-submitted wallet requests."""
from fastapi import APIRouter, Depends, Query, status

from perkwallet.dependencies import get_ledger_service, get_wallet_request_service
from perkwallet.records import EntryKind
from perkwallet.schemas.ledger import BalanceResponse, LedgerEntry
from perkwallet.schemas.wallet_request import WalletRequestCreate, WalletRequestResponse
from perkwallet.services.ledger_service import LedgerService
from perkwallet.services.wallet_request_service import WalletRequestService

router = APIRouter()


@router.get('/{user_id}', response_model=BalanceResponse)
async def get_balance(
    user_id: int,
    ledger: LedgerService = Depends(get_ledger_service),
):
    """Ledger balance next to the running (legacy) balance."""
    account = await ledger.get_account(user_id)
    return BalanceResponse(
        user_id=user_id,
        account_id=account.id,
        balance=await ledger.get_balance(user_id),
        legacy_balance=account.legacy_balance,
        version=account.version,
        frozen=account.is_frozen,
        freeze_reason=account.freeze_reason,
    )


@router.get('/{user_id}/ledger', response_model=list[LedgerEntry])
async def get_ledger(
    user_id: int,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    kind: EntryKind | None = Query(None),
    ledger: LedgerService = Depends(get_ledger_service),
):
    """Ledger entries, newest first."""
    entries = await ledger.get_history(user_id, limit, offset, kind)
    return [LedgerEntry.model_validate(e) for e in entries]


@router.post(
    '/{user_id}/requests',
    response_model=WalletRequestResponse,
    status_code=status.HTTP_201_CREATED,
)
async def submit_wallet_request(
    user_id: int,
    data: WalletRequestCreate,
    requests: WalletRequestService = Depends(get_wallet_request_service),
):
    """Submit a deposit or withdrawal for admin review."""
    request = await requests.submit(user_id, data.type, data.amount, data.evidence_ref)
    return WalletRequestResponse.model_validate(request)


@router.get('/{user_id}/requests', response_model=list[WalletRequestResponse])
async def list_wallet_requests(
    user_id: int,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    requests: WalletRequestService = Depends(get_wallet_request_service),
):
    return [
        WalletRequestResponse.model_validate(r)
        for r in await requests.list_for_user(user_id, limit, offset)
    ]
