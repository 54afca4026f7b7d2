"""Administrator endpoints."""
from fastapi import APIRouter, Depends, Query

from perkwallet.dependencies import (
    get_reconciliation_service,
    get_wallet_admin_service,
    get_wallet_request_service,
)
from perkwallet.records import RequestStatus, WalletAccount
from perkwallet.schemas.wallet_request import (
    ApproveRequest,
    AuditLogResponse,
    BalanceDiscrepancyResponse,
    ConsistencyReport,
    FreezeRequest,
    PerkRevenueResponse,
    RejectRequest,
    UnfreezeRequest,
    WalletRequestResponse,
    WalletStatusResponse,
)
from perkwallet.services.admin_service import WalletAdminService
from perkwallet.services.reconciliation_service import ReconciliationService
from perkwallet.services.wallet_request_service import WalletRequestService

router = APIRouter()


@router.get('/wallet-requests', response_model=list[WalletRequestResponse])
async def list_wallet_requests(
    status: RequestStatus | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    requests: WalletRequestService = Depends(get_wallet_request_service),
):
    """Review queue, newest first."""
    return [
        WalletRequestResponse.model_validate(r)
        for r in await requests.list_requests(status, limit, offset)
    ]


@router.get('/wallet-requests/{request_id}', response_model=WalletRequestResponse)
async def get_wallet_request(
    request_id: int,
    requests: WalletRequestService = Depends(get_wallet_request_service),
):
    return WalletRequestResponse.model_validate(await requests.get_request(request_id))


@router.post('/wallet-requests/{request_id}/approve', response_model=WalletRequestResponse)
async def approve_wallet_request(
    request_id: int,
    data: ApproveRequest | None = None,
    requests: WalletRequestService = Depends(get_wallet_request_service),
):
    """Approve a pending request. A second approval returns 409."""
    data = data or ApproveRequest()
    request = await requests.approve_request(request_id, data.reviewer_id, data.notes)
    return WalletRequestResponse.model_validate(request)


@router.post('/wallet-requests/{request_id}/reject', response_model=WalletRequestResponse)
async def reject_wallet_request(
    request_id: int,
    data: RejectRequest,
    requests: WalletRequestService = Depends(get_wallet_request_service),
):
    request = await requests.reject_request(request_id, data.reason, data.reviewer_id)
    return WalletRequestResponse.model_validate(request)


@router.get('/finance/consistency', response_model=ConsistencyReport)
async def finance_consistency(
    reconciliation: ReconciliationService = Depends(get_reconciliation_service),
):
    """Accounts whose running balance disagrees with their ledger."""
    discrepancies = await reconciliation.check_accounts()
    stale = await reconciliation.stale_pending_entries()
    return ConsistencyReport(
        discrepancies=[BalanceDiscrepancyResponse.model_validate(d) for d in discrepancies],
        stale_pending_entries=len(stale),
    )


@router.get('/finance/perk-revenue', response_model=list[PerkRevenueResponse])
async def perk_revenue(
    reconciliation: ReconciliationService = Depends(get_reconciliation_service),
):
    return [PerkRevenueResponse.model_validate(r) for r in await reconciliation.perk_revenue()]


def _wallet_status(account: WalletAccount) -> WalletStatusResponse:
    return WalletStatusResponse(
        user_id=account.user_id,
        account_id=account.id,
        version=account.version,
        frozen=account.is_frozen,
        frozen_at=account.frozen_at,
        frozen_by=account.frozen_by,
        freeze_reason=account.freeze_reason,
    )


@router.post('/wallets/{user_id}/freeze', response_model=WalletStatusResponse)
async def freeze_wallet(
    user_id: int,
    data: FreezeRequest,
    admin: WalletAdminService = Depends(get_wallet_admin_service),
):
    """Block requests, approvals and purchases for a wallet."""
    return _wallet_status(await admin.freeze_wallet(user_id, data.reason, data.actor_id))


@router.post('/wallets/{user_id}/unfreeze', response_model=WalletStatusResponse)
async def unfreeze_wallet(
    user_id: int,
    data: UnfreezeRequest | None = None,
    admin: WalletAdminService = Depends(get_wallet_admin_service),
):
    data = data or UnfreezeRequest()
    return _wallet_status(await admin.unfreeze_wallet(user_id, data.actor_id))


@router.get('/audit-logs', response_model=list[AuditLogResponse])
async def list_audit_logs(
    target_type: str | None = Query(None),
    target_id: int | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    admin: WalletAdminService = Depends(get_wallet_admin_service),
):
    """Administrator actions, newest first."""
    return [
        AuditLogResponse.model_validate(log)
        for log in await admin.list_audit_logs(target_type, target_id, limit, offset)
    ]
