"""Perk catalog and purchase endpoints."""
from fastapi import APIRouter, Depends, status

from perkwallet.dependencies import get_entitlement_tracker, get_purchase_service
from perkwallet.schemas.perk import (
    EntitlementResponse,
    PerkResponse,
    PurchaseRequest,
    PurchaseResponse,
    StorePerksResponse,
    ActivePerkResponse,
)
from perkwallet.services.entitlement_service import EntitlementTracker
from perkwallet.services.perk_catalog import FixedDuration, PerkDefinition, catalog
from perkwallet.services.purchase_service import PerkPurchaseService
from perkwallet.services.spin_service import SpinRandomizer

router = APIRouter()


def _perk_response(perk: PerkDefinition, randomizer: SpinRandomizer) -> PerkResponse:
    response = PerkResponse(
        perk_type=perk.perk_type,
        title=perk.title,
        price=perk.price,
        category=perk.category,
        features=list(perk.features),
        ranking_boost=perk.ranking_boost,
        spin=perk.is_spin,
    )
    if isinstance(perk.duration, FixedDuration):
        response.duration_days = perk.duration.days
    else:
        response.min_days = perk.duration.min_days
        response.max_days = perk.duration.max_days
        response.guaranteed_days = randomizer.floor_days(
            perk.duration.min_days, perk.duration.max_days,
        )
    return response


@router.get('', response_model=list[PerkResponse])
async def list_perks():
    """The perk catalog."""
    randomizer = SpinRandomizer()
    return [_perk_response(perk, randomizer) for perk in catalog.all()]


@router.get('/stores/{store_id}/active', response_model=StorePerksResponse)
async def get_active_perks(
    store_id: int,
    tracker: EntitlementTracker = Depends(get_entitlement_tracker),
):
    """Active perks for a store, soonest expiry first."""
    perks = await tracker.active_perks(store_id)
    return StorePerksResponse(
        store_id=store_id,
        ranking_boost=await tracker.ranking_boost(store_id),
        perks=[ActivePerkResponse.model_validate(p) for p in perks],
    )


@router.get('/stores/{store_id}/history', response_model=list[EntitlementResponse])
async def get_perk_history(
    store_id: int,
    tracker: EntitlementTracker = Depends(get_entitlement_tracker),
):
    """Every perk the store has bought, including expired ones."""
    return [EntitlementResponse.model_validate(e) for e in await tracker.history(store_id)]


@router.post(
    '/stores/{store_id}/purchase',
    response_model=PurchaseResponse,
    status_code=status.HTTP_201_CREATED,
)
async def purchase_perk(
    store_id: int,
    data: PurchaseRequest,
    purchases: PerkPurchaseService = Depends(get_purchase_service),
):
    """Spend wallet balance on a perk for the store."""
    receipt = await purchases.purchase(store_id, data.perk_type)
    return PurchaseResponse.model_validate(receipt)
