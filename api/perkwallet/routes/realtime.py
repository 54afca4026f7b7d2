"""WebSocket feed of wallet notifications and balance events."""
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from perkwallet.events import BalanceChanged, Event, PerkActivated
from perkwallet.services.ws_manager import manager

logger = logging.getLogger(__name__)

router = APIRouter()


async def forward_event(event: Event) -> None:
    """EventBus subscriber: push committed wallet events to the owner's sockets."""
    if isinstance(event, BalanceChanged):
        await manager.send_to_user(event.user_id, {
            'type': 'balance_changed',
            'account_id': event.account_id,
            'balance': event.balance,
            'reason': event.reason,
        })
    elif isinstance(event, PerkActivated):
        await manager.send_to_user(event.owner_id, {
            'type': 'perk_activated',
            'store_id': event.store_id,
            'perk_type': event.perk_type,
            'granted_duration_days': event.granted_duration_days,
            'expires_at': event.expires_at.isoformat(),
        })


@router.websocket('/ws/{user_id}')
async def websocket_endpoint(websocket: WebSocket, user_id: int):
    """WebSocket endpoint for real-time wallet updates."""
    await manager.connect(websocket, user_id)
    try:
        while True:
            # Wait for any message (text, ping, etc.) to keep connection alive
            message = await websocket.receive()
            if message.get('type') == 'websocket.disconnect':
                break
    except WebSocketDisconnect:
        pass
    finally:
        manager.disconnect(websocket, user_id)
