"""User notifications (in-app push over WebSocket).

Notifications are fire-and-forget: a failed delivery is logged and never
undoes the purchase or approval it describes.
"""
import logging
from typing import Any, Protocol

from perkwallet.exceptions import NotificationDispatchFailure
from perkwallet.services.ws_manager import ConnectionManager

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    async def notify(
        self, user_id: int, title: str, body: str, metadata: dict[str, Any] | None = None,
    ) -> None:
        ...


class WebSocketNotifier:
    """Pushes notifications to every open connection of the user."""

    def __init__(self, connections: ConnectionManager):
        self.connections = connections

    async def notify(
        self, user_id: int, title: str, body: str, metadata: dict[str, Any] | None = None,
    ) -> None:
        try:
            delivered = await self.connections.send_to_user(user_id, {
                'type': 'notification',
                'title': title,
                'body': body,
                'metadata': metadata or {},
            })
        except Exception as e:
            raise NotificationDispatchFailure(f'Push to user {user_id} failed: {e}') from e
        logger.info(f'Notified user {user_id} ({delivered} connections): {title}')


async def dispatch(
    notifier: Notifier,
    user_id: int,
    title: str,
    body: str,
    metadata: dict[str, Any] | None = None,
) -> bool:
    """Send a notification without letting a failure escape. Returns success."""
    try:
        await notifier.notify(user_id, title, body, metadata)
    except Exception as e:
        logger.warning(f'Notification to user {user_id} failed ({title!r}): {e}')
        return False
    return True
