"""In-process domain events published after a wallet transaction commits.

The UI layer subscribes (through the WebSocket endpoint) instead of polling
the database for balance changes.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable, Union

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class BalanceChanged:
    account_id: int
    user_id: int
    balance: int
    reason: str


@dataclass(frozen=True, slots=True)
class PerkActivated:
    store_id: int
    owner_id: int
    perk_type: str
    granted_duration_days: int
    expires_at: datetime


Event = Union[BalanceChanged, PerkActivated]
Handler = Callable[[Event], Awaitable[None]]


class EventBus:
    """Fan-out of committed events to async subscribers."""

    def __init__(self):
        self._handlers: list[Handler] = []

    def subscribe(self, handler: Handler) -> Callable[[], None]:
        """Register a handler; returns a callable that removes it."""
        self._handlers.append(handler)

        def unsubscribe():
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    async def publish(self, event: Event) -> None:
        # A failing subscriber must not affect the committed transaction
        for handler in list(self._handlers):
            try:
                await handler(event)
            except Exception:
                logger.exception(f'Event handler failed for {type(event).__name__}')


# Singleton instance
bus = EventBus()
