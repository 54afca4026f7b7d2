"""Retry helper for optimistic-concurrency conflicts."""
import logging
from typing import Awaitable, Callable, TypeVar

from perkwallet.exceptions import ConcurrentModification

logger = logging.getLogger(__name__)

T = TypeVar('T')


async def retry_on_conflict(
    operation: Callable[[], Awaitable[T]],
    retries: int,
    label: str,
) -> T:
    """Run ``operation``, re-running it up to ``retries`` times on ConcurrentModification.

    Each attempt must open its own unit of work so that it re-reads the
    account; the last conflict propagates to the caller.
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            return await operation()
        except ConcurrentModification as e:
            if attempt > retries:
                logger.warning(f'{label}: conflict persisted after {attempt} attempts ({e})')
                raise
            logger.info(f'{label}: version conflict on attempt {attempt}, retrying')
