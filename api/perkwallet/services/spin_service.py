"""Spin randomizer for perks with a randomized duration.

The wheel promises a guaranteed minimum of 20% of the maximum, while each
spin perk also carries its own ``min_days``. The floor is the larger of the
two, so neither promise is broken:

    floor = max(min_days, ceil(ratio × max_days))

One uniform integer draw is made per purchase; callers store it with the
entitlement and never draw again for the same purchase.
"""
import math
import random
from dataclasses import dataclass
from fractions import Fraction

from perkwallet.config import settings


@dataclass(frozen=True, slots=True)
class SpinResult:
    days: int
    floor_days: int
    max_days: int


class SpinRandomizer:
    def __init__(self, rng: random.Random | None = None, floor_ratio: float | None = None):
        self.rng = rng or random.SystemRandom()
        ratio = settings.spin_floor_ratio if floor_ratio is None else floor_ratio
        if not 0 < ratio <= 1:
            raise ValueError('Spin floor ratio must be in (0, 1]')
        # Exact ratio: ceil(0.2 × 35) must be 7, not 8
        self.floor_ratio = Fraction(str(ratio))

    def floor_days(self, min_days: int, max_days: int) -> int:
        if max_days < 1:
            raise ValueError('max_days must be at least 1')
        if min_days > max_days:
            raise ValueError(f'min_days ({min_days}) exceeds max_days ({max_days})')
        return max(min_days, math.ceil(self.floor_ratio * max_days))

    def draw(self, min_days: int, max_days: int) -> SpinResult:
        floor = self.floor_days(min_days, max_days)
        return SpinResult(
            days=self.rng.randint(floor, max_days),
            floor_days=floor,
            max_days=max_days,
        )
