"""Perk catalog: static definitions of purchasable store upgrades.

Each perk has non-overlapping responsibilities. Changing a price or a
duration is a deployment, never a runtime mutation.
"""
import logging
from dataclasses import dataclass
from typing import Iterable, Union

from perkwallet.exceptions import CatalogLookupFailed

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class FixedDuration:
    days: int


@dataclass(frozen=True, slots=True)
class SpinDuration:
    """Duration drawn at purchase time within [floor, max_days]."""
    min_days: int
    max_days: int


DurationPolicy = Union[FixedDuration, SpinDuration]


@dataclass(frozen=True, slots=True)
class PerkDefinition:
    perk_type: str
    title: str
    price: int
    duration: DurationPolicy
    features: tuple[str, ...]
    category: str
    # Added to the store's search/listing rank while the perk is active
    ranking_boost: int = 0

    @property
    def is_spin(self) -> bool:
        return isinstance(self.duration, SpinDuration)


DEFAULT_PERKS: tuple[PerkDefinition, ...] = (
    # Trust perk: badge only, NO visibility boost
    PerkDefinition(
        perk_type='verified_badge',
        title='Verified Badge',
        price=29,
        duration=FixedDuration(30),
        features=(
            '"Verified Store" on all products',
            'Badge on store profile',
            'Trust indicator in chats',
            'Buyer confidence boost',
        ),
        category='trust',
        ranking_boost=10,
    ),
    # Visibility perk: store appears in the Premium Stores section
    PerkDefinition(
        perk_type='boosted_visibility',
        title='Boosted Visibility',
        price=117,
        duration=FixedDuration(90),
        features=(
            'Premium Stores homepage section',
            'Store-level exposure',
            'Increased discoverability',
        ),
        category='visibility',
        ranking_boost=50,
    ),
    PerkDefinition(
        perk_type='product_highlights',
        title='Product Highlights',
        price=75,
        duration=FixedDuration(60),
        features=(
            'Premium product card styling',
            'Enhanced product details page',
            'Professional typography',
        ),
        category='ui',
        ranking_boost=20,
    ),
    PerkDefinition(
        perk_type='premium_theme',
        title='Premium Theme',
        price=150,
        duration=FixedDuration(90),
        features=(
            'Premium store page layout',
            'Enhanced spacing & typography',
            'Professional design elements',
        ),
        category='ui',
        ranking_boost=15,
    ),
    PerkDefinition(
        perk_type='featured_spotlight',
        title='Featured Spotlight',
        price=170,
        duration=FixedDuration(60),
        features=(
            'Homepage spotlight banners',
            'Featured Spotlight badge',
            'Priority over all other perks',
        ),
        category='premium',
        ranking_boost=100,
    ),
    # Spin perk: the wheel decides how long it lasts
    PerkDefinition(
        perk_type='spotlight_spin',
        title='Spotlight Spin',
        price=99,
        duration=SpinDuration(min_days=30, max_days=100),
        features=(
            'Homepage spotlight banners',
            'Spin for 30 to 100 days',
        ),
        category='premium',
        ranking_boost=70,
    ),
)


class PerkCatalog:
    """Lookup over a fixed set of perk definitions."""

    def __init__(self, perks: Iterable[PerkDefinition] = DEFAULT_PERKS):
        self._perks = {perk.perk_type: perk for perk in perks}
        for perk in self._perks.values():
            _validate(perk)

    def get(self, perk_type: str) -> PerkDefinition:
        perk = self._perks.get(perk_type)
        if perk is None:
            logger.error(f'Catalog lookup failed for perk type {perk_type!r}')
            raise CatalogLookupFailed(perk_type)
        return perk

    def all(self) -> list[PerkDefinition]:
        return list(self._perks.values())

    def __contains__(self, perk_type: str) -> bool:
        return perk_type in self._perks


def _validate(perk: PerkDefinition) -> None:
    if perk.price <= 0:
        raise ValueError(f'{perk.perk_type}: price must be positive')
    duration = perk.duration
    if isinstance(duration, FixedDuration):
        if duration.days < 1:
            raise ValueError(f'{perk.perk_type}: duration must be at least one day')
    elif not 1 <= duration.min_days <= duration.max_days:
        raise ValueError(f'{perk.perk_type}: spin range must satisfy 1 <= min <= max')


# Singleton instance
catalog = PerkCatalog()
