from datetime import datetime
from sqlalchemy import String, Integer, BigInteger, Boolean, CheckConstraint, ForeignKey, DateTime, Index, JSON
from sqlalchemy.orm import Mapped, mapped_column

from perkwallet.db.database import Base
from perkwallet.timeutil import utcnow


class Store(Base):
    """Seller storefront. Its wallet is the owner's wallet account."""

    __tablename__ = 'stores'

    id: Mapped[int] = mapped_column(primary_key=True)
    owner_id: Mapped[int] = mapped_column(Integer, index=True)
    name: Mapped[str] = mapped_column(String(100))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


class PerkEntitlement(Base):
    """A store's time-boxed grant of one perk. One row per purchase."""

    __tablename__ = 'perk_entitlements'

    id: Mapped[int] = mapped_column(primary_key=True)
    store_id: Mapped[int] = mapped_column(
        ForeignKey('stores.id', ondelete='RESTRICT'), index=True
    )
    perk_type: Mapped[str] = mapped_column(String(50))
    price_paid: Mapped[int] = mapped_column(BigInteger)

    granted_duration_days: Mapped[int] = mapped_column(Integer)
    expires_at: Mapped[datetime] = mapped_column(DateTime)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    # Paying ledger entry, written in the same transaction
    ledger_entry_id: Mapped[int | None] = mapped_column(
        ForeignKey('ledger_entries.id', ondelete='RESTRICT'), default=None
    )
    extra: Mapped[dict] = mapped_column('metadata', JSON, default=dict)
    purchased_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    __table_args__ = (
        Index('ix_entitlement_store_active', 'store_id', 'is_active', 'expires_at'),
        Index('ix_entitlement_expires', 'expires_at'),
        CheckConstraint('granted_duration_days >= 1', name='ck_entitlement_duration_positive'),
    )
