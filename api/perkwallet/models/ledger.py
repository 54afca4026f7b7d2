from datetime import datetime
from sqlalchemy import String, Integer, BigInteger, CheckConstraint, ForeignKey, DateTime, Index, JSON, Text
from sqlalchemy.orm import Mapped, mapped_column

from perkwallet.db.database import Base
from perkwallet.records import EntryStatus
from perkwallet.timeutil import utcnow


class WalletAccount(Base):
    """One wallet per user."""

    __tablename__ = 'wallet_accounts'

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, unique=True, index=True)

    # Running total; written in the same transaction as every ledger append
    legacy_balance: Mapped[int] = mapped_column(BigInteger, default=0)
    # Bumped by every balance or freeze change (optimistic concurrency)
    version: Mapped[int] = mapped_column(Integer, default=0)

    # Set while an administrator has frozen the wallet
    frozen_at: Mapped[datetime | None] = mapped_column(DateTime, default=None)
    frozen_by: Mapped[int | None] = mapped_column(Integer, default=None)
    freeze_reason: Mapped[str | None] = mapped_column(Text, default=None)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)


class LedgerEntry(Base):
    """Append-only record of one balance-affecting event."""

    __tablename__ = 'ledger_entries'

    id: Mapped[int] = mapped_column(primary_key=True)
    account_id: Mapped[int] = mapped_column(
        ForeignKey('wallet_accounts.id', ondelete='RESTRICT'), index=True
    )

    kind: Mapped[str] = mapped_column(String(20))
    # Always positive; the sign comes from kind
    amount: Mapped[int] = mapped_column(BigInteger)
    status: Mapped[str] = mapped_column(String(20), default=EntryStatus.PENDING.value)
    reference: Mapped[str] = mapped_column(String(64), index=True)
    balance_after: Mapped[int] = mapped_column(BigInteger)

    # "metadata" is reserved on declarative classes
    extra: Mapped[dict] = mapped_column('metadata', JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    __table_args__ = (
        Index('ix_ledger_account_created', 'account_id', 'created_at'),
        Index('ix_ledger_status_created', 'status', 'created_at'),
        CheckConstraint('amount > 0', name='ck_ledger_amount_positive'),
    )
