from datetime import datetime
from sqlalchemy import String, Integer, BigInteger, ForeignKey, DateTime, Text, Index
from sqlalchemy.orm import Mapped, mapped_column

from perkwallet.db.database import Base
from perkwallet.records import RequestStatus
from perkwallet.timeutil import utcnow


class WalletRequest(Base):
    """Deposit or withdrawal submitted by a user, reviewed by an administrator."""

    __tablename__ = 'wallet_requests'

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, index=True)

    type: Mapped[str] = mapped_column(String(20))
    amount: Mapped[int] = mapped_column(BigInteger)
    # Receipt / transfer proof uploaded by the user
    evidence_ref: Mapped[str | None] = mapped_column(String(500), default=None)

    status: Mapped[str] = mapped_column(String(20), default=RequestStatus.PENDING.value)
    admin_notes: Mapped[str | None] = mapped_column(Text, default=None)
    reviewed_by: Mapped[int | None] = mapped_column(Integer, default=None)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime, default=None)
    ledger_entry_id: Mapped[int | None] = mapped_column(
        ForeignKey('ledger_entries.id', ondelete='RESTRICT'), default=None
    )

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    __table_args__ = (
        Index('ix_wallet_request_status', 'status', 'created_at'),
    )
