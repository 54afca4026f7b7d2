from datetime import datetime
from sqlalchemy import String, Integer, DateTime, Text, Index, JSON
from sqlalchemy.orm import Mapped, mapped_column

from perkwallet.db.database import Base
from perkwallet.timeutil import utcnow


class AuditLog(Base):
    """Administrator actions on wallets and wallet requests. Insert-only."""

    __tablename__ = 'audit_logs'

    id: Mapped[int] = mapped_column(primary_key=True)
    actor_id: Mapped[int | None] = mapped_column(Integer, default=None)
    # e.g. wallet_request_approved, freeze_wallet
    action: Mapped[str] = mapped_column(String(50))
    target_type: Mapped[str] = mapped_column(String(50))
    target_id: Mapped[int] = mapped_column(Integer)
    description: Mapped[str] = mapped_column(Text)
    extra: Mapped[dict] = mapped_column('metadata', JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    __table_args__ = (
        Index('ix_audit_target', 'target_type', 'target_id'),
        Index('ix_audit_created', 'created_at'),
    )
