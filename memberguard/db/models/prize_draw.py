from datetime import datetime
from sqlalchemy import Column, String, DateTime, ForeignKey, UniqueConstraint

from memberguard.db.base import Base
from memberguard.db.models.user import _uuid


class PrizeDrawEntry(Base):
    """One entry per user per draw, enforced by the unique constraint."""
    __tablename__ = "prize_draw_entries"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    draw_id = Column(String(64), nullable=False, index=True)
    entered_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("user_id", "draw_id", name="uq_prize_draw_entries_user_draw"),
    )
