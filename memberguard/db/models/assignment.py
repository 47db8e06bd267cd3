"""Agent to member assignments.

An agent may act on a member's conversation only while an active
assignment row exists. Ending an assignment sets ``ended_at``; rows are
never reused.
"""

from datetime import datetime
from sqlalchemy import Column, String, DateTime, ForeignKey, Index

from memberguard.db.base import Base
from memberguard.db.models.user import _uuid


class AgentAssignment(Base):
    __tablename__ = "agent_assignments"

    id = Column(String(36), primary_key=True, default=_uuid)
    agent_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    member_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    assigned_by = Column(String(36), ForeignKey("users.id"), nullable=True)
    assigned_at = Column(DateTime, default=datetime.utcnow)
    ended_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_agent_assignments_agent_member", "agent_id", "member_id"),
    )

    @property
    def is_active(self) -> bool:
        return self.ended_at is None

    def __repr__(self) -> str:
        return f"<AgentAssignment {self.agent_id} -> {self.member_id}>"
