"""Lifecycle state of guarded resources.

One row per (kind, resource_id). ``version`` increases by one on every
write and is the compare-and-set token for optimistic concurrency.
Kind-specific fields travel in ``fields`` and are written together with
the state.
"""

from datetime import datetime
from sqlalchemy import Column, String, DateTime, Integer, JSON

from memberguard.db.base import Base


class ResourceState(Base):
    __tablename__ = "resources"

    kind = Column(String(50), primary_key=True)
    resource_id = Column(String(128), primary_key=True)
    state = Column(String(32), nullable=False, index=True)
    version = Column(Integer, nullable=False, default=1)
    fields = Column(JSON, nullable=False, default=dict)

    # Transition tracking
    entered_at = Column(DateTime, nullable=True)
    entered_by = Column(String(36), nullable=True)
    previous_state = Column(String(32), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<ResourceState {self.kind}/{self.resource_id} {self.state} v{self.version}>"
