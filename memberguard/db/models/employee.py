"""Employee directory records.

``role_category`` is independent of the user's base role. The chairman
designation lives here, and at most one active employee may hold it.
"""

from datetime import datetime
from sqlalchemy import Column, String, DateTime, Boolean, ForeignKey, Index
from sqlalchemy.orm import relationship

from memberguard.core.rbac.roles import CHAIRMAN_DESIGNATION
from memberguard.db.base import Base
from memberguard.db.models.user import _uuid


class Employee(Base):
    __tablename__ = "employees"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id"), unique=True, nullable=False)
    role_category = Column(String(50), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="employee")

    def __repr__(self) -> str:
        return f"<Employee {self.user_id} ({self.role_category})>"


# Single live chairman
Index(
    "uq_employees_single_chairman",
    Employee.role_category,
    unique=True,
    postgresql_where=(Employee.role_category == CHAIRMAN_DESIGNATION) & Employee.is_active.is_(True),
    sqlite_where=(Employee.role_category == CHAIRMAN_DESIGNATION) & (Employee.is_active == True),  # noqa: E712
)
