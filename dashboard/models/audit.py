"""
Audit trail model.

Records security-relevant actions as an immutable, append-only log. Nothing
in the service layer updates or deletes these rows.
"""
from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Enum as SQLEnum
from dashboard.database import Base
from dashboard.models.enums import AuditAction


class AuditLog(Base):
    """
    Immutable audit record.

    Invariants:
    - Once written, never edited or deleted
    - username is a snapshot taken at the time of the action
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    username = Column(String, nullable=False)
    action = Column(SQLEnum(AuditAction), nullable=False, index=True)
    ip = Column(String, nullable=False)
    timestamp = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
