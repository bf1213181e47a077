"""Domain models - users and the invite codes that gate their registration."""
from datetime import datetime
from typing import Optional
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Enum as SQLEnum
from sqlalchemy.orm import relationship
from dashboard.database import Base
from dashboard.models.enums import InviteCodeStatus, Role


class User(Base):
    """
    A dashboard account.

    Invariants:
    - username is unique
    - Created through registration with role USER, or seeded as ADMIN
    - Never hard-deleted; `active` is toggled by an admin instead
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    username = Column(String(50), unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)
    role = Column(SQLEnum(Role), nullable=False, default=Role.USER)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    invite_codes = relationship("InviteCode", back_populates="creator")


class InviteCode(Base):
    """
    A registration token with a use budget and an optional deadline.

    Invariants:
    - uses_remaining never increases and never goes below zero
    - revoked is one-way: once True it is never reset
    - Consumable iff not revoked, uses_remaining > 0 and not past expires_at
    """
    __tablename__ = "invite_codes"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    code = Column(String, unique=True, index=True, nullable=False)
    uses = Column(Integer, nullable=False, default=1)
    uses_remaining = Column(Integer, nullable=False, default=1)
    expires_at = Column(DateTime, nullable=True)
    revoked = Column(Boolean, nullable=False, default=False)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    creator = relationship("User", back_populates="invite_codes")

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.utcnow()
        return self.expires_at is not None and self.expires_at <= now

    def is_consumable(self, now: Optional[datetime] = None) -> bool:
        return not self.revoked and self.uses_remaining > 0 and not self.is_expired(now)

    @property
    def status(self) -> InviteCodeStatus:
        """Revocation wins over expiry, expiry over exhaustion."""
        if self.revoked:
            return InviteCodeStatus.REVOKED
        if self.is_expired():
            return InviteCodeStatus.EXPIRED
        if self.uses_remaining <= 0:
            return InviteCodeStatus.EXHAUSTED
        return InviteCodeStatus.ACTIVE
