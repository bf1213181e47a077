"""
Persistence adapter over users, invite codes and audit logs.

Methods here flush but never commit: the calling service owns the
transaction, so a multi-step action commits or rolls back as one unit.
Every state transition is a single UPDATE statement.
"""
from datetime import datetime
from typing import List, Optional
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from dashboard.models.audit import AuditLog
from dashboard.models.domain import User, InviteCode
from dashboard.models.enums import AuditAction, Role
from dashboard.services.errors import ConflictError


class Storage:
    """Typed queries against the relational store."""

    def __init__(self, db: Session):
        self.db = db

    # Users

    def get_user(self, user_id: int) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id).first()

    def get_user_by_username(self, username: str) -> Optional[User]:
        return self.db.query(User).filter(User.username == username).first()

    def create_user(
        self,
        username: str,
        password_hash: str,
        role: Role = Role.USER,
        active: bool = True
    ) -> User:
        """
        Insert a user.

        The unique index on username is the last line of defence when two
        registrations race past the existence check.
        """
        user = User(
            username=username,
            password_hash=password_hash,
            role=role,
            active=active
        )
        self.db.add(user)
        try:
            self.db.flush()
        except IntegrityError as e:
            self.db.rollback()
            raise ConflictError("Username already taken") from e
        return user

    def set_user_active(self, user_id: int, active: bool) -> Optional[User]:
        updated = self.db.query(User).filter(User.id == user_id).update(
            {User.active: active}, synchronize_session=False
        )
        if not updated:
            return None
        self.db.expire_all()
        return self.get_user(user_id)

    def list_users(self) -> List[User]:
        return self.db.query(User).order_by(User.created_at.desc(), User.id.desc()).all()

    # Invite codes

    def get_invite_code(self, code: str) -> Optional[InviteCode]:
        return self.db.query(InviteCode).filter(InviteCode.code == code).first()

    def get_invite_code_by_id(self, invite_id: int) -> Optional[InviteCode]:
        return self.db.query(InviteCode).filter(InviteCode.id == invite_id).first()

    def create_invite_code(
        self,
        code: str,
        uses: int,
        created_by: int,
        expires_at: Optional[datetime] = None
    ) -> InviteCode:
        invite = InviteCode(
            code=code,
            uses=uses,
            uses_remaining=uses,
            expires_at=expires_at,
            revoked=False,
            created_by=created_by
        )
        self.db.add(invite)
        try:
            self.db.flush()
        except IntegrityError as e:
            self.db.rollback()
            raise ConflictError("Invite code already exists") from e
        return invite

    def consume_invite_code(self, invite_id: int, now: Optional[datetime] = None) -> bool:
        """
        Take one use from an invite code, if it is still consumable.

        A single conditional UPDATE: the consumability check and the
        decrement cannot be interleaved with another registration.
        Returns False when no row matched (exhausted, revoked or expired).
        """
        now = now or datetime.utcnow()
        updated = self.db.query(InviteCode).filter(
            InviteCode.id == invite_id,
            InviteCode.uses_remaining > 0,
            InviteCode.revoked.is_(False),
            or_(InviteCode.expires_at.is_(None), InviteCode.expires_at > now)
        ).update(
            {InviteCode.uses_remaining: InviteCode.uses_remaining - 1},
            synchronize_session=False
        )
        self.db.expire_all()
        return updated == 1

    def revoke_invite_code(self, invite_id: int) -> Optional[InviteCode]:
        """Set revoked unconditionally. Returns None for an unknown id."""
        updated = self.db.query(InviteCode).filter(InviteCode.id == invite_id).update(
            {InviteCode.revoked: True}, synchronize_session=False
        )
        if not updated:
            return None
        self.db.expire_all()
        return self.get_invite_code_by_id(invite_id)

    def list_invite_codes(self) -> List[InviteCode]:
        return self.db.query(InviteCode).order_by(
            InviteCode.created_at.desc(), InviteCode.id.desc()
        ).all()

    # Audit logs (append-only, no update or delete)

    def create_audit_log(
        self,
        user_id: int,
        username: str,
        action: AuditAction,
        ip: str
    ) -> AuditLog:
        entry = AuditLog(user_id=user_id, username=username, action=action, ip=ip)
        self.db.add(entry)
        self.db.flush()
        return entry

    def list_audit_logs(self, limit: int = 100) -> List[AuditLog]:
        return self.db.query(AuditLog).order_by(
            AuditLog.timestamp.desc(), AuditLog.id.desc()
        ).limit(limit).all()
