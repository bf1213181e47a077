"""
Invite code lifecycle.

A code is consumable iff it is not revoked, has uses remaining and has not
passed its deadline. Consumption takes exactly one use; revocation is
one-way and independent of the remaining uses.
"""
import logging
import secrets
import string
from datetime import datetime, timezone
from typing import List, Optional
from sqlalchemy.orm import Session
from dashboard.config import INVITE_CODE_LENGTH, INVITE_CODE_MAX_LENGTH
from dashboard.models.domain import InviteCode
from dashboard.models.enums import AuditAction
from dashboard.services.audit import AuditLogger
from dashboard.services.errors import (
    ConflictError,
    ExhaustedInviteError,
    ExpiredInviteError,
    InvalidInviteError,
    NotFoundError,
    RevokedInviteError,
    ValidationError,
)
from dashboard.services.sessions import Identity
from dashboard.services.storage import Storage

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits
MAX_GENERATION_ATTEMPTS = 5


def generate_code(length: int = INVITE_CODE_LENGTH) -> str:
    """Random uppercase alphanumeric token."""
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Stored datetimes are naive UTC; convert aware inputs, keep naive ones."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class InviteService:
    """Creates, validates, consumes and revokes invite codes."""

    def __init__(self, db: Session):
        self.db = db
        self.storage = Storage(db)
        self.audit = AuditLogger(db)

    def validate_for_registration(self, code: str, now: Optional[datetime] = None) -> InviteCode:
        """
        Look up a code and refuse it if it cannot be consumed.

        Checks run in a fixed order and the first failure wins:
        unknown, revoked, expired, exhausted.
        """
        now = now or datetime.utcnow()
        invite = self.storage.get_invite_code(code)
        if invite is None:
            raise InvalidInviteError()
        if invite.revoked:
            raise RevokedInviteError()
        if invite.is_expired(now):
            raise ExpiredInviteError()
        if invite.uses_remaining <= 0:
            raise ExhaustedInviteError()
        return invite

    def consume(self, invite: InviteCode, now: Optional[datetime] = None) -> None:
        """
        Take one use from the code inside the caller's transaction.

        The decrement is conditional, so a code drained by a concurrent
        registration since validate_for_registration() is refused here.
        Does not commit.
        """
        if not self.storage.consume_invite_code(invite.id, now):
            logger.warning("Invite code %s was exhausted before it could be consumed", invite.code)
            raise ExhaustedInviteError()

    def create(
        self,
        actor: Identity,
        ip: str,
        code: Optional[str] = None,
        uses: int = 1,
        expires_at: Optional[datetime] = None
    ) -> InviteCode:
        """
        Create a code on behalf of an admin.

        An explicit code is used as given (surrounding whitespace stripped);
        otherwise a random one is generated.
        """
        if uses < 1:
            raise ValidationError("Uses must be at least 1")

        if code is not None and code.strip():
            code = code.strip()
            if len(code) > INVITE_CODE_MAX_LENGTH:
                raise ValidationError(
                    f"Invite code must be at most {INVITE_CODE_MAX_LENGTH} characters"
                )
            if self.storage.get_invite_code(code) is not None:
                raise ConflictError("Invite code already exists")
        else:
            code = self._unused_random_code()

        invite = self.storage.create_invite_code(
            code=code,
            uses=uses,
            created_by=actor.user_id,
            expires_at=to_naive_utc(expires_at)
        )
        self.audit.record(actor.user_id, actor.username, AuditAction.INVITE_CODE_CREATED, ip, commit=False)
        self.db.commit()
        self.db.refresh(invite)

        logger.info("Invite code %s created by %s with %d uses", invite.code, actor.username, uses)
        return invite

    def revoke(self, actor: Identity, invite_id: int, ip: str) -> InviteCode:
        """Revoke a code. Revoking an already revoked code is a no-op that still succeeds."""
        invite = self.storage.revoke_invite_code(invite_id)
        if invite is None:
            raise NotFoundError("Invite code not found")

        self.audit.record(actor.user_id, actor.username, AuditAction.INVITE_CODE_REVOKED, ip, commit=False)
        self.db.commit()
        self.db.refresh(invite)

        logger.info("Invite code %s revoked by %s", invite.code, actor.username)
        return invite

    def list_codes(self) -> List[InviteCode]:
        return self.storage.list_invite_codes()

    def _unused_random_code(self) -> str:
        for _ in range(MAX_GENERATION_ATTEMPTS):
            code = generate_code()
            if self.storage.get_invite_code(code) is None:
                return code
        raise ConflictError("Could not generate a unique invite code")
