"""
Account lifecycle: registration, login, logout and admin user management.

Every operation follows the same shape: validate, check business rules,
mutate the store, append the audit entry, and only then hand back a result.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional
from sqlalchemy.orm import Session
from dashboard.models.domain import User
from dashboard.models.enums import AuditAction, Role
from dashboard.services.audit import AuditLogger
from dashboard.services.errors import (
    AccountDeactivatedError,
    ConflictError,
    ExhaustedInviteError,
    InvalidCredentialsError,
    NotFoundError,
    SelfModificationError,
    ValidationError,
)
from dashboard.services.invites import InviteService
from dashboard.services.passwords import hash_password, verify_password
from dashboard.services.sessions import Identity, SessionStore
from dashboard.services.storage import Storage

logger = logging.getLogger(__name__)

USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 50
PASSWORD_MIN_LENGTH = 6


@dataclass
class AuthResult:
    """A user together with the session just established for them."""
    user: User
    session_id: str


class AccountService:
    """Enforces the account rules. All user mutations go through here."""

    def __init__(self, db: Session):
        self.db = db
        self.storage = Storage(db)
        self.audit = AuditLogger(db)
        self.invites = InviteService(db)
        self.sessions = SessionStore(db)

    def register(
        self,
        username: str,
        password: str,
        invite_code: str,
        ip: str,
        previous_session_id: Optional[str] = None
    ) -> AuthResult:
        """
        Register a user with an invite code.

        Refusal order (first failure wins, nothing is committed on failure):
        - shape of the input
        - username already taken
        - invite code unknown, revoked, expired, exhausted

        The user row, the invite decrement and the audit entry are committed
        together; the session is established afterwards, replacing any
        session the caller already carried.
        """
        if not (USERNAME_MIN_LENGTH <= len(username) <= USERNAME_MAX_LENGTH):
            raise ValidationError(
                f"Username must be between {USERNAME_MIN_LENGTH} and {USERNAME_MAX_LENGTH} characters"
            )
        if len(password) < PASSWORD_MIN_LENGTH:
            raise ValidationError(f"Password must be at least {PASSWORD_MIN_LENGTH} characters")
        if not invite_code:
            raise ValidationError("Invite code is required")

        if self.storage.get_user_by_username(username) is not None:
            raise ConflictError("Username already taken")

        invite = self.invites.validate_for_registration(invite_code)

        password_hash = hash_password(password)
        user = self.storage.create_user(username, password_hash, role=Role.USER, active=True)
        try:
            self.invites.consume(invite)
        except ExhaustedInviteError:
            self.db.rollback()
            raise
        self.audit.record(user.id, user.username, AuditAction.USER_REGISTERED, ip, commit=False)
        self.db.commit()
        self.db.refresh(user)

        if previous_session_id:
            self.sessions.destroy(previous_session_id)
        logger.info("Registered user %s with invite code %s", user.username, invite_code)
        return AuthResult(user=user, session_id=self.sessions.create(user))

    def authenticate(
        self,
        username: str,
        password: str,
        ip: str,
        previous_session_id: Optional[str] = None
    ) -> AuthResult:
        """
        Log a user in.

        An unknown username and a wrong password raise the same error so the
        response never reveals whether an account exists.
        """
        user = self.storage.get_user_by_username(username)
        if user is None:
            logger.warning("Login failed for unknown username from %s", ip)
            raise InvalidCredentialsError()

        if not user.active:
            logger.warning("Login refused for deactivated user %s", user.username)
            raise AccountDeactivatedError()

        if not verify_password(password, user.password_hash):
            logger.warning("Login failed for user %s from %s", user.username, ip)
            raise InvalidCredentialsError()

        if previous_session_id:
            self.sessions.destroy(previous_session_id)
        session_id = self.sessions.create(user)
        self.audit.record(user.id, user.username, AuditAction.USER_LOGIN, ip)

        logger.info("User %s logged in", user.username)
        return AuthResult(user=user, session_id=session_id)

    def logout(self, identity: Identity, session_id: str, ip: str) -> None:
        """
        Tear down a session.

        Destroying the session must succeed (a failure is a ServerFault); the
        audit entry is best-effort and never blocks the logout.
        """
        self.sessions.destroy(session_id)
        self.audit.record_best_effort(identity.user_id, identity.username, AuditAction.USER_LOGOUT, ip)
        logger.info("User %s logged out", identity.username)

    def get_user(self, user_id: int) -> User:
        user = self.storage.get_user(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    def list_users(self) -> List[User]:
        return self.storage.list_users()

    def toggle_active(self, actor: Identity, user_id: int, ip: str) -> User:
        """
        Flip a user's active flag on behalf of an admin.

        Invariants:
        - An admin can never toggle their own account
        - Deactivation also ends every session the target holds
        """
        user = self.get_user(user_id)

        if user.id == actor.user_id:
            logger.warning("Admin %s tried to toggle their own account", actor.username)
            raise SelfModificationError()

        updated = self.storage.set_user_active(user.id, not user.active)
        if updated.active:
            action = AuditAction.USER_ACTIVATED
        else:
            action = AuditAction.USER_DEACTIVATED
            self.sessions.destroy_for_user(updated.id)

        self.audit.record(actor.user_id, actor.username, action, ip, commit=False)
        self.db.commit()
        self.db.refresh(updated)

        logger.info("%s applied to %s by %s", action.value, updated.username, actor.username)
        return updated
