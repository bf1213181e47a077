"""
Server-side session store.

The client only ever holds the opaque session id; the identity it maps to
lives in the `sessions` table with a sliding expiry.
"""
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from dashboard.config import SESSION_TTL_DAYS
from dashboard.models.domain import User
from dashboard.models.enums import Role
from dashboard.models.session import SessionRecord
from dashboard.services.errors import ServerFault

logger = logging.getLogger(__name__)

SESSION_TTL = timedelta(days=SESSION_TTL_DAYS)


@dataclass(frozen=True)
class Identity:
    """Who the session belongs to, as captured when it was established."""
    user_id: int
    username: str
    role: Role

    def to_payload(self) -> dict:
        return {"userId": self.user_id, "username": self.username, "role": self.role.value}

    @classmethod
    def from_payload(cls, payload: dict) -> "Identity":
        return cls(
            user_id=int(payload["userId"]),
            username=payload["username"],
            role=Role(payload["role"])
        )


class SessionStore:
    """Creates, resolves and destroys session records."""

    def __init__(self, db: Session, ttl: timedelta = SESSION_TTL):
        self.db = db
        self.ttl = ttl

    def create(self, user: User) -> str:
        """Establish a session for a user and return its id."""
        identity = Identity(user_id=user.id, username=user.username, role=Role(user.role))
        sid = secrets.token_urlsafe(32)
        record = SessionRecord(
            sid=sid,
            user_id=user.id,
            payload=identity.to_payload(),
            expires_at=datetime.utcnow() + self.ttl
        )
        self.db.add(record)
        self.db.commit()
        return sid

    def resolve(self, sid: Optional[str]) -> Optional[Identity]:
        """
        Look up the identity behind a session id.

        Unknown and expired ids resolve to None (expired rows are removed).
        A hit slides the expiry forward by the full TTL.
        """
        if not sid:
            return None

        record = self.db.query(SessionRecord).filter(SessionRecord.sid == sid).first()
        if record is None:
            return None

        now = datetime.utcnow()
        if record.expires_at <= now:
            self.db.delete(record)
            self.db.commit()
            return None

        record.expires_at = now + self.ttl
        self.db.commit()
        return Identity.from_payload(record.payload)

    def destroy(self, sid: str) -> None:
        """Delete a session. A store failure is a server fault."""
        try:
            self.db.query(SessionRecord).filter(SessionRecord.sid == sid).delete(
                synchronize_session=False
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Failed to destroy session")
            raise ServerFault("Failed to logout") from e

    def destroy_for_user(self, user_id: int) -> int:
        """Drop every session of a user. Does not commit."""
        return self.db.query(SessionRecord).filter(SessionRecord.user_id == user_id).delete(
            synchronize_session=False
        )

    def purge_expired(self) -> int:
        purged = self.db.query(SessionRecord).filter(
            SessionRecord.expires_at <= datetime.utcnow()
        ).delete(synchronize_session=False)
        self.db.commit()
        if purged:
            logger.info("Purged %d expired sessions", purged)
        return purged
