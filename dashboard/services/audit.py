"""Append-only audit logging for security-relevant actions."""
import logging
from typing import List
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from dashboard.config import AUDIT_LOG_DEFAULT_LIMIT
from dashboard.models.audit import AuditLog
from dashboard.models.enums import AuditAction
from dashboard.services.storage import Storage

logger = logging.getLogger(__name__)


class AuditLogger:
    """Writes and reads audit entries. There is no path that edits or removes one."""

    def __init__(self, db: Session):
        self.db = db
        self.storage = Storage(db)

    def record(
        self,
        user_id: int,
        username: str,
        action: AuditAction,
        ip: str,
        commit: bool = True
    ) -> AuditLog:
        """
        Append one entry.

        With commit=False the entry joins the caller's open transaction, so it
        lands or vanishes together with the action it describes.
        """
        entry = self.storage.create_audit_log(user_id, username, action, ip)
        if commit:
            self.db.commit()
        return entry

    def record_best_effort(self, user_id: int, username: str, action: AuditAction, ip: str) -> None:
        """Append one entry; a failure is logged and swallowed."""
        try:
            self.record(user_id, username, action, ip)
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Failed to write audit log entry %s for user %s", action.value, user_id)

    def recent(self, limit: int = AUDIT_LOG_DEFAULT_LIMIT) -> List[AuditLog]:
        """Most recent entries first."""
        return self.storage.list_audit_logs(limit)
