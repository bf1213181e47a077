"""
Startup bootstrap: tables, expired-session cleanup and the seed admin account.

The admin account is the only way to mint invite codes, so a deployment must
provide ADMIN_PASSWORD on first start. bootstrap() refuses to start without an
admin account and without a password to create one.
"""
import logging
from typing import Optional
from sqlalchemy.orm import Session
from dashboard.config import ADMIN_PASSWORD, ADMIN_USERNAME
from dashboard.models.domain import User
from dashboard.models.enums import Role
from dashboard.services.passwords import hash_password
from dashboard.services.sessions import SessionStore
from dashboard.services.storage import Storage

logger = logging.getLogger(__name__)


class ConfigurationError(RuntimeError):
    """The service cannot start with the current environment."""


def seed_admin(db: Session, username: str = ADMIN_USERNAME, password: str = ADMIN_PASSWORD) -> Optional[User]:
    """
    Create the admin account if it does not exist yet.

    Returns the created user, or None when it already exists or no password
    is configured.
    """
    storage = Storage(db)
    if storage.get_user_by_username(username) is not None:
        logger.info("Admin user %s already exists", username)
        return None

    if not password:
        logger.warning("ADMIN_PASSWORD is not set; skipping creation of admin user %s", username)
        return None

    admin = storage.create_user(username, hash_password(password), role=Role.ADMIN, active=True)
    db.commit()
    db.refresh(admin)
    logger.info("Created admin user %s", username)
    return admin


def bootstrap(db: Session, username: str = ADMIN_USERNAME, password: str = ADMIN_PASSWORD) -> None:
    """
    Purge expired sessions and make sure the admin account exists.

    WILL REFUSE to start if the admin account is missing and no password is
    configured to create it.
    """
    SessionStore(db).purge_expired()
    seed_admin(db, username=username, password=password)
    if Storage(db).get_user_by_username(username) is None:
        logger.error("Admin user %s does not exist and ADMIN_PASSWORD is not set", username)
        raise ConfigurationError(
            f"Admin user {username} does not exist; set ADMIN_PASSWORD to create it"
        )
