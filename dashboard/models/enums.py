"""Enums for the dashboard - these define the valid roles, capabilities and audit actions."""
from enum import Enum


class Role(str, Enum):
    """Coarse authorization tier. Registration always yields USER."""
    USER = "user"
    ADMIN = "admin"


class Capability(str, Enum):
    """Things a route can require of the caller's role."""
    DOWNLOAD = "download"
    MANAGE_INVITES = "manage_invites"
    MANAGE_USERS = "manage_users"
    VIEW_AUDIT_LOG = "view_audit_log"


ROLE_CAPABILITIES = {
    Role.USER: frozenset({Capability.DOWNLOAD}),
    Role.ADMIN: frozenset(Capability),
}


def role_has_capability(role: Role, capability: Capability) -> bool:
    """Explicit capability check; unknown roles get nothing."""
    return capability in ROLE_CAPABILITIES.get(role, frozenset())


class AuditAction(str, Enum):
    """The fixed vocabulary of audit log actions."""
    USER_REGISTERED = "USER_REGISTERED"
    USER_LOGIN = "USER_LOGIN"
    USER_LOGOUT = "USER_LOGOUT"
    INVITE_CODE_CREATED = "INVITE_CODE_CREATED"
    INVITE_CODE_REVOKED = "INVITE_CODE_REVOKED"
    USER_ACTIVATED = "USER_ACTIVATED"
    USER_DEACTIVATED = "USER_DEACTIVATED"
    FILE_DOWNLOADED = "FILE_DOWNLOADED"


class InviteCodeStatus(str, Enum):
    """Derived status shown next to each invite code in the admin listing."""
    ACTIVE = "active"
    REVOKED = "revoked"
    EXPIRED = "expired"
    EXHAUSTED = "exhausted"
