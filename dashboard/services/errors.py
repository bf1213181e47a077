"""Exception taxonomy for the dashboard.

Each exception carries the HTTP status it maps to and a message that is
safe to show to the caller. Handlers raise these; the app turns them into
JSON responses. Anything else is an unexpected fault and becomes a 500.
"""
from fastapi import status


class DashboardError(Exception):
    """Base exception for all expected, caller-facing failures."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Bad request"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(DashboardError):
    """Malformed or out-of-range input."""

    default_message = "Invalid input data"


class ConflictError(DashboardError):
    """Uniqueness violation, e.g. a username or invite code that already exists."""

    default_message = "Resource already exists"


class DomainRuleError(DashboardError):
    """A business rule refused the action. Not a bug - the system working as intended."""


class InvalidInviteError(DomainRuleError):
    default_message = "Invalid invite code"


class RevokedInviteError(DomainRuleError):
    default_message = "Invite code has been revoked"


class ExpiredInviteError(DomainRuleError):
    default_message = "Invite code has expired"


class ExhaustedInviteError(DomainRuleError):
    default_message = "Invite code has no uses remaining"


class InvalidCredentialsError(DomainRuleError):
    """Same message for unknown usernames and wrong passwords."""

    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Invalid credentials"


class AccountDeactivatedError(DomainRuleError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Account has been deactivated"


class SelfModificationError(DomainRuleError):
    default_message = "Cannot deactivate your own account"


class AuthError(DashboardError):
    """Missing or insufficient session."""


class UnauthorizedError(AuthError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Unauthorized"


class ForbiddenError(AuthError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Forbidden"


class NotFoundError(DashboardError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class ServerFault(DashboardError):
    """Infrastructure failure that the caller should see as a plain 500."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal server error"
