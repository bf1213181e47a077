"""Request-scoped identity resolution and the authorization guards.

Each request gets an explicit RequestContext built from the session cookie;
handlers receive it as a dependency instead of reading ambient state.
"""
from dataclasses import dataclass
from typing import Callable, Optional

from fastapi import Depends, Request, Response
from sqlalchemy.orm import Session

from dashboard import config
from dashboard.database import get_db
from dashboard.models.enums import Capability, role_has_capability
from dashboard.services.errors import ForbiddenError, UnauthorizedError
from dashboard.services.sessions import Identity, SessionStore


@dataclass
class RequestContext:
    """Who is calling, from where, and through which session."""
    ip: str
    session_id: Optional[str] = None
    identity: Optional[Identity] = None

    @property
    def is_authenticated(self) -> bool:
        return self.identity is not None


def get_client_ip(request: Request) -> str:
    """First hop of X-Forwarded-For, else the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def set_session_cookie(response: Response, session_id: str) -> None:
    response.set_cookie(
        key=config.SESSION_COOKIE_NAME,
        value=session_id,
        max_age=config.SESSION_TTL_DAYS * 24 * 60 * 60,
        httponly=True,
        samesite="lax",
        secure=config.SESSION_COOKIE_SECURE,
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(
        key=config.SESSION_COOKIE_NAME,
        httponly=True,
        samesite="lax",
        secure=config.SESSION_COOKIE_SECURE,
    )


def resolve_request_context(
    request: Request,
    db: Session = Depends(get_db),
) -> RequestContext:
    """Resolve the session cookie, if any, without touching the response.

    Handlers that replace or clear the cookie themselves (login, register,
    logout) depend on this so the response carries a single Set-Cookie.

    Args:
        request: Incoming request.
        db: Database session.

    Returns:
        RequestContext, with identity None when there is no valid session.
    """
    session_id = request.cookies.get(config.SESSION_COOKIE_NAME)
    identity = SessionStore(db).resolve(session_id)
    if identity is None:
        session_id = None
    return RequestContext(ip=get_client_ip(request), session_id=session_id, identity=identity)


def get_request_context(
    response: Response,
    ctx: RequestContext = Depends(resolve_request_context),
) -> RequestContext:
    """Resolve the session cookie and re-issue it so its expiry slides."""
    if ctx.is_authenticated:
        set_session_cookie(response, ctx.session_id)
    return ctx


def _authenticated(ctx: RequestContext) -> RequestContext:
    if not ctx.is_authenticated:
        raise UnauthorizedError()
    return ctx


def require_auth(ctx: RequestContext = Depends(get_request_context)) -> RequestContext:
    """Guard: 401 unless the request carries a valid session."""
    return _authenticated(ctx)


def require_session(ctx: RequestContext = Depends(resolve_request_context)) -> RequestContext:
    """Guard like require_auth, for handlers that clear the cookie themselves."""
    return _authenticated(ctx)


def require_capability(capability: Capability) -> Callable[..., RequestContext]:
    """Dependency factory for capability checks.

    Usage:
        @router.get("/users")
        def list_users(ctx: RequestContext = Depends(require_capability(Capability.MANAGE_USERS))):
            ...
    """

    def _dependency(ctx: RequestContext = Depends(require_auth)) -> RequestContext:
        if not role_has_capability(ctx.identity.role, capability):
            raise ForbiddenError()
        return ctx

    return _dependency


require_admin_invites = require_capability(Capability.MANAGE_INVITES)
require_admin_users = require_capability(Capability.MANAGE_USERS)
require_admin_audit = require_capability(Capability.VIEW_AUDIT_LOG)
require_download = require_capability(Capability.DOWNLOAD)
