"""API routes for the dashboard: auth, invite codes, users, audit log and download."""
from fastapi import APIRouter, Depends, Query, Response
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session
from typing import List, Optional

from dashboard import config
from dashboard.api.dependencies import (
    RequestContext,
    clear_session_cookie,
    require_admin_audit,
    require_admin_invites,
    require_admin_users,
    require_auth,
    require_download,
    require_session,
    resolve_request_context,
    set_session_cookie,
)
from dashboard.api.schemas import (
    AuditLogResponse,
    InviteCodeCreate,
    InviteCodeResponse,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    UserResponse,
)
from dashboard.database import get_db
from dashboard.models.enums import AuditAction
from dashboard.services.accounts import AccountService
from dashboard.services.audit import AuditLogger
from dashboard.services.errors import NotFoundError
from dashboard.services.invites import InviteService

router = APIRouter()

ERROR_RESPONSES = {
    400: {"model": MessageResponse, "description": "Invalid input or refused by a business rule"},
    401: {"model": MessageResponse, "description": "No valid session, or invalid credentials"},
    403: {"model": MessageResponse, "description": "Insufficient role, or account deactivated"},
    404: {"model": MessageResponse, "description": "Not found"},
}


# Auth endpoints
@router.post("/auth/register", response_model=UserResponse, responses=ERROR_RESPONSES)
def register(
    data: RegisterRequest,
    response: Response,
    ctx: RequestContext = Depends(resolve_request_context),
    db: Session = Depends(get_db)
):
    """
    Register with an invite code and start a session.

    WILL REFUSE if the username is taken or the invite code is unknown,
    revoked, expired or exhausted.
    """
    result = AccountService(db).register(
        username=data.username,
        password=data.password,
        invite_code=data.invite_code,
        ip=ctx.ip,
        previous_session_id=ctx.session_id
    )
    set_session_cookie(response, result.session_id)
    return result.user


@router.post("/auth/login", response_model=UserResponse, responses=ERROR_RESPONSES)
def login(
    data: LoginRequest,
    response: Response,
    ctx: RequestContext = Depends(resolve_request_context),
    db: Session = Depends(get_db)
):
    """Log in. Unknown usernames and wrong passwords get the same 401."""
    result = AccountService(db).authenticate(
        username=data.username,
        password=data.password,
        ip=ctx.ip,
        previous_session_id=ctx.session_id
    )
    set_session_cookie(response, result.session_id)
    return result.user


@router.post("/auth/logout", response_model=MessageResponse, responses=ERROR_RESPONSES)
def logout(
    response: Response,
    ctx: RequestContext = Depends(require_session),
    db: Session = Depends(get_db)
):
    """Destroy the current session. The audit entry is best-effort."""
    AccountService(db).logout(ctx.identity, ctx.session_id, ctx.ip)
    clear_session_cookie(response)
    return MessageResponse(message="Logged out successfully")


@router.get("/auth/me", response_model=UserResponse, responses=ERROR_RESPONSES)
def me(ctx: RequestContext = Depends(require_auth), db: Session = Depends(get_db)):
    """Get the user behind the current session."""
    return AccountService(db).get_user(ctx.identity.user_id)


# Invite code endpoints
@router.get("/invite-codes", response_model=List[InviteCodeResponse], responses=ERROR_RESPONSES)
def list_invite_codes(
    ctx: RequestContext = Depends(require_admin_invites),
    db: Session = Depends(get_db)
):
    """List all invite codes, newest first."""
    return InviteService(db).list_codes()


@router.post("/invite-codes", response_model=InviteCodeResponse, responses=ERROR_RESPONSES)
def create_invite_code(
    data: InviteCodeCreate,
    ctx: RequestContext = Depends(require_admin_invites),
    db: Session = Depends(get_db)
):
    """Create an invite code. Without an explicit code a random one is generated."""
    return InviteService(db).create(
        ctx.identity,
        ctx.ip,
        code=data.code,
        uses=data.uses or 1,
        expires_at=data.expires_at
    )


@router.post("/invite-codes/{invite_id}/revoke", response_model=InviteCodeResponse, responses=ERROR_RESPONSES)
def revoke_invite_code(
    invite_id: int,
    ctx: RequestContext = Depends(require_admin_invites),
    db: Session = Depends(get_db)
):
    """Revoke an invite code. Irreversible; revoking twice is harmless."""
    return InviteService(db).revoke(ctx.identity, invite_id, ctx.ip)


# User endpoints
@router.get("/users", response_model=List[UserResponse], responses=ERROR_RESPONSES)
def list_users(
    ctx: RequestContext = Depends(require_admin_users),
    db: Session = Depends(get_db)
):
    """List all users, newest first, without password hashes."""
    return AccountService(db).list_users()


@router.post("/users/{user_id}/toggle", response_model=UserResponse, responses=ERROR_RESPONSES)
def toggle_user(
    user_id: int,
    ctx: RequestContext = Depends(require_admin_users),
    db: Session = Depends(get_db)
):
    """
    Activate or deactivate a user.

    WILL REFUSE if the target is the calling admin.
    """
    return AccountService(db).toggle_active(ctx.identity, user_id, ctx.ip)


# Audit log endpoints
def parse_audit_limit(raw: Optional[str]) -> int:
    if raw is None or not raw.strip():
        return config.AUDIT_LOG_DEFAULT_LIMIT
    try:
        limit = int(raw)
    except ValueError:
        return config.AUDIT_LOG_DEFAULT_LIMIT
    return max(0, min(limit, config.AUDIT_LOG_MAX_LIMIT))


@router.get("/audit-logs", response_model=List[AuditLogResponse], responses=ERROR_RESPONSES)
def list_audit_logs(
    limit: Optional[str] = Query(None),
    ctx: RequestContext = Depends(require_admin_audit),
    db: Session = Depends(get_db)
):
    """
    Most recent audit entries first.

    A missing, empty or non-numeric limit means the default; anything else is
    clamped into range rather than refused.
    """
    return AuditLogger(db).recent(parse_audit_limit(limit))


# Download endpoints
@router.get("/download/akcent-loader", responses=ERROR_RESPONSES)
def download_loader(
    ctx: RequestContext = Depends(require_download),
    db: Session = Depends(get_db)
):
    """
    Stream the loader executable.

    The file is checked before anything is logged or sent, so a missing
    artifact is a clean 404 with no audit entry.
    """
    path = config.DOWNLOAD_FILE_PATH
    if not path.is_file():
        raise NotFoundError("File not found")

    identity = ctx.identity
    AuditLogger(db).record(identity.user_id, identity.username, AuditAction.FILE_DOWNLOADED, ctx.ip)

    file_response = FileResponse(
        path,
        filename=config.DOWNLOAD_FILE_NAME,
        media_type="application/octet-stream"
    )
    set_session_cookie(file_response, ctx.session_id)
    return file_response
