"""Pydantic schemas for request/response validation.

JSON keys are camelCase on the wire (inviteCode, usesRemaining, ...);
Python attributes stay snake_case.
"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel
from dashboard.config import INVITE_CODE_MAX_LENGTH
from dashboard.models.enums import AuditAction, InviteCodeStatus, Role
from dashboard.services.accounts import (
    PASSWORD_MIN_LENGTH,
    USERNAME_MAX_LENGTH,
    USERNAME_MIN_LENGTH,
)


class CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


# Auth schemas
class RegisterRequest(CamelModel):
    username: str = Field(..., min_length=USERNAME_MIN_LENGTH, max_length=USERNAME_MAX_LENGTH)
    password: str = Field(..., min_length=PASSWORD_MIN_LENGTH)
    invite_code: str = Field(..., min_length=1)


class LoginRequest(CamelModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class UserResponse(CamelModel):
    """A user without the password hash."""
    id: int
    username: str
    role: Role
    active: bool
    created_at: datetime


# Invite code schemas
class InviteCodeCreate(CamelModel):
    code: Optional[str] = Field(None, max_length=INVITE_CODE_MAX_LENGTH)
    uses: Optional[int] = Field(None, ge=1)
    expires_at: Optional[datetime] = None


class InviteCodeResponse(CamelModel):
    id: int
    code: str
    uses: int
    uses_remaining: int
    expires_at: Optional[datetime]
    revoked: bool
    created_by: int
    created_at: datetime
    status: InviteCodeStatus


# Audit log schemas
class AuditLogResponse(CamelModel):
    id: int
    user_id: int
    username: str
    action: AuditAction
    ip: str
    timestamp: datetime


class MessageResponse(BaseModel):
    """Plain message body, used for logout and for every error."""
    message: str
