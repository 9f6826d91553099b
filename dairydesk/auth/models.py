"""
Session auth models.

Profiles are owned by the backend; the client only keeps a cached copy.
Tokens are opaque strings. Demo sessions are recognised by DEMO_TOKEN_PREFIX
and never leave the process.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict

DEMO_TOKEN_PREFIX = "demo_"


class Role(str, Enum):
    SUPER_ADMIN = "super_admin"
    MANAGER = "manager"
    ACCOUNTANT = "accountant"
    DELIVERY_STAFF = "delivery_staff"
    FARM_WORKER = "farm_worker"
    VET_STAFF = "vet_staff"
    AUDITOR = "auditor"


class FailureKind(str, Enum):
    """Why a login did not produce a session."""

    TRANSPORT_ERROR = "transport_error"
    BACKEND_UNCONFIGURED = "backend_unconfigured"
    AUTH_REJECTED = "auth_rejected"
    SESSION_INVALID = "session_invalid"
    UNEXPECTED_FAILURE = "unexpected_failure"


class Profile(BaseModel):
    """Staff identity record. Extra backend columns are ignored."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    id: str
    full_name: str
    phone: str
    role: Role
    is_active: bool = True
    email: Optional[str] = None
    avatar_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Session(BaseModel):
    """The current token together with the profile it authenticates."""

    model_config = ConfigDict(frozen=True)

    token: str
    user: Profile

    @property
    def is_demo(self) -> bool:
        return is_demo_token(self.token)


class LoginResult(BaseModel):
    """Outcome of a login attempt. Always returned, never raised."""

    success: bool
    token: Optional[str] = None
    user: Optional[Profile] = None
    message: Optional[str] = None
    failure: Optional[FailureKind] = None

    @classmethod
    def ok(cls, token: str, user: Profile) -> "LoginResult":
        return cls(success=True, token=token, user=user)

    @classmethod
    def failed(cls, failure: FailureKind, message: str) -> "LoginResult":
        return cls(success=False, failure=failure, message=message)


class StaffLoginResponse(BaseModel):
    """Payload of the staff_login RPC."""

    model_config = ConfigDict(extra="ignore")

    success: bool
    session_token: Optional[str] = None
    user: Optional[Profile] = None
    message: Optional[str] = None


class ValidateSessionResponse(BaseModel):
    """Payload of the validate_session RPC."""

    model_config = ConfigDict(extra="ignore")

    success: bool
    user: Optional[Profile] = None
    message: Optional[str] = None


def is_demo_token(token: Optional[str]) -> bool:
    return bool(token) and token.startswith(DEMO_TOKEN_PREFIX)


__all__ = [
    "DEMO_TOKEN_PREFIX",
    "FailureKind",
    "LoginResult",
    "Profile",
    "Role",
    "Session",
    "StaffLoginResponse",
    "ValidateSessionResponse",
    "is_demo_token",
]
