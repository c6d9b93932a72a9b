"""Authentication and user-administration schemas."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import Field

from .common import CamelModel


class LoginRequest(CamelModel):
    email: str = Field(..., description="Email address (case-insensitive)")
    password: str

    model_config = {
        "json_schema_extra": {
            "examples": [{"email": "ana@bufete.ec", "password": "Secreto123!"}]
        }
    }


class RefreshRequest(CamelModel):
    refresh_token: str = Field(..., min_length=1)


class RegisterRequest(CamelModel):
    email: str
    role: Literal["ADMIN", "COLLABORATOR"] = "COLLABORATOR"
    display_name: Optional[str] = None


class ChangePasswordRequest(CamelModel):
    current_password: str
    new_password: str


class CompleteProfileRequest(CamelModel):
    display_name: str = Field(..., min_length=1, max_length=255)


class RoleRequest(CamelModel):
    role: Literal["ADMIN", "COLLABORATOR"]


class UserResponse(CamelModel):
    id: int
    email: str
    display_name: Optional[str] = None
    role: str
    is_active: bool
    is_first_login: bool
    is_profile_completed: bool
    last_login: Optional[datetime] = None


class LoginStatus(CamelModel):
    requires_password_change: bool
    requires_profile_completion: bool
    next_step: Literal["PASSWORD_CHANGE", "COMPLETE_PROFILE", "NONE"]

    @classmethod
    def for_user(cls, user) -> "LoginStatus":
        if user.is_first_login:
            step = "PASSWORD_CHANGE"
        elif not user.is_profile_completed:
            step = "COMPLETE_PROFILE"
        else:
            step = "NONE"
        return cls(
            requires_password_change=bool(user.is_first_login),
            requires_profile_completion=not user.is_profile_completed,
            next_step=step,
        )


class LoginData(CamelModel):
    token: str
    refresh_token: str
    user: UserResponse
    login_status: LoginStatus


class TokenData(CamelModel):
    token: str


class TokenPairData(CamelModel):
    token: str
    refresh_token: str
    user: UserResponse


class VerifyData(CamelModel):
    user: UserResponse


class SessionData(CamelModel):
    """Session state after keep-alive or warning acknowledgement."""
    token: str
    session_extended: bool
    seconds_remaining: int
    warning_acknowledged: bool = False


class ActivityEntry(CamelModel):
    id: int
    user_id: Optional[int] = None
    action: str
    category: str
    target_id: Optional[str] = None
    description: Optional[str] = None
    details: dict = {}
    ip_address: Optional[str] = None
    created_at: Optional[datetime] = None
