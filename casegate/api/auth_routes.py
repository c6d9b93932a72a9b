"""Authentication and user management API endpoints.

Public endpoints:
    POST /api/auth/login                         credentials → token pair
    POST /api/auth/refresh-token                 refresh token → access token

Authenticated endpoints:
    GET  /api/auth/verify                        current user
    POST /api/auth/logout                        bump token_version
    POST /api/auth/keep-alive                    force session renewal
    POST /api/auth/session-warning/acknowledge   silence the inactivity warning
    POST /api/auth/change-password               leave first-login mode
    POST /api/auth/profile/complete              finish onboarding

Admin-only endpoints:
    POST   /api/auth/register                    create account (temporary password)
    GET    /api/auth/users                       list users
    PUT    /api/auth/users/{user_id}/role        change global role
    PUT    /api/auth/users/{user_id}/activate    re-enable account
    PUT    /api/auth/users/{user_id}/deactivate  disable account
    DELETE /api/auth/users/{user_id}             delete account and its grants
"""

import logging
from datetime import datetime
from typing import Callable, List

from fastapi import APIRouter, BackgroundTasks, Depends, Request, Response
from sqlalchemy.orm import Session

from ..core.auth import (
    AuthContext,
    client_ip,
    get_clock,
    require_admin,
    require_auth,
)
from ..core.session_monitor import SessionAction, acknowledge_warning
from ..database import get_db
from ..exceptions import AccountDisabledError, InvalidCredentialsError, NotFoundError
from ..models.user import ActivityCategory
from ..schemas.auth import (
    ChangePasswordRequest,
    CompleteProfileRequest,
    LoginData,
    LoginRequest,
    LoginStatus,
    RefreshRequest,
    RegisterRequest,
    RoleRequest,
    SessionData,
    TokenData,
    TokenPairData,
    UserResponse,
    VerifyData,
)
from ..schemas.common import ApiResponse, success
from ..services import audit_service, auth_service, token_service
from ..services.auth_service import CredentialOutcome
from ..services.token_service import sign_renewed_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Authentication"])


def _user_payload(user) -> dict:
    return UserResponse.model_validate(user).model_dump(by_alias=True, mode="json")


# --- Session endpoints ---


@router.post(
    "/login",
    response_model=ApiResponse[LoginData],
    summary="Authenticate and receive access and refresh tokens",
)
def login(
    body: LoginRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    ip = client_ip(request)
    result = auth_service.verify_credentials(db, body.email, body.password, ip_address=ip)

    if result.outcome == CredentialOutcome.DISABLED:
        raise AccountDisabledError()
    if not result.ok:
        raise InvalidCredentialsError()

    user = result.user
    pair = token_service.login(db, user, clock())
    db.refresh(user)

    background_tasks.add_task(
        audit_service.log_detached,
        user_id=user.id,
        action="LOGIN",
        category=ActivityCategory.AUTH,
        target_id=user.id,
        description="Login succeeded",
        metadata={
            "user_agent": request.headers.get("user-agent"),
            "token_version": pair.token_version,
        },
        ip_address=ip,
    )

    return success(
        {
            "token": pair.access_token,
            "refreshToken": pair.refresh_token,
            "user": _user_payload(user),
            "loginStatus": LoginStatus.for_user(user).model_dump(by_alias=True),
        },
        message="Login successful",
    )


@router.post(
    "/refresh-token",
    response_model=ApiResponse[TokenData],
    summary="Exchange a refresh token for a new access token",
)
def refresh_token(
    body: RefreshRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    access, user = token_service.refresh_access_token(db, body.refresh_token, clock())
    background_tasks.add_task(
        audit_service.log_detached,
        user_id=user.id,
        action="TOKEN_REFRESHED",
        category=ActivityCategory.AUTH,
        target_id=user.id,
        ip_address=client_ip(request),
    )
    return success({"token": access})


@router.get(
    "/verify",
    response_model=ApiResponse[VerifyData],
    summary="Validate the bearer token and return the current user",
)
def verify(auth: AuthContext = Depends(require_auth), db: Session = Depends(get_db)):
    user = auth_service.get_user_by_id(db, auth.user_id)
    return success({"user": _user_payload(user)})


@router.post(
    "/logout",
    response_model=ApiResponse[dict],
    summary="End every session of the current user",
)
def logout(
    request: Request,
    background_tasks: BackgroundTasks,
    auth: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
):
    version = token_service.logout(db, auth.user_id)
    background_tasks.add_task(
        audit_service.log_detached,
        user_id=auth.user_id,
        action="LOGOUT",
        category=ActivityCategory.AUTH,
        target_id=auth.user_id,
        metadata={"token_version": version},
        ip_address=client_ip(request),
    )
    return success(message="Logged out")


@router.post(
    "/keep-alive",
    response_model=ApiResponse[SessionData],
    summary="Renew the session without other side effects",
)
def keep_alive(auth: AuthContext = Depends(require_auth)):
    # require_auth already renewed the token because of the path.
    return success({
        "token": auth.token,
        "sessionExtended": auth.token_renewed,
        "secondsRemaining": auth.session.seconds_remaining,
    })


@router.post(
    "/session-warning/acknowledge",
    response_model=ApiResponse[SessionData],
    summary="Acknowledge the inactivity warning",
)
def acknowledge_session_warning(
    response: Response,
    auth: AuthContext = Depends(require_auth),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    token = auth.token
    # A renewal in this request already cleared the warning.
    if auth.session.action != SessionAction.RENEW and auth.claims.session_warning is not None:
        now = clock()
        token = sign_renewed_token(acknowledge_warning(auth.claims), now)
    # Drop the warning headers require_auth may have set on this response.
    for header in ("X-Session-Warning", "X-Time-Remaining", "X-Warning-Type"):
        if header in response.headers:
            del response.headers[header]
    response.headers["Authorization"] = f"Bearer {token}"
    return success({
        "token": token,
        "sessionExtended": auth.session.action == SessionAction.RENEW,
        "secondsRemaining": auth.session.seconds_remaining,
        "warningAcknowledged": True,
    })


@router.post(
    "/change-password",
    response_model=ApiResponse[TokenPairData],
    summary="Change password and receive a fresh token pair",
)
def change_password(
    body: ChangePasswordRequest,
    response: Response,
    auth: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    user = auth_service.get_user_by_id(db, auth.user_id)
    auth_service.change_password(db, user, body.current_password, body.new_password)
    pair = token_service.issue_tokens(db, user, clock())
    response.headers["Authorization"] = f"Bearer {pair.access_token}"
    return success(
        {"token": pair.access_token, "refreshToken": pair.refresh_token, "user": _user_payload(user)},
        message="Password changed",
    )


@router.post(
    "/profile/complete",
    response_model=ApiResponse[TokenPairData],
    summary="Complete the user profile",
)
def complete_profile(
    body: CompleteProfileRequest,
    response: Response,
    auth: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    user = auth_service.get_user_by_id(db, auth.user_id)
    user = auth_service.complete_profile(db, user, body.display_name)
    pair = token_service.issue_tokens(db, user, clock())
    response.headers["Authorization"] = f"Bearer {pair.access_token}"
    return success(
        {"token": pair.access_token, "refreshToken": pair.refresh_token, "user": _user_payload(user)},
        message="Profile completed",
    )


# --- User administration ---


@router.post(
    "/register",
    response_model=ApiResponse[UserResponse],
    status_code=201,
    summary="Create a user with the temporary password (admin only)",
)
def register_user(
    body: RegisterRequest,
    auth: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db),
):
    user = auth_service.register_user(
        db, body.email, role=body.role, display_name=body.display_name, created_by=auth.user_id
    )
    return success(_user_payload(user), message="User created")


@router.get(
    "/users",
    response_model=ApiResponse[List[UserResponse]],
    summary="List all users (admin only)",
)
def list_users(
    auth: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return success([_user_payload(u) for u in auth_service.list_users(db)])


@router.put(
    "/users/{user_id}/role",
    response_model=ApiResponse[UserResponse],
    summary="Change a user's global role (admin only)",
)
def update_role(
    user_id: int,
    body: RoleRequest,
    auth: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db),
):
    user = auth_service.update_user_role(db, user_id, body.role, actor_id=auth.user_id)
    return success(_user_payload(user))


@router.put(
    "/users/{user_id}/activate",
    response_model=ApiResponse[UserResponse],
    summary="Re-enable a user account (admin only)",
)
def activate(
    user_id: int,
    auth: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db),
):
    user = auth_service.set_user_active(db, user_id, True, actor_id=auth.user_id)
    return success(_user_payload(user))


@router.put(
    "/users/{user_id}/deactivate",
    response_model=ApiResponse[UserResponse],
    summary="Disable a user account (admin only)",
)
def deactivate(
    user_id: int,
    auth: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db),
):
    user = auth_service.set_user_active(db, user_id, False, actor_id=auth.user_id)
    return success(_user_payload(user))


@router.delete(
    "/users/{user_id}",
    response_model=ApiResponse[dict],
    summary="Delete a user and the grants they hold (admin only)",
)
def delete_user(
    user_id: int,
    auth: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db),
):
    if auth_service.get_user_by_id(db, user_id) is None:
        raise NotFoundError("user", user_id)
    auth_service.delete_user(db, user_id, actor_id=auth.user_id)
    return success(message="User deleted")
