"""Authentication module: deep module exposing FastAPI dependencies.

Public interface:
    ``require_auth``: authenticates the bearer token, runs the
        session monitor, returns AuthContext or raises 401.
    ``require_admin``: AuthContext of an ADMIN, 403 otherwise.
    ``require_roles(*roles)``: dependency factory for role gates.
    ``require_profile_completion``: 403 while the user is still on the
        temporary password or incomplete profile.
    ``get_clock``: returns the time source; overridden in tests.

Session renewal and warnings travel back to the client as response headers:
``Authorization`` (new token), ``X-Session-Extended``, ``X-Session-Warning``,
``X-Time-Remaining`` (seconds) and ``X-Warning-Type``.

Every rejection is written to the audit log; a failing audit write never
replaces the original 401.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from fastapi import Depends, Request, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .config import settings
from .logging_config import user_id_var
from .session_monitor import SessionAction, SessionDecision, SessionThresholds, evaluate_session
from .token_factory import AccessClaims, TokenExpiredError, TokenInvalidError, decode_access_token
from ..database import get_db
from ..exceptions import (
    AuthenticationError,
    CaseGateException,
    ForbiddenError,
    InvalidTokenError,
    ProfileCompletionRequiredError,
    SessionExpiredError,
)
from ..models.user import ActivityCategory, UserRole
from ..repositories.user_repository import UserRepository
from ..services import audit_service
from ..services.token_service import sign_renewed_token

logger = logging.getLogger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)

HEADER_SESSION_EXTENDED = "X-Session-Extended"
HEADER_SESSION_WARNING = "X-Session-Warning"
HEADER_TIME_REMAINING = "X-Time-Remaining"
HEADER_WARNING_TYPE = "X-Warning-Type"
HEADER_KEEP_ALIVE = "X-Keep-Alive"

SESSION_HEADERS = [
    "Authorization",
    HEADER_SESSION_EXTENDED,
    HEADER_SESSION_WARNING,
    HEADER_TIME_REMAINING,
    HEADER_WARNING_TYPE,
]


@dataclass(frozen=True)
class AuthContext:
    """Resolved authentication context available to every endpoint.

    Identity and flags come from the database row, not the token, so a
    role change takes effect on the next request. ``token`` is the token the
    client should hold after this request (renewed if the monitor re-signed).
    """

    user_id: int
    email: str
    role: str
    is_active: bool
    is_first_login: bool
    is_profile_completed: bool
    claims: AccessClaims
    session: SessionDecision
    token: str

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value

    @property
    def token_renewed(self) -> bool:
        return self.session.needs_new_token


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def get_clock() -> Callable[[], datetime]:
    """Time source for the session monitor. Tests override this dependency."""
    return _utcnow


def get_bearer_scheme() -> HTTPBearer:
    """Expose the security scheme so OpenAPI picks it up."""
    return _bearer_scheme


def get_thresholds() -> SessionThresholds:
    return SessionThresholds.from_settings(settings)


def client_ip(request: Request) -> Optional[str]:
    """Peer address, or the first X-Forwarded-For hop when the peer is a
    configured proxy."""
    peer = request.client.host if request.client else None
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded and peer in settings.get_trusted_proxies():
        return forwarded.split(",")[0].strip()
    return peer


def _wants_keep_alive(request: Request) -> bool:
    if request.method == "POST" and request.url.path.rstrip("/").endswith("/auth/keep-alive"):
        return True
    return request.headers.get(HEADER_KEEP_ALIVE, "").lower() == "true"


def _reject(
    db: Session,
    request: Request,
    error: CaseGateException,
    action: str,
    reason: str,
    user_id: Optional[int] = None,
    attempted_user_id: Optional[int] = None,
    **extra,
) -> None:
    """Audit a rejected request, then raise *error*."""
    metadata = {
        "path": request.url.path,
        "method": request.method,
        "user_agent": request.headers.get("user-agent"),
        "reason": reason,
        **extra,
    }
    if attempted_user_id is not None:
        metadata["attempted_user_id"] = attempted_user_id
    try:
        audit_service.log(
            db,
            user_id=user_id,
            action=action,
            category=ActivityCategory.AUTH,
            target_id=attempted_user_id,
            description=reason,
            metadata=metadata,
            ip_address=client_ip(request),
        )
    except Exception:
        # The 401 below matters more than the audit row.
        logger.exception("Audit write failed while rejecting request")
    raise error


def _apply_decision(response: Response, decision: SessionDecision, now: datetime, current_token: str) -> str:
    """Translate a monitor decision into response headers. Returns the token
    the client should keep."""
    token = current_token
    if decision.needs_new_token:
        token = sign_renewed_token(decision.claims, now)
        response.headers["Authorization"] = f"Bearer {token}"

    if decision.action == SessionAction.RENEW:
        response.headers[HEADER_SESSION_EXTENDED] = "true"
    elif decision.is_warning:
        response.headers[HEADER_SESSION_WARNING] = "true"
        response.headers[HEADER_TIME_REMAINING] = str(decision.seconds_remaining)
        response.headers[HEADER_WARNING_TYPE] = "inactivity"
    return token


def require_auth(
    request: Request,
    response: Response,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
    db: Session = Depends(get_db),
    clock: Callable[[], datetime] = Depends(get_clock),
    thresholds: SessionThresholds = Depends(get_thresholds),
) -> AuthContext:
    """Authenticate the request and advance the session state.

    token_version is deliberately not compared here; only refresh-token
    exchange enforces it.
    """
    now = clock()

    if credentials is None or not credentials.credentials:
        _reject(db, request, AuthenticationError(), "UNAUTHORIZED_ACCESS", "Token not provided")

    try:
        claims = decode_access_token(credentials.credentials, settings.jwt_secret_key, now)
    except TokenExpiredError:
        _reject(db, request, SessionExpiredError("Session expired"), "SESSION_EXPIRED", "Token expired")
    except TokenInvalidError as e:
        _reject(db, request, InvalidTokenError(), "UNAUTHORIZED_ACCESS", f"Invalid token: {e}")

    decision = evaluate_session(claims, now, thresholds, keep_alive=_wants_keep_alive(request))

    if decision.action == SessionAction.EXPIRE:
        minutes = int(decision.inactivity.total_seconds() // 60)
        _reject(
            db,
            request,
            SessionExpiredError("Session expired due to inactivity", inactive_minutes=minutes),
            "SESSION_EXPIRED",
            "Inactivity",
            attempted_user_id=claims.user_id,
            inactive_minutes=minutes,
        )

    user = UserRepository(db).get_by_id_optional(claims.user_id)
    if user is None:
        _reject(
            db, request, InvalidTokenError(), "UNAUTHORIZED_ACCESS", "User not found",
            attempted_user_id=claims.user_id,
        )

    if not user.is_active:
        _reject(
            db, request, InvalidTokenError("Account is disabled"), "UNAUTHORIZED_ACCESS",
            "User inactive", user_id=user.id, attempted_user_id=user.id,
        )

    token = _apply_decision(response, decision, now, credentials.credentials)
    user_id_var.set(str(user.id))
    # Read back by the access log and the exception handlers, which run
    # outside this dependency's context.
    request.state.user_id = user.id
    request.state.session_headers = {
        name: response.headers[name] for name in SESSION_HEADERS if name in response.headers
    }

    if decision.action != SessionAction.PASS:
        logger.debug(
            "Session %s", decision.action.value,
            extra={"seconds_remaining": decision.seconds_remaining},
        )

    return AuthContext(
        user_id=user.id,
        email=user.email,
        role=user.role,
        is_active=user.is_active,
        is_first_login=bool(user.is_first_login),
        is_profile_completed=bool(user.is_profile_completed),
        claims=decision.claims or claims,
        session=decision,
        token=token,
    )


def require_roles(*roles: str):
    """Dependency factory: allow only the listed global roles.

    Denials are audited like the other authentication failures.
    """
    allowed = {r.value if isinstance(r, UserRole) else str(r) for r in roles}

    def _dependency(
        request: Request,
        auth: AuthContext = Depends(require_auth),
        db: Session = Depends(get_db),
    ) -> AuthContext:
        if auth.role not in allowed:
            _reject(
                db,
                request,
                ForbiddenError("Insufficient role for this action"),
                "UNAUTHORIZED_ACCESS",
                "Role not allowed",
                user_id=auth.user_id,
                required_roles=sorted(allowed),
                user_role=auth.role,
            )
        return auth

    return _dependency


require_admin = require_roles(UserRole.ADMIN)


def require_profile_completion(auth: AuthContext = Depends(require_auth)) -> AuthContext:
    """Block resource access until the temporary password is changed and the
    profile is completed. Admins are not exempt."""
    if auth.is_first_login or not auth.is_profile_completed:
        raise ProfileCompletionRequiredError(is_first_login=auth.is_first_login)
    return auth
