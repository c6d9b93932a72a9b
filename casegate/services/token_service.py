"""Token issuance, refresh, and logout.

``issue_tokens`` mints an access/refresh pair from the stored user;
``login`` bumps token_version first, so each login invalidates the refresh
token of the previous session. ``refresh_access_token`` trades a refresh
token for a new access token when its token_version still matches.

Refresh tokens are not rotated: the same refresh token keeps working until
it expires or token_version moves.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.token_factory import (
    AccessClaims,
    RefreshClaims,
    TokenExpiredError,
    TokenInvalidError,
    decode_refresh_token,
    encode_token,
)
from ..exceptions import InvalidTokenError, SessionExpiredError
from ..models.user import User
from ..repositories.user_repository import UserRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    token_version: int


def build_access_claims(user: User, token_version: int, now: datetime) -> AccessClaims:
    return AccessClaims(
        user_id=user.id,
        email=user.email,
        role=user.role,
        is_first_login=bool(user.is_first_login),
        is_profile_completed=bool(user.is_profile_completed),
        token_version=token_version,
        last_activity=now,
    )


def sign_access_token(claims: AccessClaims, now: datetime, expires_in: Optional[timedelta] = None) -> str:
    """Sign access-token claims. Defaults to the full login lifetime."""
    if expires_in is None:
        expires_in = timedelta(hours=settings.access_token_hours)
    return encode_token(
        claims.to_dict(),
        settings.jwt_secret_key,
        now=now,
        expires_in=expires_in,
        issuer=settings.jwt_issuer,
    )


def sign_renewed_token(claims: AccessClaims, now: datetime) -> str:
    """Sign a token re-issued by the session monitor (short window)."""
    return sign_access_token(claims, now, timedelta(hours=settings.renewed_token_hours))


def sign_refresh_token(claims: RefreshClaims, now: datetime) -> str:
    return encode_token(
        claims.to_dict(),
        settings.jwt_refresh_secret_key,
        now=now,
        expires_in=timedelta(days=settings.refresh_token_days),
        issuer=settings.jwt_issuer,
    )


def issue_tokens(db: Session, user: User, now: datetime) -> TokenPair:
    """Mint an access/refresh pair for *user*.

    token_version is read from the database rather than from *user* so a
    logout racing with this call is not papered over by a stale instance.
    Both tokens carry the same version.
    """
    version = UserRepository(db).current_token_version(user.id)
    access = sign_access_token(build_access_claims(user, version, now), now)
    refresh = sign_refresh_token(RefreshClaims(user_id=user.id, token_version=version), now)
    return TokenPair(access_token=access, refresh_token=refresh, token_version=version)


def login(db: Session, user: User, now: datetime) -> TokenPair:
    """Start a new session: bump token_version, stamp last_login, issue tokens."""
    users = UserRepository(db)
    users.increment_token_version(user.id)
    users.update(user.id, last_login=now)
    pair = issue_tokens(db, user, now)
    logger.info("Session started", extra={"user_id": user.id, "token_version": pair.token_version})
    return pair


def logout(db: Session, user_id: int) -> int:
    """End every session of *user_id* by bumping token_version."""
    version = UserRepository(db).increment_token_version(user_id)
    logger.info("Session ended", extra={"user_id": user_id, "token_version": version})
    return version


def refresh_access_token(db: Session, refresh_token: str, now: datetime) -> tuple[str, User]:
    """Exchange a refresh token for a new access token.

    The embedded token_version must equal the stored one exactly; any
    difference means a login or logout happened since the token was minted.

    Raises:
        SessionExpiredError: refresh token past its own expiry.
        InvalidTokenError: bad signature, wrong type, unknown or disabled
            user, or token_version mismatch.
    """
    try:
        claims = decode_refresh_token(refresh_token, settings.jwt_refresh_secret_key, now)
    except TokenExpiredError as e:
        raise SessionExpiredError("Refresh token has expired") from e
    except TokenInvalidError as e:
        raise InvalidTokenError("Invalid refresh token") from e

    user = UserRepository(db).get_by_id_optional(claims.user_id)
    if user is None or not user.is_active:
        raise InvalidTokenError("Invalid refresh token")

    current = UserRepository(db).current_token_version(user.id)
    if claims.token_version != current:
        logger.info(
            "Refresh token rejected: token_version mismatch",
            extra={"user_id": user.id, "token_version": claims.token_version, "current": current},
        )
        raise InvalidTokenError("Refresh token has been revoked")

    access = sign_access_token(build_access_claims(user, current, now), now)
    return access, user
