"""Pure functions for encoding and decoding signed session tokens.

No I/O and no database, only the JWT wire format (HS256) and the typed claim
objects carried inside access and refresh tokens. Time is always passed in
so callers (and tests) decide what "now" is.

Access tokens are a capsule of session state: the server keeps nothing
besides ``users.token_version``, and every change to ``lastActivity`` or the
session warning flags is expressed by signing a new token.
"""

import base64
import hashlib
import hmac
import json
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


class TokenError(Exception):
    """Base class for decode failures."""


class TokenExpiredError(TokenError):
    """Signature is valid but the ``exp`` claim is in the past."""


class TokenInvalidError(TokenError):
    """Malformed token, bad signature, or wrong token type."""


@dataclass(frozen=True)
class SessionWarning:
    """Inactivity warning state embedded in an access token."""
    shown: bool
    timestamp: datetime
    acknowledged: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "shown": self.shown,
            "timestamp": format_timestamp(self.timestamp),
            "acknowledged": self.acknowledged,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["SessionWarning"]:
        if not data:
            return None
        return cls(
            shown=bool(data.get("shown", False)),
            timestamp=parse_timestamp(data.get("timestamp")) or datetime.now(timezone.utc),
            acknowledged=bool(data.get("acknowledged", False)),
        )


@dataclass(frozen=True)
class AccessClaims:
    """Claims of an access token. Immutable; use ``with_activity`` and
    ``with_warning`` to derive the claims of a re-signed token."""
    user_id: int
    email: str
    role: str
    is_first_login: bool
    is_profile_completed: bool
    token_version: int
    last_activity: Optional[datetime] = None
    session_warning: Optional[SessionWarning] = None
    expires_at: Optional[datetime] = None

    def with_activity(self, now: datetime) -> "AccessClaims":
        """Fresh activity: move ``lastActivity`` forward and drop any warning."""
        return replace(self, last_activity=now, session_warning=None)

    def with_warning(self, warning: Optional[SessionWarning]) -> "AccessClaims":
        return replace(self, session_warning=warning)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.user_id,
            "email": self.email,
            "role": self.role,
            "isFirstLogin": self.is_first_login,
            "isProfileCompleted": self.is_profile_completed,
            "tokenVersion": self.token_version,
            "type": ACCESS_TOKEN_TYPE,
        }
        if self.last_activity is not None:
            payload["lastActivity"] = format_timestamp(self.last_activity)
        if self.session_warning is not None:
            payload["sessionWarning"] = self.session_warning.to_dict()
        return payload

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "AccessClaims":
        if payload.get("type", ACCESS_TOKEN_TYPE) != ACCESS_TOKEN_TYPE:
            raise TokenInvalidError("Not an access token")
        try:
            user_id = int(payload["id"])
        except (KeyError, TypeError, ValueError) as e:
            raise TokenInvalidError("Token has no subject") from e
        exp = payload.get("exp")
        return cls(
            user_id=user_id,
            email=payload.get("email", ""),
            role=payload.get("role", ""),
            is_first_login=bool(payload.get("isFirstLogin", False)),
            is_profile_completed=bool(payload.get("isProfileCompleted", False)),
            token_version=int(payload.get("tokenVersion", 0)),
            last_activity=parse_timestamp(payload.get("lastActivity")),
            session_warning=SessionWarning.from_dict(payload.get("sessionWarning")),
            expires_at=datetime.fromtimestamp(exp, tz=timezone.utc) if exp else None,
        )


@dataclass(frozen=True)
class RefreshClaims:
    """Claims of a refresh token: just enough to find the user and check
    that no login/logout happened since it was minted."""
    user_id: int
    token_version: int
    expires_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.user_id,
            "tokenVersion": self.token_version,
            "type": REFRESH_TOKEN_TYPE,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "RefreshClaims":
        if payload.get("type") != REFRESH_TOKEN_TYPE:
            raise TokenInvalidError("Not a refresh token")
        try:
            user_id = int(payload["id"])
            token_version = int(payload["tokenVersion"])
        except (KeyError, TypeError, ValueError) as e:
            raise TokenInvalidError("Refresh token is missing claims") from e
        exp = payload.get("exp")
        return cls(
            user_id=user_id,
            token_version=token_version,
            expires_at=datetime.fromtimestamp(exp, tz=timezone.utc) if exp else None,
        )


def encode_token(
    claims: Dict[str, Any],
    secret: str,
    now: datetime,
    expires_in: timedelta,
    issuer: str = "casegate",
    algorithm: str = "HS256",
) -> str:
    """Sign *claims* into a JWT string.

    ``iat``, ``exp`` and ``iss`` are added here; any values already present
    in *claims* for those keys are overwritten.
    """
    if algorithm != "HS256":
        raise ValueError(f"Unsupported algorithm: {algorithm}")

    payload = dict(claims)
    payload["iat"] = int(now.timestamp())
    payload["exp"] = int((now + expires_in).timestamp())
    payload["iss"] = issuer

    header = {"alg": "HS256", "typ": "JWT"}
    segments = [
        _b64encode(json.dumps(header, separators=(",", ":")).encode()),
        _b64encode(json.dumps(payload, separators=(",", ":")).encode()),
    ]
    signing_input = b".".join(segments)
    signature = hmac.new(secret.encode(), signing_input, hashlib.sha256).digest()
    segments.append(_b64encode(signature))
    return b".".join(segments).decode()


def decode_token(token: str, secret: str, now: datetime, algorithm: str = "HS256") -> Dict[str, Any]:
    """Verify a JWT and return its raw payload.

    Raises:
        TokenInvalidError: malformed token, unsupported header, or bad signature.
        TokenExpiredError: signature is valid but ``exp`` has passed.
    """
    if algorithm != "HS256":
        raise ValueError(f"Unsupported algorithm: {algorithm}")

    try:
        parts = token.encode().split(b".")
        if len(parts) != 3:
            raise TokenInvalidError("Token must have three segments")

        header = json.loads(_b64decode(parts[0]))
        if header.get("alg") != "HS256":
            raise TokenInvalidError("Unsupported token algorithm")

        signing_input = parts[0] + b"." + parts[1]
        expected_sig = hmac.new(secret.encode(), signing_input, hashlib.sha256).digest()
        actual_sig = _b64decode(parts[2])
        if not hmac.compare_digest(expected_sig, actual_sig):
            raise TokenInvalidError("Signature verification failed")

        payload = json.loads(_b64decode(parts[1]))
    except (json.JSONDecodeError, UnicodeError, ValueError, IndexError, AttributeError) as e:
        raise TokenInvalidError("Malformed token") from e

    if not isinstance(payload, dict):
        raise TokenInvalidError("Malformed token payload")

    exp = payload.get("exp")
    if not isinstance(exp, (int, float)):
        raise TokenInvalidError("Token has no expiry")
    if now.timestamp() > exp:
        raise TokenExpiredError("Token has expired")

    return payload


def decode_access_token(token: str, secret: str, now: datetime) -> AccessClaims:
    return AccessClaims.from_dict(decode_token(token, secret, now))


def decode_refresh_token(token: str, secret: str, now: datetime) -> RefreshClaims:
    return RefreshClaims.from_dict(decode_token(token, secret, now))


# --- timestamp helpers (ISO-8601, always UTC) ---

def format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def parse_timestamp(value: Any) -> Optional[datetime]:
    if not value or not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# --- base64url helpers (no padding, URL-safe) ---

def _b64encode(data: bytes) -> bytes:
    return base64.urlsafe_b64encode(data).rstrip(b"=")


def _b64decode(data: bytes) -> bytes:
    padding = 4 - len(data) % 4
    if padding != 4:
        data += b"=" * padding
    return base64.urlsafe_b64decode(data)
