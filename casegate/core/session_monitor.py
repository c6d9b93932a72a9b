"""Session activity state machine: single pure function.

Given the claims of the presented access token and the current time, decide
what the request pipeline should do with the session:

    EXPIRE          inactivity is past the limit plus grace; reject.
    RENEW           close to the limit (or keep-alive requested); re-sign
                    with ``lastActivity=now`` and no warning.
    WARN            inside the warning window for the first time; re-sign
                    carrying a fresh, unacknowledged warning.
    REPEAT_WARNING  warning already shown and not acknowledged; re-emit
                    warning headers without re-signing.
    PASS            nothing to do.

Rules are checked in exactly that order. The function never touches the
database, the clock, or the request; ``core.auth`` applies the decision.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from .token_factory import AccessClaims, SessionWarning


class SessionAction(str, Enum):
    PASS = "pass"
    RENEW = "renew"
    WARN = "warn"
    REPEAT_WARNING = "repeat_warning"
    EXPIRE = "expire"


@dataclass(frozen=True)
class SessionThresholds:
    """Inactivity thresholds. ``warning`` and ``refresh_threshold`` are
    measured backwards from ``max_inactivity``."""
    warning: timedelta = timedelta(minutes=20)
    refresh_threshold: timedelta = timedelta(minutes=10)
    max_inactivity: timedelta = timedelta(minutes=60)
    grace: timedelta = timedelta(minutes=5)

    @classmethod
    def from_settings(cls, settings) -> "SessionThresholds":
        return cls(
            warning=timedelta(minutes=settings.session_warning_minutes),
            refresh_threshold=timedelta(minutes=settings.session_refresh_threshold_minutes),
            max_inactivity=timedelta(minutes=settings.session_max_inactivity_minutes),
            grace=timedelta(minutes=settings.session_grace_minutes),
        )

    @property
    def hard_limit(self) -> timedelta:
        return self.max_inactivity + self.grace

    @property
    def renew_after(self) -> timedelta:
        return self.max_inactivity - self.refresh_threshold

    @property
    def warn_after(self) -> timedelta:
        return self.max_inactivity - self.warning


@dataclass(frozen=True)
class SessionDecision:
    """Outcome of ``evaluate_session``.

    ``claims`` is set only when a new token must be signed (RENEW, WARN).
    """
    action: SessionAction
    inactivity: timedelta
    seconds_remaining: int
    claims: Optional[AccessClaims] = None

    @property
    def needs_new_token(self) -> bool:
        return self.claims is not None

    @property
    def is_warning(self) -> bool:
        return self.action in (SessionAction.WARN, SessionAction.REPEAT_WARNING)


def evaluate_session(
    claims: AccessClaims,
    now: datetime,
    thresholds: SessionThresholds = SessionThresholds(),
    keep_alive: bool = False,
) -> SessionDecision:
    """Decide how to treat a session at time *now*.

    A token without ``lastActivity`` counts as active right now. Inactivity
    never goes negative, so a client clock ahead of the server cannot buy
    extra time.
    """
    last_activity = claims.last_activity or now
    inactivity = max(now - last_activity, timedelta(0))
    remaining = _seconds_remaining(thresholds.max_inactivity - inactivity)

    if inactivity > thresholds.hard_limit:
        return SessionDecision(SessionAction.EXPIRE, inactivity, 0)

    if keep_alive or inactivity > thresholds.renew_after:
        return SessionDecision(
            SessionAction.RENEW,
            timedelta(0),
            _seconds_remaining(thresholds.max_inactivity),
            claims=claims.with_activity(now),
        )

    warning = claims.session_warning
    if inactivity > thresholds.warn_after and (warning is None or not warning.shown):
        return SessionDecision(
            SessionAction.WARN,
            inactivity,
            remaining,
            claims=claims.with_warning(SessionWarning(shown=True, timestamp=now, acknowledged=False)),
        )

    if warning is not None and warning.shown and not warning.acknowledged:
        return SessionDecision(SessionAction.REPEAT_WARNING, inactivity, remaining)

    return SessionDecision(SessionAction.PASS, inactivity, remaining)


def acknowledge_warning(claims: AccessClaims) -> AccessClaims:
    """Mark the embedded warning as seen. Claims without a warning come back
    unchanged, so the next idle cycle still warns."""
    warning = claims.session_warning
    if warning is None:
        return claims
    return claims.with_warning(SessionWarning(shown=True, timestamp=warning.timestamp, acknowledged=True))


def _seconds_remaining(delta: timedelta) -> int:
    return max(0, int(delta.total_seconds()))
