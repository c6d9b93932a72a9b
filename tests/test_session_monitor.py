"""Tests for the session state machine. Pure function, no HTTP, no clock."""

from datetime import datetime, timedelta, timezone

from casegate.core.session_monitor import (
    SessionAction,
    SessionThresholds,
    acknowledge_warning,
    evaluate_session,
)
from casegate.core.token_factory import AccessClaims, SessionWarning

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)
DEFAULT = SessionThresholds()
NO_GRACE = SessionThresholds(grace=timedelta(0))


def _claims(last_activity=T0, warning=None) -> AccessClaims:
    return AccessClaims(
        user_id=1,
        email="ana@bufete.ec",
        role="COLLABORATOR",
        is_first_login=False,
        is_profile_completed=True,
        token_version=0,
        last_activity=last_activity,
        session_warning=warning,
    )


def _at(minutes: float) -> datetime:
    return T0 + timedelta(minutes=minutes)


class TestThresholds:

    def test_default_windows(self):
        assert DEFAULT.warn_after == timedelta(minutes=40)
        assert DEFAULT.renew_after == timedelta(minutes=50)
        assert DEFAULT.hard_limit == timedelta(minutes=65)


class TestTransitions:

    def test_fresh_token_passes(self):
        decision = evaluate_session(_claims(), _at(5))
        assert decision.action == SessionAction.PASS
        assert decision.claims is None
        assert decision.seconds_remaining == 55 * 60

    def test_expires_past_limit_plus_grace(self):
        decision = evaluate_session(_claims(), _at(66))
        assert decision.action == SessionAction.EXPIRE
        assert decision.seconds_remaining == 0

    def test_grace_period_still_renews(self):
        decision = evaluate_session(_claims(), _at(61))
        assert decision.action == SessionAction.RENEW

    def test_expires_at_61_minutes_without_grace(self):
        decision = evaluate_session(_claims(), _at(61), NO_GRACE)
        assert decision.action == SessionAction.EXPIRE

    def test_renews_near_the_limit(self):
        decision = evaluate_session(_claims(), _at(51))
        assert decision.action == SessionAction.RENEW
        assert decision.claims.last_activity == _at(51)
        assert decision.claims.session_warning is None
        assert decision.seconds_remaining == 60 * 60

    def test_keep_alive_renews_early(self):
        decision = evaluate_session(_claims(), _at(1), keep_alive=True)
        assert decision.action == SessionAction.RENEW
        assert decision.claims.last_activity == _at(1)

    def test_first_warning_resigns_with_warning(self):
        decision = evaluate_session(_claims(), _at(45))
        assert decision.action == SessionAction.WARN
        assert decision.needs_new_token
        warning = decision.claims.session_warning
        assert warning.shown and not warning.acknowledged
        assert warning.timestamp == _at(45)
        # Warning does not count as activity.
        assert decision.claims.last_activity == T0
        assert decision.seconds_remaining == 15 * 60

    def test_shown_warning_is_repeated_without_resign(self):
        warned = _claims(warning=SessionWarning(shown=True, timestamp=_at(45)))
        decision = evaluate_session(warned, _at(47))
        assert decision.action == SessionAction.REPEAT_WARNING
        assert decision.claims is None
        assert decision.is_warning

    def test_acknowledged_warning_passes(self):
        acked = _claims(warning=SessionWarning(shown=True, timestamp=_at(45), acknowledged=True))
        assert evaluate_session(acked, _at(47)).action == SessionAction.PASS

    def test_renewal_wins_over_warning(self):
        warned = _claims(warning=SessionWarning(shown=True, timestamp=_at(45)))
        decision = evaluate_session(warned, _at(52))
        assert decision.action == SessionAction.RENEW
        assert decision.claims.session_warning is None

    def test_missing_last_activity_counts_as_now(self):
        decision = evaluate_session(_claims(last_activity=None), _at(500))
        assert decision.action == SessionAction.PASS

    def test_clock_skew_never_adds_time(self):
        decision = evaluate_session(_claims(last_activity=_at(10)), T0)
        assert decision.inactivity == timedelta(0)
        assert decision.seconds_remaining == 60 * 60


class TestRepeatedWarnings:

    def test_time_remaining_is_non_increasing(self):
        claims = evaluate_session(_claims(), _at(41)).claims
        remaining = []
        for minute in (42, 43.5, 44, 46, 49, 50):
            decision = evaluate_session(claims, _at(minute))
            assert decision.action == SessionAction.REPEAT_WARNING
            remaining.append(decision.seconds_remaining)
        assert remaining == sorted(remaining, reverse=True)


class TestAcknowledge:

    def test_acknowledge_keeps_timestamp(self):
        warned = _claims(warning=SessionWarning(shown=True, timestamp=_at(45)))
        acked = acknowledge_warning(warned)
        assert acked.session_warning.acknowledged
        assert acked.session_warning.timestamp == _at(45)
        assert acked.last_activity == T0

    def test_acknowledge_without_warning_is_unchanged(self):
        claims = _claims(last_activity=_at(52))
        assert acknowledge_warning(claims) is claims

    def test_next_idle_cycle_still_warns_after_acknowledging_a_renewed_token(self):
        renewed = evaluate_session(_claims(), _at(52)).claims
        acked = acknowledge_warning(renewed)
        decision = evaluate_session(acked, _at(52 + 45))
        assert decision.action == SessionAction.WARN
