"""
tests/test_requirements.py — Eligibility Gate, Daily Cap & Cooldown Tests
==========================================================================
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from jrank.engine.facts import ActionRecord, ActorMetrics
from jrank.engine.requirements import RequirementValidator
from jrank.engine.results import FailureKind
from jrank.engine.rules import Requirements

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=UTC)


def _history(*minutes_ago: float, actor: str = "u1", action: str = "like"):
    return tuple(
        ActionRecord(actor, action, NOW - timedelta(minutes=m)) for m in minutes_ago
    )


def _check(req: Requirements, metrics: ActorMetrics | None = None, history=(), now=NOW):
    return RequirementValidator().check(
        req, metrics or ActorMetrics(), history, now,
        actor_id="u1", action_type="like",
    )


class TestProfileGates:
    def test_no_requirements_passes(self):
        assert RequirementValidator().check(None, ActorMetrics(), (), NOW).ok

    def test_min_followers(self):
        req = Requirements(min_followers=100)
        assert _check(req, ActorMetrics(follower_count=100)).ok
        result = _check(req, ActorMetrics(follower_count=99))
        assert not result.ok
        assert result.reason == FailureKind.REQUIREMENT_NOT_MET

    def test_unknown_follower_count_fails_gate(self):
        result = _check(Requirements(min_followers=1), ActorMetrics())
        assert result.reason == FailureKind.REQUIREMENT_NOT_MET

    def test_min_account_age(self):
        req = Requirements(min_account_age_days=7)
        assert _check(req, ActorMetrics(account_age_days=7)).ok
        assert not _check(req, ActorMetrics(account_age_days=6)).ok

    def test_must_be_verified(self):
        req = Requirements(must_be_verified=True)
        assert _check(req, ActorMetrics(is_verified=True)).ok
        assert _check(req, ActorMetrics(is_verified=False)).reason == (
            FailureKind.REQUIREMENT_NOT_MET
        )


class TestDailyCap:
    def test_below_cap_passes(self):
        assert _check(Requirements(max_daily_actions=3), history=_history(10, 20)).ok

    def test_reaching_cap_rejects(self):
        result = _check(Requirements(max_daily_actions=3), history=_history(10, 20, 30))
        assert result.reason == FailureKind.DAILY_CAP_EXCEEDED

    def test_window_is_sliding_not_calendar(self):
        """Actions older than 24h drop out of the count."""
        history = _history(10, 60 * 24 + 1, 60 * 30)
        assert _check(Requirements(max_daily_actions=2), history=history).ok

    def test_other_actors_and_types_ignored(self):
        history = (
            _history(1, 2, actor="someone-else")
            + _history(1, 2, action="retweet")
        )
        assert _check(Requirements(max_daily_actions=1), history=history).ok

    def test_future_records_ignored(self):
        history = (ActionRecord("u1", "like", NOW + timedelta(minutes=5)),)
        assert _check(Requirements(max_daily_actions=1), history=history).ok

    def test_custom_window(self):
        validator = RequirementValidator(window=timedelta(hours=1))
        result = validator.check(
            Requirements(max_daily_actions=1), ActorMetrics(), _history(90), NOW,
            actor_id="u1", action_type="like",
        )
        assert result.ok


class TestCooldown:
    def test_action_one_minute_ago_blocks_five_minute_cooldown(self):
        result = _check(Requirements(cooldown_minutes=5), history=_history(1))
        assert result.reason == FailureKind.COOLDOWN_ACTIVE

    def test_action_six_minutes_ago_passes(self):
        assert _check(Requirements(cooldown_minutes=5), history=_history(6)).ok

    def test_exact_cooldown_boundary_passes(self):
        assert _check(Requirements(cooldown_minutes=5), history=_history(5)).ok

    def test_latest_action_counts(self):
        result = _check(Requirements(cooldown_minutes=5), history=_history(60, 2, 30))
        assert result.reason == FailureKind.COOLDOWN_ACTIVE

    def test_empty_history_passes(self):
        assert _check(Requirements(cooldown_minutes=5)).ok


class TestFailureOrder:
    def test_gate_reported_before_cap_and_cooldown(self):
        req = Requirements(min_followers=10, max_daily_actions=1, cooldown_minutes=5)
        result = _check(req, ActorMetrics(follower_count=0), history=_history(1))
        assert result.reason == FailureKind.REQUIREMENT_NOT_MET

    def test_cap_reported_before_cooldown(self):
        req = Requirements(max_daily_actions=1, cooldown_minutes=5)
        result = _check(req, history=_history(1))
        assert result.reason == FailureKind.DAILY_CAP_EXCEEDED
