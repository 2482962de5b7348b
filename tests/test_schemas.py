"""
tests/test_schemas.py — Rule Document & Fact Payload Validation Tests
======================================================================
"""

from __future__ import annotations

from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from jrank.engine.rules import RuleKind
from jrank.schemas import (
    BadgeDocument,
    EngagementCriteriaDocument,
    EngagementFactPayload,
    MetricFactPayload,
)


def _criteria_doc(**overrides) -> dict:
    doc = {
        "name": "Retweet",
        "description": "Points for retweets",
        "criteriaType": "retweet",
        "pointsConfig": {
            "basePoints": 5,
            "bonusConditions": [
                {"condition": "follower_count", "threshold": 1000, "bonusPoints": 3},
            ],
        },
        "requirements": {"minAccountAge": 7, "maxDailyActions": 50, "cooldownMinutes": 1},
        "timeConstraints": {
            "validFrom": "2026-01-01T00:00:00Z",
            "activeHoursOnly": True,
            "activeHours": {"start": 22, "end": 6},
        },
        "multipliers": [{"condition": "weekend", "multiplier": 1.5}],
        "priority": 3,
        "updatedAt": "2026-02-01T10:00:00Z",
    }
    doc.update(overrides)
    return doc


class TestEngagementCriteriaDocument:
    def test_converts_to_rule(self):
        rule = EngagementCriteriaDocument.model_validate(_criteria_doc()).to_rule("abc")
        assert rule.id == "abc"
        assert rule.kind == RuleKind.ENGAGEMENT
        assert rule.scope == "retweet"
        assert rule.base_score == 5
        assert rule.bonus_conditions[0].condition == "follower_count"
        assert rule.bonus_conditions[0].operator == "gte"
        assert rule.requirements.min_account_age_days == 7
        assert rule.requirements.cooldown_minutes == 1
        assert rule.time_constraints.active_hours.start == 22
        assert rule.time_constraints.valid_from == datetime(2026, 1, 1, tzinfo=UTC)
        assert rule.multipliers[0].multiplier == 1.5
        assert rule.priority == 3

    def test_snake_case_names_accepted(self):
        doc = {
            "name": "Like",
            "criteria_type": "like",
            "points_config": {"base_points": 1},
        }
        rule = EngagementCriteriaDocument.model_validate(doc).to_rule("x")
        assert rule.base_score == 1
        assert rule.requirements is None
        assert rule.time_constraints is None

    @pytest.mark.parametrize(
        "overrides",
        [
            {"criteriaType": "poke"},
            {"pointsConfig": {"basePoints": -1}},
            {"pointsConfig": {"basePoints": 1, "bonusConditions": [
                {"condition": "vibes", "threshold": 1, "bonusPoints": 1}]}},
            {"multipliers": [{"condition": "full_moon", "multiplier": 2}]},
            {"multipliers": [{"condition": "campaign", "multiplier": -1}]},
            {"timeConstraints": {"activeHoursOnly": True, "activeHours": {"start": 0, "end": 24}}},
            {"timeConstraints": {"activeHoursOnly": True}},
            {"requirements": {"cooldownMinutes": -5}},
        ],
    )
    def test_invalid_documents_rejected(self, overrides):
        with pytest.raises(ValidationError):
            EngagementCriteriaDocument.model_validate(_criteria_doc(**overrides))

    def test_inverted_validity_window_is_accepted(self):
        """Caught at selection time, not here."""
        doc = _criteria_doc(timeConstraints={
            "validFrom": "2026-02-01T00:00:00Z",
            "validUntil": "2026-01-01T00:00:00Z",
        })
        EngagementCriteriaDocument.model_validate(doc)


class TestBadgeDocument:
    def test_converts_to_rule(self):
        doc = {
            "name": "first_post",
            "displayName": "First Post",
            "type": "achievement",
            "category": "hub",
            "criteria": {"type": "content_count", "target": 1, "operator": "gte"},
            "rarity": "common",
            "tier": "entry",
            "order": 1,
        }
        rule = BadgeDocument.model_validate(doc).to_rule("b1")
        assert rule.kind == RuleKind.BADGE
        assert rule.scope == "hub"
        assert rule.criterion.metric == "content_count"
        assert rule.badge_type == "achievement"
        assert rule.metadata["display_name"] == "First Post"
        assert rule.metadata["tier"] == "entry"

    def test_role_badge_without_criteria(self):
        doc = {"name": "rookie", "type": "role", "category": "general", "requiredRoles": ["member"]}
        rule = BadgeDocument.model_validate(doc).to_rule("b2")
        assert rule.criterion is None
        assert rule.required_roles == frozenset({"member"})
        assert rule.metadata["display_name"] == "rookie"

    @pytest.mark.parametrize(
        "overrides",
        [
            {"category": "casino"},
            {"type": "bribe"},
            {"criteria": {"type": "karma", "target": 1}},
            {"criteria": {"type": "content_count", "target": -1}},
            {"criteria": {"type": "content_count", "target": 1, "operator": "approx"}},
            {"rarity": "mythic"},
        ],
    )
    def test_invalid_badges_rejected(self, overrides):
        doc = {"name": "b", "type": "achievement", "category": "hub"}
        doc.update(overrides)
        with pytest.raises(ValidationError):
            BadgeDocument.model_validate(doc)


class TestFactPayloads:
    def test_engagement_payload_to_fact(self):
        payload = EngagementFactPayload.model_validate({
            "actorId": "u1",
            "actionType": "like",
            "occurredAt": "2026-03-10T12:00:00Z",
            "actorMetrics": {"followerCount": 10, "isVerified": True, "extra": {"streak": 4}},
            "actionHistory": [{"actionType": "like", "occurredAt": "2026-03-10T11:00:00Z"}],
            "context": {"time_based": 3},
        })
        fact = payload.to_fact()
        assert fact.actor_metrics.follower_count == 10
        assert fact.actor_metrics.is_verified is True
        assert fact.metric_value("streak") == 4
        assert fact.metric_value("time_based") == 3
        assert fact.action_history[0].actor_id == "u1"
        assert fact.target_author_id is None

    def test_target_author_alias(self):
        fact = EngagementFactPayload.model_validate({
            "actorId": "u1",
            "actionType": "reply",
            "occurredAt": "2026-03-10T12:00:00Z",
            "targetAuthorId": "u9",
        }).to_fact()
        assert fact.target_author_id == "u9"

    def test_metric_payload_to_fact(self):
        fact = MetricFactPayload.model_validate({
            "subjectId": "u1",
            "metricSnapshot": {"content_count": 3},
            "roles": ["member"],
        }).to_fact()
        assert fact.metric_snapshot == {"content_count": 3}
        assert fact.roles == frozenset({"member"})

    def test_missing_actor_rejected(self):
        with pytest.raises(ValidationError):
            EngagementFactPayload.model_validate({"actionType": "like", "occurredAt": "2026-03-10T12:00:00Z"})


class TestNonFiniteNumbers:
    @pytest.mark.parametrize(
        "overrides",
        [
            {"pointsConfig": {"basePoints": float("inf")}},
            {"pointsConfig": {"basePoints": 1, "bonusConditions": [
                {"condition": "follower_count", "threshold": 1000, "bonusPoints": float("nan")}]}},
            {"pointsConfig": {"basePoints": 1, "bonusConditions": [
                {"condition": "follower_count", "threshold": float("nan"), "bonusPoints": 1}]}},
            {"multipliers": [{"condition": "campaign", "multiplier": float("inf")}]},
        ],
    )
    def test_criteria_rejected(self, overrides):
        with pytest.raises(ValidationError):
            EngagementCriteriaDocument.model_validate(_criteria_doc(**overrides))

    def test_badge_target_rejected(self):
        with pytest.raises(ValidationError):
            BadgeDocument.model_validate({
                "name": "b", "type": "achievement", "category": "hub",
                "criteria": {"type": "content_count", "target": float("inf")},
            })

    def test_fact_payload_rejected(self):
        with pytest.raises(ValidationError):
            MetricFactPayload.model_validate({
                "subjectId": "u1", "metricSnapshot": {"content_count": float("nan")},
            })
