"""
tests/test_badges.py — Badge Eligibility Tests
===============================================

Multi-select awarding, role badges, category scope, already-earned
filtering, and fail-closed criteria.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from jrank.engine.badges import BadgeEligibilityEvaluator
from jrank.engine.catalog import RuleCatalog
from jrank.engine.facts import MetricFact
from jrank.engine.results import FailureKind
from jrank.engine.rules import BadgeCriterion, RuleDefinition, RuleKind, TimeConstraints

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=UTC)


def _make_badge(
    badge_id: str,
    metric: str | None = "content_count",
    target: float = 1,
    operator: str = "gte",
    category: str = "hub",
    badge_type: str = "achievement",
    **kw,
) -> RuleDefinition:
    return RuleDefinition(
        id=badge_id,
        name=badge_id,
        kind=RuleKind.BADGE,
        scope=category,
        badge_type=badge_type,
        criterion=BadgeCriterion(metric, target, operator) if metric else None,
        **kw,
    )


@pytest.fixture
def evaluator() -> BadgeEligibilityEvaluator:
    return BadgeEligibilityEvaluator()


@pytest.fixture
def catalog() -> RuleCatalog:
    return RuleCatalog([
        _make_badge("first_post", target=1, priority=1),
        _make_badge("rising_creator", target=10, priority=2),
        _make_badge("prolific", target=100, priority=3),
        _make_badge("point_collector", metric="jrank_points", target=100, category="general"),
        _make_badge("early_adopter", metric="user_id_threshold", target=1000, operator="lt",
                    category="general", badge_type="special"),
        _make_badge("rookie", metric=None, category="general", badge_type="role",
                    required_roles=frozenset({"member"})),
        _make_badge("connected", metric=None, category="general"),
    ])


class TestMultiSelect:
    def test_all_satisfied_badges_returned(self, evaluator, catalog):
        fact = MetricFact("u1", {"content_count": 12})
        result = evaluator.evaluate(catalog, fact, NOW, scope="hub")
        assert result.applicable
        assert result.badge_ids == ["rising_creator", "first_post"]

    def test_all_categories_when_scope_is_none(self, evaluator, catalog):
        fact = MetricFact(
            "u1", {"content_count": 1, "jrank_points": 150, "user_id_threshold": 42},
        )
        result = evaluator.evaluate(catalog, fact, NOW)
        assert set(result.badge_ids) == {"first_post", "point_collector", "early_adopter"}

    def test_operator_lt(self, evaluator, catalog):
        fact = MetricFact("u1", {"user_id_threshold": 1000})
        assert evaluator.evaluate(catalog, fact, NOW, scope="general").badge_ids == []


class TestRoleBadges:
    def test_role_badge_awarded_for_matching_role(self, evaluator, catalog):
        fact = MetricFact("u1", {}, roles=frozenset({"member", "mentor"}))
        result = evaluator.evaluate(catalog, fact, NOW, scope="general")
        assert result.badge_ids == ["rookie"]

    def test_role_badge_not_awarded_without_role(self, evaluator, catalog):
        fact = MetricFact("u1", {}, roles=frozenset({"learner"}))
        result = evaluator.evaluate(catalog, fact, NOW, scope="general")
        assert not result.applicable

    def test_badge_without_criterion_is_manual(self, evaluator):
        catalog = RuleCatalog([_make_badge("connected", metric=None)])
        result = evaluator.evaluate(catalog, MetricFact("u1", {"content_count": 99}), NOW)
        assert not result.applicable
        assert result.rejection_reason == FailureKind.NO_MATCHING_RULE


class TestAlreadyEarned:
    def test_earned_badges_skipped(self, evaluator, catalog):
        fact = MetricFact("u1", {"content_count": 12})
        result = evaluator.evaluate(
            catalog, fact, NOW, scope="hub", already_earned={"first_post"},
        )
        assert result.badge_ids == ["rising_creator"]

    def test_everything_earned_is_not_applicable(self, evaluator, catalog):
        fact = MetricFact("u1", {"content_count": 1})
        result = evaluator.evaluate(
            catalog, fact, NOW, scope="hub", already_earned=frozenset({"first_post"}),
        )
        assert not result.applicable
        assert result.rejection_reason == FailureKind.NO_MATCHING_RULE


class TestFailClosed:
    def test_missing_counter_never_matches(self, evaluator, catalog):
        result = evaluator.evaluate(catalog, MetricFact("u1", {}), NOW, scope="hub")
        assert not result.applicable
        assert result.diagnostics == ()

    def test_unknown_metric_excludes_only_that_badge(self, evaluator):
        catalog = RuleCatalog([
            _make_badge("weird", metric="karma_points"),
            _make_badge("first_post"),
        ])
        fact = MetricFact("u1", {"content_count": 3, "karma_points": 999})
        result = evaluator.evaluate(catalog, fact, NOW)
        assert result.badge_ids == ["first_post"]
        assert result.diagnostics[0].kind == FailureKind.UNKNOWN_CONDITION
        assert result.diagnostics[0].rule_id == "weird"

    def test_expired_badge_not_awarded(self, evaluator):
        tc = TimeConstraints(valid_until=NOW - timedelta(days=1))
        catalog = RuleCatalog([_make_badge("event_badge", time_constraints=tc)])
        result = evaluator.evaluate(catalog, MetricFact("u1", {"content_count": 5}), NOW)
        assert not result.applicable

    def test_inactive_badge_not_awarded(self, evaluator):
        catalog = RuleCatalog([_make_badge("retired", is_active=False)])
        result = evaluator.evaluate(catalog, MetricFact("u1", {"content_count": 5}), NOW)
        assert not result.applicable


class TestInvalidFact:
    @pytest.mark.parametrize(
        "fact",
        [
            MetricFact("", {"content_count": 1}),
            MetricFact("u1", [("content_count", 1)]),
            MetricFact("u1", {}, roles=["member"]),
            None,
        ],
    )
    def test_malformed_fact_rejected(self, evaluator, catalog, fact):
        result = evaluator.evaluate(catalog, fact, NOW)
        assert not result.applicable
        assert result.rejection_reason == FailureKind.INVALID_FACT

    def test_to_dict(self, evaluator, catalog):
        data = evaluator.evaluate(
            catalog, MetricFact("u1", {"content_count": 1}), NOW, scope="hub",
        ).to_dict()
        assert data["subjectId"] == "u1"
        assert data["awards"] == [{"badgeId": "first_post", "name": "first_post", "priority": 1}]
