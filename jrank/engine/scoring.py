"""
jrank.engine.scoring — Score Calculation
=========================================

Combines a rule's base score with its satisfied bonus conditions and its
active multipliers::

    total = round_half_up((base + Σ satisfied bonuses) × Π active multipliers)

Bonuses are an order-independent sum, multipliers an order-independent
product.  Rounding happens once, at the end.  Points are integral and
never negative; a non-finite raw score (NaN, or an overflow to
infinity) scores 0 with a diagnostic.
"""

from __future__ import annotations

import math
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from jrank.database.models import ComparisonOperator, MultiplierCondition
from jrank.engine.conditions import ConditionMatcher
from jrank.engine.facts import EngagementFact
from jrank.engine.results import BonusAward, Diagnostic, FailureKind, ScoreBreakdown
from jrank.engine.rules import Multiplier, RuleDefinition
from jrank.engine.time_window import TimeWindowEvaluator, within_bounds

__all__ = ["ScoreCalculator", "round_half_up"]

_SATURDAY = 5


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero (2.5 → 3)."""
    return int(Decimal(str(value)).to_integral_value(rounding=ROUND_HALF_UP))


class ScoreCalculator:
    """Computes the :class:`ScoreBreakdown` of one rule against one fact."""

    def __init__(
        self,
        matcher: ConditionMatcher | None = None,
        time_window: TimeWindowEvaluator | None = None,
    ) -> None:
        self.matcher = matcher or ConditionMatcher()
        self.time_window = time_window or TimeWindowEvaluator()

    def compute(
        self,
        rule: RuleDefinition,
        fact: EngagementFact,
        now: datetime,
    ) -> tuple[ScoreBreakdown, tuple[Diagnostic, ...]]:
        diagnostics: list[Diagnostic] = []

        # 1. Bonuses, stacked additively
        bonuses: list[BonusAward] = []
        for bonus in rule.bonus_conditions:
            outcome = self.matcher.evaluate(
                bonus.condition,
                bonus.operator or ComparisonOperator.GTE,
                bonus.threshold,
                fact.metric_value(bonus.condition),
                rule_id=rule.id,
            )
            if outcome.diagnostic is not None:
                diagnostics.append(outcome.diagnostic)
            if outcome.matched:
                bonuses.append(BonusAward(bonus.condition, bonus.bonus_points))
        bonus_sum = math.fsum(b.bonus_points for b in bonuses)

        # 2. Multipliers compose multiplicatively; none active → 1
        product = 1.0
        applied: list[str] = []
        for mult in rule.multipliers:
            active, diagnostic = self._multiplier_active(rule.id, mult, now)
            if diagnostic is not None:
                diagnostics.append(diagnostic)
            if active:
                product *= mult.multiplier
                applied.append(mult.condition)

        # 3. Single rounding step at the end
        raw = (rule.base_score + bonus_sum) * product
        if math.isfinite(raw):
            total = max(round_half_up(raw), 0)
        else:
            total = 0
            diagnostics.append(Diagnostic(
                FailureKind.UNKNOWN_CONDITION, rule.id,
                f"non-finite score {raw!r} scored as 0",
            ))

        breakdown = ScoreBreakdown(
            base=rule.base_score,
            bonuses=tuple(bonuses),
            bonus_sum=bonus_sum,
            multiplier_applied=product,
            multipliers=tuple(applied),
            total=total,
        )
        return breakdown, tuple(diagnostics)

    def _multiplier_active(
        self, rule_id: str, mult: Multiplier, now: datetime,
    ) -> tuple[bool, Diagnostic | None]:
        if mult.multiplier is None or mult.multiplier < 0:
            return False, Diagnostic(
                FailureKind.UNKNOWN_CONDITION, rule_id,
                f"invalid multiplier value {mult.multiplier!r}",
            )
        if not within_bounds(now, mult.valid_from, mult.valid_until):
            return False, None

        if mult.condition == MultiplierCondition.WEEKEND:
            return self.time_window.local(now).weekday() >= _SATURDAY, None
        if mult.condition in (
            MultiplierCondition.CAMPAIGN, MultiplierCondition.SPECIAL_EVENT,
        ):
            # Active for as long as its own window (checked above) says so
            return True, None

        return False, Diagnostic(
            FailureKind.UNKNOWN_CONDITION, rule_id,
            f"unknown multiplier condition {mult.condition!r}",
        )
