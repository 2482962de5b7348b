"""
jrank.engine.conditions — Condition Matcher
============================================

Generic predicate evaluation shared by bonus conditions and badge
criteria: ``value <operator> threshold`` for a named condition.

Fails closed.  An unknown condition name or operator never raises; it
yields ``False`` plus an ``UnknownCondition`` diagnostic, so one malformed
rule cannot abort evaluation of the others.
"""

from __future__ import annotations

import logging
import operator as _op
from collections.abc import Callable
from dataclasses import dataclass
from numbers import Real

from jrank.database.models import BadgeMetric, BonusConditionType, ComparisonOperator
from jrank.engine.results import Diagnostic, FailureKind

logger = logging.getLogger(__name__)

__all__ = [
    "BOOLEAN_CONDITIONS",
    "KNOWN_CONDITIONS",
    "OPERATORS",
    "ConditionMatcher",
    "MatchOutcome",
]

# ---------------------------------------------------------------------------
# Operator registry
# ---------------------------------------------------------------------------
OPERATORS: dict[str, Callable[[float, float], bool]] = {
    ComparisonOperator.GTE: _op.ge,
    ComparisonOperator.LTE: _op.le,
    ComparisonOperator.EQ: _op.eq,
    ComparisonOperator.GT: _op.gt,
    ComparisonOperator.LT: _op.lt,
    ComparisonOperator.NEQ: _op.ne,
}

# Only these make sense for booleans and strings
_EQUALITY_OPERATORS: frozenset[str] = frozenset(
    {ComparisonOperator.EQ, ComparisonOperator.NEQ}
)

# ---------------------------------------------------------------------------
# Condition names the matcher understands
# ---------------------------------------------------------------------------
BOOLEAN_CONDITIONS: frozenset[str] = frozenset({"is_verified"})

KNOWN_CONDITIONS: frozenset[str] = frozenset(
    {c.value for c in BonusConditionType}
    | {m.value for m in BadgeMetric}
    | {"account_age_days"}
    | BOOLEAN_CONDITIONS
)


@dataclass(frozen=True, slots=True)
class MatchOutcome:
    matched: bool
    diagnostic: Diagnostic | None = None


_NO_MATCH = MatchOutcome(False)
_MATCH = MatchOutcome(True)


class ConditionMatcher:
    """Evaluates ``fact_value <operator> threshold`` for a named condition.

    Numbers compare numerically.  Booleans and strings only support
    ``eq``/``neq`` (equality); any other operator on them fails closed.
    A missing fact value (``None``) never matches and is not an error.
    """

    def __init__(self, known_conditions: frozenset[str] = KNOWN_CONDITIONS) -> None:
        self._known = known_conditions

    def is_known(self, condition_name: str) -> bool:
        return condition_name in self._known

    def evaluate(
        self,
        condition_name: str,
        operator: str,
        threshold: object,
        fact_value: object,
        *,
        rule_id: str | None = None,
    ) -> MatchOutcome:
        """Full outcome, including a diagnostic when the rule part is malformed."""
        if condition_name not in self._known:
            return self._unknown(rule_id, f"unknown condition {condition_name!r}")

        compare = OPERATORS.get(operator)
        if compare is None:
            return self._unknown(
                rule_id, f"unknown operator {operator!r} for {condition_name!r}",
            )

        if fact_value is None:
            return _NO_MATCH

        # bool is a Real subclass, check it first
        if isinstance(fact_value, bool) or isinstance(fact_value, str):
            if operator not in _EQUALITY_OPERATORS:
                return self._unknown(
                    rule_id,
                    f"operator {operator!r} not applicable to non-numeric "
                    f"{condition_name!r}",
                )
            if isinstance(fact_value, bool):
                expected: object = bool(threshold)
            else:
                expected = str(threshold)
            return _MATCH if compare(fact_value, expected) else _NO_MATCH

        if (
            not isinstance(fact_value, Real)
            or isinstance(threshold, bool)
            or not isinstance(threshold, Real)
        ):
            return self._unknown(
                rule_id,
                f"non-numeric comparison for {condition_name!r}: "
                f"{fact_value!r} {operator} {threshold!r}",
            )

        return _MATCH if compare(fact_value, threshold) else _NO_MATCH

    def matches(
        self,
        condition_name: str,
        operator: str,
        threshold: object,
        fact_value: object,
    ) -> bool:
        return self.evaluate(condition_name, operator, threshold, fact_value).matched

    @staticmethod
    def _unknown(rule_id: str | None, detail: str) -> MatchOutcome:
        logger.warning("Rule %s: %s — treated as not satisfied", rule_id, detail)
        return MatchOutcome(
            False, Diagnostic(FailureKind.UNKNOWN_CONDITION, rule_id, detail),
        )
