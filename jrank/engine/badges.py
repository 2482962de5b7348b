"""
jrank.engine.badges — Badge Eligibility
========================================

Judges a user's cumulative activity snapshot against every active badge
rule in scope and returns *all* badges the snapshot qualifies for.
Unlike engagement scoring there is no single winner; the awards come back
in selection order (priority desc → updated_at desc → id asc).

Two kinds of badge are judged here:

* role badges — awarded when the subject holds one of ``required_roles``
* criterion badges — awarded when ``snapshot[metric] <operator> target``

A badge with neither is awarded manually and never matches.  This module
is pure calculation; recording awards is up to the caller.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Set
from datetime import datetime, timezone, tzinfo

from jrank.database.models import BadgeType
from jrank.engine.catalog import RuleCatalog
from jrank.engine.conditions import ConditionMatcher, MatchOutcome
from jrank.engine.facts import MetricFact
from jrank.engine.results import (
    BadgeAward,
    BadgeEvaluationResult,
    Diagnostic,
    FailureKind,
)
from jrank.engine.rules import RuleDefinition, RuleKind
from jrank.engine.selector import RuleSelector
from jrank.engine.time_window import TimeWindowEvaluator

logger = logging.getLogger(__name__)

__all__ = ["BadgeEligibilityEvaluator", "validate_metric_fact"]

_NOT_ELIGIBLE = MatchOutcome(False)


def validate_metric_fact(fact: object) -> str | None:
    """Return a description of what is wrong with *fact*, or None."""
    if not isinstance(fact, MetricFact):
        return f"expected MetricFact, got {type(fact).__name__}"
    if not isinstance(fact.subject_id, str) or not fact.subject_id.strip():
        return "subjectId is missing"
    if not isinstance(fact.metric_snapshot, Mapping):
        return "metricSnapshot is not a mapping"
    if not isinstance(fact.roles, Set):
        return "roles is not a set"
    return None


class BadgeEligibilityEvaluator:
    """Multi-select badge judging against a :class:`RuleCatalog` snapshot."""

    def __init__(
        self,
        *,
        reference_tz: tzinfo = timezone.utc,
        matcher: ConditionMatcher | None = None,
    ) -> None:
        self.matcher = matcher or ConditionMatcher()
        self.selector = RuleSelector(TimeWindowEvaluator(reference_tz))

    def evaluate(
        self,
        catalog: RuleCatalog,
        fact: MetricFact,
        now: datetime,
        *,
        scope: str | None = None,
        already_earned: Set[str] = frozenset(),
    ) -> BadgeEvaluationResult:
        """Every badge in *scope* (``None`` = all categories) that *fact* earns.

        Badges whose id is in *already_earned* are skipped.
        """
        problem = validate_metric_fact(fact)
        if problem is not None:
            logger.info("Rejecting metric fact: %s", problem)
            return BadgeEvaluationResult(
                subject_id=getattr(fact, "subject_id", None),
                rejection_reason=FailureKind.INVALID_FACT,
                diagnostics=(Diagnostic(FailureKind.INVALID_FACT, None, problem),),
            )

        selection = self.selector.select(catalog, RuleKind.BADGE, scope, fact, now)

        awards: list[BadgeAward] = []
        diagnostics: list[Diagnostic] = [
            Diagnostic(r.reason, r.rule.id, r.detail) for r in selection.rejections
        ]
        for rule in selection.rules:
            if rule.id in already_earned:
                continue
            outcome = self._judge(rule, fact)
            if outcome.diagnostic is not None:
                diagnostics.append(outcome.diagnostic)
            if outcome.matched:
                awards.append(BadgeAward(rule.id, rule.name, rule.priority))

        if awards:
            logger.debug(
                "Subject %s qualifies for %d badge(s): %s",
                fact.subject_id, len(awards), ", ".join(a.name for a in awards),
            )
            return BadgeEvaluationResult(
                subject_id=fact.subject_id,
                awards=tuple(awards),
                diagnostics=tuple(diagnostics),
            )

        reason = (
            selection.rejection_reason if not selection.rules
            else FailureKind.NO_MATCHING_RULE
        )
        return BadgeEvaluationResult(
            subject_id=fact.subject_id,
            rejection_reason=reason,
            diagnostics=tuple(diagnostics),
        )

    def _judge(self, rule: RuleDefinition, fact: MetricFact) -> MatchOutcome:
        if rule.badge_type == BadgeType.ROLE:
            return MatchOutcome(bool(rule.required_roles & fact.roles))

        crit = rule.criterion
        if crit is None:
            return _NOT_ELIGIBLE
        return self.matcher.evaluate(
            crit.metric,
            crit.operator,
            crit.target,
            fact.metric_snapshot.get(crit.metric),
            rule_id=rule.id,
        )
