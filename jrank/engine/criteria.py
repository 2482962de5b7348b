"""
jrank.engine.criteria — Engagement Criteria Evaluation
=======================================================

The public entry point for scoring one engagement action.  A single
synchronous pass over the snapshot it is handed::

    Received → Selecting → Validating → Scoring → Resolved

At most one rule applies per event: the highest-priority eligible rule
(ties: most recently updated, then lowest id).  Nothing here raises for
bad data; every outcome is an :class:`EvaluationResult`.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime, timedelta, timezone, tzinfo
from typing import TYPE_CHECKING

from jrank.database.models import CriteriaType
from jrank.engine.catalog import RuleCatalog
from jrank.engine.conditions import ConditionMatcher
from jrank.engine.facts import ActionRecord, ActorMetrics, EngagementFact
from jrank.engine.requirements import RequirementValidator
from jrank.engine.results import Diagnostic, EvaluationResult, FailureKind
from jrank.engine.rules import RuleKind
from jrank.engine.scoring import ScoreCalculator
from jrank.engine.selector import RuleSelector
from jrank.engine.time_window import TimeWindowEvaluator

if TYPE_CHECKING:
    from jrank.config import EngineConfig

logger = logging.getLogger(__name__)

__all__ = ["CriteriaEvaluationEngine", "validate_engagement_fact"]

_ACTION_TYPES: frozenset[str] = frozenset(c.value for c in CriteriaType)


def validate_engagement_fact(fact: object) -> str | None:
    """Return a description of what is wrong with *fact*, or None."""
    if not isinstance(fact, EngagementFact):
        return f"expected EngagementFact, got {type(fact).__name__}"
    if not isinstance(fact.actor_id, str) or not fact.actor_id.strip():
        return "actorId is missing"
    if fact.action_type not in _ACTION_TYPES:
        return f"unknown actionType {fact.action_type!r}"
    if not isinstance(fact.occurred_at, datetime):
        return "occurredAt is not a datetime"
    if not isinstance(fact.actor_metrics, ActorMetrics):
        return "actorMetrics is malformed"
    if not isinstance(fact.context, Mapping):
        return "context is not a mapping"
    if fact.target_author_id is not None and not isinstance(fact.target_author_id, str):
        return "targetAuthorId is not a string"
    try:
        if not all(isinstance(r, ActionRecord) for r in fact.action_history):
            return "actionHistory contains malformed entries"
    except TypeError:
        return "actionHistory is not iterable"
    return None


class CriteriaEvaluationEngine:
    """Scores engagement facts against a :class:`RuleCatalog` snapshot.

    Stateless between calls: safe to share across threads as long as each
    call gets its own fact (the catalog snapshot is immutable).

    Parameters
    ----------
    reference_tz : timezone for active hours and weekend multipliers.
    history_window : sliding window for ``maxDailyActions``.
    matcher : optional ConditionMatcher (for testing).
    """

    def __init__(
        self,
        *,
        reference_tz: tzinfo = timezone.utc,
        history_window: timedelta = timedelta(hours=24),
        matcher: ConditionMatcher | None = None,
    ) -> None:
        self.matcher = matcher or ConditionMatcher()
        self.time_window = TimeWindowEvaluator(reference_tz)
        self.selector = RuleSelector(
            self.time_window, RequirementValidator(history_window),
        )
        self.calculator = ScoreCalculator(self.matcher, self.time_window)

    @classmethod
    def from_config(cls, cfg: EngineConfig) -> CriteriaEvaluationEngine:
        return cls(
            reference_tz=cfg.tzinfo,
            history_window=timedelta(hours=cfg.history_window_hours),
        )

    @property
    def history_window(self) -> timedelta:
        return self.selector.requirements.window

    def evaluate(
        self,
        catalog: RuleCatalog,
        fact: EngagementFact,
        now: datetime | None = None,
    ) -> EvaluationResult:
        """Run the full evaluation for one engagement fact.

        *now* defaults to the fact's ``occurred_at``; it is never read from
        the system clock.
        """
        # Received: fact shape
        problem = validate_engagement_fact(fact)
        if problem is not None:
            logger.info("Rejecting engagement fact: %s", problem)
            return EvaluationResult(
                applicable=False,
                rejection_reason=FailureKind.INVALID_FACT,
                diagnostics=(Diagnostic(FailureKind.INVALID_FACT, None, problem),),
            )
        if fact.target_author_id == fact.actor_id:
            logger.info(
                "Rejecting self-engagement: %s on own content (%s)",
                fact.actor_id, fact.action_type,
            )
            return EvaluationResult(
                applicable=False,
                rejection_reason=FailureKind.SELF_ENGAGEMENT,
                diagnostics=(Diagnostic(
                    FailureKind.SELF_ENGAGEMENT, None, "cannot engage with own content",
                ),),
            )
        if now is None:
            now = fact.occurred_at

        # Selecting + Validating: window and requirement filters
        selection = self.selector.select(
            catalog, RuleKind.ENGAGEMENT, fact.action_type, fact, now,
        )
        rejection_notes = tuple(
            Diagnostic(r.reason, r.rule.id, r.detail) for r in selection.rejections
        )
        if not selection.rules:
            reason = selection.rejection_reason
            logger.debug(
                "No rule for %s by %s: %s (%d candidates)",
                fact.action_type, fact.actor_id, reason, selection.candidates,
            )
            return EvaluationResult(
                applicable=False,
                rejection_reason=reason,
                diagnostics=rejection_notes,
            )

        # Scoring: the single top rule
        rule = selection.rules[0]
        breakdown, score_notes = self.calculator.compute(rule, fact, now)

        logger.debug(
            "Rule %s scored %d for %s by %s",
            rule.id, breakdown.total, fact.action_type, fact.actor_id,
        )

        # Resolved
        return EvaluationResult(
            applicable=True,
            matched_rule_id=rule.id,
            score=breakdown.total,
            breakdown=breakdown,
            diagnostics=rejection_notes + score_notes,
        )
