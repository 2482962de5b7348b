"""
jrank.engine.selector — Rule Selection & Ordering
==================================================

Given a fact and a scope, pulls candidate rules from a catalog snapshot,
drops those outside their time window or failing their requirement
gates, and orders the survivors deterministically:

    priority (desc) → updated_at (desc) → id (asc)

Candidates are ordered *before* filtering, so the recorded rejections are
in the same order and the first one belongs to the highest-priority rule
that was excluded.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from jrank.engine.catalog import RuleCatalog
from jrank.engine.facts import ActorMetrics, EngagementFact, MetricFact
from jrank.engine.requirements import RequirementValidator
from jrank.engine.results import FailureKind
from jrank.engine.rules import RuleDefinition, RuleKind
from jrank.engine.time_window import TimeWindowEvaluator, ensure_aware

logger = logging.getLogger(__name__)

__all__ = ["Rejection", "RuleSelector", "Selection", "order_rules"]

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)
_NO_METRICS = ActorMetrics()


def order_rules(rules: list[RuleDefinition]) -> list[RuleDefinition]:
    """Sort by priority desc, then updated_at desc, then id asc.

    Stable multi-pass sort, least significant key first.  A rule with no
    ``updated_at`` sorts as the oldest.
    """
    ordered = sorted(rules, key=lambda r: r.id)
    ordered.sort(
        key=lambda r: ensure_aware(r.updated_at) if r.updated_at else _OLDEST,
        reverse=True,
    )
    ordered.sort(key=lambda r: r.priority, reverse=True)
    return ordered


@dataclass(frozen=True, slots=True)
class Rejection:
    """A candidate excluded by its requirement gates."""

    rule: RuleDefinition
    reason: FailureKind
    detail: str = ""


@dataclass(frozen=True, slots=True)
class Selection:
    """Ordered eligible rules plus what was filtered out and why."""

    rules: tuple[RuleDefinition, ...] = ()
    rejections: tuple[Rejection, ...] = ()
    candidates: int = 0

    @property
    def primary_rejection(self) -> Rejection | None:
        """Rejection of the highest-priority excluded rule, if any."""
        return self.rejections[0] if self.rejections else None

    @property
    def rejection_reason(self) -> FailureKind:
        """Reason to report when nothing survived."""
        primary = self.primary_rejection
        if primary is not None:
            return primary.reason
        return FailureKind.NO_MATCHING_RULE


class RuleSelector:
    """Filters and orders rules for one fact at one instant."""

    def __init__(
        self,
        time_window: TimeWindowEvaluator | None = None,
        requirements: RequirementValidator | None = None,
    ) -> None:
        self.time_window = time_window or TimeWindowEvaluator()
        self.requirements = requirements or RequirementValidator()

    def select(
        self,
        catalog: RuleCatalog,
        kind: RuleKind,
        scope: str | None,
        fact: EngagementFact | MetricFact,
        now: datetime,
    ) -> Selection:
        # 1. Scope lookup (active only), in final order
        candidates = order_rules(catalog.list_active(kind, scope))

        if isinstance(fact, EngagementFact):
            metrics = fact.actor_metrics
            history = fact.action_history
            actor_id: str | None = fact.actor_id
            action_type: str | None = fact.action_type
        else:
            metrics, history, actor_id, action_type = _NO_METRICS, (), None, None

        eligible: list[RuleDefinition] = []
        rejections: list[Rejection] = []
        for rule in candidates:
            # 2. Validity / active-hours window
            if not self.time_window.is_within_window(rule.time_constraints, now):
                logger.debug("Rule %s outside its time window at %s", rule.id, now)
                continue

            # 3. Requirement gates: excluded, not an engine error
            check = self.requirements.check(
                rule.requirements, metrics, history, now,
                actor_id=actor_id, action_type=action_type,
            )
            if not check.ok:
                logger.debug("Rule %s rejected: %s (%s)", rule.id, check.reason, check.detail)
                rejections.append(Rejection(rule, check.reason, check.detail))
                continue

            eligible.append(rule)

        return Selection(
            rules=tuple(eligible),
            rejections=tuple(rejections),
            candidates=len(candidates),
        )
