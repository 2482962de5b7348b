"""
jrank.engine.facts — Runtime Fact Envelopes
============================================

A fact is whatever the caller hands the engine to judge: a single social
engagement action (:class:`EngagementFact`) or a user's cumulative
activity counters (:class:`MetricFact`).  Facts are built per call by the
caller and discarded after evaluation.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime

__all__ = ["ActionRecord", "ActorMetrics", "EngagementFact", "MetricFact"]


@dataclass(frozen=True, slots=True)
class ActorMetrics:
    """Profile numbers for the actor performing an engagement action.

    ``extra`` holds any further named numbers (``engagement_rate``,
    ``quality_score``, ``streak`` …) that bonus conditions may test.
    """

    follower_count: int | None = None
    account_age_days: int | None = None
    is_verified: bool = False
    extra: Mapping[str, float] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ActionRecord:
    """One previously recorded qualifying action (history snapshot row)."""

    actor_id: str
    action_type: str
    occurred_at: datetime


@dataclass(frozen=True, slots=True)
class EngagementFact:
    """A single engagement action to be scored.

    ``action_history`` is a point-in-time view of the actor's recent
    qualifying actions, read by the caller from its own store.  ``context``
    carries event-level numbers (e.g. ``time_based`` — minutes between the
    post going live and this action).  ``target_author_id`` names the author
    of the engaged content when the caller knows it; engaging with one's own
    content never scores.
    """

    actor_id: str
    action_type: str
    occurred_at: datetime
    actor_metrics: ActorMetrics = field(default_factory=ActorMetrics)
    action_history: tuple[ActionRecord, ...] = ()
    context: Mapping[str, float] = field(default_factory=dict)
    target_author_id: str | None = None

    def metric_value(self, name: str) -> float | bool | None:
        """Look up a named fact value for condition matching.

        Order: event context → actor profile fields → actor ``extra``.
        Returns None when nothing by that name is known.
        """
        if name in self.context:
            return self.context[name]
        m = self.actor_metrics
        if name == "follower_count":
            return m.follower_count
        if name == "account_age_days":
            return m.account_age_days
        if name == "is_verified":
            return m.is_verified
        return m.extra.get(name)


@dataclass(frozen=True, slots=True)
class MetricFact:
    """Cumulative activity snapshot for badge evaluation.

    ``metric_snapshot`` maps counter names (``content_count``,
    ``jrank_points``, ``streak_days`` …) to values.  Absent counters never
    satisfy a criterion.  ``roles`` drives role badges.
    """

    subject_id: str
    metric_snapshot: Mapping[str, float] = field(default_factory=dict)
    roles: frozenset[str] = frozenset()
