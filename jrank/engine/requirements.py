"""
jrank.engine.requirements — Eligibility Gates & Anti-Abuse Checks
==================================================================

Hard preconditions a rule may impose before it can score an action:
profile gates (followers, account age, verification), a per-actor daily
cap over a sliding window, and a per-actor cooldown.

Pure read.  The action history is a snapshot handed in by the caller; the
validator never records anything.  Two near-simultaneous events for the
same actor can both pass against the same snapshot, so callers that need
strict caps must serialise per actor (see
:mod:`jrank.services.scoring_service`).
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta

from jrank.engine.facts import ActionRecord, ActorMetrics
from jrank.engine.results import FailureKind
from jrank.engine.rules import Requirements
from jrank.engine.time_window import ensure_aware

logger = logging.getLogger(__name__)

__all__ = ["RequirementCheck", "RequirementValidator"]


@dataclass(frozen=True, slots=True)
class RequirementCheck:
    ok: bool
    reason: FailureKind | None = None
    detail: str = ""


_PASS = RequirementCheck(True)


class RequirementValidator:
    """Checks a rule's :class:`Requirements` for one actor at one instant.

    Every configured gate is evaluated; the *first* failure in the fixed
    order gates → daily cap → cooldown is reported.
    """

    def __init__(self, window: timedelta = timedelta(hours=24)) -> None:
        self.window = window

    def check(
        self,
        requirements: Requirements | None,
        actor_metrics: ActorMetrics,
        action_history: Iterable[ActionRecord],
        now: datetime,
        *,
        actor_id: str | None = None,
        action_type: str | None = None,
    ) -> RequirementCheck:
        if requirements is None:
            return _PASS

        now = ensure_aware(now)
        relevant = self._relevant_history(action_history, now, actor_id, action_type)

        failures: list[RequirementCheck] = []

        gate = self._check_gates(requirements, actor_metrics)
        if gate is not None:
            failures.append(gate)

        cap = requirements.max_daily_actions
        if cap is not None:
            cutoff = now - self.window
            recent = sum(1 for ts in relevant if ts > cutoff)
            if recent >= cap:
                failures.append(RequirementCheck(
                    False, FailureKind.DAILY_CAP_EXCEEDED,
                    f"{recent} actions in the last {self.window}, cap {cap}",
                ))

        cooldown = requirements.cooldown_minutes
        if cooldown is not None and cooldown > 0 and relevant:
            elapsed = now - max(relevant)
            if elapsed < timedelta(minutes=cooldown):
                failures.append(RequirementCheck(
                    False, FailureKind.COOLDOWN_ACTIVE,
                    f"last action {elapsed} ago, cooldown {cooldown} min",
                ))

        if failures:
            logger.debug(
                "Requirements failed for actor %s (%s): %s",
                actor_id, action_type, [f.reason for f in failures],
            )
            return failures[0]
        return _PASS

    @staticmethod
    def _check_gates(
        requirements: Requirements, metrics: ActorMetrics,
    ) -> RequirementCheck | None:
        if requirements.min_followers is not None and (
            metrics.follower_count is None
            or metrics.follower_count < requirements.min_followers
        ):
            return RequirementCheck(
                False, FailureKind.REQUIREMENT_NOT_MET,
                f"followers {metrics.follower_count} < {requirements.min_followers}",
            )
        if requirements.min_account_age_days is not None and (
            metrics.account_age_days is None
            or metrics.account_age_days < requirements.min_account_age_days
        ):
            return RequirementCheck(
                False, FailureKind.REQUIREMENT_NOT_MET,
                f"account age {metrics.account_age_days}d "
                f"< {requirements.min_account_age_days}d",
            )
        if requirements.must_be_verified and not metrics.is_verified:
            return RequirementCheck(
                False, FailureKind.REQUIREMENT_NOT_MET, "actor is not verified",
            )
        return None

    @staticmethod
    def _relevant_history(
        history: Iterable[ActionRecord],
        now: datetime,
        actor_id: str | None,
        action_type: str | None,
    ) -> list[datetime]:
        """Timestamps of this actor's actions of this type, not after *now*."""
        stamps: list[datetime] = []
        for record in history:
            if actor_id is not None and record.actor_id != actor_id:
                continue
            if action_type is not None and record.action_type != action_type:
                continue
            ts = ensure_aware(record.occurred_at)
            if ts <= now:
                stamps.append(ts)
        return stamps
