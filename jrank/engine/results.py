"""
jrank.engine.results — Evaluation Outputs
==========================================

Everything the engine returns.  Results are transient: recording awarded
points or badges is up to the caller.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

__all__ = [
    "BadgeAward",
    "BadgeEvaluationResult",
    "BonusAward",
    "Diagnostic",
    "EvaluationResult",
    "FailureKind",
    "ScoreBreakdown",
]


class FailureKind(enum.StrEnum):
    """Why a fact produced no award, or why a rule part was ignored."""
    INVALID_FACT = "InvalidFact"
    UNKNOWN_CONDITION = "UnknownCondition"
    REQUIREMENT_NOT_MET = "RequirementNotMet"
    DAILY_CAP_EXCEEDED = "DailyCapExceeded"
    COOLDOWN_ACTIVE = "CooldownActive"
    NO_MATCHING_RULE = "NoMatchingRule"
    SELF_ENGAGEMENT = "SelfEngagement"


@dataclass(frozen=True, slots=True)
class Diagnostic:
    """Non-fatal note attached to a result (e.g. a rule with a bogus condition)."""

    kind: FailureKind
    rule_id: str | None = None
    detail: str = ""


@dataclass(frozen=True, slots=True)
class BonusAward:
    condition: str
    bonus_points: float


@dataclass(frozen=True, slots=True)
class ScoreBreakdown:
    base: float
    bonuses: tuple[BonusAward, ...] = ()
    bonus_sum: float = 0
    multiplier_applied: float = 1.0
    multipliers: tuple[str, ...] = ()
    total: int = 0


@dataclass(frozen=True, slots=True)
class EvaluationResult:
    """Outcome of scoring one engagement fact."""

    applicable: bool
    matched_rule_id: str | None = None
    score: int = 0
    breakdown: ScoreBreakdown | None = None
    rejection_reason: FailureKind | None = None
    diagnostics: tuple[Diagnostic, ...] = ()

    def to_dict(self) -> dict:
        """Plain-JSON view for logging and the CLI."""
        data: dict = {
            "applicable": self.applicable,
            "matchedRuleId": self.matched_rule_id,
            "score": self.score,
            "rejectionReason": (
                self.rejection_reason.value if self.rejection_reason else None
            ),
            "diagnostics": [
                {"kind": d.kind.value, "ruleId": d.rule_id, "detail": d.detail}
                for d in self.diagnostics
            ],
        }
        if self.breakdown is not None:
            b = self.breakdown
            data["breakdown"] = {
                "base": b.base,
                "bonuses": [
                    {"condition": x.condition, "bonusPoints": x.bonus_points}
                    for x in b.bonuses
                ],
                "bonusSum": b.bonus_sum,
                "multiplierApplied": b.multiplier_applied,
                "multipliers": list(b.multipliers),
                "total": b.total,
            }
        return data


@dataclass(frozen=True, slots=True)
class BadgeAward:
    badge_id: str
    name: str
    priority: int = 0


@dataclass(frozen=True, slots=True)
class BadgeEvaluationResult:
    """Outcome of judging one metric snapshot — every badge newly earned."""

    subject_id: str | None
    awards: tuple[BadgeAward, ...] = ()
    rejection_reason: FailureKind | None = None
    diagnostics: tuple[Diagnostic, ...] = ()

    @property
    def applicable(self) -> bool:
        return bool(self.awards)

    @property
    def badge_ids(self) -> list[str]:
        return [a.badge_id for a in self.awards]

    def to_dict(self) -> dict:
        return {
            "subjectId": self.subject_id,
            "applicable": self.applicable,
            "awards": [
                {"badgeId": a.badge_id, "name": a.name, "priority": a.priority}
                for a in self.awards
            ],
            "rejectionReason": (
                self.rejection_reason.value if self.rejection_reason else None
            ),
            "diagnostics": [
                {"kind": d.kind.value, "ruleId": d.rule_id, "detail": d.detail}
                for d in self.diagnostics
            ],
        }
