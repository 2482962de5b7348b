"""
jrank.engine.rules — Rule Definitions
======================================

One immutable :class:`RuleDefinition` type covers both engagement criteria
(``kind=ENGAGEMENT``, scoped by criteria type) and badge criteria
(``kind=BADGE``, scoped by badge category).  Instances are built by
:mod:`jrank.schemas` from stored documents, or directly in tests.

The engine treats every field as read-only for the length of an
evaluation.  Condition and operator names are plain strings here so a
rule built outside the validated boundary still evaluates (and fails
closed) instead of crashing.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime

__all__ = [
    "ActiveHours",
    "BadgeCriterion",
    "BonusCondition",
    "Multiplier",
    "Requirements",
    "RuleDefinition",
    "RuleKind",
    "TimeConstraints",
]


class RuleKind(enum.StrEnum):
    ENGAGEMENT = "engagement"
    BADGE = "badge"


@dataclass(frozen=True, slots=True)
class BonusCondition:
    """Extra points when the named fact value passes ``operator threshold``."""

    condition: str
    threshold: float
    bonus_points: float
    description: str = ""
    operator: str = "gte"


@dataclass(frozen=True, slots=True)
class Requirements:
    """Hard eligibility gates.  ``None`` means the gate is not configured."""

    min_followers: int | None = None
    min_account_age_days: int | None = None
    must_be_verified: bool = False
    max_daily_actions: int | None = None
    cooldown_minutes: float | None = None


@dataclass(frozen=True, slots=True)
class ActiveHours:
    """Hour-of-day window, both ends inclusive, 0–23.  ``start > end`` wraps midnight."""

    start: int
    end: int


@dataclass(frozen=True, slots=True)
class TimeConstraints:
    valid_from: datetime | None = None
    valid_until: datetime | None = None
    active_hours_only: bool = False
    active_hours: ActiveHours | None = None


@dataclass(frozen=True, slots=True)
class Multiplier:
    """Scales the final score while its condition holds (weekend / campaign / special_event)."""

    condition: str
    multiplier: float
    valid_from: datetime | None = None
    valid_until: datetime | None = None


@dataclass(frozen=True, slots=True)
class BadgeCriterion:
    """Threshold a badge is judged on: ``snapshot[metric] <operator> target``."""

    metric: str
    target: float
    operator: str = "gte"


@dataclass(frozen=True, slots=True)
class RuleDefinition:
    """An admin-authored rule, engagement or badge.

    Ordering fields: ``priority`` (higher wins), then ``updated_at`` (newer
    wins), then ``id`` (ascending, compared as strings).
    """

    id: str
    name: str
    kind: RuleKind
    scope: str
    description: str = ""

    # Engagement scoring
    base_score: float = 0
    bonus_conditions: tuple[BonusCondition, ...] = ()
    multipliers: tuple[Multiplier, ...] = ()

    # Badge eligibility
    criterion: BadgeCriterion | None = None
    required_roles: frozenset[str] = frozenset()
    badge_type: str | None = None
    rarity: str | None = None

    requirements: Requirements | None = None
    time_constraints: TimeConstraints | None = None

    is_active: bool = True
    priority: int = 0

    # Audit metadata (owned by the authoring system)
    created_by: str | None = None
    updated_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    metadata: dict = field(default_factory=dict, compare=False, hash=False)
