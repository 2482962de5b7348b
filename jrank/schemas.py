"""
jrank.schemas — Rule Document & Fact Payload Validation
========================================================

The deserialization boundary.  Rule documents written by the admin
tooling (camelCase, as stored) and fact payloads sent by callers are
validated here with pydantic and converted to the engine's immutable
types.  Unknown enum variants, negative scores and out-of-range hours are
rejected at this point so the engine only ever sees closed, typed data.

Usage::

    doc = EngagementCriteriaDocument.model_validate(raw)
    rule = doc.to_rule("65f1c0…")
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator

from jrank.database.models import (
    BadgeCategory,
    BadgeMetric,
    BadgeRarity,
    BadgeTier,
    BadgeType,
    BonusConditionType,
    ComparisonOperator,
    CriteriaType,
    MultiplierCondition,
)
from jrank.engine.facts import ActionRecord, ActorMetrics, EngagementFact, MetricFact
from jrank.engine.rules import (
    ActiveHours,
    BadgeCriterion,
    BonusCondition,
    Multiplier,
    Requirements,
    RuleDefinition,
    RuleKind,
    TimeConstraints,
)


class _Document(BaseModel):
    """Accepts both the stored camelCase keys and snake_case names.

    NaN and infinity are rejected in every numeric field.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore", allow_inf_nan=False)


# ---------------------------------------------------------------------------
# Engagement criteria
# ---------------------------------------------------------------------------
class BonusConditionDocument(_Document):
    condition: BonusConditionType
    threshold: float
    bonus_points: float = Field(alias="bonusPoints")
    description: str = ""
    operator: ComparisonOperator = ComparisonOperator.GTE


class PointsConfigDocument(_Document):
    base_points: float = Field(alias="basePoints", ge=0)
    bonus_conditions: list[BonusConditionDocument] = Field(
        default_factory=list, alias="bonusConditions",
    )


class RequirementsDocument(_Document):
    min_followers: int | None = Field(default=None, alias="minFollowers", ge=0)
    min_account_age: int | None = Field(default=None, alias="minAccountAge", ge=0)
    must_be_verified: bool = Field(default=False, alias="mustBeVerified")
    max_daily_actions: int | None = Field(default=None, alias="maxDailyActions", ge=0)
    cooldown_minutes: float | None = Field(default=None, alias="cooldownMinutes", ge=0)


class ActiveHoursDocument(_Document):
    start: int = Field(ge=0, le=23)
    end: int = Field(ge=0, le=23)


class TimeConstraintsDocument(_Document):
    valid_from: datetime | None = Field(default=None, alias="validFrom")
    valid_until: datetime | None = Field(default=None, alias="validUntil")
    active_hours_only: bool = Field(default=False, alias="activeHoursOnly")
    active_hours: ActiveHoursDocument | None = Field(default=None, alias="activeHours")

    @model_validator(mode="after")
    def _hours_required(self) -> TimeConstraintsDocument:
        if self.active_hours_only and self.active_hours is None:
            raise ValueError("activeHoursOnly requires activeHours")
        return self


class MultiplierDocument(_Document):
    condition: MultiplierCondition
    multiplier: float = Field(ge=0)
    valid_from: datetime | None = Field(default=None, alias="validFrom")
    valid_until: datetime | None = Field(default=None, alias="validUntil")


class EngagementCriteriaDocument(_Document):
    name: str = Field(min_length=1)
    description: str = ""
    criteria_type: CriteriaType = Field(alias="criteriaType")
    points_config: PointsConfigDocument = Field(alias="pointsConfig")
    requirements: RequirementsDocument | None = None
    time_constraints: TimeConstraintsDocument | None = Field(
        default=None, alias="timeConstraints",
    )
    multipliers: list[MultiplierDocument] = Field(default_factory=list)
    is_active: bool = Field(default=True, alias="isActive")
    priority: int = 0
    created_by: str | None = Field(default=None, alias="createdBy")
    updated_by: str | None = Field(default=None, alias="updatedBy")
    created_at: datetime | None = Field(default=None, alias="createdAt")
    updated_at: datetime | None = Field(default=None, alias="updatedAt")

    def to_rule(self, rule_id: str) -> RuleDefinition:
        req = self.requirements
        tc = self.time_constraints
        return RuleDefinition(
            id=rule_id,
            name=self.name,
            kind=RuleKind.ENGAGEMENT,
            scope=self.criteria_type.value,
            description=self.description,
            base_score=self.points_config.base_points,
            bonus_conditions=tuple(
                BonusCondition(
                    condition=b.condition.value,
                    threshold=b.threshold,
                    bonus_points=b.bonus_points,
                    description=b.description,
                    operator=b.operator.value,
                )
                for b in self.points_config.bonus_conditions
            ),
            multipliers=tuple(
                Multiplier(
                    condition=m.condition.value,
                    multiplier=m.multiplier,
                    valid_from=m.valid_from,
                    valid_until=m.valid_until,
                )
                for m in self.multipliers
            ),
            requirements=Requirements(
                min_followers=req.min_followers,
                min_account_age_days=req.min_account_age,
                must_be_verified=req.must_be_verified,
                max_daily_actions=req.max_daily_actions,
                cooldown_minutes=req.cooldown_minutes,
            ) if req is not None else None,
            time_constraints=TimeConstraints(
                valid_from=tc.valid_from,
                valid_until=tc.valid_until,
                active_hours_only=tc.active_hours_only,
                active_hours=(
                    ActiveHours(tc.active_hours.start, tc.active_hours.end)
                    if tc.active_hours is not None else None
                ),
            ) if tc is not None else None,
            is_active=self.is_active,
            priority=self.priority,
            created_by=self.created_by,
            updated_by=self.updated_by,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


# ---------------------------------------------------------------------------
# Badges
# ---------------------------------------------------------------------------
class BadgeCriteriaDocument(_Document):
    type: BadgeMetric
    target: float = Field(ge=0)
    operator: ComparisonOperator = ComparisonOperator.GTE


class BadgeDocument(_Document):
    name: str = Field(min_length=1, max_length=50)
    display_name: str = Field(default="", alias="displayName")
    description: str = ""
    type: BadgeType
    category: BadgeCategory
    criteria: BadgeCriteriaDocument | None = None
    required_roles: list[str] = Field(default_factory=list, alias="requiredRoles")
    rarity: BadgeRarity = BadgeRarity.COMMON
    tier: BadgeTier | None = None
    is_active: bool = Field(default=True, alias="isActive")
    priority: int = 0
    order: int = 0
    created_by: str | None = Field(default=None, alias="createdBy")
    created_at: datetime | None = Field(default=None, alias="createdAt")
    updated_at: datetime | None = Field(default=None, alias="updatedAt")

    def to_rule(self, rule_id: str) -> RuleDefinition:
        crit = self.criteria
        return RuleDefinition(
            id=rule_id,
            name=self.name,
            kind=RuleKind.BADGE,
            scope=self.category.value,
            description=self.description,
            criterion=BadgeCriterion(
                metric=crit.type.value, target=crit.target, operator=crit.operator.value,
            ) if crit is not None else None,
            required_roles=frozenset(self.required_roles),
            badge_type=self.type.value,
            rarity=self.rarity.value,
            is_active=self.is_active,
            priority=self.priority,
            created_by=self.created_by,
            created_at=self.created_at,
            updated_at=self.updated_at,
            metadata={
                "display_name": self.display_name or self.name,
                "tier": self.tier.value if self.tier else None,
                "order": self.order,
            },
        )


# ---------------------------------------------------------------------------
# Fact payloads (CLI / callers sending JSON)
# ---------------------------------------------------------------------------
class ActorMetricsPayload(_Document):
    follower_count: int | None = Field(default=None, alias="followerCount")
    account_age_days: int | None = Field(default=None, alias="accountAgeDays")
    is_verified: bool = Field(default=False, alias="isVerified")
    extra: dict[str, float] = Field(default_factory=dict)


class ActionRecordPayload(_Document):
    actor_id: str | None = Field(default=None, alias="actorId")
    action_type: str = Field(alias="actionType")
    occurred_at: datetime = Field(alias="occurredAt")


class EngagementFactPayload(_Document):
    actor_id: str = Field(alias="actorId")
    action_type: str = Field(alias="actionType")
    occurred_at: datetime = Field(alias="occurredAt")
    actor_metrics: ActorMetricsPayload = Field(
        default_factory=ActorMetricsPayload, alias="actorMetrics",
    )
    action_history: list[ActionRecordPayload] = Field(
        default_factory=list, alias="actionHistory",
    )
    context: dict[str, float] = Field(default_factory=dict)
    target_author_id: str | None = Field(default=None, alias="targetAuthorId")

    def to_fact(self) -> EngagementFact:
        m = self.actor_metrics
        return EngagementFact(
            actor_id=self.actor_id,
            action_type=self.action_type,
            occurred_at=self.occurred_at,
            actor_metrics=ActorMetrics(
                follower_count=m.follower_count,
                account_age_days=m.account_age_days,
                is_verified=m.is_verified,
                extra=dict(m.extra),
            ),
            action_history=tuple(
                ActionRecord(
                    actor_id=r.actor_id or self.actor_id,
                    action_type=r.action_type,
                    occurred_at=r.occurred_at,
                )
                for r in self.action_history
            ),
            context=dict(self.context),
            target_author_id=self.target_author_id,
        )


class MetricFactPayload(_Document):
    subject_id: str = Field(alias="subjectId")
    metric_snapshot: dict[str, float] = Field(
        default_factory=dict, alias="metricSnapshot",
    )
    roles: list[str] = Field(default_factory=list)

    def to_fact(self) -> MetricFact:
        return MetricFact(
            subject_id=self.subject_id,
            metric_snapshot=dict(self.metric_snapshot),
            roles=frozenset(self.roles),
        )
