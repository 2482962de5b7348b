"""
jrank.database.models — SQLAlchemy 2.0 Data Models
===================================================

Enums shared by the engine and the storage layer, plus the tables the
reference services read and write.

Tables:
- engagement_criteria — Admin-defined point rules for social engagement actions
- badges              — Admin-defined badge definitions (role / activity / achievement)
- user_badges         — Earned badges (one row per user + badge)
- action_log          — Append-only journal of qualifying actions (cap/cooldown history)

Rule rows are authored by the admin tooling; this package only reads them
(apart from :mod:`jrank.services.seed`).
"""

from __future__ import annotations

import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    JSON,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


# JSONB on PostgreSQL, plain JSON elsewhere (SQLite for local runs and tests)
JSONDocument = JSON().with_variant(JSONB, "postgresql")


def _new_id() -> str:
    return uuid.uuid4().hex


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all jrank ORM models."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class CriteriaType(enum.StrEnum):
    """Engagement action an engagement criterion scores."""
    LIKE = "like"
    RETWEET = "retweet"
    QUOTE = "quote"
    REPLY = "reply"
    BOOKMARK = "bookmark"
    VIEW = "view"
    CUSTOM = "custom"


class BonusConditionType(enum.StrEnum):
    """Named facts a bonus condition may test."""
    FOLLOWER_COUNT = "follower_count"
    ENGAGEMENT_RATE = "engagement_rate"
    QUALITY_SCORE = "quality_score"
    TIME_BASED = "time_based"
    STREAK = "streak"


class MultiplierCondition(enum.StrEnum):
    WEEKEND = "weekend"
    CAMPAIGN = "campaign"
    SPECIAL_EVENT = "special_event"


class ComparisonOperator(enum.StrEnum):
    GTE = "gte"
    LTE = "lte"
    EQ = "eq"
    GT = "gt"
    LT = "lt"
    NEQ = "neq"


class BadgeMetric(enum.StrEnum):
    """Cumulative counters a badge criterion can be judged on."""
    CONTENT_COUNT = "content_count"
    LIKE_COUNT = "like_count"
    ENGAGEMENT_COUNT = "engagement_count"
    COURSE_COUNT = "course_count"
    ENROLLMENT_COUNT = "enrollment_count"
    COMPLETION_COUNT = "completion_count"
    ALPHA_COUNT = "alpha_count"
    COMMENT_COUNT = "comment_count"
    JRANK_POINTS = "jrank_points"
    CONTRIBUTION_SCORE = "contribution_score"
    TIME_BASED = "time_based"
    REQUEST_COUNT = "request_count"
    RATING_AVG = "rating_avg"
    RATING_COUNT = "rating_count"
    VOTE_COUNT = "vote_count"
    BULLISH_COUNT = "bullish_count"
    DAYS_ACTIVE = "days_active"
    STREAK_DAYS = "streak_days"
    USER_ID_THRESHOLD = "user_id_threshold"


class BadgeType(enum.StrEnum):
    ROLE = "role"
    ACTIVITY = "activity"
    ACHIEVEMENT = "achievement"
    SPECIAL = "special"


class BadgeCategory(enum.StrEnum):
    HUB = "hub"
    STUDIO = "studio"
    ACADEMY = "academy"
    ALPHA = "alpha"
    INFO = "info"
    GENERAL = "general"
    ADMIN = "admin"


class BadgeRarity(enum.StrEnum):
    COMMON = "common"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"


class BadgeTier(enum.StrEnum):
    ENTRY = "entry"
    PROGRESS = "progress"
    MASTERY = "mastery"
    ELITE = "elite"
    LEGENDARY = "legendary"
    SPECIAL = "special"


class EarnedFrom(enum.StrEnum):
    """How a user badge row came to exist."""
    ROLE_ASSIGNMENT = "role_assignment"
    CONTENT_MILESTONE = "content_milestone"
    MANUAL = "manual"
    SYSTEM = "system"


# ---------------------------------------------------------------------------
# EngagementCriteria — admin-defined point rules
# ---------------------------------------------------------------------------
class EngagementCriteria(Base):
    """One point rule for a social engagement action.

    Nested parts of the authoring document (bonus conditions, requirements,
    time constraints, multipliers) are stored as JSONB in the same camelCase
    shape the admin tooling writes; :mod:`jrank.schemas` validates them on
    load.
    """
    __tablename__ = "engagement_criteria"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    criteria_type: Mapped[str] = mapped_column(String(20), nullable=False)

    base_points: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    bonus_conditions: Mapped[list | None] = mapped_column(JSONDocument, default=list)
    requirements: Mapped[dict | None] = mapped_column(JSONDocument, default=dict)
    time_constraints: Mapped[dict | None] = mapped_column(JSONDocument, nullable=True)
    multipliers: Mapped[list | None] = mapped_column(JSONDocument, default=list)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    priority: Mapped[int] = mapped_column(Integer, default=0)

    created_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    updated_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("ix_engagement_criteria_active_priority", "is_active", "priority"),
        Index("ix_engagement_criteria_type", "criteria_type"),
    )

    def __repr__(self) -> str:
        return (
            f"<EngagementCriteria id={self.id} name={self.name!r} "
            f"type={self.criteria_type!r} priority={self.priority}>"
        )


# ---------------------------------------------------------------------------
# Badge — admin-defined badge definitions
# ---------------------------------------------------------------------------
class Badge(Base):
    __tablename__ = "badges"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    display_name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False, default="")

    type: Mapped[str] = mapped_column(String(20), nullable=False)
    category: Mapped[str] = mapped_column(String(20), nullable=False)

    # {"type": "content_count", "target": 10, "operator": "gte"}
    criteria: Mapped[dict | None] = mapped_column(JSONDocument, nullable=True)
    required_roles: Mapped[list | None] = mapped_column(JSONDocument, default=list)

    rarity: Mapped[str] = mapped_column(String(20), default=BadgeRarity.COMMON.value)
    tier: Mapped[str | None] = mapped_column(String(20), nullable=True)
    priority: Mapped[int] = mapped_column(Integer, default=0)
    display_order: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    earned_by: Mapped[list[UserBadge]] = relationship(
        back_populates="badge", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("ix_badges_type_category", "type", "category"),
        Index("ix_badges_active", "is_active"),
    )

    def __repr__(self) -> str:
        return f"<Badge id={self.id} name={self.name!r} category={self.category!r}>"


# ---------------------------------------------------------------------------
# UserBadge — earned badges
# ---------------------------------------------------------------------------
class UserBadge(Base):
    __tablename__ = "user_badges"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    badge_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("badges.id", ondelete="CASCADE"), nullable=False
    )
    earned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    earned_from: Mapped[str] = mapped_column(
        String(30), nullable=False, default=EarnedFrom.SYSTEM.value
    )

    badge: Mapped[Badge] = relationship(back_populates="earned_by")

    __table_args__ = (
        UniqueConstraint("user_id", "badge_id", name="uq_user_badges_user_badge"),
        Index("ix_user_badges_user_earned", "user_id", "earned_at"),
    )

    def __repr__(self) -> str:
        return f"<UserBadge user={self.user_id} badge={self.badge_id}>"


# ---------------------------------------------------------------------------
# ActionLog — append-only journal of qualifying actions
# ---------------------------------------------------------------------------
class ActionLog(Base):
    """Every action that was scored, newest rows feed cap/cooldown checks."""
    __tablename__ = "action_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    actor_id: Mapped[str] = mapped_column(String(64), nullable=False)
    action_type: Mapped[str] = mapped_column(String(20), nullable=False)
    criteria_id: Mapped[str | None] = mapped_column(
        String(64),
        ForeignKey("engagement_criteria.id", ondelete="SET NULL"),
        nullable=True,
    )
    source_event_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    points: Mapped[int] = mapped_column(Integer, default=0)
    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        # Idempotent insert: one row per upstream event
        Index(
            "ix_action_log_idempotent",
            "source_event_id",
            unique=True,
        ),
        Index("ix_action_log_actor_type_time", "actor_id", "action_type", "occurred_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<ActionLog id={self.id} actor={self.actor_id} "
            f"type={self.action_type} points={self.points}>"
        )
