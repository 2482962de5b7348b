"""
jrank.engine.catalog — Rule Catalog Snapshot & Database Loader
===============================================================

:class:`RuleCatalog` is an immutable, point-in-time view of rule
definitions indexed by ``(kind, scope)``.  The engine only ever reads a
snapshot it is handed, so a catalog refresh in the middle of an
evaluation cannot change its outcome.

:class:`CatalogCache` keeps the current snapshot in memory.  It loads
``engagement_criteria`` and ``badges`` rows through SQLAlchemy, validates
each row through :mod:`jrank.schemas`, and swaps in a fresh snapshot
under a lock.  Invalid rows are logged and skipped.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from types import MappingProxyType
from typing import TYPE_CHECKING

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.orm import Session

from jrank.database.models import Badge, EngagementCriteria
from jrank.engine.rules import RuleDefinition, RuleKind
from jrank.schemas import BadgeDocument, EngagementCriteriaDocument

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)

__all__ = ["ALLOWED_INVALIDATION_TABLES", "CatalogCache", "RuleCatalog"]

ALLOWED_INVALIDATION_TABLES: frozenset[str] = frozenset({
    "engagement_criteria",
    "badges",
})


class RuleCatalog:
    """Immutable set of rule definitions with scope lookup.

    Usage::

        catalog = RuleCatalog([rule_a, rule_b])
        likes = catalog.list_active(RuleKind.ENGAGEMENT, "like")
        every_badge = catalog.list_active(RuleKind.BADGE)
    """

    def __init__(self, rules: Iterable[RuleDefinition] = ()) -> None:
        by_scope: dict[tuple[RuleKind, str], list[RuleDefinition]] = {}
        by_id: dict[tuple[RuleKind, str], RuleDefinition] = {}
        for rule in rules:
            by_scope.setdefault((rule.kind, rule.scope), []).append(rule)
            by_id[(rule.kind, rule.id)] = rule
        self._by_scope = MappingProxyType(
            {key: tuple(value) for key, value in by_scope.items()}
        )
        self._by_id = MappingProxyType(by_id)

    @classmethod
    def from_rules(cls, *rules: RuleDefinition) -> RuleCatalog:
        """Build a snapshot directly, without a database."""
        return cls(rules)

    def list_active(
        self, kind: RuleKind, scope: str | None = None,
    ) -> list[RuleDefinition]:
        """Active rules of *kind* in *scope* (``None`` = every scope).

        Returned in storage order; callers must not rely on it.
        """
        if scope is not None:
            candidates: Iterable[RuleDefinition] = self._by_scope.get((kind, scope), ())
        else:
            candidates = (
                rule
                for (k, _), rules in self._by_scope.items() if k == kind
                for rule in rules
            )
        return [rule for rule in candidates if rule.is_active]

    def get(
        self, rule_id: str, kind: RuleKind | None = None,
    ) -> RuleDefinition | None:
        """Rule by id.  Without *kind*, engagement rules are looked up first."""
        if kind is not None:
            return self._by_id.get((kind, rule_id))
        for k in RuleKind:
            rule = self._by_id.get((k, rule_id))
            if rule is not None:
                return rule
        return None

    def scopes(self, kind: RuleKind) -> set[str]:
        return {scope for (k, scope) in self._by_scope if k == kind}

    def __len__(self) -> int:
        return len(self._by_id)

    def __iter__(self):
        return iter(self._by_id.values())

    def __repr__(self) -> str:
        return f"<RuleCatalog rules={len(self)} scopes={len(self._by_scope)}>"


# ---------------------------------------------------------------------------
# Row → document conversion
# ---------------------------------------------------------------------------
def _criteria_document(row: EngagementCriteria) -> dict:
    return {
        "name": row.name,
        "description": row.description or "",
        "criteriaType": row.criteria_type,
        "pointsConfig": {
            "basePoints": row.base_points,
            "bonusConditions": row.bonus_conditions or [],
        },
        "requirements": row.requirements or None,
        "timeConstraints": row.time_constraints or None,
        "multipliers": row.multipliers or [],
        "isActive": row.is_active,
        "priority": row.priority,
        "createdBy": row.created_by,
        "updatedBy": row.updated_by,
        "createdAt": row.created_at,
        "updatedAt": row.updated_at,
    }


def _badge_document(row: Badge) -> dict:
    return {
        "name": row.name,
        "displayName": row.display_name,
        "description": row.description or "",
        "type": row.type,
        "category": row.category,
        "criteria": row.criteria or None,
        "requiredRoles": row.required_roles or [],
        "rarity": row.rarity,
        "tier": row.tier,
        "isActive": row.is_active,
        "priority": row.priority,
        "order": row.display_order,
        "createdBy": row.created_by,
        "createdAt": row.created_at,
        "updatedAt": row.updated_at,
    }


class CatalogCache:
    """Thread-safe holder of the current :class:`RuleCatalog` snapshot.

    Usage::

        cache = CatalogCache(engine)
        cache.load_all()

        catalog = cache.snapshot()          # hand this to the evaluators
        cache.invalidate("badges")          # after an admin edit
    """

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        self._lock = threading.Lock()
        self._engagement: tuple[RuleDefinition, ...] = ()
        self._badges: tuple[RuleDefinition, ...] = ()
        self._snapshot = RuleCatalog()
        # row id → validation error text, for the last load of each table
        self._rejected: dict[str, str] = {}

    # -------------------------------------------------------------------
    # Cache loading
    # -------------------------------------------------------------------
    def load_all(self) -> None:
        """Load every active rule from the DB.  Call on startup."""
        self._load_engagement_criteria()
        self._load_badges()
        logger.info(
            "CatalogCache loaded: %d engagement criteria, %d badges, %d rejected",
            len(self._engagement), len(self._badges), len(self._rejected),
        )

    def _load_engagement_criteria(self) -> None:
        with Session(self._engine) as session:
            rows = session.scalars(
                select(EngagementCriteria).where(EngagementCriteria.is_active.is_(True))
            ).all()
            rules, rejected = self._convert(
                ((row.id, _criteria_document(row)) for row in rows),
                EngagementCriteriaDocument,
            )
        with self._lock:
            self._engagement = rules
            self._replace_rejected("engagement_criteria", rejected)
            self._publish()

    def _load_badges(self) -> None:
        with Session(self._engine) as session:
            rows = session.scalars(
                select(Badge).where(Badge.is_active.is_(True))
            ).all()
            rules, rejected = self._convert(
                ((row.id, _badge_document(row)) for row in rows),
                BadgeDocument,
            )
        with self._lock:
            self._badges = rules
            self._replace_rejected("badges", rejected)
            self._publish()

    @staticmethod
    def _convert(
        documents: Iterable[tuple[str, dict]],
        schema: type[EngagementCriteriaDocument] | type[BadgeDocument],
    ) -> tuple[tuple[RuleDefinition, ...], dict[str, str]]:
        rules: list[RuleDefinition] = []
        rejected: dict[str, str] = {}
        for row_id, document in documents:
            try:
                rules.append(schema.model_validate(document).to_rule(row_id))
            except ValidationError as exc:
                rejected[row_id] = str(exc)
                logger.warning(
                    "Skipping invalid %s document %s: %s",
                    schema.__name__, row_id, exc.errors(include_url=False),
                )
        return tuple(rules), rejected

    def _replace_rejected(self, table: str, rejected: dict[str, str]) -> None:
        self._rejected = {
            key: value for key, value in self._rejected.items()
            if not key.startswith(f"{table}:")
        }
        self._rejected.update({f"{table}:{k}": v for k, v in rejected.items()})

    def _publish(self) -> None:
        # Caller holds the lock
        self._snapshot = RuleCatalog(self._engagement + self._badges)

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------
    def snapshot(self) -> RuleCatalog:
        """The current immutable catalog."""
        with self._lock:
            return self._snapshot

    @property
    def rejected(self) -> dict[str, str]:
        """``"table:row_id"`` → validation error for rows skipped on load."""
        with self._lock:
            return dict(self._rejected)

    # -------------------------------------------------------------------
    # Invalidation
    # -------------------------------------------------------------------
    def invalidate(self, table_name: str) -> None:
        """Reload the partition for *table_name* after an admin edit."""
        table_name = table_name.strip().lower()
        if table_name not in ALLOWED_INVALIDATION_TABLES:
            logger.warning("Unknown table in invalidation: %s — ignoring", table_name)
            return

        logger.info("Catalog cache invalidation for table: %s", table_name)
        if table_name == "engagement_criteria":
            self._load_engagement_criteria()
        else:
            self._load_badges()
