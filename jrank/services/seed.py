"""
jrank.services.seed — Default Rule Seeder
==========================================

Seeds default engagement criteria and badges from YAML fixture files in
the ``seeds/`` directory.  Every document goes through the same pydantic
models the catalog loader uses, so a broken fixture fails loudly here
instead of being skipped at load time.

YAML is used only for initial seeding.  Afterwards the rules are managed
by the admin tooling.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml
from sqlalchemy import select
from sqlalchemy.orm import Session

from jrank.database.models import Badge, EngagementCriteria
from jrank.schemas import BadgeDocument, EngagementCriteriaDocument

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)

# Resolve the seeds directory relative to the project root
_SEEDS_DIR = Path(__file__).resolve().parent.parent.parent / "seeds"


def _load_yaml(filename: str, seeds_dir: Path = _SEEDS_DIR) -> Any:
    """Load a YAML file from the seeds directory."""
    path = seeds_dir / filename
    if not path.exists():
        logger.warning("Seed file not found: %s", path)
        return []
    with open(path, encoding="utf-8") as fh:
        return yaml.safe_load(fh) or []


def _seed_engagement_criteria(session: Session, seeds_dir: Path) -> int:
    """Seed default criteria from seeds/engagement_criteria.yaml if table is empty."""
    if session.scalar(select(EngagementCriteria.id).limit(1)):
        logger.info("Engagement criteria already seeded — skipping.")
        return 0

    data = _load_yaml("engagement_criteria.yaml", seeds_dir)
    if not data or "criteria" not in data:
        return 0

    count = 0
    for raw in data["criteria"]:
        doc = EngagementCriteriaDocument.model_validate(raw)
        dumped = doc.model_dump(by_alias=True, mode="json", exclude_none=True)
        points = dumped["pointsConfig"]
        session.add(EngagementCriteria(
            name=doc.name,
            description=doc.description,
            criteria_type=doc.criteria_type.value,
            base_points=doc.points_config.base_points,
            bonus_conditions=points.get("bonusConditions", []),
            requirements=dumped.get("requirements", {}),
            time_constraints=dumped.get("timeConstraints"),
            multipliers=dumped.get("multipliers", []),
            is_active=doc.is_active,
            priority=doc.priority,
            created_by="seed",
        ))
        count += 1

    logger.info("Seeded %d engagement criteria.", count)
    return count


def _seed_badges(session: Session, seeds_dir: Path) -> int:
    """Seed default badges from seeds/badges.yaml if table is empty."""
    if session.scalar(select(Badge.id).limit(1)):
        logger.info("Badges already seeded — skipping.")
        return 0

    data = _load_yaml("badges.yaml", seeds_dir)
    if not data or "badges" not in data:
        return 0

    count = 0
    for raw in data["badges"]:
        doc = BadgeDocument.model_validate(raw)
        session.add(Badge(
            name=doc.name,
            display_name=doc.display_name or doc.name,
            description=doc.description,
            type=doc.type.value,
            category=doc.category.value,
            criteria=(
                doc.criteria.model_dump(mode="json") if doc.criteria else None
            ),
            required_roles=list(doc.required_roles),
            rarity=doc.rarity.value,
            tier=doc.tier.value if doc.tier else None,
            priority=doc.priority,
            display_order=doc.order,
            is_active=doc.is_active,
            created_by="seed",
        ))
        count += 1

    logger.info("Seeded %d badges.", count)
    return count


def seed_rules(engine: Engine, seeds_dir: Path | None = None) -> dict[str, int]:
    """Seed default criteria and badges if not already present.

    Idempotent — each table is only written when it is empty.  Returns the
    number of rows inserted per table.

    Raises
    ------
    pydantic.ValidationError
        If a fixture document is malformed.
    """
    seeds_dir = seeds_dir or _SEEDS_DIR
    with Session(engine) as session:
        counts = {
            "engagement_criteria": _seed_engagement_criteria(session, seeds_dir),
            "badges": _seed_badges(session, seeds_dir),
        }
        session.commit()
    return counts
