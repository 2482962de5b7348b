"""
tests/test_seed.py — Default Rule Seeder Tests
===============================================

The shipped seed files must load, pass validation, round-trip through the
catalog loader, and seeding must be idempotent.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from jrank.database.models import Badge, EngagementCriteria
from jrank.engine.catalog import CatalogCache
from jrank.engine.rules import RuleKind
from jrank.services.seed import seed_rules


class TestSeedRules:
    def test_seeds_both_tables(self, db_engine):
        counts = seed_rules(db_engine)
        assert counts["engagement_criteria"] > 0
        assert counts["badges"] > 0

        with Session(db_engine) as session:
            assert session.scalar(select(func.count()).select_from(EngagementCriteria)) == (
                counts["engagement_criteria"]
            )
            assert session.scalar(select(func.count()).select_from(Badge)) == counts["badges"]

    def test_idempotent(self, db_engine):
        seed_rules(db_engine)
        again = seed_rules(db_engine)
        assert again == {"engagement_criteria": 0, "badges": 0}

    def test_seeded_rules_load_without_rejections(self, db_engine):
        counts = seed_rules(db_engine)
        cache = CatalogCache(db_engine)
        cache.load_all()

        catalog = cache.snapshot()
        assert cache.rejected == {}
        assert len(catalog.list_active(RuleKind.ENGAGEMENT)) == counts["engagement_criteria"]
        assert len(catalog.list_active(RuleKind.BADGE)) == counts["badges"]

    def test_role_badges_keep_their_roles(self, db_engine):
        seed_rules(db_engine)
        cache = CatalogCache(db_engine)
        cache.load_all()
        rookie = next(r for r in cache.snapshot() if r.name == "rookie")
        assert rookie.badge_type == "role"
        assert "member" in rookie.required_roles

    def test_missing_seed_dir_seeds_nothing(self, db_engine, tmp_path):
        assert seed_rules(db_engine, seeds_dir=tmp_path) == {
            "engagement_criteria": 0, "badges": 0,
        }

    def test_malformed_fixture_raises(self, db_engine, tmp_path):
        (tmp_path / "badges.yaml").write_text(
            "badges:\n  - name: broken\n    type: achievement\n    category: casino\n",
            encoding="utf-8",
        )
        with pytest.raises(ValidationError):
            seed_rules(db_engine, seeds_dir=tmp_path)
