"""
jrank — Rule-Based Scoring & Badge Eligibility Engine
======================================================
Evaluates admin-authored engagement criteria and badge criteria against
runtime facts (a single social engagement action, or a user's cumulative
activity metrics) and returns a points decision or the badges earned.
The engine is pure; persisting its decisions is the caller's job.

Package layout::

    jrank/
    ├── __main__.py        # CLI: python -m jrank engagement|badges
    ├── config.py          # YAML → typed Python config
    ├── schemas.py         # pydantic boundary for rule documents & facts
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + session helper
    │   └── models.py      # Enums + ORM models (criteria, badges, history)
    ├── engine/
    │   ├── facts.py       # EngagementFact / MetricFact envelopes
    │   ├── rules.py       # RuleDefinition and its parts
    │   ├── results.py     # EvaluationResult, FailureKind, Diagnostic
    │   ├── conditions.py  # ConditionMatcher (operator registry)
    │   ├── time_window.py # Validity + active-hours windows
    │   ├── requirements.py # Eligibility gates, daily cap, cooldown
    │   ├── scoring.py     # Base + bonuses × multipliers
    │   ├── catalog.py     # RuleCatalog snapshot + DB-backed CatalogCache
    │   ├── selector.py    # Filter + deterministic ordering
    │   ├── criteria.py    # CriteriaEvaluationEngine (one rule per event)
    │   └── badges.py      # BadgeEligibilityEvaluator (all badges earned)
    └── services/
        ├── scoring_service.py # History reads + decision persistence
        └── seed.py            # Default rules from seeds/*.yaml
"""

__version__ = "0.1.0"
