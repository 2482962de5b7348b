"""
jrank.__main__ — Entry point for ``python -m jrank``
=====================================================

Evaluates one fact file against the rules stored in the database and
prints the decision as JSON on stdout.  Nothing is recorded.

Wiring:
1. Load .env (secrets).
2. Load config.yaml (soft settings).
3. Create the SQLAlchemy engine and ensure tables exist.
4. Seed default rules if configured (idempotent).
5. Build and warm the CatalogCache.
6. Parse the fact file and evaluate it.

Run with::

    python -m jrank engagement fact.json
    python -m jrank badges metrics.json --category hub

Exit status is 0 when the fact earned something, 1 when it did not and 2
on a startup failure.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import datetime
from pathlib import Path

from dotenv import load_dotenv
from pydantic import ValidationError

from jrank.config import load_config
from jrank.database.engine import create_db_engine, init_db
from jrank.database.models import BadgeCategory
from jrank.engine.badges import BadgeEligibilityEvaluator
from jrank.engine.catalog import CatalogCache
from jrank.engine.criteria import CriteriaEvaluationEngine
from jrank.engine.results import (
    BadgeEvaluationResult,
    Diagnostic,
    EvaluationResult,
    FailureKind,
)
from jrank.schemas import EngagementFactPayload, MetricFactPayload
from jrank.services.seed import seed_rules

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("jrank")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m jrank",
        description="Evaluate an engagement or metric fact against stored rules.",
    )
    parser.add_argument(
        "--config", default="config.yaml", help="path to config.yaml",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    eng = sub.add_parser("engagement", help="score one engagement action")
    eng.add_argument("fact", type=Path, help="JSON file with the engagement fact")
    eng.add_argument(
        "--now", type=datetime.fromisoformat,
        help="evaluation instant (ISO 8601); defaults to the fact's occurredAt",
    )

    badges = sub.add_parser("badges", help="list badges a metric snapshot earns")
    badges.add_argument("fact", type=Path, help="JSON file with the metric fact")
    badges.add_argument(
        "--category", choices=[c.value for c in BadgeCategory],
        help="only judge badges of this category",
    )
    badges.add_argument(
        "--earned", action="append", default=[], metavar="BADGE_ID",
        help="badge id already held (repeatable)",
    )
    badges.add_argument(
        "--now", type=datetime.fromisoformat,
        help="evaluation instant (ISO 8601); defaults to the current time",
    )
    return parser


def _invalid(exc: ValidationError) -> tuple[Diagnostic, ...]:
    return tuple(
        Diagnostic(
            FailureKind.INVALID_FACT, None,
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}",
        )
        for err in exc.errors(include_url=False)
    )


def _run_engagement(args: argparse.Namespace, cfg, catalog) -> dict:
    try:
        payload = EngagementFactPayload.model_validate_json(args.fact.read_text())
    except ValidationError as exc:
        logger.warning("Fact file %s is malformed", args.fact)
        result = EvaluationResult(
            applicable=False,
            rejection_reason=FailureKind.INVALID_FACT,
            diagnostics=_invalid(exc),
        )
        return result.to_dict()

    evaluator = CriteriaEvaluationEngine.from_config(cfg)
    return evaluator.evaluate(catalog, payload.to_fact(), args.now).to_dict()


def _run_badges(args: argparse.Namespace, cfg, catalog) -> dict:
    try:
        payload = MetricFactPayload.model_validate_json(args.fact.read_text())
    except ValidationError as exc:
        logger.warning("Fact file %s is malformed", args.fact)
        result = BadgeEvaluationResult(
            subject_id=None,
            rejection_reason=FailureKind.INVALID_FACT,
            diagnostics=_invalid(exc),
        )
        return result.to_dict()

    evaluator = BadgeEligibilityEvaluator(reference_tz=cfg.tzinfo)
    now = args.now or datetime.now(cfg.tzinfo)
    result = evaluator.evaluate(
        catalog, payload.to_fact(), now,
        scope=args.category, already_earned=frozenset(args.earned),
    )
    return result.to_dict()


def main(argv: list[str] | None = None) -> int:
    """Bootstrap, evaluate one fact file, print the result."""
    args = _build_parser().parse_args(argv)

    # 1. Environment variables (secrets).
    load_dotenv()

    # 2. Soft configuration.
    try:
        cfg = load_config(args.config)
    except (FileNotFoundError, KeyError, ValueError) as exc:
        logger.critical("Cannot load configuration: %s", exc)
        return 2
    logging.getLogger().setLevel(cfg.log_level)

    # 3. Database.
    try:
        engine = create_db_engine()
    except RuntimeError as exc:
        logger.critical("%s", exc)
        return 2
    init_db(engine)

    # 4. Seed default rules (idempotent).
    if cfg.seed_on_startup:
        seed_rules(engine)

    # 5. Build and warm the CatalogCache.
    cache = CatalogCache(engine)
    cache.load_all()
    catalog = cache.snapshot()

    # 6. Evaluate.
    if args.command == "engagement":
        output = _run_engagement(args, cfg, catalog)
    else:
        output = _run_badges(args, cfg, catalog)

    print(json.dumps(output, indent=2))
    return 0 if output["applicable"] else 1


if __name__ == "__main__":
    sys.exit(main())
