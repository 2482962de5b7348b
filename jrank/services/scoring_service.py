"""
jrank.services.scoring_service — History Reads & Decision Persistence
======================================================================

The reference caller around the pure engine.  Reads an actor's recent
actions from ``action_log`` into the history snapshot the engine needs,
records the qualifying action when a rule applied, and writes earned
badges to ``user_badges``.

Evaluation for one actor is serialised with an in-process lock so two
near-simultaneous events cannot both pass a daily cap against the same
history snapshot.  Inserts are idempotent: ``action_log`` has a unique
index on ``source_event_id`` and ``user_badges`` a unique
``(user_id, badge_id)``.  Deployments running several worker processes
need database-level serialisation on top of this.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import replace
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from jrank.database.models import ActionLog, BadgeType, EarnedFrom, UserBadge
from jrank.engine.badges import BadgeEligibilityEvaluator
from jrank.engine.criteria import CriteriaEvaluationEngine
from jrank.engine.facts import ActionRecord, EngagementFact, MetricFact
from jrank.engine.results import BadgeEvaluationResult, EvaluationResult
from jrank.engine.rules import RuleKind
from jrank.engine.time_window import ensure_aware

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from jrank.engine.catalog import CatalogCache, RuleCatalog

logger = logging.getLogger(__name__)


class _ActorLock:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.users = 0


# actor_id → lock; an entry is dropped when its last user releases it
_actor_locks: dict[str, _ActorLock] = {}
_actor_locks_guard = threading.Lock()


@contextmanager
def _actor_lock(actor_id: str):
    """Hold the per-actor lock for the duration of the block."""
    with _actor_locks_guard:
        entry = _actor_locks.get(actor_id)
        if entry is None:
            entry = _actor_locks[actor_id] = _ActorLock()
        entry.users += 1
    try:
        with entry.lock:
            yield
    finally:
        with _actor_locks_guard:
            entry.users -= 1
            if entry.users == 0:
                del _actor_locks[actor_id]


def _to_utc(value: datetime) -> datetime:
    return ensure_aware(value).astimezone(UTC)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def load_action_history(
    session: Session,
    actor_id: str,
    action_type: str,
    since: datetime,
    *,
    exclude_event_id: str | None = None,
) -> tuple[ActionRecord, ...]:
    """This actor's recorded actions of *action_type* at or after *since*.

    *exclude_event_id* leaves out the row recorded for that upstream event,
    so a redelivered event is judged against the history it first saw.
    """
    stmt = (
        select(ActionLog.actor_id, ActionLog.action_type, ActionLog.occurred_at)
        .where(
            ActionLog.actor_id == actor_id,
            ActionLog.action_type == action_type,
            ActionLog.occurred_at >= _to_utc(since),
        )
        .order_by(ActionLog.occurred_at)
    )
    if exclude_event_id is not None:
        stmt = stmt.where(or_(
            ActionLog.source_event_id.is_(None),
            ActionLog.source_event_id != exclude_event_id,
        ))
    rows = session.execute(stmt).all()
    return tuple(
        ActionRecord(
            actor_id=row.actor_id,
            action_type=row.action_type,
            occurred_at=ensure_aware(row.occurred_at),
        )
        for row in rows
    )


def get_earned_badge_ids(session: Session, user_id: str) -> set[str]:
    """Badge ids the user already holds."""
    rows = session.scalars(
        select(UserBadge.badge_id).where(UserBadge.user_id == user_id)
    ).all()
    return set(rows)


def history_horizon(
    catalog: RuleCatalog, action_type: str, window: timedelta,
) -> timedelta:
    """How far back history must reach to judge every rule for *action_type*.

    The daily-cap window, or the longest cooldown in scope if that is longer.
    """
    horizon = window
    for rule in catalog.list_active(RuleKind.ENGAGEMENT, action_type):
        req = rule.requirements
        if req is not None and req.cooldown_minutes:
            horizon = max(horizon, timedelta(minutes=req.cooldown_minutes))
    return horizon


# ---------------------------------------------------------------------------
# Engagement scoring
# ---------------------------------------------------------------------------
def score_engagement(
    engine: Engine,
    cache: CatalogCache,
    fact: EngagementFact,
    *,
    source_event_id: str | None = None,
    evaluator: CriteriaEvaluationEngine | None = None,
) -> tuple[EvaluationResult, bool]:
    """Evaluate *fact* against the stored history and record it if it scores.

    1. Take the actor's lock
    2. Read history for the action type from ``action_log``
    3. Evaluate against the current catalog snapshot
    4. Record the qualifying action (idempotent on *source_event_id*)

    Any ``action_history`` already on *fact* is replaced by the stored one.

    Returns (EvaluationResult, was_duplicate).
    If was_duplicate is True, the event was already recorded (no changes made).
    """
    evaluator = evaluator or CriteriaEvaluationEngine()
    catalog = cache.snapshot()

    with _actor_lock(str(getattr(fact, "actor_id", ""))), Session(engine) as session:
        if isinstance(fact, EngagementFact) and isinstance(fact.occurred_at, datetime):
            since = fact.occurred_at - history_horizon(
                catalog, fact.action_type, evaluator.history_window,
            )
            history = load_action_history(
                session, fact.actor_id, fact.action_type, since,
                exclude_event_id=source_event_id,
            )
            fact = replace(fact, action_history=history)

        result = evaluator.evaluate(catalog, fact)
        if not result.applicable:
            return result, False

        log = ActionLog(
            actor_id=fact.actor_id,
            action_type=fact.action_type,
            criteria_id=result.matched_rule_id,
            source_event_id=source_event_id,
            points=result.score,
            occurred_at=_to_utc(fact.occurred_at),
        )
        if source_event_id is not None:
            try:
                with session.begin_nested():   # SAVEPOINT
                    session.add(log)
                    session.flush()
            except IntegrityError:
                # Already recorded; the SAVEPOINT was rolled back
                session.commit()
                logger.info(
                    "Duplicate engagement event %s for %s — not recorded",
                    source_event_id, fact.actor_id,
                )
                return result, True
        else:
            session.add(log)

        session.commit()

    logger.info(
        "Recorded %s by %s: %d points (rule %s)",
        fact.action_type, fact.actor_id, result.score, result.matched_rule_id,
    )
    return result, False


# ---------------------------------------------------------------------------
# Badge awarding
# ---------------------------------------------------------------------------
def award_badges(
    engine: Engine,
    cache: CatalogCache,
    fact: MetricFact,
    *,
    scope: str | None = None,
    earned_from: str = EarnedFrom.CONTENT_MILESTONE.value,
    now: datetime | None = None,
    evaluator: BadgeEligibilityEvaluator | None = None,
) -> BadgeEvaluationResult:
    """Evaluate *fact* for badges in *scope* and insert the newly earned ones.

    Role badges are recorded with ``earned_from="role_assignment"``
    regardless of *earned_from*.  A badge that another writer recorded in
    the meantime is skipped.
    """
    evaluator = evaluator or BadgeEligibilityEvaluator()
    catalog = cache.snapshot()
    now = now or datetime.now(UTC)

    with Session(engine) as session:
        earned = (
            get_earned_badge_ids(session, fact.subject_id)
            if isinstance(fact, MetricFact) else set()
        )
        result = evaluator.evaluate(
            catalog, fact, now, scope=scope, already_earned=earned,
        )

        inserted = 0
        for award in result.awards:
            rule = catalog.get(award.badge_id, RuleKind.BADGE)
            source = (
                EarnedFrom.ROLE_ASSIGNMENT.value
                if rule is not None and rule.badge_type == BadgeType.ROLE
                else earned_from
            )
            try:
                with session.begin_nested():   # SAVEPOINT
                    session.add(UserBadge(
                        user_id=fact.subject_id,
                        badge_id=award.badge_id,
                        earned_from=source,
                        earned_at=_to_utc(now),
                    ))
                    session.flush()
                inserted += 1
            except IntegrityError:
                logger.debug(
                    "Badge %s already held by %s", award.badge_id, fact.subject_id,
                )
        session.commit()

    if inserted:
        logger.info("Awarded %d badge(s) to %s", inserted, fact.subject_id)
    return result
