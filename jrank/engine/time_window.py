"""
jrank.engine.time_window — Validity & Active-Hours Windows
===========================================================

Decides whether a reference instant falls inside a rule's validity window
(``validFrom``/``validUntil``, both inclusive) and, when
``activeHoursOnly`` is set, inside its hour-of-day window.  Hours are
judged in the deployment's fixed reference timezone.
"""

from __future__ import annotations

from datetime import datetime, timezone, tzinfo

from jrank.engine.rules import ActiveHours, TimeConstraints

__all__ = ["TimeWindowEvaluator", "ensure_aware", "within_bounds"]


def ensure_aware(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def within_bounds(
    instant: datetime,
    valid_from: datetime | None,
    valid_until: datetime | None,
) -> bool:
    """Inclusive ``[valid_from, valid_until]`` check; a missing bound is open.

    An inverted window (``valid_until < valid_from``) contains nothing.
    """
    instant = ensure_aware(instant)
    start = ensure_aware(valid_from) if valid_from is not None else None
    end = ensure_aware(valid_until) if valid_until is not None else None

    if start is not None and end is not None and end < start:
        return False
    if start is not None and instant < start:
        return False
    if end is not None and instant > end:
        return False
    return True


def _hour_in_window(hour: int, hours: ActiveHours) -> bool:
    if hours.start <= hours.end:
        return hours.start <= hour <= hours.end
    # Wraps midnight: 22..23 and 0..6 for start=22, end=6
    return hour >= hours.start or hour <= hours.end


class TimeWindowEvaluator:
    """Evaluates :class:`TimeConstraints` against a reference instant."""

    def __init__(self, reference_tz: tzinfo = timezone.utc) -> None:
        self.reference_tz = reference_tz

    def local(self, instant: datetime) -> datetime:
        """*instant* expressed in the reference timezone."""
        return ensure_aware(instant).astimezone(self.reference_tz)

    def is_within_window(
        self, constraints: TimeConstraints | None, reference_instant: datetime,
    ) -> bool:
        if constraints is None:
            return True

        if not within_bounds(
            reference_instant, constraints.valid_from, constraints.valid_until,
        ):
            return False

        if constraints.active_hours_only:
            hours = constraints.active_hours
            # activeHoursOnly without usable hours can never be satisfied
            if hours is None or not (0 <= hours.start <= 23 and 0 <= hours.end <= 23):
                return False
            return _hour_in_window(self.local(reference_instant).hour, hours)

        return True
