"""ISO week helpers. Every week in the engine is keyed by its Monday."""
from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Any, List

from .errors import ValidationError


def monday_of(day: date) -> date:
    """Return the Monday of the week containing ``day``."""

    if isinstance(day, datetime):
        day = day.date()
    return day - timedelta(days=day.weekday())


def shift_weeks(week_start: date, weeks: int) -> date:
    return week_start + timedelta(weeks=weeks)


def week_end(week_start: date) -> date:
    """Sunday closing the week that starts on ``week_start``."""
    return week_start + timedelta(days=6)


def parse_week_start(raw: Any, field: str = "week_start") -> date:
    """Parse an ISO date (or date/datetime) and normalize it to Monday-of-week."""

    if isinstance(raw, datetime):
        return monday_of(raw.date())
    if isinstance(raw, date):
        return monday_of(raw)
    if isinstance(raw, str):
        try:
            parsed = date.fromisoformat(raw.strip()[:10])
        except ValueError as exc:
            raise ValidationError(f"{field} must be formatted as YYYY-MM-DD", field) from exc
        return monday_of(parsed)
    raise ValidationError(f"{field} is required", field)


def trailing_weeks(reference: date, count: int) -> List[date]:
    """The ``count`` completed weeks before the week containing ``reference``, oldest first."""

    current = monday_of(reference)
    return [shift_weeks(current, -offset) for offset in range(count, 0, -1)]


def upcoming_weeks(reference: date, count: int) -> List[date]:
    """The week containing ``reference`` and the following ``count - 1`` weeks."""

    current = monday_of(reference)
    return [shift_weeks(current, offset) for offset in range(count)]
