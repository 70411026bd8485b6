"""Weekly effort log storage."""
from __future__ import annotations

from datetime import date
from typing import Dict, List, Optional, Sequence

from workload_engine import CoordinatorWeeklyLog

from .. import adapters
from ..db import execute_transaction, fetch_all
from ..logging_config import get_logger
from .queries import (
    CLEAR_WEEKLY_BREAKDOWN,
    FETCH_BREAKDOWN_IN_WINDOW,
    FETCH_BREAKDOWN_SERIES,
    FETCH_COORDINATOR_BREAKDOWN,
    FETCH_COORDINATOR_LOGS,
    FETCH_LOGS_IN_WINDOW,
    INSERT_BREAKDOWN_ENTRY,
    UPSERT_WEEKLY_LOG,
)

log = get_logger(__name__)

MAX_RECENT_WEEKS = 12


def fetch_coordinator_logs(coordinator_id: str, limit: int = MAX_RECENT_WEEKS) -> List[CoordinatorWeeklyLog]:
    """Most recent weekly logs for one coordinator, newest first."""

    rows = fetch_all(FETCH_COORDINATOR_LOGS, (coordinator_id, limit), context="fetch_coordinator_logs")
    if not rows:
        return []
    oldest = min(row["week_start"] for row in rows)
    breakdown = fetch_all(
        FETCH_COORDINATOR_BREAKDOWN,
        (coordinator_id, oldest),
        context="fetch_coordinator_breakdown",
    )
    return adapters.weekly_logs(rows, breakdown)


def fetch_logs_between(start: date, end: date) -> List[CoordinatorWeeklyLog]:
    """Every coordinator's logs with ``start <= week_start < end``."""

    rows = fetch_all(FETCH_LOGS_IN_WINDOW, (start, end), context="fetch_logs_in_window")
    breakdown = fetch_all(FETCH_BREAKDOWN_IN_WINDOW, (start, end), context="fetch_breakdown_in_window")
    log.info("Retrieved %d weekly logs and %d breakdown rows", len(rows), len(breakdown))
    return adapters.weekly_logs(rows, breakdown)


def fetch_breakdown_series_rows(study_ids: Sequence[str], since: date) -> List[Dict[str, object]]:
    if not study_ids:
        return []
    return fetch_all(
        FETCH_BREAKDOWN_SERIES,
        (list(study_ids), since),
        context="fetch_breakdown_series",
    )


def save_weekly_log(entry: CoordinatorWeeklyLog) -> Optional[object]:
    """Upsert a week's totals and replace its breakdown rows atomically.

    Returns the stored ``updated_at``. Resubmitting the same week overwrites
    both the totals and the breakdown.
    """

    totals = (
        entry.coordinator_id,
        entry.recorded_by,
        entry.week_start,
        entry.meeting_hours,
        entry.screening_hours,
        entry.screening_study_count,
        entry.query_hours,
        entry.query_study_count,
        entry.notes,
    )

    def work(cursor):
        cursor.execute(UPSERT_WEEKLY_LOG, totals)
        saved = cursor.fetchone()
        cursor.execute(CLEAR_WEEKLY_BREAKDOWN, (entry.coordinator_id, entry.week_start))
        for item in entry.breakdown:
            cursor.execute(
                INSERT_BREAKDOWN_ENTRY,
                (
                    entry.coordinator_id,
                    entry.recorded_by,
                    item.study_id,
                    entry.week_start,
                    item.meeting_hours,
                    item.screening_hours,
                    item.query_hours,
                    item.notes,
                ),
            )
        return saved["updated_at"] if saved else None

    updated_at = execute_transaction(work, context="save_weekly_log")
    log.info(
        "WEEKLY_LOG_SAVED|coordinator_id=%s|week_start=%s|breakdown_rows=%d",
        entry.coordinator_id,
        entry.week_start.isoformat(),
        len(entry.breakdown),
    )
    return updated_at
