"""Per-study weekly breakdown series used by the dashboard charts."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional

import pandas as pd

from .weeks import monday_of, parse_week_start

HOUR_COLUMNS = ["meeting_hours", "screening_hours", "query_hours"]
BREAKDOWN_COLUMNS = [
    "study_id",
    "coordinator_id",
    "week_start",
    *HOUR_COLUMNS,
    "total_hours",
    "note_entries",
    "last_updated_at",
]


@dataclass(frozen=True)
class BreakdownCoordinator:
    coordinator_id: str
    meeting_hours: float
    screening_hours: float
    query_hours: float
    total_hours: float
    notes_count: int
    last_updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class BreakdownTotals:
    meeting_hours: float = 0.0
    screening_hours: float = 0.0
    query_hours: float = 0.0
    total_hours: float = 0.0
    notes_count: int = 0


@dataclass(frozen=True)
class BreakdownWeek:
    week_start: date
    coordinators: tuple = field(default_factory=tuple)
    totals: BreakdownTotals = field(default_factory=BreakdownTotals)


def _as_week(value: Any) -> date:
    if isinstance(value, (date, datetime)):
        return monday_of(value)
    return parse_week_start(value)


def _as_datetime(value: Any) -> Optional[datetime]:
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return None
    if hasattr(value, "to_pydatetime"):
        return value.to_pydatetime()
    if isinstance(value, str):
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    return value


def group_breakdown_rows(
    rows: Iterable[Mapping[str, Any]],
) -> Dict[str, List[BreakdownWeek]]:
    """Group flat ``(study, coordinator, week)`` rows into sorted weekly series.

    Rows missing a study, coordinator or week are skipped. Weeks are sorted
    ascending and coordinators by id within each week.
    """

    frame = pd.DataFrame([dict(row) for row in rows], columns=BREAKDOWN_COLUMNS)
    frame = frame.dropna(subset=["study_id", "coordinator_id", "week_start"])
    if frame.empty:
        return {}

    frame["week_start"] = frame["week_start"].map(_as_week)
    frame[HOUR_COLUMNS] = frame[HOUR_COLUMNS].fillna(0.0).astype(float).round(2)
    frame["total_hours"] = (
        frame["total_hours"]
        .astype(float)
        .fillna(frame[HOUR_COLUMNS].sum(axis=1))
        .round(2)
    )
    frame["note_entries"] = frame["note_entries"].fillna(0).astype(int)
    frame = frame.sort_values(["study_id", "week_start", "coordinator_id"])

    series: Dict[str, List[BreakdownWeek]] = {}
    for (study_id, week_start), group in frame.groupby(["study_id", "week_start"], sort=True):
        coordinators = tuple(
            BreakdownCoordinator(
                coordinator_id=str(row.coordinator_id),
                meeting_hours=float(row.meeting_hours),
                screening_hours=float(row.screening_hours),
                query_hours=float(row.query_hours),
                total_hours=float(row.total_hours),
                notes_count=int(row.note_entries),
                last_updated_at=_as_datetime(row.last_updated_at),
            )
            for row in group.itertuples(index=False)
        )
        sums = group[HOUR_COLUMNS + ["total_hours"]].sum().round(2)
        totals = BreakdownTotals(
            meeting_hours=float(sums["meeting_hours"]),
            screening_hours=float(sums["screening_hours"]),
            query_hours=float(sums["query_hours"]),
            total_hours=float(sums["total_hours"]),
            notes_count=int(group["note_entries"].sum()),
        )
        series.setdefault(str(study_id), []).append(
            BreakdownWeek(week_start=week_start, coordinators=coordinators, totals=totals)
        )

    return series
