from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set

from .complexity import compute_baseline, weigh
from .configuration import DEFAULT_SETTINGS, WorkloadSettings
from .models import (
    ApportionPolicy,
    Assignment,
    CoordinatorWeeklyLog,
    Points,
    StudyWorkloadProfile,
)
from .weeks import monday_of, trailing_weeks, week_end


@dataclass
class StudyWeekTotals:
    """Hours attributed to one study for one week, summed across coordinators."""

    study_id: str
    week_start: date
    meeting_hours: float = 0.0
    screening_hours: float = 0.0
    query_hours: float = 0.0
    notes: Set[str] = field(default_factory=set)
    screening_counts: Dict[str, int] = field(default_factory=dict)
    query_counts: Dict[str, int] = field(default_factory=dict)

    @property
    def total_hours(self) -> float:
        return self.meeting_hours + self.screening_hours + self.query_hours

    @property
    def notes_count(self) -> int:
        return len(self.notes)

    @property
    def coordinator_ids(self) -> List[str]:
        return sorted(self.screening_counts)

    def add(
        self,
        log: CoordinatorWeeklyLog,
        meeting: float,
        screening: float,
        query: float,
        note: Optional[str],
    ) -> None:
        self.meeting_hours += meeting
        self.screening_hours += screening
        self.query_hours += query
        if note:
            self.notes.add(note)
        self.screening_counts[log.coordinator_id] = log.screening_study_count
        self.query_counts[log.coordinator_id] = log.query_study_count


@dataclass(frozen=True)
class StudyActuals:
    study_id: str
    weeks: tuple = ()
    avg_meeting_hours: float = 0.0
    avg_screening_hours: float = 0.0
    avg_screening_study_count: float = 0.0
    avg_query_hours: float = 0.0
    avg_query_study_count: float = 0.0
    avg_total_hours: float = 0.0
    contributors: int = 0
    entries: int = 0
    last_week_start: Optional[date] = None

    @property
    def has_history(self) -> bool:
        return bool(self.weeks)


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def is_active_for_week(assignment: Assignment, week_start: date) -> bool:
    if assignment.joined_at is None:
        return True
    return assignment.joined_at.date() <= week_end(week_start)


def latest_logs(logs: Iterable[CoordinatorWeeklyLog]) -> List[CoordinatorWeeklyLog]:
    """Collapse logs to one per (coordinator, week), keeping the latest submission."""

    chosen: Dict[tuple, CoordinatorWeeklyLog] = {}
    for log in logs:
        key = (log.coordinator_id, monday_of(log.week_start))
        existing = chosen.get(key)
        if existing is None:
            chosen[key] = log
            continue
        if existing.updated_at is None or (
            log.updated_at is not None and log.updated_at >= existing.updated_at
        ):
            chosen[key] = log
    return list(chosen.values())


def attribute_log(
    log: CoordinatorWeeklyLog,
    coordinator_assignments: Sequence[Assignment],
    policy: ApportionPolicy = ApportionPolicy.EVEN_SPLIT,
) -> Dict[str, tuple]:
    """Split one weekly log into ``study_id -> (meeting, screening, query, note)``.

    An explicit breakdown always wins. Without one, the even-split policy
    divides the top-level hours across the coordinator's assignments active
    that week; the ``none`` policy attributes nothing.
    """

    attributed: Dict[str, List] = {}

    if log.has_breakdown:
        for entry in log.breakdown:
            bucket = attributed.setdefault(entry.study_id, [0.0, 0.0, 0.0, None])
            bucket[0] += entry.meeting_hours
            bucket[1] += entry.screening_hours
            bucket[2] += entry.query_hours
            if entry.notes:
                bucket[3] = entry.notes
        return {study_id: tuple(values) for study_id, values in attributed.items()}

    if policy is ApportionPolicy.NONE:
        return {}

    week = monday_of(log.week_start)
    active_studies = sorted(
        {a.study_id for a in coordinator_assignments if is_active_for_week(a, week)}
    )
    if not active_studies:
        return {}

    divisor = len(active_studies)
    share = (
        log.meeting_hours / divisor,
        log.screening_hours / divisor,
        log.query_hours / divisor,
        log.notes,
    )
    return {study_id: share for study_id in active_studies}


def weekly_study_totals(
    logs: Iterable[CoordinatorWeeklyLog],
    assignments: Iterable[Assignment],
    weeks: Iterable[date],
    policy: ApportionPolicy = ApportionPolicy.EVEN_SPLIT,
) -> Dict[str, Dict[date, StudyWeekTotals]]:
    """Per study, per window week: hours attributed across every coordinator."""

    window = {monday_of(week) for week in weeks}
    by_coordinator: Dict[str, List[Assignment]] = {}
    for assignment in assignments:
        by_coordinator.setdefault(assignment.coordinator_id, []).append(assignment)

    totals: Dict[str, Dict[date, StudyWeekTotals]] = {}
    for log in latest_logs(logs):
        week = monday_of(log.week_start)
        if week not in window:
            continue

        shares = attribute_log(log, by_coordinator.get(log.coordinator_id, []), policy)
        for study_id, (meeting, screening, query, note) in shares.items():
            if meeting + screening + query <= 0:
                continue
            study_weeks = totals.setdefault(study_id, {})
            week_totals = study_weeks.get(week)
            if week_totals is None:
                week_totals = StudyWeekTotals(study_id=study_id, week_start=week)
                study_weeks[week] = week_totals
            week_totals.add(log, meeting, screening, query, note)

    return totals


def summarize_actuals(
    study_id: str, weeks: Mapping[date, StudyWeekTotals]
) -> StudyActuals:
    """Average the contributing weeks. No contributing weeks means all zeros."""

    contributing = sorted(
        (totals for totals in weeks.values() if totals.total_hours > 0),
        key=lambda totals: totals.week_start,
    )
    if not contributing:
        return StudyActuals(study_id=study_id)

    coordinators: Set[str] = set()
    entries = 0
    for totals in contributing:
        coordinators.update(totals.screening_counts)
        entries += len(totals.screening_counts)

    return StudyActuals(
        study_id=study_id,
        weeks=tuple(contributing),
        avg_meeting_hours=_mean([t.meeting_hours for t in contributing]),
        avg_screening_hours=_mean([t.screening_hours for t in contributing]),
        avg_query_hours=_mean([t.query_hours for t in contributing]),
        avg_total_hours=_mean([t.total_hours for t in contributing]),
        avg_screening_study_count=_mean(
            [_mean(list(t.screening_counts.values())) for t in contributing]
        ),
        avg_query_study_count=_mean(
            [_mean(list(t.query_counts.values())) for t in contributing]
        ),
        contributors=len(coordinators),
        entries=entries,
        last_week_start=contributing[-1].week_start,
    )


def aggregate_actuals(
    logs: Iterable[CoordinatorWeeklyLog],
    assignments: Iterable[Assignment],
    reference: date,
    settings: WorkloadSettings = DEFAULT_SETTINGS,
) -> Dict[str, StudyActuals]:
    """Roll the trailing window of weekly logs up into per-study actuals."""

    window = trailing_weeks(reference, settings.lookback_weeks)
    totals = weekly_study_totals(logs, assignments, window, settings.apportion_policy)
    return {
        study_id: summarize_actuals(study_id, weeks) for study_id, weeks in totals.items()
    }


def observed_ratios(
    actuals: StudyActuals, settings: WorkloadSettings = DEFAULT_SETTINGS
) -> tuple:
    """Observed screening ratio, query ratio and meeting point adjustment (unbounded)."""

    screening_ratio = actuals.avg_screening_hours / settings.screening_baseline_hours
    query_ratio = actuals.avg_query_hours / settings.query_baseline_hours
    meeting_adjustment = (
        actuals.avg_meeting_hours - settings.meeting_baseline_hours
    ) * settings.meeting_points_per_hour
    return screening_ratio, query_ratio, meeting_adjustment


def actual_baseline(
    profile: StudyWorkloadProfile,
    actuals: StudyActuals,
    settings: WorkloadSettings = DEFAULT_SETTINGS,
) -> float:
    """Translate observed average hours into points at the baseline position.

    Observed hours act as multiplier equivalents: the configured multipliers are
    scaled by the observed-to-expected hour ratios, and meeting hours above or
    below the expected level move the meeting points.
    """

    if not actuals.has_history:
        return 0.0

    screening_ratio, query_ratio, meeting_adjustment = observed_ratios(actuals, settings)
    baseline = compute_baseline(
        profile.protocol_score,
        profile.screening_multiplier * screening_ratio,
        profile.query_multiplier * query_ratio,
        profile.meeting_admin_points + meeting_adjustment,
    )
    return max(0.0, baseline)


def score_actuals(
    profile: StudyWorkloadProfile,
    actuals: Optional[StudyActuals],
    settings: WorkloadSettings = DEFAULT_SETTINGS,
) -> Points:
    if actuals is None:
        actuals = StudyActuals(study_id=profile.study_id)
    return weigh(actual_baseline(profile, actuals, settings), profile, settings)
