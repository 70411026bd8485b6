from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Iterable, List, Mapping, Optional, Sequence

from .actuals import (
    StudyActuals,
    aggregate_actuals,
    score_actuals,
    summarize_actuals,
    weekly_study_totals,
)
from .complexity import score_now, stage_weights
from .configuration import DEFAULT_SETTINGS, WorkloadSettings
from .errors import ValidationError
from .forecast import score_forecast
from .models import (
    Assignment,
    CoordinatorWeeklyLog,
    StudyWorkloadProfile,
    WorkloadMetrics,
    WorkloadSnapshot,
)
from .validation import build_profile
from .weeks import trailing_weeks, upcoming_weeks

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExcludedStudy:
    study_id: Optional[str]
    reason: str


@dataclass
class PortfolioResult:
    snapshots: List[WorkloadSnapshot] = field(default_factory=list)
    excluded: List[ExcludedStudy] = field(default_factory=list)
    profiles: List[StudyWorkloadProfile] = field(default_factory=list)


@dataclass(frozen=True)
class TrendPoint:
    week_start: date
    actual_points: float
    forecast_points: float


def build_snapshot(
    profile: StudyWorkloadProfile,
    actuals: Optional[StudyActuals],
    settings: WorkloadSettings = DEFAULT_SETTINGS,
) -> WorkloadSnapshot:
    """Run one study through the complexity model three times: now, actuals, forecast."""

    if actuals is None:
        actuals = StudyActuals(study_id=profile.study_id)

    lw, rw = stage_weights(profile, settings)
    forecast, drift = score_forecast(profile, actuals, settings)

    return WorkloadSnapshot(
        study_id=profile.study_id,
        protocol_number=profile.protocol_number,
        study_title=profile.study_title,
        status=profile.status,
        lifecycle=profile.lifecycle,
        recruitment=profile.recruitment,
        lifecycle_weight=lw,
        recruitment_weight=rw,
        protocol_score=profile.protocol_score,
        screening_multiplier=profile.screening_multiplier,
        query_multiplier=profile.query_multiplier,
        screening_multiplier_effective=drift.screening_multiplier_effective,
        query_multiplier_effective=drift.query_multiplier_effective,
        meeting_admin_points=profile.meeting_admin_points,
        meeting_admin_points_adjusted=drift.meeting_admin_points_adjusted,
        now=score_now(profile, settings),
        actuals=score_actuals(profile, actuals, settings),
        forecast=forecast,
        metrics=WorkloadMetrics(
            contributors=actuals.contributors,
            avg_meeting_hours=actuals.avg_meeting_hours,
            avg_screening_hours=actuals.avg_screening_hours,
            avg_screening_study_count=actuals.avg_screening_study_count,
            avg_query_hours=actuals.avg_query_hours,
            avg_query_study_count=actuals.avg_query_study_count,
            screening_scale=drift.screening_scale,
            query_scale=drift.query_scale,
            meeting_points_adjustment=drift.meeting_points_adjustment,
            entries=actuals.entries,
            last_week_start=actuals.last_week_start,
        ),
    )


def validate_profiles(
    rows: Iterable[Mapping[str, Any]],
) -> tuple[List[StudyWorkloadProfile], List[ExcludedStudy]]:
    """Validate each study row on its own so one bad study cannot sink the rest."""

    profiles: List[StudyWorkloadProfile] = []
    excluded: List[ExcludedStudy] = []
    for row in rows:
        try:
            profiles.append(build_profile(row))
        except ValidationError as exc:
            study_id = row.get("study_id")
            log.warning("STUDY_PROFILE_EXCLUDED|study_id=%s|reason=%s", study_id, exc)
            excluded.append(ExcludedStudy(study_id=study_id, reason=str(exc)))
    return profiles, excluded


def compute_snapshots(
    profiles: Sequence[StudyWorkloadProfile],
    logs: Iterable[CoordinatorWeeklyLog],
    assignments: Iterable[Assignment],
    reference: date,
    settings: WorkloadSettings = DEFAULT_SETTINGS,
) -> List[WorkloadSnapshot]:
    actuals_by_study = aggregate_actuals(logs, assignments, reference, settings)
    return [
        build_snapshot(profile, actuals_by_study.get(profile.study_id), settings)
        for profile in profiles
    ]


def compute_portfolio(
    rows: Iterable[Mapping[str, Any]],
    logs: Iterable[CoordinatorWeeklyLog],
    assignments: Iterable[Assignment],
    reference: date,
    settings: WorkloadSettings = DEFAULT_SETTINGS,
) -> PortfolioResult:
    profiles, excluded = validate_profiles(rows)
    snapshots = compute_snapshots(profiles, list(logs), list(assignments), reference, settings)
    return PortfolioResult(snapshots=snapshots, excluded=excluded, profiles=profiles)


def compute_trend_series(
    profiles: Sequence[StudyWorkloadProfile],
    snapshots: Sequence[WorkloadSnapshot],
    logs: Iterable[CoordinatorWeeklyLog],
    assignments: Iterable[Assignment],
    reference: date,
    settings: WorkloadSettings = DEFAULT_SETTINGS,
) -> List[TrendPoint]:
    """Portfolio series: trailing weeks carry actual points, upcoming weeks the forecast.

    Both figures are weekly, so the window-level points are divided by the
    forecast horizon in weeks.
    """

    horizon = settings.forecast_weeks
    past = trailing_weeks(reference, settings.lookback_weeks)
    totals = weekly_study_totals(logs, assignments, past, settings.apportion_policy)

    points: List[TrendPoint] = []
    for week in past:
        actual = 0.0
        for profile in profiles:
            week_totals = totals.get(profile.study_id, {}).get(week)
            if week_totals is None:
                continue
            single_week = summarize_actuals(profile.study_id, {week: week_totals})
            actual += score_actuals(profile, single_week, settings).weighted
        points.append(TrendPoint(week_start=week, actual_points=actual / horizon, forecast_points=0.0))

    weekly_forecast = sum(s.forecast.weighted for s in snapshots) / horizon
    for week in upcoming_weeks(reference, horizon):
        points.append(TrendPoint(week_start=week, actual_points=0.0, forecast_points=weekly_forecast))

    return points
