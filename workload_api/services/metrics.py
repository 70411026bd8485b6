"""Business logic for coordinator weekly effort logs."""
from __future__ import annotations

from dataclasses import replace
from typing import Optional

from workload_engine import CoordinatorWeeklyLog, UpstreamUnavailableError
from workload_engine.validation import build_weekly_log, require_identifier

from ..logging_config import get_logger
from ..models import (
    AssignmentModel,
    BreakdownEntryModel,
    CoordinatorMetricsResponse,
    WeeklyLogModel,
    WeeklyLogSubmission,
)
from ..repositories import assignments as assignment_repository
from ..repositories import coordinator_metrics
from ..repositories.snapshots import PostgresSnapshotCache

log = get_logger(__name__)

UNAVAILABLE_WARNING = "Coordinator metrics are temporarily unavailable."


def to_log_model(entry: CoordinatorWeeklyLog) -> WeeklyLogModel:
    return WeeklyLogModel(
        coordinator_id=entry.coordinator_id,
        week_start=entry.week_start,
        meeting_hours=entry.meeting_hours,
        screening_hours=entry.screening_hours,
        screening_study_count=entry.screening_study_count,
        query_hours=entry.query_hours,
        query_study_count=entry.query_study_count,
        total_hours=entry.total_hours,
        notes=entry.notes,
        breakdown=[
            BreakdownEntryModel(
                study_id=item.study_id,
                meeting_hours=item.meeting_hours,
                screening_hours=item.screening_hours,
                query_hours=item.query_hours,
                notes=item.notes,
            )
            for item in entry.breakdown
        ],
        recorded_by=entry.recorded_by,
        updated_at=entry.updated_at,
    )


def get_metrics(coordinator_id: str) -> CoordinatorMetricsResponse:
    """Recent weekly logs and current study assignments for one coordinator."""

    coordinator_id = require_identifier(coordinator_id, "coordinator_id")
    try:
        logs = coordinator_metrics.fetch_coordinator_logs(coordinator_id)
        assignments = assignment_repository.fetch_coordinator_assignments(coordinator_id)
    except UpstreamUnavailableError as exc:
        log.warning("COORDINATOR_METRICS_UNAVAILABLE|coordinator_id=%s|error=%s", coordinator_id, exc)
        return CoordinatorMetricsResponse(coordinator_id=coordinator_id, warning=UNAVAILABLE_WARNING)

    return CoordinatorMetricsResponse(
        coordinator_id=coordinator_id,
        logs=[to_log_model(entry) for entry in logs],
        assignments=[
            AssignmentModel(
                id=assignment.id,
                coordinator_id=assignment.coordinator_id,
                study_id=assignment.study_id,
                role=assignment.role,
                joined_at=assignment.joined_at,
            )
            for assignment in assignments
        ],
    )


def submit_weekly_log(
    coordinator_id: str,
    submission: WeeklyLogSubmission,
    recorded_by: Optional[str] = None,
) -> WeeklyLogModel:
    """Validate and upsert one week's log. The last submission for a week wins."""

    totals = submission.model_dump(exclude={"week_start", "breakdown"})
    entry = build_weekly_log(
        coordinator_id=coordinator_id,
        week_start=submission.week_start,
        totals=totals,
        breakdown=[item.model_dump() for item in submission.breakdown],
        recorded_by=recorded_by or coordinator_id,
    )

    updated_at = coordinator_metrics.save_weekly_log(entry)
    _expire_affected_snapshots(entry)
    return to_log_model(replace(entry, updated_at=updated_at))


def _expire_affected_snapshots(entry: CoordinatorWeeklyLog) -> None:
    study_ids = {item.study_id for item in entry.breakdown}
    try:
        study_ids.update(
            assignment.study_id
            for assignment in assignment_repository.fetch_coordinator_assignments(entry.coordinator_id)
        )
        PostgresSnapshotCache().expire(sorted(study_ids))
    except UpstreamUnavailableError as exc:
        log.warning(
            "SNAPSHOT_EXPIRE_FAILED|coordinator_id=%s|studies=%d|error=%s",
            entry.coordinator_id,
            len(study_ids),
            exc,
        )
