"""Single validation boundary between raw input and the engine's typed models.

Everything past this module may assume non-negative finite numbers and known
enum members, so the formulas never need fallback arithmetic.
"""
from __future__ import annotations

import math
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable, List, Mapping, Optional, Set

from .errors import ValidationError
from .models import (
    Assignment,
    BreakdownEntry,
    CoordinatorWeeklyLog,
    LifecycleStage,
    RecruitmentStatus,
    RubricSelection,
    StudyWorkloadProfile,
)
from .rubric import validate_rubric
from .weeks import parse_week_start

BREAKDOWN_TOLERANCE_HOURS = 0.01


def require_non_negative(value: Any, field: str) -> float:
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number", field)
    if isinstance(value, (int, float, Decimal)):
        number = float(value)
    elif isinstance(value, str) and value.strip():
        try:
            number = float(value.strip())
        except ValueError as exc:
            raise ValidationError(f"{field} must be a number", field) from exc
    else:
        raise ValidationError(f"{field} must be a number", field)

    if not math.isfinite(number):
        raise ValidationError(f"{field} must be finite", field)
    if number < 0:
        raise ValidationError(f"{field} must be non-negative", field)
    return number


def optional_non_negative(value: Any, field: str, default: float) -> float:
    if value is None:
        return default
    return require_non_negative(value, field)


def require_count(value: Any, field: str) -> int:
    if value is None:
        return 0
    number = require_non_negative(value, field)
    if not number.is_integer():
        raise ValidationError(f"{field} must be a whole number", field)
    return int(number)


def require_lifecycle(raw: Any) -> LifecycleStage:
    stage = LifecycleStage.from_raw(raw)
    if stage is None:
        raise ValidationError(f"Invalid lifecycle stage {raw!r}", "lifecycle")
    return stage


def require_recruitment(raw: Any) -> RecruitmentStatus:
    status = RecruitmentStatus.from_raw(raw)
    if status is None:
        raise ValidationError(f"Invalid recruitment status {raw!r}", "recruitment")
    return status


def require_identifier(value: Any, field: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{field} must be a non-empty identifier", field)
    return str(value).strip()


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def validate_visit_weights(raw: Any) -> dict:
    if raw is None:
        return {}
    if isinstance(raw, Mapping):
        items = raw.items()
    else:
        items = []
        for entry in raw:
            if not isinstance(entry, Mapping):
                raise ValidationError("visit weight entries must be objects", "visit_weights")
            items.append((entry.get("visit_type"), entry.get("weight")))

    weights = {}
    for visit_type, weight in items:
        name = require_identifier(visit_type, "visit_type")
        weights[name] = optional_non_negative(weight, f"visit_weights[{name}]", 1.0)
    return weights


def build_profile(row: Mapping[str, Any]) -> StudyWorkloadProfile:
    """Build a validated profile from a canonical snake_case row."""

    rubric = RubricSelection(
        trial_type=row.get("rubric_trial_type"),
        phase=row.get("rubric_phase"),
        sponsor_type=row.get("rubric_sponsor_type"),
        visit_volume=row.get("rubric_visit_volume"),
        procedural_intensity=row.get("rubric_procedural_intensity"),
        notes=_optional_text(row.get("rubric_notes")),
    )
    validate_rubric(rubric)

    return StudyWorkloadProfile(
        study_id=require_identifier(row.get("study_id"), "study_id"),
        protocol_score=optional_non_negative(row.get("protocol_score"), "protocol_score", 0.0),
        screening_multiplier=optional_non_negative(
            row.get("screening_multiplier"), "screening_multiplier", 1.0
        ),
        query_multiplier=optional_non_negative(
            row.get("query_multiplier"), "query_multiplier", 1.0
        ),
        meeting_admin_points=optional_non_negative(
            row.get("meeting_admin_points"), "meeting_admin_points", 0.0
        ),
        lifecycle=require_lifecycle(row.get("lifecycle")),
        recruitment=require_recruitment(row.get("recruitment")),
        rubric=rubric,
        visit_weights=validate_visit_weights(row.get("visit_weights")),
        protocol_number=row.get("protocol_number"),
        study_title=row.get("study_title"),
        status=row.get("status"),
    )


def build_breakdown(entries: Optional[Iterable[Mapping[str, Any]]]) -> tuple:
    if not entries:
        return ()

    sanitized: List[BreakdownEntry] = []
    seen: Set[str] = set()
    for idx, entry in enumerate(entries):
        if not isinstance(entry, Mapping):
            raise ValidationError(f"breakdown entry at index {idx} must be an object", "breakdown")
        item = BreakdownEntry(
            study_id=require_identifier(entry.get("study_id"), f"breakdown[{idx}].study_id"),
            meeting_hours=optional_non_negative(
                entry.get("meeting_hours"), f"breakdown[{idx}].meeting_hours", 0.0
            ),
            screening_hours=optional_non_negative(
                entry.get("screening_hours"), f"breakdown[{idx}].screening_hours", 0.0
            ),
            query_hours=optional_non_negative(
                entry.get("query_hours"), f"breakdown[{idx}].query_hours", 0.0
            ),
            notes=_optional_text(entry.get("notes")),
        )
        # Empty rows carry nothing worth storing.
        if item.total_hours == 0 and item.notes is None:
            continue
        if item.study_id in seen:
            raise ValidationError(
                f"breakdown lists study {item.study_id!r} more than once",
                f"breakdown[{idx}].study_id",
            )
        seen.add(item.study_id)
        sanitized.append(item)
    return tuple(sanitized)


def check_breakdown_totals(log: CoordinatorWeeklyLog) -> None:
    """Per category, the breakdown may not exceed the top-level totals."""

    if not log.breakdown:
        return

    for category in ("meeting_hours", "screening_hours", "query_hours"):
        allocated = sum(getattr(entry, category) for entry in log.breakdown)
        total = getattr(log, category)
        if allocated - total > BREAKDOWN_TOLERANCE_HOURS:
            raise ValidationError(
                f"breakdown {category} ({allocated:.2f}) exceeds the weekly total ({total:.2f})",
                category,
            )


def build_weekly_log(
    coordinator_id: Any,
    week_start: Any,
    totals: Mapping[str, Any],
    breakdown: Optional[Iterable[Mapping[str, Any]]] = None,
    recorded_by: Optional[str] = None,
    updated_at: Optional[datetime] = None,
) -> CoordinatorWeeklyLog:
    log = CoordinatorWeeklyLog(
        coordinator_id=require_identifier(coordinator_id, "coordinator_id"),
        week_start=parse_week_start(week_start),
        meeting_hours=optional_non_negative(totals.get("meeting_hours"), "meeting_hours", 0.0),
        screening_hours=optional_non_negative(
            totals.get("screening_hours"), "screening_hours", 0.0
        ),
        screening_study_count=require_count(
            totals.get("screening_study_count"), "screening_study_count"
        ),
        query_hours=optional_non_negative(totals.get("query_hours"), "query_hours", 0.0),
        query_study_count=require_count(totals.get("query_study_count"), "query_study_count"),
        notes=_optional_text(totals.get("notes")),
        breakdown=build_breakdown(breakdown),
        recorded_by=recorded_by,
        updated_at=updated_at,
    )
    check_breakdown_totals(log)
    return log


def build_assignment(row: Mapping[str, Any]) -> Assignment:
    joined_at = row.get("joined_at")
    if isinstance(joined_at, str):
        try:
            joined_at = datetime.fromisoformat(joined_at.replace("Z", "+00:00"))
        except ValueError as exc:
            raise ValidationError("joined_at must be an ISO timestamp", "joined_at") from exc
    elif isinstance(joined_at, date) and not isinstance(joined_at, datetime):
        joined_at = datetime(joined_at.year, joined_at.month, joined_at.day)

    return Assignment(
        id=require_identifier(row.get("id"), "assignment.id"),
        coordinator_id=require_identifier(row.get("coordinator_id"), "coordinator_id"),
        study_id=require_identifier(row.get("study_id"), "study_id"),
        role=_optional_text(row.get("role")),
        joined_at=joined_at,
    )
