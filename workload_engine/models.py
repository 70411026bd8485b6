from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple


class LifecycleStage(Enum):
    START_UP = "start_up"
    ACTIVE = "active"
    FOLLOW_UP = "follow_up"
    CLOSE_OUT = "close_out"

    @classmethod
    def from_raw(cls, raw: Any) -> "LifecycleStage | None":
        """Normalize a raw lifecycle value from strings or mappings into an enum value."""

        if isinstance(raw, Mapping):
            raw = raw.get("lifecycle")

        if isinstance(raw, cls):
            return raw

        if isinstance(raw, str):
            try:
                return cls(raw.strip().lower())
            except ValueError:
                return None

        return None


class RecruitmentStatus(Enum):
    ENROLLING = "enrolling"
    PAUSED = "paused"
    CLOSED_TO_ACCRUAL = "closed_to_accrual"
    ON_HOLD = "on_hold"

    @classmethod
    def from_raw(cls, raw: Any) -> "RecruitmentStatus | None":
        if isinstance(raw, Mapping):
            raw = raw.get("recruitment")

        if isinstance(raw, cls):
            return raw

        if isinstance(raw, str):
            try:
                return cls(raw.strip().lower())
            except ValueError:
                return None

        return None


class ApportionPolicy(Enum):
    """How aggregate hours logged without a per-study breakdown are attributed."""

    EVEN_SPLIT = "even_split"
    NONE = "none"


@dataclass(frozen=True)
class RubricSelection:
    trial_type: Optional[str] = None
    phase: Optional[str] = None
    sponsor_type: Optional[str] = None
    visit_volume: Optional[str] = None
    procedural_intensity: Optional[str] = None
    notes: Optional[str] = None


# Recommended starting weights offered by the settings form. Visit types not
# listed here, and any type a study leaves unset when scoring, weigh 1.0.
DEFAULT_VISIT_WEIGHTS: Dict[str, float] = {
    "screening": 1.5,
    "baseline": 2.0,
    "regular": 1.0,
    "unscheduled": 1.1,
    "early_termination": 0.75,
    "dose": 1.25,
    "long_term": 0.5,
}


def recommended_visit_weight(visit_type: str) -> float:
    return DEFAULT_VISIT_WEIGHTS.get(visit_type, 1.0)


@dataclass(frozen=True)
class StudyWorkloadProfile:
    study_id: str
    protocol_score: float
    lifecycle: LifecycleStage
    recruitment: RecruitmentStatus
    screening_multiplier: float = 1.0
    query_multiplier: float = 1.0
    meeting_admin_points: float = 0.0
    rubric: RubricSelection = field(default_factory=RubricSelection)
    visit_weights: Mapping[str, float] = field(default_factory=dict)
    protocol_number: Optional[str] = None
    study_title: Optional[str] = None
    status: Optional[str] = None

    def visit_weight(self, visit_type: str) -> float:
        """Weight for a visit type; types without an entry weigh 1.0."""
        return float(self.visit_weights.get(visit_type, 1.0))


@dataclass(frozen=True)
class BreakdownEntry:
    study_id: str
    meeting_hours: float = 0.0
    screening_hours: float = 0.0
    query_hours: float = 0.0
    notes: Optional[str] = None

    @property
    def total_hours(self) -> float:
        return self.meeting_hours + self.screening_hours + self.query_hours


@dataclass(frozen=True)
class CoordinatorWeeklyLog:
    coordinator_id: str
    week_start: date
    meeting_hours: float = 0.0
    screening_hours: float = 0.0
    screening_study_count: int = 0
    query_hours: float = 0.0
    query_study_count: int = 0
    notes: Optional[str] = None
    breakdown: Tuple[BreakdownEntry, ...] = ()
    recorded_by: Optional[str] = None
    updated_at: Optional[datetime] = None

    @property
    def total_hours(self) -> float:
        return self.meeting_hours + self.screening_hours + self.query_hours

    @property
    def has_breakdown(self) -> bool:
        return bool(self.breakdown)


@dataclass(frozen=True)
class Assignment:
    id: str
    coordinator_id: str
    study_id: str
    role: Optional[str] = None
    joined_at: Optional[datetime] = None


@dataclass(frozen=True)
class Points:
    raw: float = 0.0
    weighted: float = 0.0


@dataclass(frozen=True)
class WorkloadMetrics:
    contributors: int = 0
    avg_meeting_hours: float = 0.0
    avg_screening_hours: float = 0.0
    avg_screening_study_count: float = 0.0
    avg_query_hours: float = 0.0
    avg_query_study_count: float = 0.0
    screening_scale: float = 1.0
    query_scale: float = 1.0
    meeting_points_adjustment: float = 0.0
    entries: int = 0
    last_week_start: Optional[date] = None


@dataclass(frozen=True)
class WorkloadSnapshot:
    """Per-study engine output. Derived on every query, never stored by the engine."""

    study_id: str
    lifecycle: LifecycleStage
    recruitment: RecruitmentStatus
    lifecycle_weight: float
    recruitment_weight: float
    protocol_score: float
    screening_multiplier: float
    query_multiplier: float
    screening_multiplier_effective: float
    query_multiplier_effective: float
    meeting_admin_points: float
    meeting_admin_points_adjusted: float
    now: Points
    actuals: Points
    forecast: Points
    metrics: WorkloadMetrics
    protocol_number: Optional[str] = None
    study_title: Optional[str] = None
    status: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "study_id": self.study_id,
            "protocol_number": self.protocol_number,
            "study_title": self.study_title,
            "status": self.status,
            "lifecycle": self.lifecycle.value,
            "recruitment": self.recruitment.value,
            "lifecycle_weight": self.lifecycle_weight,
            "recruitment_weight": self.recruitment_weight,
            "protocol_score": self.protocol_score,
            "screening_multiplier": self.screening_multiplier,
            "query_multiplier": self.query_multiplier,
            "screening_multiplier_effective": self.screening_multiplier_effective,
            "query_multiplier_effective": self.query_multiplier_effective,
            "meeting_admin_points": self.meeting_admin_points,
            "meeting_admin_points_adjusted": self.meeting_admin_points_adjusted,
            "now": {"raw": self.now.raw, "weighted": self.now.weighted},
            "actuals": {"raw": self.actuals.raw, "weighted": self.actuals.weighted},
            "forecast": {"raw": self.forecast.raw, "weighted": self.forecast.weighted},
            "metrics": {
                "contributors": self.metrics.contributors,
                "avg_meeting_hours": self.metrics.avg_meeting_hours,
                "avg_screening_hours": self.metrics.avg_screening_hours,
                "avg_screening_study_count": self.metrics.avg_screening_study_count,
                "avg_query_hours": self.metrics.avg_query_hours,
                "avg_query_study_count": self.metrics.avg_query_study_count,
                "screening_scale": self.metrics.screening_scale,
                "query_scale": self.metrics.query_scale,
                "meeting_points_adjustment": self.metrics.meeting_points_adjustment,
                "entries": self.metrics.entries,
                "last_week_start": (
                    self.metrics.last_week_start.isoformat()
                    if self.metrics.last_week_start
                    else None
                ),
            },
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "WorkloadSnapshot":
        """Rebuild a snapshot from :meth:`as_dict` output, e.g. a cached JSON payload."""

        metrics = dict(payload.get("metrics") or {})
        last_week = metrics.get("last_week_start")
        if isinstance(last_week, str):
            metrics["last_week_start"] = date.fromisoformat(last_week)

        def points(key: str) -> Points:
            raw = payload.get(key) or {}
            return Points(raw=float(raw.get("raw", 0.0)), weighted=float(raw.get("weighted", 0.0)))

        return cls(
            study_id=payload["study_id"],
            protocol_number=payload.get("protocol_number"),
            study_title=payload.get("study_title"),
            status=payload.get("status"),
            lifecycle=LifecycleStage(payload["lifecycle"]),
            recruitment=RecruitmentStatus(payload["recruitment"]),
            lifecycle_weight=float(payload["lifecycle_weight"]),
            recruitment_weight=float(payload["recruitment_weight"]),
            protocol_score=float(payload["protocol_score"]),
            screening_multiplier=float(payload["screening_multiplier"]),
            query_multiplier=float(payload["query_multiplier"]),
            screening_multiplier_effective=float(payload["screening_multiplier_effective"]),
            query_multiplier_effective=float(payload["query_multiplier_effective"]),
            meeting_admin_points=float(payload["meeting_admin_points"]),
            meeting_admin_points_adjusted=float(payload["meeting_admin_points_adjusted"]),
            now=points("now"),
            actuals=points("actuals"),
            forecast=points("forecast"),
            metrics=WorkloadMetrics(**metrics),
        )
