"""Shared request and response models for the public API."""
from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    """Serialises as camelCase; accepts camelCase or snake_case on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RubricSelectionModel(ApiModel):
    trial_type: Optional[str] = None
    phase: Optional[str] = None
    sponsor_type: Optional[str] = None
    visit_volume: Optional[str] = None
    procedural_intensity: Optional[str] = None
    notes: Optional[str] = None


class VisitWeightModel(ApiModel):
    visit_type: str
    weight: Any = 1.0


class StudyWorkloadSettings(ApiModel):
    study_id: str
    protocol_number: Optional[str] = None
    study_title: Optional[str] = None
    status: Optional[str] = None
    protocol_score: float
    screening_multiplier: float
    query_multiplier: float
    meeting_admin_points: float
    lifecycle: str
    recruitment: str
    rubric: RubricSelectionModel
    recommended_score: float = Field(..., description="Rubric suggestion for protocolScore")
    visit_weights: List[VisitWeightModel] = Field(default_factory=list)
    recommended_visit_weights: List[VisitWeightModel] = Field(default_factory=list)


class StudyWorkloadSettingsUpdate(ApiModel):
    """Partial update; omitted fields keep their stored values.

    Numbers and enum strings are typed loosely here so the engine's validation
    boundary produces the error message.
    """

    protocol_score: Any = None
    screening_multiplier: Any = None
    query_multiplier: Any = None
    meeting_admin_points: Any = None
    lifecycle: Optional[str] = None
    recruitment: Optional[str] = None
    rubric: Optional[RubricSelectionModel] = None
    visit_weights: Optional[List[VisitWeightModel]] = None
    reset_visit_weights: bool = Field(False, description="Replace visit weights with the recommended table first")


class BreakdownEntryModel(ApiModel):
    study_id: Optional[str] = None
    meeting_hours: Any = None
    screening_hours: Any = None
    query_hours: Any = None
    notes: Optional[str] = None


class WeeklyLogSubmission(ApiModel):
    week_start: Any = None
    meeting_hours: Any = None
    screening_hours: Any = None
    screening_study_count: Any = None
    query_hours: Any = None
    query_study_count: Any = None
    notes: Optional[str] = None
    breakdown: List[BreakdownEntryModel] = Field(default_factory=list)


class WeeklyLogModel(ApiModel):
    coordinator_id: str
    week_start: date
    meeting_hours: float
    screening_hours: float
    screening_study_count: int
    query_hours: float
    query_study_count: int
    total_hours: float
    notes: Optional[str] = None
    breakdown: List[BreakdownEntryModel] = Field(default_factory=list)
    recorded_by: Optional[str] = None
    updated_at: Optional[datetime] = None


class AssignmentModel(ApiModel):
    id: str
    coordinator_id: str
    study_id: str
    role: Optional[str] = None
    joined_at: Optional[datetime] = None


class CoordinatorMetricsResponse(ApiModel):
    coordinator_id: str
    logs: List[WeeklyLogModel] = Field(default_factory=list)
    assignments: List[AssignmentModel] = Field(default_factory=list)
    warning: Optional[str] = None


class PointsModel(ApiModel):
    raw: float
    weighted: float


class WorkloadMetricsModel(ApiModel):
    contributors: int
    avg_meeting_hours: float
    avg_screening_hours: float
    avg_screening_study_count: float
    avg_query_hours: float
    avg_query_study_count: float
    screening_scale: float
    query_scale: float
    meeting_points_adjustment: float
    entries: int
    last_week_start: Optional[date] = None


class BreakdownCoordinatorModel(ApiModel):
    coordinator_id: str
    meeting_hours: float
    screening_hours: float
    query_hours: float
    total_hours: float
    notes_count: int
    last_updated_at: Optional[datetime] = None


class BreakdownTotalsModel(ApiModel):
    meeting_hours: float
    screening_hours: float
    query_hours: float
    total_hours: float
    notes_count: int


class BreakdownWeekModel(ApiModel):
    week_start: date
    coordinators: List[BreakdownCoordinatorModel]
    totals: BreakdownTotalsModel


class WorkloadSnapshotModel(ApiModel):
    study_id: str
    protocol_number: Optional[str] = None
    study_title: Optional[str] = None
    status: Optional[str] = None
    lifecycle: str
    recruitment: str
    lifecycle_weight: float
    recruitment_weight: float
    protocol_score: float
    screening_multiplier: float
    query_multiplier: float
    screening_multiplier_effective: float
    query_multiplier_effective: float
    meeting_admin_points: float
    meeting_admin_points_adjusted: float
    now: PointsModel
    actuals: PointsModel
    forecast: PointsModel
    metrics: WorkloadMetricsModel
    trend_pct: float = 0.0
    setup_completion: float = 0.0
    breakdown: Optional[List[BreakdownWeekModel]] = None


class ExcludedStudyModel(ApiModel):
    study_id: Optional[str] = None
    reason: str


class PortfolioSummaryModel(ApiModel):
    total_now: float = 0.0
    total_actuals: float = 0.0
    total_forecast: float = 0.0
    trend_pct: float = 0.0
    top_study_id: Optional[str] = None


class PortfolioMeta(ApiModel):
    generated_at: datetime
    cache_hits: int = 0
    recomputed: int = 0
    lookback_weeks: int
    forecast_weeks: int


class PortfolioWorkloadResponse(ApiModel):
    studies: List[WorkloadSnapshotModel] = Field(default_factory=list)
    excluded: List[ExcludedStudyModel] = Field(default_factory=list)
    summary: PortfolioSummaryModel = Field(default_factory=PortfolioSummaryModel)
    meta: Optional[PortfolioMeta] = None
    warning: Optional[str] = None


class TrendPointModel(ApiModel):
    week_start: date
    actual_points: float
    forecast_points: float


class WorkloadTrendResponse(ApiModel):
    points: List[TrendPointModel] = Field(default_factory=list)
    warning: Optional[str] = None


class StudyShareModel(ApiModel):
    study_id: str
    divisor: int
    load: float
    baseline: float


class CoordinatorLoadModel(ApiModel):
    coordinator_id: str
    load: float
    baseline: float
    trend_pct: float
    band: str
    studies: int
    shares: List[StudyShareModel] = Field(default_factory=list)


class CoordinatorLoadsResponse(ApiModel):
    coordinators: List[CoordinatorLoadModel] = Field(default_factory=list)
    warning: Optional[str] = None


class RefreshResponse(ApiModel):
    refreshed: int
    excluded: List[ExcludedStudyModel] = Field(default_factory=list)


class RubricOptionModel(ApiModel):
    value: str
    label: str
    points: int


class RubricAxisModel(ApiModel):
    name: str
    label: str
    options: List[RubricOptionModel]


class RubricResponse(ApiModel):
    axes: List[RubricAxisModel]
    max_score: float
    default_visit_weights: List[VisitWeightModel] = Field(default_factory=list)


class RubricScoreResponse(ApiModel):
    selection: Dict[str, str]
    recommended_score: float
