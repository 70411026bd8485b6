from .actuals import StudyActuals, aggregate_actuals, score_actuals
from .allocation import CoordinatorLoad, StudyShare, allocate_loads
from .banding import (
    LoadBand,
    PortfolioSummary,
    classify_load,
    percent_change,
    portfolio_trend,
    setup_completion,
    summarize_portfolio,
)
from .breakdown import BreakdownWeek, group_breakdown_rows
from .cache import CachedValue, SnapshotCache, pull_through
from .complexity import compute_baseline, score_now, weigh
from .configuration import DEFAULT_SETTINGS, WorkloadSettings
from .errors import NotFoundError, UpstreamUnavailableError, ValidationError, WorkloadError
from .forecast import ForecastDrift, score_forecast
from .models import (
    ApportionPolicy,
    Assignment,
    BreakdownEntry,
    CoordinatorWeeklyLog,
    DEFAULT_VISIT_WEIGHTS,
    LifecycleStage,
    Points,
    RecruitmentStatus,
    RubricSelection,
    StudyWorkloadProfile,
    WorkloadMetrics,
    WorkloadSnapshot,
    recommended_visit_weight,
)
from .pipeline import (
    ExcludedStudy,
    PortfolioResult,
    TrendPoint,
    build_snapshot,
    compute_portfolio,
    compute_snapshots,
    compute_trend_series,
)
from .rubric import RUBRIC_AXES, recommended_score

__all__ = [
    "ApportionPolicy",
    "Assignment",
    "BreakdownEntry",
    "BreakdownWeek",
    "CachedValue",
    "CoordinatorLoad",
    "CoordinatorWeeklyLog",
    "DEFAULT_SETTINGS",
    "DEFAULT_VISIT_WEIGHTS",
    "ExcludedStudy",
    "ForecastDrift",
    "LifecycleStage",
    "LoadBand",
    "NotFoundError",
    "Points",
    "PortfolioResult",
    "PortfolioSummary",
    "RUBRIC_AXES",
    "RecruitmentStatus",
    "RubricSelection",
    "SnapshotCache",
    "StudyActuals",
    "StudyShare",
    "StudyWorkloadProfile",
    "TrendPoint",
    "UpstreamUnavailableError",
    "ValidationError",
    "WorkloadError",
    "WorkloadMetrics",
    "WorkloadSettings",
    "WorkloadSnapshot",
    "aggregate_actuals",
    "allocate_loads",
    "build_snapshot",
    "classify_load",
    "compute_baseline",
    "compute_portfolio",
    "compute_snapshots",
    "compute_trend_series",
    "group_breakdown_rows",
    "percent_change",
    "portfolio_trend",
    "pull_through",
    "recommended_score",
    "recommended_visit_weight",
    "score_actuals",
    "score_forecast",
    "score_now",
    "setup_completion",
    "summarize_portfolio",
    "weigh",
]
