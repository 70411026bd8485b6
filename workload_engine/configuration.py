from dataclasses import dataclass, field
from typing import Dict

from .models import ApportionPolicy, LifecycleStage, RecruitmentStatus


LIFECYCLE_WEIGHTS: Dict[LifecycleStage, float] = {
    LifecycleStage.START_UP: 1.15,
    LifecycleStage.ACTIVE: 1.0,
    LifecycleStage.FOLLOW_UP: 0.5,
    LifecycleStage.CLOSE_OUT: 0.25,
}

RECRUITMENT_WEIGHTS: Dict[RecruitmentStatus, float] = {
    RecruitmentStatus.ENROLLING: 1.0,
    RecruitmentStatus.PAUSED: 0.25,
    RecruitmentStatus.CLOSED_TO_ACCRUAL: 0.0,
    RecruitmentStatus.ON_HOLD: 0.0,
}


@dataclass(frozen=True)
class WorkloadSettings:
    """Tunable rules for the actuals window and the forecast drift bounds."""

    lookback_weeks: int = 4
    forecast_weeks: int = 4
    breakdown_lookback_weeks: int = 12
    screening_baseline_hours: float = 4.0
    query_baseline_hours: float = 3.0
    meeting_baseline_hours: float = 2.0
    meeting_points_per_hour: float = 4.0
    scale_min: float = 0.6
    scale_max: float = 1.8
    meeting_adjustment_bound: float = 40.0
    apportion_policy: ApportionPolicy = ApportionPolicy.EVEN_SPLIT
    lifecycle_weights: Dict[LifecycleStage, float] = field(
        default_factory=lambda: dict(LIFECYCLE_WEIGHTS)
    )
    recruitment_weights: Dict[RecruitmentStatus, float] = field(
        default_factory=lambda: dict(RECRUITMENT_WEIGHTS)
    )

    def __post_init__(self) -> None:
        if self.lookback_weeks <= 0:
            raise ValueError("lookback_weeks must be positive")
        if self.forecast_weeks <= 0:
            raise ValueError("forecast_weeks must be positive")
        if self.scale_min < 0 or self.scale_max < self.scale_min:
            raise ValueError("scale bounds must satisfy 0 <= scale_min <= scale_max")
        if self.meeting_adjustment_bound < 0:
            raise ValueError("meeting_adjustment_bound must be non-negative")
        for name in (
            "screening_baseline_hours",
            "query_baseline_hours",
        ):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")


DEFAULT_SETTINGS = WorkloadSettings()
