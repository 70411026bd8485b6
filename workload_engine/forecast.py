from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .actuals import StudyActuals, observed_ratios
from .complexity import compute_baseline, weigh
from .configuration import DEFAULT_SETTINGS, WorkloadSettings
from .models import Points, StudyWorkloadProfile


@dataclass(frozen=True)
class ForecastDrift:
    """How far the forecast has moved from the static configuration."""

    screening_scale: float = 1.0
    query_scale: float = 1.0
    meeting_points_adjustment: float = 0.0
    screening_multiplier_effective: float = 1.0
    query_multiplier_effective: float = 1.0
    meeting_admin_points_adjusted: float = 0.0


def clamp(value: float, low: float, high: float) -> float:
    return min(high, max(low, value))


def compute_drift(
    profile: StudyWorkloadProfile,
    actuals: Optional[StudyActuals],
    settings: WorkloadSettings = DEFAULT_SETTINGS,
) -> ForecastDrift:
    """Bounded scale factors nudging the multipliers toward the observed ratios.

    Without actuals history there is no drift: scales stay at 1.0 and the
    meeting adjustment at 0, so the forecast equals ``now``.
    """

    if actuals is None or not actuals.has_history:
        return ForecastDrift(
            screening_multiplier_effective=profile.screening_multiplier,
            query_multiplier_effective=profile.query_multiplier,
            meeting_admin_points_adjusted=profile.meeting_admin_points,
        )

    screening_ratio, query_ratio, meeting_adjustment = observed_ratios(actuals, settings)
    screening_scale = clamp(screening_ratio, settings.scale_min, settings.scale_max)
    query_scale = clamp(query_ratio, settings.scale_min, settings.scale_max)
    bound = settings.meeting_adjustment_bound
    adjustment = clamp(meeting_adjustment, -bound, bound)

    return ForecastDrift(
        screening_scale=screening_scale,
        query_scale=query_scale,
        meeting_points_adjustment=adjustment,
        screening_multiplier_effective=profile.screening_multiplier * screening_scale,
        query_multiplier_effective=profile.query_multiplier * query_scale,
        meeting_admin_points_adjusted=max(0.0, profile.meeting_admin_points + adjustment),
    )


def forecast_baseline(profile: StudyWorkloadProfile, drift: ForecastDrift) -> float:
    return compute_baseline(
        profile.protocol_score,
        drift.screening_multiplier_effective,
        drift.query_multiplier_effective,
        drift.meeting_admin_points_adjusted,
    )


def score_forecast(
    profile: StudyWorkloadProfile,
    actuals: Optional[StudyActuals],
    settings: WorkloadSettings = DEFAULT_SETTINGS,
) -> tuple[Points, ForecastDrift]:
    drift = compute_drift(profile, actuals, settings)
    return weigh(forecast_baseline(profile, drift), profile, settings), drift
