"""Classification and formatting helpers for the dashboard."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Tuple

from .models import WorkloadSnapshot


class LoadBand(Enum):
    BALANCED = "Balanced"
    ELEVATED = "Elevated"
    HIGH = "High"
    CRITICAL = "Critical"


# Inclusive lower bounds, highest first.
LOAD_BAND_THRESHOLDS: Tuple[Tuple[float, LoadBand], ...] = (
    (300.0, LoadBand.CRITICAL),
    (220.0, LoadBand.HIGH),
    (150.0, LoadBand.ELEVATED),
)

SETUP_CHECKPOINTS = 8
SETUP_COMPLETION_FLOOR = 10.0


def classify_load(points: float) -> LoadBand:
    for threshold, band in LOAD_BAND_THRESHOLDS:
        if points >= threshold:
            return band
    return LoadBand.BALANCED


def percent_change(current: float, baseline: float) -> float:
    """``(current - baseline) / baseline * 100``, or 0 when the baseline is not positive."""

    if baseline <= 0:
        return 0.0
    return (current - baseline) / baseline * 100


def setup_completion(snapshot: WorkloadSnapshot) -> float:
    metrics = snapshot.metrics
    checkpoints = [
        snapshot.protocol_score > 0,
        snapshot.meeting_admin_points > 0,
        snapshot.screening_multiplier != 1,
        snapshot.query_multiplier != 1,
        metrics.contributors > 0,
        metrics.avg_screening_hours > 0,
        metrics.avg_query_hours > 0,
        metrics.avg_meeting_hours > 0,
    ]
    pct = sum(1 for passed in checkpoints if passed) / SETUP_CHECKPOINTS * 100
    return min(100.0, max(SETUP_COMPLETION_FLOOR, pct))


@dataclass(frozen=True)
class PortfolioSummary:
    total_now: float
    total_actuals: float
    total_forecast: float
    trend_pct: float
    top_study_id: Optional[str]


def portfolio_trend(snapshots: Iterable[WorkloadSnapshot]) -> float:
    snapshots = list(snapshots)
    total_actuals = sum(s.actuals.weighted for s in snapshots)
    total_forecast = sum(s.forecast.weighted for s in snapshots)
    return percent_change(total_forecast, total_actuals)


def summarize_portfolio(snapshots: Iterable[WorkloadSnapshot]) -> PortfolioSummary:
    snapshots = list(snapshots)
    top = max(snapshots, key=lambda s: s.forecast.weighted, default=None)
    return PortfolioSummary(
        total_now=sum(s.now.weighted for s in snapshots),
        total_actuals=sum(s.actuals.weighted for s in snapshots),
        total_forecast=sum(s.forecast.weighted for s in snapshots),
        trend_pct=portfolio_trend(snapshots),
        top_study_id=top.study_id if top else None,
    )
