"""Portfolio workload analytics: snapshots, trend series and coordinator loads."""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timezone
from typing import Dict, List, Optional, Sequence

from workload_engine import (
    Assignment,
    CoordinatorWeeklyLog,
    ExcludedStudy,
    UpstreamUnavailableError,
    WorkloadSettings,
    WorkloadSnapshot,
    allocate_loads,
    compute_portfolio,
    compute_trend_series,
    group_breakdown_rows,
    percent_change,
    pull_through,
    setup_completion,
    summarize_portfolio,
)
from workload_engine.weeks import monday_of, shift_weeks

from ..config import get_cache_config, get_engine_settings
from ..logging_config import get_logger
from ..models import (
    CoordinatorLoadModel,
    CoordinatorLoadsResponse,
    ExcludedStudyModel,
    PortfolioMeta,
    PortfolioSummaryModel,
    PortfolioWorkloadResponse,
    RefreshResponse,
    StudyShareModel,
    TrendPointModel,
    WorkloadSnapshotModel,
    WorkloadTrendResponse,
)
from ..repositories import assignments as assignment_repository
from ..repositories import coordinator_metrics, studies
from ..repositories.snapshots import PostgresSnapshotCache

log = get_logger(__name__)

UNAVAILABLE_WARNING = "Workload data is temporarily unavailable."
PERCENT_DIGITS = 1


@dataclass
class CachedPortfolio:
    snapshots: List[WorkloadSnapshot] = field(default_factory=list)
    excluded: List[ExcludedStudy] = field(default_factory=list)
    cache_hits: int = 0
    recomputed: int = 0


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _load_window(
    reference: date,
    settings: WorkloadSettings,
) -> tuple[List[CoordinatorWeeklyLog], List[Assignment]]:
    """Logs for the trailing window plus every assignment."""

    current = monday_of(reference)
    logs = coordinator_metrics.fetch_logs_between(shift_weeks(current, -settings.lookback_weeks), current)
    return logs, assignment_repository.fetch_assignments()


def _compute_studies(
    study_ids: Optional[Sequence[str]],
    reference: date,
    settings: WorkloadSettings,
):
    rows = studies.fetch_studies(study_ids)
    logs, assignments = _load_window(reference, settings)
    return compute_portfolio(rows, logs, assignments, reference, settings), logs, assignments


def _rehydrate(values: Dict[str, dict], study_ids: Sequence[str]) -> tuple[List[WorkloadSnapshot], List[str]]:
    snapshots: List[WorkloadSnapshot] = []
    unreadable: List[str] = []
    for study_id in study_ids:
        payload = values.get(study_id)
        if payload is None:
            continue
        try:
            snapshots.append(WorkloadSnapshot.from_dict(payload))
        except (KeyError, TypeError, ValueError) as exc:
            log.warning("SNAPSHOT_PAYLOAD_UNREADABLE|study_id=%s|error=%s", study_id, exc)
            unreadable.append(study_id)
    return snapshots, unreadable


def load_snapshots(
    force: bool = False,
    reference: Optional[date] = None,
    now: Optional[datetime] = None,
) -> CachedPortfolio:
    """Serve fresh cached snapshots and recompute stale or missing studies."""

    settings = get_engine_settings()
    cache_config = get_cache_config()
    now = now or _utcnow()
    reference = reference or now.date()

    excluded: List[ExcludedStudy] = []

    def compute(stale: List[str]) -> Dict[str, dict]:
        result, _, _ = _compute_studies(stale, reference, settings)
        excluded.extend(result.excluded)
        return {snapshot.study_id: snapshot.as_dict() for snapshot in result.snapshots}

    study_ids = studies.fetch_study_ids()
    cache = PostgresSnapshotCache()
    pulled = pull_through(
        cache,
        study_ids,
        compute,
        now,
        ttl=cache_config.ttl,
        force=force,
    )

    snapshots, unreadable = _rehydrate(pulled.values, study_ids)
    if unreadable:
        recomputed = compute(unreadable)
        try:
            cache.put_many(recomputed, now, now + cache_config.ttl)
        except UpstreamUnavailableError as exc:
            log.warning("SNAPSHOT_CACHE_WRITE_FAILED|studies=%d|error=%s", len(recomputed), exc)
        snapshots.extend(WorkloadSnapshot.from_dict(payload) for payload in recomputed.values())
        order = {study_id: idx for idx, study_id in enumerate(study_ids)}
        snapshots.sort(key=lambda snapshot: order.get(snapshot.study_id, len(order)))

    log.info(
        "PORTFOLIO_SNAPSHOTS|studies=%d|cache_hits=%d|recomputed=%d|excluded=%d",
        len(snapshots),
        pulled.cache_hits,
        pulled.recomputed + len(unreadable),
        len(excluded),
    )
    return CachedPortfolio(
        snapshots=snapshots,
        excluded=excluded,
        cache_hits=pulled.cache_hits,
        recomputed=pulled.recomputed + len(unreadable),
    )


def _excluded_models(excluded: Sequence[ExcludedStudy]) -> List[ExcludedStudyModel]:
    return [ExcludedStudyModel(study_id=item.study_id, reason=item.reason) for item in excluded]


def to_snapshot_model(snapshot: WorkloadSnapshot, breakdown: Optional[list] = None) -> WorkloadSnapshotModel:
    payload = snapshot.as_dict()
    payload["trend_pct"] = round(
        percent_change(snapshot.forecast.weighted, snapshot.actuals.weighted),
        PERCENT_DIGITS,
    )
    payload["setup_completion"] = setup_completion(snapshot)
    if breakdown is not None:
        payload["breakdown"] = [asdict(week) for week in breakdown]
    return WorkloadSnapshotModel.model_validate(payload)


def get_portfolio(
    include_breakdown: bool = False,
    force: bool = False,
    reference: Optional[date] = None,
) -> PortfolioWorkloadResponse:
    """Per-study snapshots, optionally with the weekly breakdown series for charts."""

    settings = get_engine_settings()
    now = _utcnow()
    reference = reference or now.date()

    try:
        portfolio = load_snapshots(force=force, reference=reference, now=now)
        series = {}
        if include_breakdown:
            since = shift_weeks(monday_of(reference), -settings.breakdown_lookback_weeks)
            rows = coordinator_metrics.fetch_breakdown_series_rows(
                [snapshot.study_id for snapshot in portfolio.snapshots],
                since,
            )
            series = group_breakdown_rows(rows)
    except UpstreamUnavailableError as exc:
        log.warning("PORTFOLIO_UNAVAILABLE|error=%s", exc)
        return PortfolioWorkloadResponse(warning=UNAVAILABLE_WARNING)

    summary = summarize_portfolio(portfolio.snapshots)
    return PortfolioWorkloadResponse(
        studies=[
            to_snapshot_model(
                snapshot,
                series.get(snapshot.study_id, []) if include_breakdown else None,
            )
            for snapshot in portfolio.snapshots
        ],
        excluded=_excluded_models(portfolio.excluded),
        summary=PortfolioSummaryModel(
            total_now=summary.total_now,
            total_actuals=summary.total_actuals,
            total_forecast=summary.total_forecast,
            trend_pct=round(summary.trend_pct, PERCENT_DIGITS),
            top_study_id=summary.top_study_id,
        ),
        meta=PortfolioMeta(
            generated_at=now,
            cache_hits=portfolio.cache_hits,
            recomputed=portfolio.recomputed,
            lookback_weeks=settings.lookback_weeks,
            forecast_weeks=settings.forecast_weeks,
        ),
    )


def get_trend(reference: Optional[date] = None) -> WorkloadTrendResponse:
    """Eight-week portfolio series: four trailing weeks of actuals, four weeks of forecast."""

    settings = get_engine_settings()
    reference = reference or _utcnow().date()

    try:
        result, logs, assignments = _compute_studies(None, reference, settings)
    except UpstreamUnavailableError as exc:
        log.warning("WORKLOAD_TREND_UNAVAILABLE|error=%s", exc)
        return WorkloadTrendResponse(warning=UNAVAILABLE_WARNING)

    points = compute_trend_series(result.profiles, result.snapshots, logs, assignments, reference, settings)
    return WorkloadTrendResponse(
        points=[
            TrendPointModel(
                week_start=point.week_start,
                actual_points=point.actual_points,
                forecast_points=point.forecast_points,
            )
            for point in points
        ]
    )


def get_coordinator_loads(force: bool = False) -> CoordinatorLoadsResponse:
    try:
        portfolio = load_snapshots(force=force)
        assignments = assignment_repository.fetch_assignments()
    except UpstreamUnavailableError as exc:
        log.warning("COORDINATOR_LOADS_UNAVAILABLE|error=%s", exc)
        return CoordinatorLoadsResponse(warning=UNAVAILABLE_WARNING)

    loads = allocate_loads(portfolio.snapshots, assignments)
    return CoordinatorLoadsResponse(
        coordinators=[
            CoordinatorLoadModel(
                coordinator_id=entry.coordinator_id,
                load=entry.load,
                baseline=entry.baseline,
                trend_pct=round(entry.trend_pct, PERCENT_DIGITS),
                band=entry.band.value,
                studies=entry.studies,
                shares=[StudyShareModel(**asdict(share)) for share in entry.shares],
            )
            for entry in loads
        ]
    )


def refresh_snapshots() -> RefreshResponse:
    """Recompute and store every study's snapshot regardless of expiry."""

    portfolio = load_snapshots(force=True)
    return RefreshResponse(
        refreshed=portfolio.recomputed,
        excluded=_excluded_models(portfolio.excluded),
    )
