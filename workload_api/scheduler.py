from __future__ import annotations

from datetime import datetime, timezone

from apscheduler.schedulers.background import BackgroundScheduler

from workload_engine import WorkloadError

from .config import get_cache_config
from .logging_config import get_logger
from .services.workload import refresh_snapshots

log = get_logger(__name__)

REFRESH_JOB_ID = "refresh_workload_snapshots"

# One scheduler per process; the API lifespan starts and stops it.
scheduler = BackgroundScheduler(daemon=True, timezone="UTC")


def run_refresh() -> None:
    try:
        result = refresh_snapshots()
    except WorkloadError as exc:
        log.error("SNAPSHOT_REFRESH_FAILED|error=%s", exc)
        return
    log.info("SNAPSHOT_REFRESH_DONE|refreshed=%d|excluded=%d", result.refreshed, len(result.excluded))


def compute_next_run_time(interval_minutes: int, now: datetime | None = None) -> datetime:
    """Align the first run to the next multiple of the interval since the epoch."""

    interval_seconds = interval_minutes * 60
    now = now or datetime.now(timezone.utc)
    cycles = int(now.timestamp()) // interval_seconds + 1
    return datetime.fromtimestamp(cycles * interval_seconds, tz=timezone.utc)


def start_scheduler() -> bool:
    """Schedule the snapshot refresh job. Returns ``False`` when refreshing is disabled."""

    config = get_cache_config()
    if not config.refresh_enabled:
        log.info("Snapshot refresh job disabled")
        return False

    next_run_time = compute_next_run_time(config.refresh_interval_minutes)
    scheduler.add_job(
        run_refresh,
        "interval",
        minutes=config.refresh_interval_minutes,
        id=REFRESH_JOB_ID,
        replace_existing=True,
        max_instances=1,
        misfire_grace_time=60 * 5,
        next_run_time=next_run_time,
    )
    if not scheduler.running:
        scheduler.start()
    log.info(
        "Scheduled '%s' every %d mins (next at %s)",
        REFRESH_JOB_ID,
        config.refresh_interval_minutes,
        next_run_time.isoformat(),
    )
    return True


def stop_scheduler() -> None:
    if scheduler.running:
        scheduler.shutdown(wait=False)
