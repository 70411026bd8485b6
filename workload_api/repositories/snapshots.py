"""PostgreSQL-backed snapshot cache."""
from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Dict, Mapping, Sequence

from workload_engine import CachedValue

from ..db import execute_transaction, fetch_all
from ..logging_config import get_logger
from .queries import EXPIRE_SNAPSHOTS, FETCH_SNAPSHOTS, UPSERT_SNAPSHOT

log = get_logger(__name__)


class PostgresSnapshotCache:
    """``study_workload_snapshots`` rows keyed by study id, one row per study."""

    def get_many(self, keys: Sequence[str]) -> Dict[str, CachedValue]:
        if not keys:
            return {}
        rows = fetch_all(FETCH_SNAPSHOTS, (list(keys),), context="fetch_snapshots")
        cached: Dict[str, CachedValue] = {}
        for row in rows:
            payload = row["payload"]
            # jsonb decodes to dict; a text column hands back the raw string.
            if isinstance(payload, str):
                payload = json.loads(payload)
            cached[str(row["study_id"])] = CachedValue(value=payload, expires_at=row["expires_at"])
        log.debug("SNAPSHOT_CACHE_READ|requested=%d|found=%d", len(keys), len(cached))
        return cached

    def put_many(self, values: Mapping[str, Any], computed_at: datetime, expires_at: datetime) -> None:
        params = [
            (study_id, json.dumps(payload), computed_at, expires_at)
            for study_id, payload in values.items()
        ]

        def work(cursor) -> None:
            cursor.executemany(UPSERT_SNAPSHOT, params)

        execute_transaction(work, context="upsert_snapshots")
        log.info("SNAPSHOT_CACHE_WRITE|studies=%d|expires_at=%s", len(params), expires_at.isoformat())

    def expire(self, keys: Sequence[str]) -> None:
        """Mark snapshots stale so the next read recomputes them."""

        if not keys:
            return

        def work(cursor) -> int:
            cursor.execute(EXPIRE_SNAPSHOTS, (list(keys),))
            return cursor.rowcount

        expired = execute_transaction(work, context="expire_snapshots")
        log.info("SNAPSHOT_CACHE_EXPIRED|requested=%d|expired=%d", len(keys), expired)
