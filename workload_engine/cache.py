"""Snapshot cache contract and the pull-through policy.

The scoring code never touches the cache. Callers hand ``pull_through`` a
cache collaborator and a compute function; only stale or missing keys are
recomputed and written back.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Mapping, Protocol, Sequence

from .errors import UpstreamUnavailableError

log = logging.getLogger(__name__)

DEFAULT_TTL = timedelta(minutes=5)


@dataclass(frozen=True)
class CachedValue:
    value: Any
    expires_at: datetime

    def is_fresh(self, now: datetime) -> bool:
        return self.expires_at > now


class SnapshotCache(Protocol):
    def get_many(self, keys: Sequence[str]) -> Mapping[str, CachedValue]:
        ...

    def put_many(self, values: Mapping[str, Any], computed_at: datetime, expires_at: datetime) -> None:
        ...


@dataclass
class PullThroughResult:
    values: Dict[str, Any] = field(default_factory=dict)
    cache_hits: int = 0
    recomputed: int = 0


def pull_through(
    cache: SnapshotCache,
    keys: Sequence[str],
    compute: Callable[[List[str]], Mapping[str, Any]],
    now: datetime,
    ttl: timedelta = DEFAULT_TTL,
    force: bool = False,
) -> PullThroughResult:
    """Serve fresh cached values and recompute the rest.

    A cache read failure marks every key stale; a write failure is logged and
    the freshly computed values are still returned.
    """

    result = PullThroughResult()
    cached: Mapping[str, CachedValue] = {}
    if not force and keys:
        try:
            cached = cache.get_many(keys)
        except UpstreamUnavailableError as exc:
            log.warning("SNAPSHOT_CACHE_READ_FAILED|keys=%d|error=%s", len(keys), exc)
            cached = {}

    stale: List[str] = []
    for key in keys:
        entry = cached.get(key)
        if entry is not None and entry.is_fresh(now):
            result.values[key] = entry.value
            result.cache_hits += 1
        else:
            stale.append(key)

    if not stale:
        return result

    computed = dict(compute(stale))
    result.values.update(computed)
    result.recomputed = len(computed)

    if computed:
        try:
            cache.put_many(computed, now, now + ttl)
        except UpstreamUnavailableError as exc:
            log.warning("SNAPSHOT_CACHE_WRITE_FAILED|keys=%d|error=%s", len(computed), exc)

    return result
