"""Translate storage rows and request payloads into engine inputs.

Rows may arrive in snake_case (database) or camelCase (older clients and
cached JSON); everything leaving this module uses the engine's snake_case
field names.
"""
from __future__ import annotations

import re
from datetime import date
from typing import Any, Dict, Iterable, List, Mapping, Tuple

from workload_engine import Assignment, CoordinatorWeeklyLog, ValidationError
from workload_engine.validation import build_assignment, build_weekly_log
from workload_engine.weeks import parse_week_start

from .logging_config import get_logger

log = get_logger(__name__)

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")

# Storage column names that differ from the engine's field names.
STUDY_ALIASES = {"id": "study_id"}


def to_snake(key: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", key).lower()


def canonicalize(payload: Any) -> Any:
    """Recursively rewrite mapping keys to snake_case."""

    if isinstance(payload, Mapping):
        return {to_snake(str(key)): canonicalize(value) for key, value in payload.items()}
    if isinstance(payload, list):
        return [canonicalize(item) for item in payload]
    return payload


def _apply_aliases(row: Dict[str, Any], aliases: Mapping[str, str]) -> Dict[str, Any]:
    for source, target in aliases.items():
        if source in row and target not in row:
            row[target] = row.pop(source)
    return row


def study_row(row: Mapping[str, Any], visit_weights: Iterable[Mapping[str, Any]] = ()) -> Dict[str, Any]:
    """Canonical study row with its visit weights attached as ``{visit_type: weight}``."""

    canonical = _apply_aliases(canonicalize(row), STUDY_ALIASES)
    weights = {}
    for entry in visit_weights:
        entry = canonicalize(entry)
        weights[entry.get("visit_type")] = entry.get("weight")
    if weights:
        canonical["visit_weights"] = weights
    return canonical


def study_rows(
    rows: Iterable[Mapping[str, Any]],
    visit_weight_rows: Iterable[Mapping[str, Any]] = (),
) -> List[Dict[str, Any]]:
    weights_by_study: Dict[Any, List[Mapping[str, Any]]] = {}
    for entry in visit_weight_rows:
        entry = canonicalize(entry)
        weights_by_study.setdefault(entry.get("study_id"), []).append(entry)

    result = []
    for row in rows:
        canonical = _apply_aliases(canonicalize(row), STUDY_ALIASES)
        result.append(study_row(canonical, weights_by_study.get(canonical.get("study_id"), [])))
    return result


def _log_key(row: Mapping[str, Any]) -> Tuple[str, date]:
    return str(row.get("coordinator_id")), parse_week_start(row.get("week_start"))


def weekly_logs(
    rows: Iterable[Mapping[str, Any]],
    breakdown_rows: Iterable[Mapping[str, Any]] = (),
) -> List[CoordinatorWeeklyLog]:
    """Join ``coordinator_metrics`` rows with their per-study breakdown rows."""

    breakdown: Dict[Tuple[str, date], List[Dict[str, Any]]] = {}
    for entry in breakdown_rows:
        entry = canonicalize(entry)
        breakdown.setdefault(_log_key(entry), []).append(entry)

    logs = []
    for row in rows:
        row = canonicalize(row)
        try:
            logs.append(
                build_weekly_log(
                    coordinator_id=row.get("coordinator_id"),
                    week_start=row.get("week_start"),
                    totals=row,
                    breakdown=breakdown.get(_log_key(row), []),
                    recorded_by=row.get("recorded_by"),
                    updated_at=row.get("updated_at"),
                )
            )
        except ValidationError as exc:
            log.warning(
                "WEEKLY_LOG_SKIPPED|coordinator_id=%s|week_start=%s|reason=%s",
                row.get("coordinator_id"),
                row.get("week_start"),
                exc,
            )
    return logs


def assignments(rows: Iterable[Mapping[str, Any]]) -> List[Assignment]:
    return [build_assignment(canonicalize(row)) for row in rows]
