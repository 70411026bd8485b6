"""Data access helpers for study workload settings."""
from __future__ import annotations

from typing import Dict, List, Optional, Sequence

from workload_engine import NotFoundError, StudyWorkloadProfile

from .. import adapters
from ..db import execute_transaction, fetch_all, fetch_one
from ..logging_config import get_logger
from .queries import (
    FETCH_STUDIES,
    FETCH_STUDIES_BY_ID,
    FETCH_STUDY,
    FETCH_STUDY_IDS,
    FETCH_VISIT_WEIGHTS,
    UPDATE_STUDY_SETTINGS,
    UPSERT_VISIT_WEIGHT,
)

log = get_logger(__name__)


def fetch_study(study_id: str) -> Optional[Dict[str, object]]:
    """Return the canonical settings row for one study, or ``None`` if it does not exist."""

    row = fetch_one(FETCH_STUDY, (study_id,), context="fetch_study")
    if row is None:
        return None
    weights = fetch_all(FETCH_VISIT_WEIGHTS, ([study_id],), context="fetch_visit_weights")
    return adapters.study_row(row, weights)


def fetch_studies(study_ids: Optional[Sequence[str]] = None) -> List[Dict[str, object]]:
    if study_ids is None:
        rows = fetch_all(FETCH_STUDIES, context="fetch_studies")
    elif not study_ids:
        return []
    else:
        rows = fetch_all(FETCH_STUDIES_BY_ID, (list(study_ids),), context="fetch_studies_by_id")

    ids = [str(row["study_id"]) for row in rows]
    weights = fetch_all(FETCH_VISIT_WEIGHTS, (ids,), context="fetch_visit_weights") if ids else []
    log.info("Retrieved %d study rows", len(rows))
    return adapters.study_rows(rows, weights)


def fetch_study_ids() -> List[str]:
    return [str(row["study_id"]) for row in fetch_all(FETCH_STUDY_IDS, context="fetch_study_ids")]


def update_study(profile: StudyWorkloadProfile) -> None:
    """Persist a validated profile and its visit weights in one transaction."""

    rubric = profile.rubric
    params = (
        profile.protocol_score,
        profile.screening_multiplier,
        profile.query_multiplier,
        profile.meeting_admin_points,
        profile.lifecycle.value,
        profile.recruitment.value,
        rubric.trial_type,
        rubric.phase,
        rubric.sponsor_type,
        rubric.visit_volume,
        rubric.procedural_intensity,
        rubric.notes,
        profile.study_id,
    )

    def work(cursor) -> None:
        cursor.execute(UPDATE_STUDY_SETTINGS, params)
        if cursor.rowcount == 0:
            raise NotFoundError(f"Study '{profile.study_id}' not found")
        for visit_type, weight in profile.visit_weights.items():
            cursor.execute(UPSERT_VISIT_WEIGHT, (profile.study_id, visit_type, weight))

    execute_transaction(work, context="update_study")
    log.info("STUDY_SETTINGS_SAVED|study_id=%s", profile.study_id)
