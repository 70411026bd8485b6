"""Business logic for per-study workload settings."""
from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, Iterable, List

from workload_engine import (
    DEFAULT_VISIT_WEIGHTS,
    NotFoundError,
    StudyWorkloadProfile,
    UpstreamUnavailableError,
    ValidationError,
    recommended_score,
    recommended_visit_weight,
)
from workload_engine.validation import build_profile, require_identifier

from ..logging_config import get_logger
from ..models import (
    RubricSelectionModel,
    StudyWorkloadSettings,
    StudyWorkloadSettingsUpdate,
    VisitWeightModel,
)
from ..repositories import studies
from ..repositories.snapshots import PostgresSnapshotCache

log = get_logger(__name__)

PATCHABLE_FIELDS = (
    "protocol_score",
    "screening_multiplier",
    "query_multiplier",
    "meeting_admin_points",
    "lifecycle",
    "recruitment",
)


def recommended_weights(visit_types: Iterable[str] = ()) -> Dict[str, float]:
    """Recommended weight for every default visit type plus ``visit_types``."""

    types = set(DEFAULT_VISIT_WEIGHTS) | set(visit_types)
    return {visit_type: recommended_visit_weight(visit_type) for visit_type in sorted(types)}


def to_weight_models(weights: Dict[str, float]) -> List[VisitWeightModel]:
    return [VisitWeightModel(visit_type=visit_type, weight=weight) for visit_type, weight in sorted(weights.items())]


def to_settings_model(profile: StudyWorkloadProfile) -> StudyWorkloadSettings:
    return StudyWorkloadSettings(
        study_id=profile.study_id,
        protocol_number=profile.protocol_number,
        study_title=profile.study_title,
        status=profile.status,
        protocol_score=profile.protocol_score,
        screening_multiplier=profile.screening_multiplier,
        query_multiplier=profile.query_multiplier,
        meeting_admin_points=profile.meeting_admin_points,
        lifecycle=profile.lifecycle.value,
        recruitment=profile.recruitment.value,
        rubric=RubricSelectionModel(**asdict(profile.rubric)),
        recommended_score=recommended_score(profile.rubric),
        visit_weights=to_weight_models(profile.visit_weights),
        recommended_visit_weights=to_weight_models(recommended_weights(profile.visit_weights)),
    )


def _load_row(study_id: str) -> Dict[str, Any]:
    row = studies.fetch_study(study_id)
    if row is None:
        raise NotFoundError(f"Study '{study_id}' not found")
    return row


def get_settings(study_id: str) -> StudyWorkloadSettings:
    """Return the stored workload profile for ``study_id``."""

    study_id = require_identifier(study_id, "study_id")
    return to_settings_model(build_profile(_load_row(study_id)))


def merge_update(row: Dict[str, Any], update: StudyWorkloadSettingsUpdate) -> Dict[str, Any]:
    """Overlay the fields present in ``update`` on a stored row."""

    patch = update.model_dump(exclude_unset=True)
    merged = dict(row)

    for field in PATCHABLE_FIELDS:
        if field not in patch:
            continue
        if patch[field] is None:
            raise ValidationError(f"{field} cannot be null; omit it to keep the stored value", field)
        merged[field] = patch[field]

    rubric = patch.get("rubric")
    if rubric:
        for axis, value in rubric.items():
            merged[f"rubric_{axis}"] = value

    weights = dict(merged.get("visit_weights") or {})
    if patch.get("reset_visit_weights"):
        weights = recommended_weights(weights)
        log.info("VISIT_WEIGHTS_RESET|study_id=%s|types=%d", row.get("study_id"), len(weights))

    for entry in patch.get("visit_weights") or ():
        if "weight" in entry and entry["weight"] is None:
            raise ValidationError(f"visit weight for {entry['visit_type']!r} cannot be null", "visit_weights")
        weights[entry["visit_type"]] = entry.get("weight", recommended_visit_weight(entry["visit_type"]))
    merged["visit_weights"] = weights

    return merged


def update_settings(study_id: str, update: StudyWorkloadSettingsUpdate) -> StudyWorkloadSettings:
    """Validate and persist a partial settings update, then expire the study's snapshot."""

    study_id = require_identifier(study_id, "study_id")
    profile = build_profile(merge_update(_load_row(study_id), update))
    studies.update_study(profile)

    try:
        PostgresSnapshotCache().expire([study_id])
    except UpstreamUnavailableError as exc:
        # The snapshot still expires on its own once its TTL passes.
        log.warning("SNAPSHOT_EXPIRE_FAILED|study_id=%s|error=%s", study_id, exc)

    return to_settings_model(profile)
