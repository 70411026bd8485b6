from typing import Tuple

from .configuration import DEFAULT_SETTINGS, WorkloadSettings
from .errors import ValidationError
from .models import LifecycleStage, Points, RecruitmentStatus, StudyWorkloadProfile


def lifecycle_weight(
    stage: LifecycleStage, settings: WorkloadSettings = DEFAULT_SETTINGS
) -> float:
    if not isinstance(stage, LifecycleStage) or stage not in settings.lifecycle_weights:
        raise ValidationError(f"Invalid lifecycle stage {stage!r}", "lifecycle")
    return settings.lifecycle_weights[stage]


def recruitment_weight(
    status: RecruitmentStatus, settings: WorkloadSettings = DEFAULT_SETTINGS
) -> float:
    if not isinstance(status, RecruitmentStatus) or status not in settings.recruitment_weights:
        raise ValidationError(f"Invalid recruitment status {status!r}", "recruitment")
    return settings.recruitment_weights[status]


def stage_weights(
    profile: StudyWorkloadProfile, settings: WorkloadSettings = DEFAULT_SETTINGS
) -> Tuple[float, float]:
    return (
        lifecycle_weight(profile.lifecycle, settings),
        recruitment_weight(profile.recruitment, settings),
    )


def compute_baseline(
    protocol_score: float,
    screening_multiplier: float,
    query_multiplier: float,
    meeting_admin_points: float,
) -> float:
    """Unweighted workload points: protocol complexity times multipliers plus meeting load."""

    base = protocol_score * screening_multiplier * query_multiplier
    return base + meeting_admin_points


def weigh(
    baseline: float,
    profile: StudyWorkloadProfile,
    settings: WorkloadSettings = DEFAULT_SETTINGS,
) -> Points:
    """Apply the lifecycle and recruitment weights to any baseline figure.

    The same weighting produces the ``now``, ``actuals`` and ``forecast`` points.
    """

    lw, rw = stage_weights(profile, settings)
    return Points(raw=baseline, weighted=baseline * lw * rw)


def profile_baseline(profile: StudyWorkloadProfile) -> float:
    return compute_baseline(
        profile.protocol_score,
        profile.screening_multiplier,
        profile.query_multiplier,
        profile.meeting_admin_points,
    )


def score_now(
    profile: StudyWorkloadProfile, settings: WorkloadSettings = DEFAULT_SETTINGS
) -> Points:
    return weigh(profile_baseline(profile), profile, settings)
