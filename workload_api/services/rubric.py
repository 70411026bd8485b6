from __future__ import annotations

from dataclasses import asdict

from workload_engine import DEFAULT_VISIT_WEIGHTS, RUBRIC_AXES, RubricSelection, recommended_score
from workload_engine.rubric import MAX_RECOMMENDED_SCORE, selected_options

from ..models import (
    RubricAxisModel,
    RubricOptionModel,
    RubricResponse,
    RubricScoreResponse,
    RubricSelectionModel,
    VisitWeightModel,
)


def get_rubric() -> RubricResponse:
    return RubricResponse(
        axes=[
            RubricAxisModel(
                name=axis.name,
                label=axis.label,
                options=[RubricOptionModel(**asdict(option)) for option in axis.options],
            )
            for axis in RUBRIC_AXES
        ],
        max_score=float(MAX_RECOMMENDED_SCORE),
        default_visit_weights=[
            VisitWeightModel(visit_type=visit_type, weight=weight)
            for visit_type, weight in sorted(DEFAULT_VISIT_WEIGHTS.items())
        ],
    )


def score_rubric(payload: RubricSelectionModel) -> RubricScoreResponse:
    """Suggest a protocol score. Nothing is stored; absent axes use their lowest option."""

    selection = RubricSelection(**payload.model_dump())
    options = selected_options(selection)
    return RubricScoreResponse(
        selection={name: option.value for name, option in options.items()},
        recommended_score=recommended_score(selection),
    )
