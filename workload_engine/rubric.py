"""Protocol complexity rubric.

Five independent axes, each with a small fixed option table. The recommended
baseline score is the sum of the selected options' points. It is only a
suggestion; callers decide whether to copy it into ``protocol_score``.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from .errors import ValidationError
from .models import RubricSelection


@dataclass(frozen=True)
class RubricOption:
    value: str
    label: str
    points: int


@dataclass(frozen=True)
class RubricAxis:
    name: str
    label: str
    options: Tuple[RubricOption, ...]

    @property
    def default(self) -> RubricOption:
        return self.options[0]

    def lookup(self, value: Optional[str]) -> RubricOption:
        if value is None or (isinstance(value, str) and not value.strip()):
            return self.default
        for option in self.options:
            if option.value == value:
                return option
        raise ValidationError(f"Unknown {self.label} option {value!r}", self.name)

    @property
    def max_points(self) -> int:
        return max(option.points for option in self.options)


# Options are ordered lowest-scoring first so the first entry is the default.
RUBRIC_AXES: Tuple[RubricAxis, ...] = (
    RubricAxis(
        name="trial_type",
        label="trial type",
        options=(
            RubricOption("observational", "Observational / Registry", 0),
            RubricOption("interventional_low", "Interventional (Low Intensity)", 1),
            RubricOption("interventional_high", "Interventional (High Intensity)", 2),
        ),
    ),
    RubricAxis(
        name="phase",
        label="phase",
        options=(
            RubricOption("phase_other", "Other / Not Applicable", 0),
            RubricOption("phase_late", "Phase II / III", 1),
            RubricOption("phase_early", "Phase I / FIH", 2),
        ),
    ),
    RubricAxis(
        name="sponsor_type",
        label="sponsor type",
        options=(
            RubricOption("academic", "Academic / Cooperative Group", 0),
            RubricOption("investigator", "Investigator Initiated", 0),
            RubricOption("industry", "Industry-Sponsored", 1),
        ),
    ),
    RubricAxis(
        name="visit_volume",
        label="visit volume",
        options=(
            RubricOption("low", "<= 3 visits per participant", 0),
            RubricOption("moderate", "4-7 visits per participant", 1),
            RubricOption("high", ">= 8 visits per participant", 2),
        ),
    ),
    RubricAxis(
        name="procedural_intensity",
        label="procedural intensity",
        options=(
            RubricOption("low", "Low (remote follow-up, data only)", 0),
            RubricOption("moderate", "Moderate (labs, vitals, questionnaires)", 1),
            RubricOption("high", "High (imaging, biopsies, IP infusion)", 2),
        ),
    ),
)

MAX_RECOMMENDED_SCORE = sum(axis.max_points for axis in RUBRIC_AXES)


def selected_options(selection: RubricSelection) -> Dict[str, RubricOption]:
    """Resolve each axis to its chosen option, defaulting absent selections."""

    return {axis.name: axis.lookup(getattr(selection, axis.name)) for axis in RUBRIC_AXES}


def validate_rubric(selection: RubricSelection) -> RubricSelection:
    selected_options(selection)
    return selection


def recommended_score(selection: RubricSelection) -> float:
    return float(sum(option.points for option in selected_options(selection).values()))
