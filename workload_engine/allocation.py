from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Set

from .banding import LoadBand, classify_load, percent_change
from .models import Assignment, WorkloadSnapshot


@dataclass(frozen=True)
class StudyShare:
    study_id: str
    divisor: int
    load: float
    baseline: float


@dataclass(frozen=True)
class CoordinatorLoad:
    coordinator_id: str
    load: float
    baseline: float
    trend_pct: float
    band: LoadBand
    shares: tuple = field(default_factory=tuple)

    @property
    def studies(self) -> int:
        return len(self.shares)


def share_divisors(assignments: Iterable[Assignment]) -> Dict[str, int]:
    """Number of distinct coordinators sharing each study."""

    members: Dict[str, Set[str]] = {}
    for assignment in assignments:
        members.setdefault(assignment.study_id, set()).add(assignment.coordinator_id)
    return {study_id: len(coordinators) for study_id, coordinators in members.items()}


def allocate_loads(
    snapshots: Iterable[WorkloadSnapshot],
    assignments: Iterable[Assignment],
) -> List[CoordinatorLoad]:
    """Split every study's weighted points evenly across its coordinators.

    Summing the shares of a study across all of its coordinators gives back the
    study's total points.
    """

    assignments = list(assignments)
    by_study: Mapping[str, WorkloadSnapshot] = {s.study_id: s for s in snapshots}
    divisors = share_divisors(assignments)

    studies_by_coordinator: Dict[str, List[str]] = {}
    for assignment in assignments:
        studies = studies_by_coordinator.setdefault(assignment.coordinator_id, [])
        if assignment.study_id not in studies:
            studies.append(assignment.study_id)

    loads: List[CoordinatorLoad] = []
    for coordinator_id, study_ids in studies_by_coordinator.items():
        shares = []
        for study_id in study_ids:
            snapshot = by_study.get(study_id)
            if snapshot is None:
                continue
            divisor = divisors.get(study_id, 1)
            shares.append(
                StudyShare(
                    study_id=study_id,
                    divisor=divisor,
                    load=snapshot.forecast.weighted / divisor,
                    baseline=snapshot.actuals.weighted / divisor,
                )
            )

        load = sum(share.load for share in shares)
        baseline = sum(share.baseline for share in shares)
        loads.append(
            CoordinatorLoad(
                coordinator_id=coordinator_id,
                load=load,
                baseline=baseline,
                trend_pct=percent_change(load, baseline),
                band=classify_load(load),
                shares=tuple(shares),
            )
        )

    loads.sort(key=lambda entry: (-entry.load, entry.coordinator_id))
    return loads
