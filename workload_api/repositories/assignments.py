from __future__ import annotations

from typing import List

from workload_engine import Assignment

from .. import adapters
from ..db import fetch_all
from .queries import FETCH_ASSIGNMENTS, FETCH_COORDINATOR_ASSIGNMENTS


def fetch_assignments() -> List[Assignment]:
    return adapters.assignments(fetch_all(FETCH_ASSIGNMENTS, context="fetch_assignments"))


def fetch_coordinator_assignments(coordinator_id: str) -> List[Assignment]:
    rows = fetch_all(
        FETCH_COORDINATOR_ASSIGNMENTS,
        (coordinator_id,),
        context="fetch_coordinator_assignments",
    )
    return adapters.assignments(rows)
