import unittest

from factories import make_assignment, make_profile

from workload_engine import LoadBand, allocate_loads, build_snapshot
from workload_engine.allocation import share_divisors


def snapshot_worth(study_id, points):
    """Snapshot whose now and forecast are ``points`` and whose actuals are 0."""
    profile = make_profile(
        study_id=study_id,
        protocol_score=points,
        screening_multiplier=1.0,
        query_multiplier=1.0,
        meeting_admin_points=0.0,
    )
    return build_snapshot(profile, None)


class TestLoadAllocator(unittest.TestCase):
    def test_sole_coordinators_carry_their_whole_study(self):
        snapshots = [snapshot_worth("study-a", 100), snapshot_worth("study-b", 100)]
        assignments = [
            make_assignment("coord-1", "study-a"),
            make_assignment("coord-2", "study-b"),
        ]

        loads = {entry.coordinator_id: entry for entry in allocate_loads(snapshots, assignments)}

        self.assertEqual(loads["coord-1"].load, 100)
        self.assertEqual(loads["coord-2"].load, 100)
        self.assertEqual(loads["coord-1"].shares[0].divisor, 1)

    def test_shared_study_is_split(self):
        snapshots = [snapshot_worth("study-a", 100)]
        assignments = [
            make_assignment("coord-1", "study-a"),
            make_assignment("coord-2", "study-a"),
        ]

        loads = allocate_loads(snapshots, assignments)

        self.assertEqual([entry.load for entry in loads], [50, 50])
        self.assertEqual(loads[0].shares[0].divisor, 2)

    def test_shares_sum_back_to_study_points(self):
        snapshots = [snapshot_worth("study-a", 97.3), snapshot_worth("study-b", 41.0)]
        assignments = [
            make_assignment("coord-1", "study-a"),
            make_assignment("coord-2", "study-a"),
            make_assignment("coord-3", "study-a"),
            make_assignment("coord-3", "study-b"),
        ]

        loads = allocate_loads(snapshots, assignments)

        study_a_total = sum(
            share.load for entry in loads for share in entry.shares if share.study_id == "study-a"
        )
        self.assertAlmostEqual(study_a_total, 97.3)

    def test_duplicate_assignment_rows_count_once(self):
        assignments = [
            make_assignment("coord-1", "study-a"),
            make_assignment("coord-1", "study-a"),
            make_assignment("coord-2", "study-a"),
        ]
        self.assertEqual(share_divisors(assignments), {"study-a": 2})

        loads = allocate_loads([snapshot_worth("study-a", 80)], assignments)
        self.assertEqual(loads[0].studies, 1)
        self.assertEqual(loads[0].load, 40)

    def test_sorted_by_load_descending_and_banded(self):
        snapshots = [snapshot_worth("study-a", 320), snapshot_worth("study-b", 160)]
        assignments = [
            make_assignment("coord-2", "study-b"),
            make_assignment("coord-1", "study-a"),
        ]

        loads = allocate_loads(snapshots, assignments)

        self.assertEqual([entry.coordinator_id for entry in loads], ["coord-1", "coord-2"])
        self.assertEqual(loads[0].band, LoadBand.CRITICAL)
        self.assertEqual(loads[1].band, LoadBand.ELEVATED)

    def test_zero_baseline_trend_is_zero(self):
        loads = allocate_loads([snapshot_worth("study-a", 50)], [make_assignment("coord-1", "study-a")])
        self.assertEqual(loads[0].baseline, 0)
        self.assertEqual(loads[0].trend_pct, 0.0)

    def test_assignment_to_unscored_study_is_ignored(self):
        loads = allocate_loads([], [make_assignment("coord-1", "study-x")])
        self.assertEqual(loads[0].load, 0)
        self.assertEqual(loads[0].studies, 0)


if __name__ == "__main__":
    unittest.main()
