import math
import unittest
from datetime import date

from factories import make_study_row

from workload_engine import LifecycleStage, RecruitmentStatus, ValidationError
from workload_engine.validation import (
    build_assignment,
    build_profile,
    build_weekly_log,
    require_count,
    require_non_negative,
)
from workload_engine.weeks import parse_week_start


class TestNumbers(unittest.TestCase):
    def test_accepts_numbers_and_numeric_strings(self):
        self.assertEqual(require_non_negative(3, "x"), 3.0)
        self.assertEqual(require_non_negative("2.5", "x"), 2.5)
        self.assertEqual(require_non_negative(0, "x"), 0.0)

    def test_rejects_bad_numbers(self):
        for value in (-0.5, "-1", math.nan, math.inf, True, "abc", "", None, [1]):
            with self.subTest(value=value):
                with self.assertRaises(ValidationError):
                    require_non_negative(value, "hours")

    def test_counts_must_be_whole(self):
        self.assertEqual(require_count(None, "count"), 0)
        self.assertEqual(require_count("3", "count"), 3)
        with self.assertRaises(ValidationError):
            require_count(1.5, "count")


class TestProfile(unittest.TestCase):
    def test_builds_with_defaults(self):
        profile = build_profile(
            make_study_row(screening_multiplier=None, query_multiplier=None, meeting_admin_points=None)
        )

        self.assertEqual(profile.lifecycle, LifecycleStage.ACTIVE)
        self.assertEqual(profile.recruitment, RecruitmentStatus.ENROLLING)
        self.assertEqual(profile.screening_multiplier, 1.0)
        self.assertEqual(profile.query_multiplier, 1.0)
        self.assertEqual(profile.meeting_admin_points, 0.0)

    def test_enum_strings_are_normalized(self):
        profile = build_profile(make_study_row(lifecycle=" Start_Up ", recruitment="ON_HOLD"))
        self.assertEqual(profile.lifecycle, LifecycleStage.START_UP)
        self.assertEqual(profile.recruitment, RecruitmentStatus.ON_HOLD)

    def test_unknown_enums_are_rejected(self):
        with self.assertRaises(ValidationError) as ctx:
            build_profile(make_study_row(recruitment="recruiting"))
        self.assertEqual(ctx.exception.field, "recruitment")

    def test_unknown_rubric_option_is_rejected(self):
        with self.assertRaises(ValidationError):
            build_profile(make_study_row(rubric_phase="phase_iv"))

    def test_visit_weights_accept_list_or_mapping(self):
        listed = build_profile(make_study_row(visit_weights=[{"visit_type": "screening", "weight": 2}]))
        mapped = build_profile(make_study_row(visit_weights={"screening": "2"}))

        self.assertEqual(listed.visit_weights, {"screening": 2.0})
        self.assertEqual(mapped.visit_weight("screening"), 2.0)
        self.assertEqual(mapped.visit_weight("follow_up"), 1.0)

    def test_negative_visit_weight_is_rejected(self):
        with self.assertRaises(ValidationError):
            build_profile(make_study_row(visit_weights={"screening": -1}))


class TestWeeklyLog(unittest.TestCase):
    def test_week_start_is_normalized_to_monday(self):
        self.assertEqual(parse_week_start("2024-06-12"), date(2024, 6, 10))
        self.assertEqual(parse_week_start("2024-06-10T08:00:00Z"), date(2024, 6, 10))

    def test_bad_week_start(self):
        for raw in ("12/06/2024", None):
            with self.subTest(raw=raw):
                with self.assertRaises(ValidationError) as ctx:
                    build_weekly_log("coord-1", raw, {})
                self.assertEqual(ctx.exception.field, "week_start")

    def test_breakdown_may_not_exceed_totals(self):
        with self.assertRaises(ValidationError) as ctx:
            build_weekly_log(
                "coord-1",
                "2024-06-03",
                {"screening_hours": 4},
                [
                    {"study_id": "study-a", "screening_hours": 3},
                    {"study_id": "study-b", "screening_hours": 1.5},
                ],
            )
        self.assertEqual(ctx.exception.field, "screening_hours")

    def test_study_listed_twice_in_breakdown_is_rejected(self):
        with self.assertRaises(ValidationError) as ctx:
            build_weekly_log(
                "coord-1",
                "2024-06-03",
                {"screening_hours": 4},
                [
                    {"study_id": "study-a", "screening_hours": 1},
                    {"study_id": "study-a", "screening_hours": 2},
                ],
            )
        self.assertEqual(ctx.exception.field, "breakdown[1].study_id")

    def test_empty_duplicate_row_is_ignored(self):
        entry = build_weekly_log(
            "coord-1",
            "2024-06-03",
            {"screening_hours": 4},
            [{"study_id": "study-a", "screening_hours": 1}, {"study_id": "study-a"}],
        )
        self.assertEqual([item.study_id for item in entry.breakdown], ["study-a"])

    def test_breakdown_within_tolerance_is_accepted(self):
        entry = build_weekly_log(
            "coord-1",
            "2024-06-03",
            {"meeting_hours": 4},
            [{"study_id": "study-a", "meeting_hours": 4.005}],
        )
        self.assertTrue(entry.has_breakdown)

    def test_empty_breakdown_entries_are_dropped(self):
        entry = build_weekly_log(
            "coord-1",
            "2024-06-05",
            {"query_hours": 2, "query_study_count": 1},
            [
                {"study_id": "study-a", "query_hours": 2},
                {"study_id": "study-b", "notes": "  "},
            ],
        )

        self.assertEqual(entry.week_start, date(2024, 6, 3))
        self.assertEqual([item.study_id for item in entry.breakdown], ["study-a"])

    def test_negative_hours_are_rejected(self):
        with self.assertRaises(ValidationError):
            build_weekly_log("coord-1", "2024-06-03", {"meeting_hours": -1})

    def test_breakdown_requires_study(self):
        with self.assertRaises(ValidationError):
            build_weekly_log("coord-1", "2024-06-03", {"meeting_hours": 1}, [{"meeting_hours": 1}])


class TestAssignment(unittest.TestCase):
    def test_parses_iso_timestamp(self):
        assignment = build_assignment(
            {"id": 7, "coordinator_id": "coord-1", "study_id": "study-a", "joined_at": "2024-06-01T10:00:00Z"}
        )
        self.assertEqual(assignment.id, "7")
        self.assertEqual(assignment.joined_at.date(), date(2024, 6, 1))

    def test_rejects_bad_timestamp(self):
        with self.assertRaises(ValidationError):
            build_assignment({"id": 1, "coordinator_id": "c", "study_id": "s", "joined_at": "soon"})


if __name__ == "__main__":
    unittest.main()
