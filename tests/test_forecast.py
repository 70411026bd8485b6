import unittest

from factories import REFERENCE, make_assignment, make_entry, make_log, make_profile

from workload_engine import LifecycleStage, WorkloadSettings, aggregate_actuals, score_forecast, score_now


def actuals_for(log, settings=None):
    args = (REFERENCE, settings) if settings else (REFERENCE,)
    return aggregate_actuals([log], [make_assignment("coord-1", "study-a")], *args).get("study-a")


class TestForecaster(unittest.TestCase):
    def test_no_history_means_no_drift(self):
        profile = make_profile()
        forecast, drift = score_forecast(profile, None)

        self.assertEqual(forecast, score_now(profile))
        self.assertEqual(drift.screening_scale, 1.0)
        self.assertEqual(drift.query_scale, 1.0)
        self.assertEqual(drift.meeting_points_adjustment, 0.0)
        self.assertEqual(drift.meeting_admin_points_adjusted, 10.0)

    def test_scales_are_clamped_to_the_upper_bound(self):
        log = make_log(
            meeting=4,
            screening=8,
            query=6,
            breakdown=[make_entry("study-a", meeting=4, screening=8, query=6)],
        )
        forecast, drift = score_forecast(make_profile(), actuals_for(log))

        self.assertEqual(drift.screening_scale, 1.8)
        self.assertEqual(drift.query_scale, 1.8)
        self.assertAlmostEqual(drift.screening_multiplier_effective, 2.7)
        self.assertAlmostEqual(drift.query_multiplier_effective, 2.16)
        self.assertAlmostEqual(drift.meeting_admin_points_adjusted, 18.0)
        # 4 x 2.7 x 2.16 + 18
        self.assertAlmostEqual(forecast.raw, 41.328)

    def test_scales_are_clamped_to_the_lower_bound(self):
        log = make_log(meeting=2, screening=0.4, query=0.3)
        _, drift = score_forecast(make_profile(), actuals_for(log))

        self.assertEqual(drift.screening_scale, 0.6)
        self.assertEqual(drift.query_scale, 0.6)

    def test_meeting_adjustment_is_bounded(self):
        log = make_log(meeting=20, screening=4, query=3)
        _, drift = score_forecast(make_profile(), actuals_for(log))

        self.assertEqual(drift.meeting_points_adjustment, 40.0)
        self.assertEqual(drift.meeting_admin_points_adjusted, 50.0)

    def test_adjusted_meeting_points_never_go_negative(self):
        log = make_log(meeting=0, screening=4, query=3)
        _, drift = score_forecast(make_profile(meeting_admin_points=5.0), actuals_for(log))

        self.assertEqual(drift.meeting_points_adjustment, -8.0)
        self.assertEqual(drift.meeting_admin_points_adjusted, 0.0)

    def test_bounds_come_from_settings(self):
        settings = WorkloadSettings(scale_min=0.9, scale_max=1.1, meeting_adjustment_bound=4.0)
        log = make_log(meeting=20, screening=8, query=6)
        _, drift = score_forecast(make_profile(), actuals_for(log, settings), settings)

        self.assertEqual(drift.screening_scale, 1.1)
        self.assertEqual(drift.query_scale, 1.1)
        self.assertEqual(drift.meeting_points_adjustment, 4.0)

    def test_forecast_uses_the_same_weighting(self):
        profile = make_profile(lifecycle=LifecycleStage.CLOSE_OUT)
        forecast, _ = score_forecast(profile, None)
        self.assertAlmostEqual(forecast.weighted, 4.3)


if __name__ == "__main__":
    unittest.main()
