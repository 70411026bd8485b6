import unittest
from datetime import date, timedelta
from unittest.mock import MagicMock, patch

from factories import REFERENCE, make_assignment, make_log, make_profile, make_study_row, utc

from workload_api.models import StudyWorkloadSettingsUpdate, WeeklyLogSubmission
from workload_api.services import metrics as metrics_service
from workload_api.services import settings as settings_service
from workload_api.services import workload as workload_service
from workload_engine import (
    CachedValue,
    LoadBand,
    NotFoundError,
    UpstreamUnavailableError,
    ValidationError,
    build_snapshot,
)

NOW = utc(2024, 6, 12, 12)


class WorkloadServiceCase(unittest.TestCase):
    """Patches the repositories the workload service reads from."""

    def setUp(self):
        self.cache = MagicMock()
        self.cache.get_many.return_value = {}
        patches = {
            "fetch_study_ids": patch(
                "workload_api.services.workload.studies.fetch_study_ids", return_value=["study-a"]
            ),
            "fetch_studies": patch(
                "workload_api.services.workload.studies.fetch_studies", return_value=[make_study_row()]
            ),
            "fetch_logs": patch(
                "workload_api.services.workload.coordinator_metrics.fetch_logs_between", return_value=[]
            ),
            "fetch_assignments": patch(
                "workload_api.services.workload.assignment_repository.fetch_assignments",
                return_value=[make_assignment("coord-1", "study-a"), make_assignment("coord-2", "study-a")],
            ),
            "cache_cls": patch("workload_api.services.workload.PostgresSnapshotCache", return_value=self.cache),
            "utcnow": patch("workload_api.services.workload._utcnow", return_value=NOW),
        }
        self.mocks = {}
        for name, patcher in patches.items():
            self.mocks[name] = patcher.start()
            self.addCleanup(patcher.stop)


class TestPortfolio(WorkloadServiceCase):
    def test_computes_and_caches_missing_snapshots(self):
        response = workload_service.get_portfolio(reference=REFERENCE)

        self.assertIsNone(response.warning)
        self.assertEqual([study.study_id for study in response.studies], ["study-a"])
        self.assertAlmostEqual(response.studies[0].now.weighted, 17.2)
        self.assertIsNone(response.studies[0].breakdown)
        self.assertEqual(response.meta.recomputed, 1)
        self.assertEqual(response.meta.cache_hits, 0)
        self.assertAlmostEqual(response.summary.total_forecast, 17.2)
        self.cache.put_many.assert_called_once()

        self.mocks["fetch_studies"].assert_called_once_with(["study-a"])
        start, end = self.mocks["fetch_logs"].call_args.args
        self.assertEqual((start, end), (date(2024, 5, 13), date(2024, 6, 10)))

    def test_fresh_cache_entries_skip_computation(self):
        snapshot = build_snapshot(make_profile(), None)
        self.cache.get_many.return_value = {
            "study-a": CachedValue(snapshot.as_dict(), NOW + timedelta(minutes=1)),
        }

        response = workload_service.get_portfolio(reference=REFERENCE)

        self.mocks["fetch_studies"].assert_not_called()
        self.assertEqual(response.meta.cache_hits, 1)
        self.assertAlmostEqual(response.studies[0].forecast.weighted, 17.2)

    def test_unreadable_cached_payload_is_recomputed(self):
        self.cache.get_many.return_value = {"study-a": CachedValue({"bogus": 1}, NOW + timedelta(minutes=1))}

        response = workload_service.get_portfolio(reference=REFERENCE)

        self.mocks["fetch_studies"].assert_called_once_with(["study-a"])
        self.assertEqual(len(response.studies), 1)
        self.assertEqual(response.meta.recomputed, 1)
        values, computed_at, expires_at = self.cache.put_many.call_args.args
        self.assertEqual(list(values), ["study-a"])
        self.assertEqual(values["study-a"]["study_id"], "study-a")
        self.assertEqual(computed_at, NOW)
        self.assertGreater(expires_at, NOW)

    def test_unreadable_payload_write_back_failure_still_serves(self):
        self.cache.get_many.return_value = {"study-a": CachedValue({"bogus": 1}, NOW + timedelta(minutes=1))}
        self.cache.put_many.side_effect = UpstreamUnavailableError("down")

        response = workload_service.get_portfolio(reference=REFERENCE)

        self.assertIsNone(response.warning)
        self.assertEqual([study.study_id for study in response.studies], ["study-a"])
        self.cache.put_many.assert_called_once()

    @patch("workload_api.services.workload.coordinator_metrics.fetch_breakdown_series_rows")
    def test_breakdown_is_attached_when_requested(self, mock_series):
        mock_series.return_value = [
            {
                "study_id": "study-a",
                "coordinator_id": "coord-1",
                "week_start": date(2024, 6, 3),
                "meeting_hours": 1.0,
                "screening_hours": 2.0,
                "query_hours": 0.0,
                "total_hours": 3.0,
                "note_entries": 0,
                "last_updated_at": None,
            }
        ]

        response = workload_service.get_portfolio(include_breakdown=True, reference=REFERENCE)

        mock_series.assert_called_once_with(["study-a"], date(2024, 3, 18))
        breakdown = response.studies[0].breakdown
        self.assertEqual(len(breakdown), 1)
        self.assertEqual(breakdown[0].totals.total_hours, 3.0)

    def test_excluded_studies_are_reported(self):
        self.mocks["fetch_study_ids"].return_value = ["study-a", "study-bad"]
        self.mocks["fetch_studies"].return_value = [
            make_study_row(),
            make_study_row(study_id="study-bad", lifecycle="paused"),
        ]

        response = workload_service.get_portfolio(reference=REFERENCE)

        self.assertEqual([study.study_id for study in response.studies], ["study-a"])
        self.assertEqual(response.excluded[0].study_id, "study-bad")

    def test_upstream_failure_degrades_to_warning(self):
        self.mocks["fetch_study_ids"].side_effect = UpstreamUnavailableError("down")

        response = workload_service.get_portfolio(reference=REFERENCE)

        self.assertEqual(response.studies, [])
        self.assertEqual(response.warning, workload_service.UNAVAILABLE_WARNING)


class TestTrend(WorkloadServiceCase):
    def test_eight_points(self):
        self.mocks["fetch_logs"].return_value = [make_log(meeting=2, screening=4, query=3)]

        response = workload_service.get_trend(reference=REFERENCE)

        self.assertEqual(len(response.points), 8)
        self.assertAlmostEqual(response.points[3].actual_points, 4.3)

    def test_upstream_failure(self):
        self.mocks["fetch_studies"].side_effect = UpstreamUnavailableError("down")
        response = workload_service.get_trend(reference=REFERENCE)
        self.assertEqual(response.points, [])
        self.assertIsNotNone(response.warning)


class TestCoordinatorLoads(WorkloadServiceCase):
    def test_shared_study_is_split(self):
        response = workload_service.get_coordinator_loads()

        self.assertEqual([entry.coordinator_id for entry in response.coordinators], ["coord-1", "coord-2"])
        first = response.coordinators[0]
        self.assertAlmostEqual(first.load, 8.6)
        self.assertEqual(first.band, LoadBand.BALANCED.value)
        self.assertEqual(first.shares[0].divisor, 2)

    def test_upstream_failure(self):
        self.mocks["fetch_assignments"].side_effect = UpstreamUnavailableError("down")
        response = workload_service.get_coordinator_loads()
        self.assertEqual(response.coordinators, [])
        self.assertEqual(response.warning, workload_service.UNAVAILABLE_WARNING)


class TestRefresh(WorkloadServiceCase):
    def test_refresh_ignores_cache(self):
        self.cache.get_many.return_value = {
            "study-a": CachedValue(build_snapshot(make_profile(), None).as_dict(), NOW + timedelta(minutes=5)),
        }

        response = workload_service.refresh_snapshots()

        self.cache.get_many.assert_not_called()
        self.assertEqual(response.refreshed, 1)


class TestSettingsService(unittest.TestCase):
    def test_merge_update_overlays_only_sent_fields(self):
        row = make_study_row(rubric_phase="phase_late", visit_weights={"screening": 2.0})
        update = StudyWorkloadSettingsUpdate.model_validate(
            {
                "protocolScore": 6,
                "rubric": {"trialType": "interventional_high"},
                "visitWeights": [{"visitType": "follow_up", "weight": 0.5}],
            }
        )

        merged = settings_service.merge_update(row, update)

        self.assertEqual(merged["protocol_score"], 6)
        self.assertEqual(merged["screening_multiplier"], 1.5)
        self.assertEqual(merged["rubric_trial_type"], "interventional_high")
        self.assertEqual(merged["rubric_phase"], "phase_late")
        self.assertEqual(merged["visit_weights"], {"screening": 2.0, "follow_up": 0.5})

    def test_explicit_null_is_rejected_instead_of_reset(self):
        row = make_study_row()
        for key, field in (
            ("protocolScore", "protocol_score"),
            ("screeningMultiplier", "screening_multiplier"),
            ("lifecycle", "lifecycle"),
        ):
            with self.subTest(field=field):
                update = StudyWorkloadSettingsUpdate.model_validate({key: None})

                with self.assertRaises(ValidationError) as ctx:
                    settings_service.merge_update(row, update)

                self.assertEqual(ctx.exception.field, field)

    def test_null_visit_weight_is_rejected(self):
        update = StudyWorkloadSettingsUpdate.model_validate(
            {"visitWeights": [{"visitType": "screening", "weight": None}]}
        )

        with self.assertRaises(ValidationError) as ctx:
            settings_service.merge_update(make_study_row(visit_weights={"screening": 2.0}), update)

        self.assertEqual(ctx.exception.field, "visit_weights")

    def test_visit_weight_without_value_takes_recommended_weight(self):
        update = StudyWorkloadSettingsUpdate.model_validate(
            {"visitWeights": [{"visitType": "baseline"}, {"visitType": "follow_up"}]}
        )

        merged = settings_service.merge_update(make_study_row(), update)

        self.assertEqual(merged["visit_weights"], {"baseline": 2.0, "follow_up": 1.0})

    def test_reset_visit_weights_applies_recommended_table_before_edits(self):
        row = make_study_row(visit_weights={"screening": 3.0, "follow_up": 0.2})
        update = StudyWorkloadSettingsUpdate.model_validate(
            {"resetVisitWeights": True, "visitWeights": [{"visitType": "dose", "weight": 2.0}]}
        )

        merged = settings_service.merge_update(row, update)

        weights = merged["visit_weights"]
        self.assertEqual(weights["screening"], 1.5)
        self.assertEqual(weights["follow_up"], 1.0)
        self.assertEqual(weights["baseline"], 2.0)
        self.assertEqual(weights["long_term"], 0.5)
        self.assertEqual(weights["dose"], 2.0)
        self.assertEqual(len(weights), 8)

    @patch("workload_api.services.settings.studies")
    def test_get_lists_recommended_visit_weights(self, mock_studies):
        mock_studies.fetch_study.return_value = make_study_row(visit_weights={"follow_up": 0.5})

        settings = settings_service.get_settings("study-a")

        self.assertEqual([(w.visit_type, w.weight) for w in settings.visit_weights], [("follow_up", 0.5)])
        recommended = {w.visit_type: w.weight for w in settings.recommended_visit_weights}
        self.assertEqual(recommended["follow_up"], 1.0)
        self.assertEqual(recommended["unscheduled"], 1.1)
        self.assertEqual(recommended["early_termination"], 0.75)

    @patch("workload_api.services.settings.studies")
    def test_get_missing_study(self, mock_studies):
        mock_studies.fetch_study.return_value = None
        with self.assertRaises(NotFoundError):
            settings_service.get_settings("study-x")

    @patch("workload_api.services.settings.studies")
    def test_get_includes_recommended_score(self, mock_studies):
        mock_studies.fetch_study.return_value = make_study_row(
            rubric_trial_type="interventional_high", rubric_phase="phase_early"
        )

        settings = settings_service.get_settings("study-a")

        self.assertEqual(settings.recommended_score, 4.0)
        self.assertEqual(settings.lifecycle, "active")

    @patch("workload_api.services.settings.PostgresSnapshotCache")
    @patch("workload_api.services.settings.studies")
    def test_invalid_update_is_not_persisted(self, mock_studies, mock_cache_cls):
        mock_studies.fetch_study.return_value = make_study_row()
        update = StudyWorkloadSettingsUpdate(query_multiplier=-1)

        with self.assertRaises(ValidationError) as ctx:
            settings_service.update_settings("study-a", update)

        self.assertEqual(ctx.exception.field, "query_multiplier")
        mock_studies.update_study.assert_not_called()
        mock_cache_cls.assert_not_called()

    @patch("workload_api.services.settings.PostgresSnapshotCache")
    @patch("workload_api.services.settings.studies")
    def test_update_persists_and_expires_snapshot(self, mock_studies, mock_cache_cls):
        mock_studies.fetch_study.return_value = make_study_row()
        mock_cache_cls.return_value.expire.side_effect = UpstreamUnavailableError("down")

        result = settings_service.update_settings("study-a", StudyWorkloadSettingsUpdate(lifecycle="close_out"))

        saved = mock_studies.update_study.call_args.args[0]
        self.assertEqual(saved.lifecycle.value, "close_out")
        mock_cache_cls.return_value.expire.assert_called_once_with(["study-a"])
        self.assertEqual(result.lifecycle, "close_out")


class TestMetricsService(unittest.TestCase):
    @patch("workload_api.services.metrics.assignment_repository")
    @patch("workload_api.services.metrics.coordinator_metrics")
    def test_get_metrics_degrades_to_warning(self, mock_metrics, mock_assignments):
        mock_metrics.fetch_coordinator_logs.side_effect = UpstreamUnavailableError("down")

        response = metrics_service.get_metrics("coord-1")

        self.assertEqual(response.logs, [])
        self.assertEqual(response.warning, metrics_service.UNAVAILABLE_WARNING)

    @patch("workload_api.services.metrics.assignment_repository")
    @patch("workload_api.services.metrics.coordinator_metrics")
    def test_get_metrics(self, mock_metrics, mock_assignments):
        mock_metrics.fetch_coordinator_logs.return_value = [make_log(meeting=2, screening=1)]
        mock_assignments.fetch_coordinator_assignments.return_value = [make_assignment("coord-1", "study-a")]

        response = metrics_service.get_metrics("coord-1")

        self.assertEqual(response.logs[0].total_hours, 3.0)
        self.assertEqual(response.assignments[0].study_id, "study-a")
        self.assertIsNone(response.warning)

    @patch("workload_api.services.metrics.PostgresSnapshotCache")
    @patch("workload_api.services.metrics.assignment_repository")
    @patch("workload_api.services.metrics.coordinator_metrics")
    def test_submit_saves_and_expires_affected_studies(self, mock_metrics, mock_assignments, mock_cache_cls):
        mock_metrics.save_weekly_log.return_value = utc(2024, 6, 7, 9)
        mock_assignments.fetch_coordinator_assignments.return_value = [make_assignment("coord-1", "study-c")]
        submission = WeeklyLogSubmission.model_validate(
            {
                "weekStart": "2024-06-05",
                "meetingHours": 2,
                "breakdown": [{"studyId": "study-b", "meetingHours": 2}],
            }
        )

        result = metrics_service.submit_weekly_log("coord-1", submission)

        saved = mock_metrics.save_weekly_log.call_args.args[0]
        self.assertEqual(saved.week_start, date(2024, 6, 3))
        self.assertEqual(saved.recorded_by, "coord-1")
        mock_cache_cls.return_value.expire.assert_called_once_with(["study-b", "study-c"])
        self.assertEqual(result.updated_at, utc(2024, 6, 7, 9))

    @patch("workload_api.services.metrics.coordinator_metrics")
    def test_submit_rejects_overallocated_breakdown(self, mock_metrics):
        submission = WeeklyLogSubmission(
            week_start="2024-06-03",
            query_hours=1,
            breakdown=[{"study_id": "study-a", "query_hours": 2}],
        )

        with self.assertRaises(ValidationError):
            metrics_service.submit_weekly_log("coord-1", submission)

        mock_metrics.save_weekly_log.assert_not_called()


if __name__ == "__main__":
    unittest.main()
