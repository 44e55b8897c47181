import os
import sys
import tempfile
import unittest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from algorithms import ProgressMetrics
from backup import BackupService, DownloadTarget
from db import WorkoutStore
from session_service import SessionService


class SessionServiceTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.tmp = tempfile.TemporaryDirectory()
        self.store = WorkoutStore(os.path.join(self.tmp.name, "workout.db"))
        self.downloads = os.path.join(self.tmp.name, "downloads")
        self.backup = BackupService(self.store, download=DownloadTarget(self.downloads))
        self.service = SessionService(self.store, self.backup)

    def tearDown(self) -> None:
        self.tmp.cleanup()

    def test_new_session_uses_goal_sets(self) -> None:
        plan = {
            "title": "Push Day",
            "exercises": [
                {"name": "Bench Press", "goalSets": 2, "goalReps": "5"},
                {"name": "Dips", "goalSets": 0, "goalReps": "10"},
            ],
        }
        results = SessionService.new_session(plan)
        self.assertEqual([r["name"] for r in results], ["Bench Press", "Dips"])
        self.assertEqual(len(results[0]["sets"]), 2)
        self.assertEqual(len(results[1]["sets"]), 3)
        self.assertEqual(results[0]["sets"][0], {"weight": "", "reps": ""})
        results[0]["sets"][0]["weight"] = "100"
        self.assertEqual(results[0]["sets"][1]["weight"], "")

    def test_target_reps(self) -> None:
        plan = {"exercises": [{"name": "Bench Press", "goalSets": 3, "goalReps": "5"}]}
        self.assertEqual(SessionService.target_reps(plan, "Bench Press"), "5")
        self.assertEqual(SessionService.target_reps(plan, "Squat"), "8-12")

    def test_default_plan_exercise(self) -> None:
        self.assertEqual(
            SessionService.default_plan_exercise("Row"),
            {"name": "Row", "goalSets": 3, "goalReps": "8-12"},
        )

    def test_previous_sets_latest_and_case_insensitive(self) -> None:
        logs = [
            {
                "planTitle": "A",
                "date": "2024-01-05T10:00:00.000Z",
                "exercises": [{"name": "bench press", "sets": [{"weight": "140", "reps": "5"}]}],
            },
            {
                "planTitle": "A",
                "date": "2024-01-01T10:00:00.000Z",
                "exercises": [{"name": "Bench Press", "sets": [{"weight": "135", "reps": "8"}]}],
            },
        ]
        self.assertEqual(
            SessionService.previous_sets(logs, "BENCH PRESS"),
            [{"weight": "140", "reps": "5"}],
        )
        self.assertIsNone(SessionService.previous_sets(logs, "Squat"))
        self.assertIsNone(SessionService.previous_sets([], "Squat"))

    def test_recent_plan_titles(self) -> None:
        logs = [
            {"planTitle": "A", "date": "2024-01-01"},
            {"planTitle": "B", "date": "2024-01-04"},
            {"planTitle": "C", "date": "2024-01-03"},
            {"planTitle": "D", "date": "2024-01-02"},
        ]
        self.assertEqual(SessionService.recent_plan_titles(logs), ["B", "C", "D"])
        self.assertEqual(SessionService.recent_plan_titles(logs, 1), ["B"])

    def test_dates_with_offsets_compare_as_instants(self) -> None:
        logs = [
            {
                "planTitle": "Early",
                "date": "2024-01-01T11:00:00+02:00",
                "exercises": [{"name": "Squat", "sets": [{"weight": "100", "reps": "5"}]}],
            },
            {
                "planTitle": "Late",
                "date": "2024-01-01T10:00:00.000Z",
                "exercises": [{"name": "Squat", "sets": [{"weight": "120", "reps": "5"}]}],
            },
        ]
        self.assertEqual(
            SessionService.previous_sets(logs, "squat"), [{"weight": "120", "reps": "5"}]
        )
        self.assertEqual(SessionService.recent_plan_titles(logs), ["Late", "Early"])

    def test_suggest_exercises(self) -> None:
        self.store.plans.create("Push Day", [{"name": "Bench Press"}, {"name": "Dips"}])
        self.store.logs.append("Legs", [{"name": "Back Squat", "sets": []}])
        self.assertEqual(
            self.service.suggest_exercises(), ["Back Squat", "Bench Press", "Dips"]
        )
        self.assertEqual(self.service.suggest_exercises("b"), ["Back Squat", "Bench Press"])
        self.assertEqual(
            self.service.suggest_exercises("B", [{"name": "Bench Press"}]), ["Back Squat"]
        )

    def test_finish_session_appends_and_backs_up(self) -> None:
        plan = self.store.plans.create(
            "Push Day", [{"name": "Bench Press", "goalSets": 3, "goalReps": "8-12"}]
        )
        results = self.service.new_session(plan)
        results[0]["sets"] = [{"weight": "135", "reps": "8"}]
        outcome = self.service.finish_session(plan["title"], results)
        self.assertEqual(outcome["log"]["planTitle"], "Push Day")
        self.assertEqual(outcome["backup"]["target"], "download")
        self.assertTrue(os.path.exists(outcome["backup"]["path"]))
        self.assertEqual(
            [e["name"] for e in self.store.exercises.fetch_all_exercises()],
            ["Bench Press"],
        )

        logs = self.store.logs.fetch_all_logs()
        self.assertEqual(
            [v for _d, v in ProgressMetrics.exercise_series(logs, "Bench Press", "weight")],
            [135],
        )

        self.store.reset_all()
        self.assertEqual(self.store.plans.fetch_all_plans(), [])
        self.assertEqual(self.store.logs.fetch_all_logs(), [])
        self.assertEqual(self.store.exercises.fetch_all_exercises(), [])

    def test_plan_rename_does_not_touch_logs(self) -> None:
        plan = self.store.plans.create("Push Day", [{"name": "Bench Press"}])
        self.service.finish_session(plan["title"], self.service.new_session(plan))
        self.store.plans.delete(plan["id"])
        self.assertEqual(self.store.logs.fetch_all_logs()[0]["planTitle"], "Push Day")

    def test_finish_without_backup(self) -> None:
        service = SessionService(self.store, self.backup, backup_on_finish=False)
        outcome = service.finish_session("Push Day", [], "2024-01-01T10:00:00.000Z")
        self.assertIsNone(outcome["backup"])
        self.assertEqual(outcome["log"]["date"], "2024-01-01T10:00:00.000Z")
        self.assertFalse(os.path.exists(self.downloads))


if __name__ == "__main__":
    unittest.main()
