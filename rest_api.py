import logging
from typing import List

from fastapi import FastAPI, HTTPException, Response, Body, Query, Request

from algorithms import ProgressMetrics
from backup import BackupService, DownloadTarget, HandleTarget, encode_snapshot
from config import APP_VERSION
from db import WorkoutStore
from errors import PlanValidationError, SnapshotImportError
from logger import setup_logger
from models import NewLog, NewPlan
from session_service import SessionService
from settings_schema import load_settings

logger = logging.getLogger(__name__)


class WorkoutAPI:
    """Provides REST endpoints for plans, session logs, backups and progress."""

    def __init__(
        self,
        db_path: str | None = None,
        yaml_path: str = "settings.yaml",
        download_dir: str | None = None,
    ) -> None:
        self.settings = load_settings(yaml_path)
        setup_logger(level=self.settings.log_level)
        self.db_path = db_path or self.settings.db_path
        self.store = WorkoutStore(self.db_path)
        self.backup = BackupService(
            self.store,
            HandleTarget(path=self.settings.backup_path),
            DownloadTarget(download_dir or self.settings.download_dir),
            pretty=self.settings.pretty_backup,
        )
        self.sessions = SessionService(
            self.store, self.backup, self.settings.backup_on_finish
        )
        self.app = FastAPI(
            title="Workout Tracker API",
            description="REST API for workout plans, session logs and progress metrics",
            version=APP_VERSION,
        )
        self._setup_routes()

    def _fetch_plan(self, plan_id: int) -> dict:
        try:
            return self.store.plans.fetch_detail(plan_id)
        except ValueError as e:
            raise HTTPException(status_code=404, detail=str(e))

    def _setup_routes(self) -> None:
        @self.app.get(
            "/health",
            summary="Health check",
            description="Verify API and database connectivity.",
        )
        def health():
            """Return API and database connection status."""
            try:
                self.store.plans.fetch_all_plans()
                return {"status": "ok"}
            except Exception as e:  # pragma: no cover - connectivity failure
                raise HTTPException(status_code=500, detail=str(e))

        @self.app.post("/exercises")
        def create_exercise(name: str):
            if not name.strip():
                raise HTTPException(status_code=400, detail="name required")
            return self.store.exercises.add(name)

        @self.app.get("/exercises")
        def list_exercises():
            return self.store.exercises.fetch_all_exercises()

        @self.app.delete("/exercises")
        def clear_exercises():
            self.store.exercises.delete_all()
            return {"status": "deleted"}

        @self.app.post("/exercises/sync")
        def sync_exercises():
            return {"added": self.store.sync_exercise_names()}

        @self.app.get("/exercises/suggest")
        def suggest_exercises(query: str = "", exclude: List[str] = Query(default=[])):
            return self.sessions.suggest_exercises(
                query, [{"name": n} for n in exclude]
            )

        @self.app.post(
            "/plans",
            summary="Create plan",
            description="Store a named plan of exercises with goal sets and reps.",
        )
        def create_plan(plan: NewPlan):
            try:
                return self.store.plans.create(
                    plan.title, [ex.model_dump() for ex in plan.exercises]
                )
            except PlanValidationError as e:
                raise HTTPException(status_code=400, detail=str(e))

        @self.app.get("/plans")
        def list_plans():
            return self.store.plans.fetch_all_plans()

        @self.app.delete("/plans")
        def clear_plans():
            self.store.plans.delete_all()
            return {"status": "deleted"}

        @self.app.get("/plans/recent")
        def recent_plans(limit: int = 3):
            return self.sessions.recent_plan_titles(self.store.logs.fetch_all_logs(), limit)

        @self.app.get("/plans/{plan_id}")
        def get_plan(plan_id: int):
            return self._fetch_plan(plan_id)

        @self.app.delete("/plans/{plan_id}")
        def delete_plan(plan_id: int):
            self.store.plans.delete(plan_id)
            return {"status": "deleted"}

        @self.app.post(
            "/logs",
            summary="Append log",
            description="Store a completed session. Logs cannot be edited afterwards.",
        )
        def append_log(log: NewLog):
            return self.store.logs.append(
                log.planTitle, [ex.model_dump() for ex in log.exercises], log.date
            )

        @self.app.get("/logs")
        def list_logs():
            return self.store.logs.fetch_all_logs()

        @self.app.delete("/logs")
        def clear_logs():
            self.store.logs.delete_all()
            return {"status": "deleted"}

        @self.app.get("/snapshot")
        def export_snapshot():
            return self.store.export_snapshot()

        @self.app.post("/snapshot")
        def import_snapshot(snapshot: dict = Body(...)):
            try:
                counts = self.store.import_snapshot(snapshot)
            except SnapshotImportError as e:
                raise HTTPException(status_code=400, detail=str(e))
            self.backup.forget_handle()
            return {"status": "imported", "counts": counts}

        @self.app.get("/settings/backup")
        def download_backup():
            data = encode_snapshot(self.store.export_snapshot(), self.backup.pretty)
            return Response(
                content=data,
                media_type="application/json",
                headers={
                    "Content-Disposition": "attachment; filename=workout_backup.json"
                },
            )

        @self.app.post("/settings/backup")
        def write_backup():
            result = self.backup.export_to_host()
            return {"target": result.target, "path": result.path, "size": result.size}

        @self.app.get("/settings/backup_file")
        def backup_file_status():
            return {"connected": self.backup.has_handle, "path": self.backup.handle.path}

        @self.app.put("/settings/backup_file")
        def connect_backup_file(path: str):
            self.backup.handle.path = path
            return {"connected": True, "path": path}

        @self.app.delete("/settings/backup_file")
        def forget_backup_file():
            self.backup.forget_handle()
            return {"connected": False}

        @self.app.post("/settings/restore")
        async def restore_backup(request: Request):
            try:
                counts = self.backup.import_from_host(await request.body())
            except SnapshotImportError as e:
                raise HTTPException(status_code=400, detail=str(e))
            return {"status": "restored", "counts": counts}

        @self.app.post("/settings/delete_all")
        def delete_all(confirmation: str):
            if confirmation != "Yes, I confirm":
                return {"status": "confirmation_failed"}
            self.store.reset_all()
            return {"status": "deleted"}

        @self.app.get("/stats/exercises")
        def logged_exercises():
            return ProgressMetrics.unique_exercise_names(self.store.logs.fetch_all_logs())

        @self.app.get("/stats/best_set")
        def best_set(log_id: int, exercise: str):
            for log in self.store.logs.fetch_all_logs():
                if log["id"] == log_id:
                    return ProgressMetrics.best_set(log, exercise)
            raise HTTPException(status_code=404, detail="log not found")

        @self.app.get(
            "/stats/series",
            summary="Exercise progress",
            description="Best-set weight or estimated 1RM per logged session.",
        )
        def exercise_series(exercise: str, metric: str = "weight"):
            try:
                series = ProgressMetrics.exercise_series(
                    self.store.logs.fetch_all_logs(), exercise, metric
                )
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            return [{"date": date, "value": value} for date, value in series]

        @self.app.get("/stats/one_rep_max")
        def one_rep_max(weight: str, reps: str):
            return {"oneRepMax": ProgressMetrics.estimate_one_rep_max(weight, reps)}

        @self.app.get("/sessions/new/{plan_id}")
        def new_session(plan_id: int):
            plan = self._fetch_plan(plan_id)
            logs = self.store.logs.fetch_all_logs()
            results = self.sessions.new_session(plan)
            return {
                "plan": plan,
                "results": results,
                "targets": {
                    ex["name"]: self.sessions.target_reps(plan, ex["name"])
                    for ex in results
                },
                "previous": {
                    ex["name"]: self.sessions.previous_sets(logs, ex["name"])
                    for ex in results
                },
            }

        @self.app.get("/sessions/previous")
        def previous_sets(exercise: str):
            return {
                "sets": self.sessions.previous_sets(
                    self.store.logs.fetch_all_logs(), exercise
                )
            }

        @self.app.post("/sessions/finish")
        def finish_session(log: NewLog):
            outcome = self.sessions.finish_session(
                log.planTitle, [ex.model_dump() for ex in log.exercises], log.date
            )
            logger.info("session for %s finished", log.planTitle)
            return outcome


api = WorkoutAPI()
app = api.app

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app)
