from __future__ import annotations

import datetime
import logging
from typing import Iterable, List, Optional

from algorithms import ProgressMetrics
from backup import BackupResult, BackupService
from db import WorkoutStore

logger = logging.getLogger(__name__)

DEFAULT_GOAL_SETS = 3
DEFAULT_GOAL_REPS = "8-12"


def _date_key(log: dict) -> datetime.datetime:
    """Sortable instant for a log date; offsets are honoured, naive dates read as UTC."""
    raw = (log.get("date") or "").strip()
    try:
        parsed = datetime.datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return datetime.datetime.min.replace(tzinfo=datetime.timezone.utc)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=datetime.timezone.utc)
    return parsed


class SessionService:
    """Runs workout sessions against stored plans."""

    def __init__(
        self,
        store: WorkoutStore,
        backup: BackupService | None = None,
        backup_on_finish: bool = True,
    ) -> None:
        self.store = store
        self.backup = backup
        self.backup_on_finish = backup_on_finish

    @staticmethod
    def default_plan_exercise(name: str) -> dict:
        return {"name": name, "goalSets": DEFAULT_GOAL_SETS, "goalReps": DEFAULT_GOAL_REPS}

    @staticmethod
    def new_session(plan: dict) -> List[dict]:
        """Return blank results for every exercise of ``plan`` in plan order."""
        results = []
        for ex in plan.get("exercises") or []:
            count = int(ex.get("goalSets") or 0) or DEFAULT_GOAL_SETS
            results.append(
                {
                    "name": ex["name"],
                    "sets": [{"weight": "", "reps": ""} for _ in range(count)],
                }
            )
        return results

    @staticmethod
    def target_reps(plan: dict, exercise_name: str) -> str:
        for ex in plan.get("exercises") or []:
            if ex.get("name") == exercise_name:
                return ex.get("goalReps") or DEFAULT_GOAL_REPS
        return DEFAULT_GOAL_REPS

    @staticmethod
    def previous_sets(logs: Iterable[dict], exercise_name: str) -> Optional[List[dict]]:
        """Sets from the most recent log containing ``exercise_name``.

        The lookup ignores case, unlike the progress metrics.
        """
        wanted = exercise_name.lower()
        relevant = [
            log
            for log in logs
            if any((ex.get("name") or "").lower() == wanted for ex in log.get("exercises") or [])
        ]
        if not relevant:
            return None
        latest = max(relevant, key=_date_key)
        for ex in latest["exercises"]:
            if (ex.get("name") or "").lower() == wanted:
                return ex.get("sets") or []
        return None

    @staticmethod
    def recent_plan_titles(logs: Iterable[dict], limit: int = 3) -> List[str]:
        ordered = sorted(logs, key=_date_key, reverse=True)
        return [log.get("planTitle") for log in ordered[:limit]]

    def suggest_exercises(
        self, query: str = "", current: Iterable[dict] | None = None
    ) -> List[str]:
        """Known exercise names matching ``query``, minus those already chosen."""
        known = ProgressMetrics.unique_exercise_names(
            self.store.logs.fetch_all_logs() + self.store.plans.fetch_all_plans()
        )
        taken = {ex.get("name") for ex in current or []}
        needle = query.lower()
        return [n for n in known if needle in n.lower() and n not in taken]

    def finish_session(
        self, plan_title: str, results: Iterable[dict], date: str | None = None
    ) -> dict:
        """Store the finished session and refresh the backup file.

        Returns the stored log and the backup outcome. A failed backup is
        logged and reported but never undoes the stored log.
        """
        log = self.store.logs.append(plan_title, results, date)
        self.store.sync_exercise_names()
        outcome: dict = {"log": log, "backup": None}
        if self.backup is not None and self.backup_on_finish:
            try:
                result: BackupResult = self.backup.export_to_host()
                outcome["backup"] = {"target": result.target, "path": result.path}
            except OSError as e:
                logger.error("backup after session failed: %s", e)
                outcome["backup"] = {"error": str(e)}
        return outcome
