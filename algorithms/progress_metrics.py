from typing import Iterable, List, Tuple

from .math_tools import MathTools


class ProgressMetrics:
    """Derive chartable per-exercise values from logged sessions."""

    METRICS = ("weight", "oneRepMax")

    @staticmethod
    def estimate_one_rep_max(weight, reps) -> int:
        return MathTools.brzycki_1rm(weight, reps)

    @classmethod
    def best_set(cls, log: dict, exercise_name: str) -> dict:
        """Return the heaviest set of ``exercise_name`` within ``log``.

        Names match exactly. Ties keep the earlier set and blank weights never
        win, so an exercise without any numeric weight reports zeros.
        """
        entry = next(
            (ex for ex in log.get("exercises") or [] if ex.get("name") == exercise_name),
            None,
        )
        if not entry or not entry.get("sets"):
            return {"weight": 0, "reps": 0, "oneRepMax": 0}

        best = {"weight": 0, "reps": 0}
        for current in entry["sets"]:
            if MathTools.parse_float(current.get("weight")) > MathTools.parse_float(
                best.get("weight")
            ):
                best = current

        reps = MathTools.parse_int(best.get("reps"))
        return {
            "weight": MathTools.parse_float(best.get("weight")),
            "reps": reps if reps is not None else 0,
            "oneRepMax": cls.estimate_one_rep_max(best.get("weight"), best.get("reps")),
        }

    @classmethod
    def exercise_series(
        cls, logs: Iterable[dict], exercise_name: str, metric: str = "weight"
    ) -> List[Tuple[str, float]]:
        """Return ``(date, value)`` pairs for every log containing the exercise.

        Logs keep their stored order; sort by date beforehand for a timeline.
        """
        if metric not in cls.METRICS:
            raise ValueError(f"metric must be one of {', '.join(cls.METRICS)}")
        series: list[tuple[str, float]] = []
        for log in logs:
            if any(ex.get("name") == exercise_name for ex in log.get("exercises") or []):
                series.append((log.get("date"), cls.best_set(log, exercise_name)[metric]))
        return series

    @staticmethod
    def unique_exercise_names(records: Iterable[dict]) -> List[str]:
        """Sorted distinct exercise names across logs or plans."""
        names: set[str] = set()
        for record in records:
            for ex in record.get("exercises") or []:
                name = ex.get("name")
                if name:
                    names.add(name)
        return sorted(names)
