import argparse
import sys
from typing import Optional

from algorithms import ProgressMetrics
from backup import BackupResult, BackupService, DownloadTarget, HandleTarget
from db import WorkoutStore
from errors import BackupCancelled, SnapshotImportError
from logger import setup_logger
from session_service import SessionService


def export_backup(
    db_path: str, out_dir: str = ".", file_path: Optional[str] = None
) -> BackupResult:
    """Write the whole store to ``file_path`` or to ``out_dir/workout_backup.json``."""
    service = BackupService(
        WorkoutStore(db_path), HandleTarget(path=file_path), DownloadTarget(out_dir)
    )
    return service.export_to_host()


def import_backup(path: Optional[str], db_path: str) -> dict:
    service = BackupService(WorkoutStore(db_path))
    if not path:
        raise BackupCancelled("No file selected.")
    return service.import_file(path)


def reset_data(db_path: str) -> None:
    WorkoutStore(db_path).reset_all()


def exercise_series(db_path: str, exercise: str, metric: str = "weight") -> list:
    logs = WorkoutStore(db_path).logs.fetch_all_logs()
    logs.sort(key=lambda log: log["date"])
    return ProgressMetrics.exercise_series(logs, exercise, metric)


def demo_data(db_path: str) -> None:
    """Populate the database with a demo plan and session if empty."""
    store = WorkoutStore(db_path)
    if store.logs.fetch_all_logs() or store.plans.fetch_all_plans():
        print("Database already contains data")
        return
    plan = store.plans.create(
        "Push Day",
        [
            SessionService.default_plan_exercise("Bench Press"),
            {"name": "Overhead Press", "goalSets": 2, "goalReps": "6-8"},
        ],
    )
    sessions = SessionService(store)
    results = sessions.new_session(plan)
    for weight, entry in zip(("135", "95"), results):
        for s in entry["sets"]:
            s["weight"] = weight
            s["reps"] = "8"
    sessions.finish_session(plan["title"], results)
    print("Demo data inserted")


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Workout tracker utility commands")
    parser.add_argument("--log-level", default="WARNING")
    sub = parser.add_subparsers(dest="cmd", required=True)

    exp = sub.add_parser("export")
    exp.add_argument("--db", default="workout.db")
    exp.add_argument("--out", default=".")
    exp.add_argument("--file", default=None)

    imp = sub.add_parser("import")
    imp.add_argument("--in", dest="src", default=None)
    imp.add_argument("--db", default="workout.db")

    rst = sub.add_parser("reset")
    rst.add_argument("--db", default="workout.db")
    rst.add_argument("--yes", action="store_true")

    series = sub.add_parser("series")
    series.add_argument("exercise")
    series.add_argument("--db", default="workout.db")
    series.add_argument("--metric", choices=list(ProgressMetrics.METRICS), default="weight")

    names = sub.add_parser("names")
    names.add_argument("--db", default="workout.db")

    demo = sub.add_parser("demo")
    demo.add_argument("--db", default="workout.db")

    orm = sub.add_parser("one_rep_max")
    orm.add_argument("--weight", required=True)
    orm.add_argument("--reps", required=True)

    args = parser.parse_args(argv)
    setup_logger(level=args.log_level)

    try:
        if args.cmd == "export":
            result = export_backup(args.db, args.out, args.file)
            print(f"Backup written to {result.path} ({result.target})")
        elif args.cmd == "import":
            counts = import_backup(args.src, args.db)
            print(
                "Imported {logs} logs, {plans} plans, {exercises} exercises".format(**counts)
            )
        elif args.cmd == "reset":
            if not args.yes:
                print("Refusing to delete all data without --yes")
                sys.exit(1)
            reset_data(args.db)
            print("All local data deleted.")
        elif args.cmd == "series":
            for date, value in exercise_series(args.db, args.exercise, args.metric):
                print(f"{date}\t{value:g}")
        elif args.cmd == "names":
            logs = WorkoutStore(args.db).logs.fetch_all_logs()
            for name in ProgressMetrics.unique_exercise_names(logs):
                print(name)
        elif args.cmd == "demo":
            demo_data(args.db)
        elif args.cmd == "one_rep_max":
            print(ProgressMetrics.estimate_one_rep_max(args.weight, args.reps))
    except (SnapshotImportError, BackupCancelled, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
