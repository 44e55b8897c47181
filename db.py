import sqlite3
import aiosqlite
import datetime
import json
import logging
from contextlib import contextmanager, asynccontextmanager
from typing import Iterable, List, Optional, Set, Tuple

from pydantic import ValidationError

from algorithms import ProgressMetrics
from errors import PlanValidationError, SnapshotImportError
from models import LogExercise, PlanExercise, Snapshot

logger = logging.getLogger(__name__)

COLLECTIONS = ("logs", "plans", "exercises")


def utc_timestamp() -> str:
    """Return the current instant as an ISO-8601 string with millisecond precision."""
    now = datetime.datetime.now(datetime.timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _plan_exercises(exercises: Optional[Iterable[dict]]) -> list[dict]:
    try:
        return [PlanExercise.model_validate(ex).model_dump() for ex in exercises or []]
    except ValidationError as e:
        raise PlanValidationError(str(e))


def _log_exercises(exercises: Optional[Iterable[dict]]) -> list[dict]:
    try:
        return [LogExercise.model_validate(ex).model_dump() for ex in exercises or []]
    except ValidationError as e:
        raise ValueError(str(e))


def _exercise_row(row: Tuple) -> dict:
    eid, name = row
    return {"id": eid, "name": name}


def _plan_row(row: Tuple) -> dict:
    pid, title, exercises = row
    return {"id": pid, "title": title, "exercises": json.loads(exercises)}


def _log_row(row: Tuple) -> dict:
    lid, plan_title, date, exercises = row
    return {
        "id": lid,
        "planTitle": plan_title,
        "date": date,
        "exercises": json.loads(exercises),
    }


def parse_snapshot(data) -> Snapshot:
    """Validate raw snapshot data completely before anything touches the store."""
    if isinstance(data, Snapshot):
        snapshot = data
    else:
        if not isinstance(data, dict):
            raise SnapshotImportError("backup must be a JSON object")
        present = {k: v for k, v in data.items() if k in COLLECTIONS and v is not None}
        try:
            snapshot = Snapshot.model_validate(present)
        except ValidationError as e:
            raise SnapshotImportError(f"invalid backup data: {e}")
    for key in COLLECTIONS:
        ids = [r.id for r in getattr(snapshot, key) if r.id is not None]
        if len(ids) != len(set(ids)):
            raise SnapshotImportError(f"duplicate ids in '{key}'")
    return snapshot


def _snapshot_inserts(snapshot: Snapshot) -> list[tuple[str, Tuple]]:
    """Return (query, params) pairs inserting every record of ``snapshot``."""
    statements: list[tuple[str, Tuple]] = []
    for log in snapshot.logs:
        exercises = json.dumps([ex.model_dump() for ex in log.exercises])
        if log.id is None:
            statements.append(
                (
                    "INSERT INTO logs (plan_title, date, exercises) VALUES (?, ?, ?);",
                    (log.planTitle, log.date, exercises),
                )
            )
        else:
            statements.append(
                (
                    "INSERT INTO logs (id, plan_title, date, exercises) VALUES (?, ?, ?, ?);",
                    (log.id, log.planTitle, log.date, exercises),
                )
            )
    for plan in snapshot.plans:
        exercises = json.dumps([ex.model_dump() for ex in plan.exercises])
        if plan.id is None:
            statements.append(
                (
                    "INSERT INTO plans (title, exercises) VALUES (?, ?);",
                    (plan.title, exercises),
                )
            )
        else:
            statements.append(
                (
                    "INSERT INTO plans (id, title, exercises) VALUES (?, ?, ?);",
                    (plan.id, plan.title, exercises),
                )
            )
    for ex in snapshot.exercises:
        if ex.id is None:
            statements.append(("INSERT INTO exercises (name) VALUES (?);", (ex.name,)))
        else:
            statements.append(
                ("INSERT INTO exercises (id, name) VALUES (?, ?);", (ex.id, ex.name))
            )
    return statements


class Database:
    """Provides SQLite connection management and schema initialization."""

    _TABLE_DEFINITIONS = {
        "exercises": (
            """CREATE TABLE exercises (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL
                );""",
            ["id", "name"],
        ),
        "plans": (
            """CREATE TABLE plans (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    title TEXT NOT NULL,
                    exercises TEXT NOT NULL DEFAULT '[]'
                );""",
            ["id", "title", "exercises"],
        ),
        "logs": (
            """CREATE TABLE logs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    plan_title TEXT NOT NULL DEFAULT '',
                    date TEXT NOT NULL,
                    exercises TEXT NOT NULL DEFAULT '[]'
                );""",
            ["id", "plan_title", "date", "exercises"],
        ),
    }

    def __init__(self, db_path: str = "workout.db") -> None:
        self._db_path = db_path
        self._ensure_schema()

    @property
    def db_path(self) -> str:
        return self._db_path

    @contextmanager
    def _connection(self):
        connection = sqlite3.connect(self._db_path)
        try:
            yield connection
            connection.commit()
        finally:
            connection.close()

    def _ensure_schema(self) -> None:
        with self._connection() as conn:
            for table, (sql, columns) in self._TABLE_DEFINITIONS.items():
                self._ensure_table(conn, table, sql, columns)

    def _ensure_table(
        self, conn: sqlite3.Connection, table: str, sql: str, columns: List[str]
    ) -> None:
        cur = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?;", (table,)
        )
        if cur.fetchone() is None:
            conn.execute(sql)
            return

        cur = conn.execute(f"PRAGMA table_info({table});")
        existing_cols = [row[1] for row in cur.fetchall()]
        if existing_cols == columns:
            return

        logger.info("migrating table %s from columns %s", table, existing_cols)
        conn.execute(f"DROP TABLE IF EXISTS {table}_old;")
        conn.execute(f"ALTER TABLE {table} RENAME TO {table}_old;")
        conn.execute(sql)

        common = [c for c in existing_cols if c in columns]
        if common:
            cols = ", ".join(common)
            missing = [c for c in columns if c not in existing_cols]
            if missing:
                def default_val(col: str) -> str:
                    if col == "exercises":
                        return "'[]'"
                    if col in ("plan_title", "title", "name"):
                        return "''"
                    if col == "date":
                        return f"'{utc_timestamp()}'"
                    return "NULL"

                defaults = ", ".join(default_val(c) for c in missing)
                conn.execute(
                    f"INSERT INTO {table} ({cols}, {', '.join(missing)}) SELECT {cols}, {defaults} FROM {table}_old;"
                )
            else:
                conn.execute(
                    f"INSERT INTO {table} ({cols}) SELECT {cols} FROM {table}_old;"
                )
        conn.execute(f"DROP TABLE {table}_old;")


class BaseRepository(Database):
    """Base repository providing helper methods."""

    def execute(self, query: str, params: Tuple = ()) -> int:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.lastrowid

    def fetch_all(self, query: str, params: Tuple = ()) -> List[Tuple]:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.fetchall()

    def _delete_all(self, table: str) -> None:
        self.execute(f"DELETE FROM {table};")


class ExerciseRepository(BaseRepository):
    """Repository for custom exercise names used in suggestion lists."""

    def add(self, name: str) -> dict:
        eid = self.execute("INSERT INTO exercises (name) VALUES (?);", (name,))
        return {"id": eid, "name": name}

    def fetch_all_exercises(self) -> List[dict]:
        rows = self.fetch_all("SELECT id, name FROM exercises ORDER BY id;")
        return [_exercise_row(r) for r in rows]

    def fetch_names(self) -> List[str]:
        rows = self.fetch_all("SELECT name FROM exercises ORDER BY id;")
        return [r[0] for r in rows]

    def ensure(self, names: Iterable[str]) -> List[str]:
        """Insert names not yet present and return the ones added."""
        existing: Set[str] = set(self.fetch_names())
        added: list[str] = []
        with self._connection() as conn:
            for n in names:
                if n and n not in existing:
                    conn.execute("INSERT INTO exercises (name) VALUES (?);", (n,))
                    existing.add(n)
                    added.append(n)
        return added

    def delete_all(self) -> None:
        self._delete_all("exercises")


class PlanRepository(BaseRepository):
    """Repository for workout plans."""

    def create(self, title: str, exercises: Optional[Iterable[dict]] = None) -> dict:
        if not title or not title.strip():
            raise PlanValidationError("Plan title cannot be empty.")
        items = _plan_exercises(exercises)
        pid = self.execute(
            "INSERT INTO plans (title, exercises) VALUES (?, ?);",
            (title, json.dumps(items)),
        )
        logger.debug("created plan %s (%s)", pid, title)
        return {"id": pid, "title": title, "exercises": items}

    def fetch_all_plans(self) -> List[dict]:
        rows = self.fetch_all("SELECT id, title, exercises FROM plans ORDER BY id;")
        return [_plan_row(r) for r in rows]

    def fetch_detail(self, plan_id: int) -> dict:
        rows = self.fetch_all(
            "SELECT id, title, exercises FROM plans WHERE id = ?;", (plan_id,)
        )
        if not rows:
            raise ValueError("plan not found")
        return _plan_row(rows[0])

    def delete(self, plan_id: int) -> None:
        self.execute("DELETE FROM plans WHERE id = ?;", (plan_id,))

    def delete_all(self) -> None:
        self._delete_all("plans")


class LogRepository(BaseRepository):
    """Append-only repository for completed sessions."""

    def append(
        self,
        plan_title: str,
        exercises: Optional[Iterable[dict]] = None,
        date: Optional[str] = None,
    ) -> dict:
        items = _log_exercises(exercises)
        stamp = date or utc_timestamp()
        lid = self.execute(
            "INSERT INTO logs (plan_title, date, exercises) VALUES (?, ?, ?);",
            (plan_title, stamp, json.dumps(items)),
        )
        logger.debug("appended log %s for plan %s", lid, plan_title)
        return {"id": lid, "planTitle": plan_title, "date": stamp, "exercises": items}

    def fetch_all_logs(self) -> List[dict]:
        rows = self.fetch_all(
            "SELECT id, plan_title, date, exercises FROM logs ORDER BY id;"
        )
        return [_log_row(r) for r in rows]

    def delete_all(self) -> None:
        self._delete_all("logs")


class WorkoutStore(Database):
    """Facade over the three collections with whole-store export and import."""

    def __init__(self, db_path: str = "workout.db") -> None:
        super().__init__(db_path)
        self.exercises = ExerciseRepository(db_path)
        self.plans = PlanRepository(db_path)
        self.logs = LogRepository(db_path)

    def export_snapshot(self) -> dict:
        with self._connection() as conn:
            logs = conn.execute(
                "SELECT id, plan_title, date, exercises FROM logs ORDER BY id;"
            ).fetchall()
            plans = conn.execute(
                "SELECT id, title, exercises FROM plans ORDER BY id;"
            ).fetchall()
            exercises = conn.execute(
                "SELECT id, name FROM exercises ORDER BY id;"
            ).fetchall()
        return {
            "logs": [_log_row(r) for r in logs],
            "plans": [_plan_row(r) for r in plans],
            "exercises": [_exercise_row(r) for r in exercises],
        }

    def import_snapshot(self, data) -> dict:
        """Replace every collection with the contents of ``data``.

        The snapshot is validated in full first, then cleared and inserted in
        one transaction, so a rejected snapshot leaves the store untouched.
        Returns the number of records imported per collection.
        """
        snapshot = parse_snapshot(data)
        statements = _snapshot_inserts(snapshot)
        try:
            with self._connection() as conn:
                for table in COLLECTIONS:
                    conn.execute(f"DELETE FROM {table};")
                for query, params in statements:
                    conn.execute(query, params)
        except (sqlite3.DatabaseError, OverflowError) as e:
            raise SnapshotImportError(f"could not import backup: {e}")
        counts = {key: len(getattr(snapshot, key)) for key in COLLECTIONS}
        logger.info("imported snapshot %s", counts)
        return counts

    def reset_all(self) -> None:
        with self._connection() as conn:
            for table in COLLECTIONS:
                conn.execute(f"DELETE FROM {table};")
        logger.info("all local data deleted")

    def sync_exercise_names(self) -> List[str]:
        """Merge exercise names used by plans and logs into the exercises collection."""
        names = ProgressMetrics.unique_exercise_names(
            self.plans.fetch_all_plans() + self.logs.fetch_all_logs()
        )
        return self.exercises.ensure(names)


class AsyncDatabase(Database):
    """Provides asynchronous connection management."""

    @asynccontextmanager
    async def _async_connection(self):
        conn = await aiosqlite.connect(self._db_path)
        try:
            yield conn
            await conn.commit()
        finally:
            await conn.close()


class AsyncBaseRepository(AsyncDatabase):
    """Asynchronous variant of BaseRepository using aiosqlite."""

    async def execute(self, query: str, params: Tuple = ()) -> int:
        async with self._async_connection() as conn:
            cursor = await conn.execute(query, params)
            await conn.commit()
            return cursor.lastrowid

    async def fetch_all(self, query: str, params: Tuple = ()) -> List[Tuple]:
        async with self._async_connection() as conn:
            cursor = await conn.execute(query, params)
            rows = await cursor.fetchall()
            return rows

    async def _delete_all(self, table: str) -> None:
        await self.execute(f"DELETE FROM {table};")


class AsyncExerciseRepository(AsyncBaseRepository):
    """Async repository for custom exercise names."""

    async def add(self, name: str) -> dict:
        eid = await self.execute("INSERT INTO exercises (name) VALUES (?);", (name,))
        return {"id": eid, "name": name}

    async def fetch_all_exercises(self) -> List[dict]:
        rows = await self.fetch_all("SELECT id, name FROM exercises ORDER BY id;")
        return [_exercise_row(r) for r in rows]

    async def delete_all(self) -> None:
        await self._delete_all("exercises")


class AsyncPlanRepository(AsyncBaseRepository):
    """Async repository for workout plans."""

    async def create(
        self, title: str, exercises: Optional[Iterable[dict]] = None
    ) -> dict:
        if not title or not title.strip():
            raise PlanValidationError("Plan title cannot be empty.")
        items = _plan_exercises(exercises)
        pid = await self.execute(
            "INSERT INTO plans (title, exercises) VALUES (?, ?);",
            (title, json.dumps(items)),
        )
        return {"id": pid, "title": title, "exercises": items}

    async def fetch_all_plans(self) -> List[dict]:
        rows = await self.fetch_all(
            "SELECT id, title, exercises FROM plans ORDER BY id;"
        )
        return [_plan_row(r) for r in rows]

    async def delete(self, plan_id: int) -> None:
        await self.execute("DELETE FROM plans WHERE id = ?;", (plan_id,))

    async def delete_all(self) -> None:
        await self._delete_all("plans")


class AsyncLogRepository(AsyncBaseRepository):
    """Async append-only repository for completed sessions."""

    async def append(
        self,
        plan_title: str,
        exercises: Optional[Iterable[dict]] = None,
        date: Optional[str] = None,
    ) -> dict:
        items = _log_exercises(exercises)
        stamp = date or utc_timestamp()
        lid = await self.execute(
            "INSERT INTO logs (plan_title, date, exercises) VALUES (?, ?, ?);",
            (plan_title, stamp, json.dumps(items)),
        )
        return {"id": lid, "planTitle": plan_title, "date": stamp, "exercises": items}

    async def fetch_all_logs(self) -> List[dict]:
        rows = await self.fetch_all(
            "SELECT id, plan_title, date, exercises FROM logs ORDER BY id;"
        )
        return [_log_row(r) for r in rows]

    async def delete_all(self) -> None:
        await self._delete_all("logs")


class AsyncWorkoutStore(AsyncDatabase):
    """Async facade mirroring :class:`WorkoutStore`."""

    def __init__(self, db_path: str = "workout.db") -> None:
        super().__init__(db_path)
        self.exercises = AsyncExerciseRepository(db_path)
        self.plans = AsyncPlanRepository(db_path)
        self.logs = AsyncLogRepository(db_path)

    async def export_snapshot(self) -> dict:
        async with self._async_connection() as conn:
            cursor = await conn.execute(
                "SELECT id, plan_title, date, exercises FROM logs ORDER BY id;"
            )
            logs = await cursor.fetchall()
            cursor = await conn.execute(
                "SELECT id, title, exercises FROM plans ORDER BY id;"
            )
            plans = await cursor.fetchall()
            cursor = await conn.execute("SELECT id, name FROM exercises ORDER BY id;")
            exercises = await cursor.fetchall()
        return {
            "logs": [_log_row(r) for r in logs],
            "plans": [_plan_row(r) for r in plans],
            "exercises": [_exercise_row(r) for r in exercises],
        }

    async def import_snapshot(self, data) -> dict:
        snapshot = parse_snapshot(data)
        statements = _snapshot_inserts(snapshot)
        try:
            async with self._async_connection() as conn:
                for table in COLLECTIONS:
                    await conn.execute(f"DELETE FROM {table};")
                for query, params in statements:
                    await conn.execute(query, params)
        except (sqlite3.DatabaseError, OverflowError) as e:
            raise SnapshotImportError(f"could not import backup: {e}")
        return {key: len(getattr(snapshot, key)) for key in COLLECTIONS}

    async def reset_all(self) -> None:
        async with self._async_connection() as conn:
            for table in COLLECTIONS:
                await conn.execute(f"DELETE FROM {table};")
