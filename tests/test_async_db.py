import os
import sys
import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from db import (
    AsyncBaseRepository,
    AsyncLogRepository,
    AsyncPlanRepository,
    AsyncWorkoutStore,
    WorkoutStore,
)
from errors import PlanValidationError, SnapshotImportError


class NumberRepository(AsyncBaseRepository):
    async def init_db(self) -> None:
        async with self._async_connection() as conn:
            await conn.execute("CREATE TABLE IF NOT EXISTS numbers (val INTEGER)")
            await conn.commit()

    async def add(self, val: int) -> int:
        return await self.execute("INSERT INTO numbers (val) VALUES (?)", (val,))

    async def all(self):
        rows = await self.fetch_all("SELECT val FROM numbers")
        return [r[0] for r in rows]


@pytest.mark.asyncio
async def test_async_repository(tmp_path):
    repo = NumberRepository(str(tmp_path / "test.db"))
    await repo.init_db()
    await repo.add(5)
    assert await repo.all() == [5]


@pytest.mark.asyncio
async def test_async_plan_repo(tmp_path):
    repo = AsyncPlanRepository(str(tmp_path / "plans.db"))
    plan = await repo.create("Push Day", [{"name": "Bench Press"}])
    assert plan["id"] == 1
    assert await repo.fetch_all_plans() == [plan]
    with pytest.raises(PlanValidationError):
        await repo.create("  ")
    await repo.delete(plan["id"])
    await repo.delete(plan["id"])
    assert await repo.fetch_all_plans() == []


@pytest.mark.asyncio
async def test_async_log_repo(tmp_path):
    repo = AsyncLogRepository(str(tmp_path / "logs.db"))
    log = await repo.append(
        "Push Day",
        [{"name": "Squat", "sets": [{"weight": "100", "reps": "5"}]}],
        "2024-01-01T10:00:00.000Z",
    )
    assert await repo.fetch_all_logs() == [log]
    await repo.delete_all()
    assert await repo.fetch_all_logs() == []


@pytest.mark.asyncio
async def test_async_store_matches_sync_store(tmp_path):
    db_file = str(tmp_path / "store.db")
    sync_store = WorkoutStore(db_file)
    sync_store.plans.create("Push Day", [{"name": "Bench Press"}])
    sync_store.exercises.add("Bench Press")

    store = AsyncWorkoutStore(db_file)
    snapshot = await store.export_snapshot()
    assert snapshot == sync_store.export_snapshot()

    await store.logs.append("Push Day", [], "2024-01-01T10:00:00.000Z")
    snapshot = await store.export_snapshot()
    await store.reset_all()
    assert await store.plans.fetch_all_plans() == []

    counts = await store.import_snapshot(snapshot)
    assert counts == {"logs": 1, "plans": 1, "exercises": 1}
    assert await store.export_snapshot() == snapshot


@pytest.mark.asyncio
async def test_async_failed_import_keeps_store(tmp_path):
    store = AsyncWorkoutStore(str(tmp_path / "store.db"))
    await store.exercises.add("Squat")
    with pytest.raises(SnapshotImportError):
        await store.import_snapshot({"exercises": [{"id": "x"}]})
    assert await store.exercises.fetch_all_exercises() == [{"id": 1, "name": "Squat"}]


@pytest.mark.asyncio
async def test_async_import_oversized_id(tmp_path):
    store = AsyncWorkoutStore(str(tmp_path / "store.db"))
    await store.exercises.add("Squat")
    with pytest.raises(SnapshotImportError):
        await store.import_snapshot({"exercises": [{"id": -(2**70), "name": "x"}]})
    assert await store.exercises.fetch_all_exercises() == [{"id": 1, "name": "Squat"}]
