"""Unit tests for the SQLite job and article store."""

from datetime import datetime, timedelta

import aiosqlite
import pytest

from services.job_store import InvalidTransitionError, JobStore, JobStoreError


@pytest.mark.unit
@pytest.mark.asyncio
async def test_create_and_get_job(job_store):
    job = await job_store.create_job("job1", "target1", data={"topic": "Reefs"})

    assert job["id"] == "job1"
    assert job["target_id"] == "target1"
    assert job["status"] == "processing"
    assert job["stage"] == "queued"
    assert job["progress"] == 0
    assert job["data"] == {"topic": "Reefs"}
    assert await job_store.find_job_by_target("target1") == job


@pytest.mark.unit
@pytest.mark.asyncio
async def test_one_job_per_target(job_store):
    await job_store.create_job("job1", "target1")

    with pytest.raises(JobStoreError):
        await job_store.create_job("job2", "target1")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_update_merges_data(job_store):
    await job_store.create_job("job1", "target1", data={"topic": "Reefs"})

    job = await job_store.update_job("job1", stage="planning_scenes", progress=20, data={"scene_count": 18})

    assert job["stage"] == "planning_scenes"
    assert job["progress"] == 20
    assert job["data"] == {"topic": "Reefs", "scene_count": 18}


@pytest.mark.unit
@pytest.mark.asyncio
async def test_terminal_jobs_reject_updates(job_store):
    await job_store.create_job("job1", "target1")
    await job_store.update_job("job1", status="completed", artifact_url="/videos/job1.mp4")

    with pytest.raises(InvalidTransitionError):
        await job_store.update_job("job1", status="processing")
    with pytest.raises(InvalidTransitionError):
        await job_store.update_job("job1", progress=50)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_update_unknown_job_returns_none(job_store):
    assert await job_store.update_job("missing", progress=10) is None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_list_and_delete(job_store):
    await job_store.create_job("job1", "target1")
    await job_store.create_job("job2", "target2")
    await job_store.update_job("job2", status="failed", error="boom")

    assert {j["id"] for j in await job_store.list_jobs()} == {"job1", "job2"}
    assert [j["id"] for j in await job_store.list_jobs(status="failed")] == ["job2"]

    assert await job_store.delete_job("job2") is True
    assert await job_store.delete_job("job2") is False
    assert await job_store.find_job_by_target("target2") is None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_cleanup_removes_only_old_terminal_jobs(job_store):
    await job_store.create_job("old-done", "t1")
    await job_store.update_job("old-done", status="completed")
    await job_store.create_job("old-running", "t2")
    await job_store.create_job("new-done", "t3")
    await job_store.update_job("new-done", status="completed")

    old = (datetime.now() - timedelta(days=30)).isoformat()
    await job_store.db.execute("UPDATE jobs SET created_at = ? WHERE id IN ('old-done', 'old-running')", (old,))
    await job_store.db.commit()

    removed = await job_store.cleanup_old_jobs(days=7)

    assert [job["id"] for job in removed] == ["old-done"]
    assert {j["id"] for j in await job_store.list_jobs()} == {"old-running", "new-done"}


@pytest.mark.unit
@pytest.mark.asyncio
async def test_fail_interrupted_jobs(job_store):
    await job_store.create_job("job1", "target1")
    await job_store.create_job("job2", "target2")
    await job_store.update_job("job2", status="completed")

    assert await job_store.fail_interrupted_jobs("server restarted") == 1

    job = await job_store.get_job("job1")
    assert job["status"] == "failed"
    assert job["error"] == "server restarted"
    assert (await job_store.get_job("job2"))["status"] == "completed"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_fail_interrupted_jobs_spares_live_workers(job_store):
    await job_store.heartbeat("live")
    await job_store.heartbeat("silent")
    stale = (datetime.now() - timedelta(minutes=5)).isoformat()
    await job_store.db.execute("UPDATE workers SET heartbeat_at = ? WHERE id = 'silent'", (stale,))
    await job_store.db.commit()

    await job_store.create_job("job-live", "t1", owner="live")
    await job_store.create_job("job-silent", "t2", owner="silent")
    await job_store.create_job("job-gone", "t3", owner="gone")

    assert await job_store.fail_interrupted_jobs("worker stopped", stale_after=60) == 2

    assert (await job_store.get_job("job-live"))["status"] == "processing"
    assert (await job_store.get_job("job-silent"))["status"] == "failed"
    assert (await job_store.get_job("job-gone"))["status"] == "failed"

    await job_store.remove_worker("live")
    assert await job_store.fail_interrupted_jobs("worker stopped") == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_owner_column_added_to_existing_database(temp_dir):
    db_path = temp_dir / "legacy.db"
    async with aiosqlite.connect(str(db_path)) as db:
        await db.execute(
            "CREATE TABLE jobs (id TEXT PRIMARY KEY, target_id TEXT NOT NULL UNIQUE, "
            "status TEXT NOT NULL DEFAULT 'processing', stage TEXT NOT NULL DEFAULT 'queued', "
            "progress INTEGER NOT NULL DEFAULT 0, created_at TEXT NOT NULL, updated_at TEXT NOT NULL, "
            "data JSON, artifact_url TEXT, error TEXT)"
        )
        await db.commit()

    store = JobStore(str(db_path))
    await store.connect()
    try:
        job = await store.create_job("job1", "target1", owner="worker-a")
        assert job["owner"] == "worker-a"
    finally:
        await store.close()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_articles_upsert(job_store):
    assert await job_store.get_article("target1") is None

    await job_store.put_article("target1", "First draft.", "Reefs")
    await job_store.put_article("target1", "Second draft.", "Coral reefs")

    article = await job_store.get_article("target1")
    assert article["text"] == "Second draft."
    assert article["topic"] == "Coral reefs"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_file_database_survives_reconnect(temp_dir):
    db_path = str(temp_dir / "nested" / "jobs.db")
    store = JobStore(db_path)
    await store.connect()
    await store.create_job("job1", "target1", data={"topic": "Reefs"})
    await store.close()

    reopened = JobStore(db_path)
    await reopened.connect()
    try:
        job = await reopened.get_job("job1")
        assert job["data"] == {"topic": "Reefs"}
    finally:
        await reopened.close()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_requires_connection():
    store = JobStore(":memory:")

    with pytest.raises(RuntimeError):
        await store.get_job("job1")
