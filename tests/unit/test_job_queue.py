"""Unit tests for the in-process job queue."""

import asyncio

import pytest

from narrated_video.job_queue import AsyncioJobQueue, JobPayload


@pytest.mark.unit
@pytest.mark.asyncio
async def test_jobs_run_in_submission_order():
    handled = []

    async def handler(payload: JobPayload) -> None:
        handled.append(payload.job_id)

    queue = AsyncioJobQueue(handler, concurrency=1)
    await queue.start()
    try:
        for i in range(5):
            await queue.enqueue(JobPayload(job_id=f"job{i}", target_id=f"t{i}"))
        await queue.join()
    finally:
        await queue.stop()

    assert handled == [f"job{i}" for i in range(5)]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_worker_count_bounds_concurrent_jobs():
    running = 0
    peak = 0

    async def handler(payload: JobPayload) -> None:
        nonlocal running, peak
        running += 1
        peak = max(peak, running)
        await asyncio.sleep(0.01)
        running -= 1

    queue = AsyncioJobQueue(handler, concurrency=2)
    await queue.start()
    try:
        for i in range(6):
            await queue.enqueue(JobPayload(job_id=f"job{i}", target_id=f"t{i}"))
        await queue.join()
    finally:
        await queue.stop()

    assert peak == 2


@pytest.mark.unit
@pytest.mark.asyncio
async def test_handler_crash_does_not_kill_worker():
    handled = []

    async def handler(payload: JobPayload) -> None:
        if payload.job_id == "bad":
            raise RuntimeError("unexpected")
        handled.append(payload.job_id)

    queue = AsyncioJobQueue(handler)
    await queue.start()
    try:
        await queue.enqueue(JobPayload(job_id="bad", target_id="t1"))
        await queue.enqueue(JobPayload(job_id="good", target_id="t2"))
        await queue.join()
    finally:
        await queue.stop()

    assert handled == ["good"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_start_and_stop():
    async def handler(payload: JobPayload) -> None:
        pass

    queue = AsyncioJobQueue(handler)
    assert queue.running is False

    await queue.start()
    assert queue.running is True
    await queue.enqueue(JobPayload(job_id="job1", target_id="t1"))

    await queue.stop()
    assert queue.running is False


def test_rejects_zero_workers():
    with pytest.raises(ValueError):
        AsyncioJobQueue(lambda payload: None, concurrency=0)
