# mypy: ignore-errors
"""Tests for the inline and worker-pool task queues."""

import asyncio
import time

import pytest
from fastapi import status

from irys_forum.core.errors import DuplicateSubmission
from irys_forum.repositories import MemoryForumRepository
from irys_forum.schemas import LikeResponse, PostCreate
from irys_forum.services.backends import build_backends
from irys_forum.services.cache import NullPostCache
from irys_forum.services.tasks import InlineTaskQueue, TaskStatus, WorkerPoolTaskQueue
from tests.factories import ALICE, FakeClock

STORE_DELAY = 0.3


class SlowMemoryRepository(MemoryForumRepository):
    """Memory store whose duplicate lookup stands in for a slow database round trip."""

    def find_recent_post(self, author_address, content_hash, since):
        time.sleep(STORE_DELAY)
        return super().find_recent_post(author_address, content_hash, since)


def slow_backends(settings, clock, tasks):
    repository = SlowMemoryRepository()
    repository.register_username(ALICE, "alice")
    return build_backends(
        settings, repository=repository, cache=NullPostCache(), tasks=tasks, clock=clock
    )


async def test_inline_queue_resolves_before_returning() -> None:
    queue = InlineTaskQueue()

    async def operation():
        return LikeResponse(likes=3, is_liked=True)

    record = await queue.submit("demo", operation)

    assert record.status is TaskStatus.COMPLETED
    assert record.finished
    assert record.result == {"success": True, "likes": 3, "is_liked": True}
    assert queue.get(record.task_id) == record


async def test_forum_errors_mark_the_task_failed() -> None:
    queue = InlineTaskQueue()

    async def operation():
        raise DuplicateSubmission("Identical post submitted recently")

    record = await queue.submit("create_post", operation)

    assert record.status is TaskStatus.FAILED
    assert record.error == "Identical post submitted recently"
    assert record.error_kind == "duplicate_submission"


async def test_unexpected_errors_are_reported_as_internal() -> None:
    queue = InlineTaskQueue()

    async def operation():
        raise ValueError("boom")

    record = await queue.submit("create_post", operation)

    assert record.status is TaskStatus.FAILED
    assert record.error == "boom"
    assert record.error_kind == "internal_error"


async def test_worker_pool_runs_operations_in_background() -> None:
    queue = WorkerPoolTaskQueue(2)
    await queue.start()
    gate = asyncio.Event()

    async def operation():
        await gate.wait()
        return {"ok": True}

    record = await queue.submit("demo", operation)
    assert record.status is TaskStatus.PENDING

    gate.set()
    await queue.stop()

    final = queue.get(record.task_id)
    assert final.status is TaskStatus.COMPLETED
    assert final.result == {"ok": True}
    assert final.completed_at is not None
    assert not queue.running


async def test_worker_pool_executes_inline_when_not_started() -> None:
    queue = WorkerPoolTaskQueue(1)

    async def operation():
        return 42

    record = await queue.submit("demo", operation)
    assert record.status is TaskStatus.COMPLETED
    assert record.result == 42


async def test_worker_pool_start_is_idempotent() -> None:
    queue = WorkerPoolTaskQueue(3)
    await queue.start()
    await queue.start()
    try:
        assert len(queue._workers) == 3
    finally:
        await queue.stop()


async def test_finished_tasks_expire_after_retention(mocker) -> None:
    clock = FakeClock()
    mocker.patch("irys_forum.services.tasks.utcnow", new=clock)
    queue = InlineTaskQueue(retention_seconds=60)

    async def operation():
        return None

    old = await queue.submit("demo", operation)
    clock.advance(seconds=61)
    fresh = await queue.submit("demo", operation)

    assert queue.get(old.task_id) is None
    assert queue.get(fresh.task_id) is not None


def test_unknown_task_returns_404(client) -> None:
    response = client.get("/api/tasks/does-not-exist")
    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["error"] == "not_found"


@pytest.mark.parametrize("repository", ["memory"], indirect=True)
async def test_queued_post_creation_through_worker_pool(backends, alice) -> None:
    pool = WorkerPoolTaskQueue(2)
    backends.forum.tasks = pool
    await pool.start()

    record = await backends.forum.submit_create_post(
        PostCreate(author_address=alice, title="Queued", content="Body")
    )
    await pool.stop()

    final = backends.forum.get_task(record.task_id)
    assert final.status is TaskStatus.COMPLETED
    assert backends.repository.count_posts() == 1


async def test_storage_calls_leave_the_event_loop_free(test_settings, clock) -> None:
    backends = slow_backends(test_settings, clock, InlineTaskQueue())
    ticks = 0

    async def ticker():
        nonlocal ticks
        while True:
            await asyncio.sleep(0.02)
            ticks += 1

    ticking = asyncio.create_task(ticker())
    try:
        await backends.forum.create_post(
            PostCreate(author_address=ALICE, title="Slow", content="Body")
        )
    finally:
        ticking.cancel()

    assert ticks >= 5


async def test_worker_pool_overlaps_slow_storage_calls(test_settings, clock) -> None:
    pool = WorkerPoolTaskQueue(2)
    backends = slow_backends(test_settings, clock, pool)
    await pool.start()

    started = time.monotonic()
    records = [
        await backends.forum.submit_create_post(
            PostCreate(author_address=ALICE, title="Queued", content=f"Body {index}")
        )
        for index in range(2)
    ]
    await pool.stop()
    elapsed = time.monotonic() - started

    assert all(backends.forum.get_task(r.task_id).status is TaskStatus.COMPLETED for r in records)
    assert elapsed < 2 * STORE_DELAY
