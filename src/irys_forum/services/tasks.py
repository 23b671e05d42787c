"""Offloaded execution of create operations.

Both queues hand back a ``TaskRecord`` immediately. The worker pool runs the
operation later on background asyncio tasks; the inline queue runs it before
returning, so its record is already completed or failed. Clients poll both the
same way.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from enum import Enum
from threading import Lock
from typing import Any

from pydantic import BaseModel

from irys_forum.core.errors import ForumError
from irys_forum.db.time import utcnow

logger = logging.getLogger(__name__)

Operation = Callable[[], Awaitable[Any]]


class TaskStatus(str, Enum):
    """Lifecycle of an offloaded operation."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class TaskRecord:
    """Snapshot of a task as seen by pollers."""

    task_id: str
    kind: str
    status: TaskStatus
    created_at: datetime
    result: Any = None
    error: str | None = None
    error_kind: str | None = None
    completed_at: datetime | None = None

    @property
    def finished(self) -> bool:
        return self.status in (TaskStatus.COMPLETED, TaskStatus.FAILED)


@dataclass
class _QueuedTask:
    task_id: str
    operation: Operation = field(repr=False)


def _serialize(result: Any) -> Any:
    if isinstance(result, BaseModel):
        return result.model_dump(mode="json")
    return result


class TaskQueue(ABC):
    """Interface shared by the worker pool and the inline queue."""

    backend_name = "abstract"

    def __init__(self, *, retention_seconds: int = 3600) -> None:
        self._records: dict[str, TaskRecord] = {}
        self._records_lock = Lock()
        self._retention = timedelta(seconds=max(1, retention_seconds))

    def get(self, task_id: str) -> TaskRecord | None:
        """Return the latest snapshot of ``task_id``, or None if unknown."""
        with self._records_lock:
            return self._records.get(task_id)

    async def start(self) -> None:
        """Start background execution, if any."""

    async def stop(self) -> None:
        """Stop background execution, if any."""

    @abstractmethod
    async def submit(self, kind: str, operation: Operation) -> TaskRecord:
        """Register ``operation`` and return its initial record."""

    def _new_record(self, kind: str) -> TaskRecord:
        record = TaskRecord(
            task_id=str(uuid.uuid4()),
            kind=kind,
            status=TaskStatus.PENDING,
            created_at=utcnow(),
        )
        now = record.created_at
        with self._records_lock:
            expired = [
                task_id
                for task_id, existing in self._records.items()
                if existing.finished
                and existing.completed_at is not None
                and now - existing.completed_at > self._retention
            ]
            for task_id in expired:
                del self._records[task_id]
            self._records[record.task_id] = record
        return record

    def _update(self, task_id: str, **changes: Any) -> TaskRecord:
        with self._records_lock:
            record = replace(self._records[task_id], **changes)
            self._records[task_id] = record
            return record

    async def _execute(self, task_id: str, operation: Operation) -> TaskRecord:
        self._update(task_id, status=TaskStatus.PROCESSING)
        try:
            result = await operation()
        except ForumError as exc:
            logger.info("Task %s failed: %s", task_id, exc.message)
            return self._update(
                task_id,
                status=TaskStatus.FAILED,
                error=exc.message,
                error_kind=exc.kind,
                completed_at=utcnow(),
            )
        except Exception as exc:
            logger.exception("Task %s crashed", task_id)
            return self._update(
                task_id,
                status=TaskStatus.FAILED,
                error=str(exc) or exc.__class__.__name__,
                error_kind="internal_error",
                completed_at=utcnow(),
            )
        return self._update(
            task_id,
            status=TaskStatus.COMPLETED,
            result=_serialize(result),
            completed_at=utcnow(),
        )


class InlineTaskQueue(TaskQueue):
    """Runs each operation before returning an already-resolved record."""

    backend_name = "inline"

    async def submit(self, kind: str, operation: Operation) -> TaskRecord:
        record = self._new_record(kind)
        return await self._execute(record.task_id, operation)


class WorkerPoolTaskQueue(TaskQueue):
    """asyncio queue drained by a fixed number of background workers."""

    backend_name = "worker_pool"

    def __init__(self, worker_count: int = 10, *, retention_seconds: int = 3600) -> None:
        super().__init__(retention_seconds=retention_seconds)
        self.worker_count = max(1, worker_count)
        self._queue: asyncio.Queue[_QueuedTask | None] | None = None
        self._workers: list[asyncio.Task[None]] = []

    @property
    def running(self) -> bool:
        return any(not worker.done() for worker in self._workers)

    async def start(self) -> None:
        """Spawn the worker tasks on the running loop."""

        if self.running:
            return
        self._queue = asyncio.Queue()
        self._workers = [
            asyncio.create_task(self._worker(index), name=f"forum-task-worker-{index}")
            for index in range(self.worker_count)
        ]
        logger.info("Started %d task workers", self.worker_count)

    async def stop(self) -> None:
        """Let queued work finish, then stop every worker."""

        if self._queue is None:
            return
        for _ in self._workers:
            await self._queue.put(None)
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        self._queue = None

    async def submit(self, kind: str, operation: Operation) -> TaskRecord:
        record = self._new_record(kind)
        if self._queue is None or not self.running:
            logger.warning("Task workers are not running; executing %s inline", record.task_id)
            return await self._execute(record.task_id, operation)
        await self._queue.put(_QueuedTask(record.task_id, operation))
        return record

    async def _worker(self, index: int) -> None:
        assert self._queue is not None
        queue = self._queue
        while True:
            item = await queue.get()
            try:
                if item is None:
                    return
                await self._execute(item.task_id, item.operation)
            finally:
                queue.task_done()


__all__ = [
    "InlineTaskQueue",
    "TaskQueue",
    "TaskRecord",
    "TaskStatus",
    "WorkerPoolTaskQueue",
]
