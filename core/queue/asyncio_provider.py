from __future__ import annotations

import asyncio
import uuid
from collections import OrderedDict
from typing import Any

import structlog

from core.queue.provider import QueueProvider
from core.queue.tasks import execute_registered_task
from core.queue.types import QueueJobResult, QueueTaskKey

logger = structlog.get_logger(__name__)


class AsyncioQueueProvider(QueueProvider):
    """
    Runs registered tasks as tasks on the current event loop.

    Jobs are detached from the request that enqueued them; ``drain()`` waits
    for everything still in flight, which is how tests and shutdown get a
    deterministic point where all side effects have finished.
    """

    backend_name = "asyncio"

    def __init__(self, *, max_tracked_statuses: int = 1000) -> None:
        self._tasks: dict[str, asyncio.Task] = {}
        self._statuses: OrderedDict[str, str] = OrderedDict()
        self._max_tracked_statuses = max_tracked_statuses

    def _set_status(self, task_id: str, status: str) -> None:
        self._statuses[task_id] = status
        self._statuses.move_to_end(task_id)
        # oldest first; an evicted id reads as PENDING again
        while len(self._statuses) > self._max_tracked_statuses:
            self._statuses.popitem(last=False)

    def enqueue(self, task_key: QueueTaskKey, payload: dict[str, Any]) -> QueueJobResult:
        task_id = str(uuid.uuid4())
        loop = asyncio.get_running_loop()
        job = loop.create_task(self._run(task_id, str(task_key), payload))
        self._tasks[task_id] = job
        self._set_status(task_id, "PENDING")
        return QueueJobResult(task_id=task_id, backend=self.backend_name, status="queued")

    async def _run(self, task_id: str, task_key: str, payload: dict[str, Any]) -> None:
        self._set_status(task_id, "STARTED")
        try:
            await execute_registered_task(task_key=task_key, payload=payload)
        except Exception:
            self._set_status(task_id, "FAILURE")
            logger.exception("queue_task_failed", task_id=task_id, task_key=task_key)
        else:
            self._set_status(task_id, "SUCCESS")
        finally:
            self._tasks.pop(task_id, None)

    def get_status(self, task_id: str) -> str:
        return self._statuses.get(task_id, "PENDING")

    async def drain(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks.values()), return_exceptions=True)
