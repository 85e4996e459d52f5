"""Background task runner for imports started over HTTP.

Tasks run in the API process via ``asyncio.create_task``; the import
ledger, not this runner, is the source of truth for run progress.
"""

import asyncio
import enum
import uuid
from collections.abc import Coroutine
from typing import Any

from loguru import logger


class JobStatus(enum.StrEnum):
    """Status of a background task."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class InProcessTaskRunner:
    """In-process background task runner using asyncio."""

    def __init__(self) -> None:
        self._jobs: dict[str, JobStatus] = {}
        self._tasks: dict[str, asyncio.Task[Any]] = {}

    def submit_task(self, coro: Coroutine[Any, Any, Any]) -> str:
        """Submit an async task for background execution.

        Returns:
            A task ID string for tracking.
        """
        task_id = str(uuid.uuid4())
        self._jobs[task_id] = JobStatus.PENDING

        async def _run() -> None:
            self._jobs[task_id] = JobStatus.RUNNING
            try:
                await coro
                self._jobs[task_id] = JobStatus.COMPLETED
            except Exception:
                self._jobs[task_id] = JobStatus.FAILED
                logger.exception(f"Background task {task_id} failed")
                raise
            finally:
                self._tasks.pop(task_id, None)

        self._tasks[task_id] = asyncio.create_task(_run())
        return task_id

    def get_status(self, task_id: str) -> JobStatus:
        """Get the current status of a background task.

        Raises:
            KeyError: If the task ID is not found.
        """
        return self._jobs[task_id]


task_runner = InProcessTaskRunner()
