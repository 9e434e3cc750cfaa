"""In-memory FIFO of diagnosis jobs drained by a single worker task."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Awaitable, Callable, Deque, Optional

from models.job import Job
from utils.id_generator import MonotonicIdGenerator

LOGGER = logging.getLogger(__name__)

JobProcessor = Callable[[Job], Awaitable[None]]


class DiagnosisQueue:
    """Unbounded FIFO with at most one job in flight.

    `enqueue` never blocks: it appends the job and, when no drain task is
    running, starts one on the current event loop. The drain task processes
    jobs one at a time until the queue is empty, then exits. All methods must
    be called from the event loop thread.
    """

    def __init__(self, processor: JobProcessor, id_generator: Optional[MonotonicIdGenerator] = None) -> None:
        self._processor = processor
        self.id_generator = id_generator or MonotonicIdGenerator()
        self._pending: Deque[Job] = deque()
        self._current: Optional[Job] = None
        self._draining = False
        self._drain_task: Optional[asyncio.Task] = None

    @property
    def depth(self) -> int:
        """Jobs waiting plus the one in flight."""
        return len(self._pending) + (1 if self._current is not None else 0)

    @property
    def is_draining(self) -> bool:
        return self._draining

    @property
    def in_flight(self) -> Optional[Job]:
        return self._current

    def new_job(self, chat_ref: str, image_ref: str) -> Job:
        return Job(job_id=self.id_generator.next_id(), chat_ref=chat_ref, image_ref=image_ref)

    def enqueue(self, job: Job) -> int:
        """Append `job` and return its 1-based position, counting the job in flight."""
        if not self._draining:
            self._drain_task = asyncio.get_running_loop().create_task(self._drain())
            self._draining = True
        self._pending.append(job)
        position = self.depth
        LOGGER.info("Queued job %s for chat %s at position %d", job.job_id, job.chat_ref, position)
        return position

    async def _drain(self) -> None:
        try:
            while self._pending:
                job = self._pending.popleft()
                self._current = job
                try:
                    await self._processor(job)
                except asyncio.CancelledError:
                    raise
                except Exception:
                    LOGGER.exception("Job %s for chat %s failed", job.job_id, job.chat_ref)
                finally:
                    self._current = None
        finally:
            self._draining = False

    async def wait_idle(self) -> None:
        """Wait until every queued job has been processed."""
        while self._drain_task is not None and not self._drain_task.done():
            await asyncio.shield(self._drain_task)

    async def close(self) -> None:
        """Cancel the drain task; pending jobs are dropped."""
        task = self._drain_task
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        dropped = len(self._pending)
        self._pending.clear()
        if dropped:
            LOGGER.warning("Dropped %d queued jobs on shutdown", dropped)
