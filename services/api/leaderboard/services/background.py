"""Bounded background queue for best-effort cache maintenance.

Cache population and invalidation must never block or fail the request that
triggered them. Jobs go into a bounded asyncio.Queue served by a fixed pool
of worker tasks:
- submit() never waits: when the queue is full the job is dropped and logged
  (cache TTLs bound the staleness this causes)
- a failing job is logged and the worker moves on
- join() waits until every accepted job has finished
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

logger = logging.getLogger("uvicorn.error")

Job = Callable[[], Awaitable[object]]


@dataclass
class BackgroundStats:
    submitted: int = 0
    completed: int = 0
    failed: int = 0
    dropped: int = 0


class BackgroundQueue:
    """Fixed worker pool over a bounded queue of (label, job) pairs."""

    def __init__(self, *, workers: int = 2, max_size: int = 1000, name: str = "cache-maintenance"):
        if workers < 1:
            raise ValueError("workers must be >= 1")
        if max_size < 1:
            raise ValueError("max_size must be >= 1")
        self._worker_count = workers
        self._max_size = max_size
        self._name = name
        self._queue: asyncio.Queue[tuple[str, Job]] | None = None
        self._workers: list[asyncio.Task[None]] = []
        self._active = 0
        self.stats = BackgroundStats()

    @property
    def running(self) -> bool:
        return bool(self._workers)

    def start(self) -> None:
        """Start the worker tasks on the running event loop."""
        if self.running:
            return
        self._queue = asyncio.Queue(maxsize=self._max_size)
        self._workers = [
            asyncio.create_task(self._worker(f"{self._name}-{i}"))
            for i in range(self._worker_count)
        ]
        logger.info(f"Background queue {self._name} started with {self._worker_count} workers")

    def submit(self, label: str, job: Job) -> bool:
        """Enqueue a job without waiting. Returns False if it was dropped."""
        if not self.running:
            self.start()
        assert self._queue is not None
        try:
            self._queue.put_nowait((label, job))
        except asyncio.QueueFull:
            self.stats.dropped += 1
            logger.warning(
                f"Background queue {self._name} full ({self._max_size}), dropped job {label}"
            )
            return False
        self.stats.submitted += 1
        return True

    def pending(self) -> int:
        return self._queue.qsize() if self._queue is not None else 0

    def in_flight(self) -> int:
        """Jobs accepted but not finished (queued or running)."""
        return self.pending() + self._active

    async def join(self) -> None:
        """Wait until every accepted job has been processed."""
        if self._queue is not None:
            await self._queue.join()

    async def stop(self, timeout: float = 5.0) -> None:
        """Drain pending jobs (bounded by `timeout`), then cancel the workers."""
        if not self.running:
            return
        try:
            await asyncio.wait_for(self.join(), timeout)
        except asyncio.TimeoutError:
            logger.warning(
                f"Background queue {self._name} stopped with {self.in_flight()} jobs unfinished"
            )
        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        self._queue = None
        logger.info(f"Background queue {self._name} stopped")

    async def _worker(self, worker_name: str) -> None:
        assert self._queue is not None
        queue = self._queue
        while True:
            label, job = await queue.get()
            self._active += 1
            try:
                await job()
                self.stats.completed += 1
            except Exception:
                self.stats.failed += 1
                logger.exception(f"Background job {label} failed on {worker_name}")
            finally:
                self._active -= 1
                queue.task_done()
