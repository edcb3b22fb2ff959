"""Job queue abstraction and the in-process asyncio implementation."""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class JobPayload:
    """What a worker needs to run a job. Identifiers only; the worker reloads
    the article from the content store."""

    job_id: str
    target_id: str


JobHandler = Callable[[JobPayload], Awaitable[None]]


class JobQueue(ABC):
    """Queue that decouples job execution from the request that started it."""

    @abstractmethod
    async def enqueue(self, payload: JobPayload) -> str:
        """Submit a job for execution.

        Returns:
            Queue handle for the submitted job
        """

    @abstractmethod
    async def start(self) -> None:
        """Start consuming jobs."""

    @abstractmethod
    async def stop(self) -> None:
        """Stop consuming jobs. Jobs already running are cancelled."""

    @abstractmethod
    async def join(self) -> None:
        """Wait until every enqueued job has been handled."""


class AsyncioJobQueue(JobQueue):
    """In-process queue drained by a fixed number of worker tasks.

    The worker count bounds how many renders run at once.
    """

    def __init__(self, handler: JobHandler, concurrency: int = 1):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.handler = handler
        self.concurrency = concurrency
        self._queue: asyncio.Queue[JobPayload] = asyncio.Queue()
        self._workers: list[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return bool(self._workers)

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def enqueue(self, payload: JobPayload) -> str:
        await self._queue.put(payload)
        logger.info(f"Queued job {payload.job_id} ({self._queue.qsize()} waiting)")
        return payload.job_id

    async def start(self) -> None:
        if self._workers:
            return
        self._workers = [
            asyncio.create_task(self._worker(i), name=f"render-worker-{i}")
            for i in range(self.concurrency)
        ]
        logger.info(f"Job queue started with {self.concurrency} worker(s)")

    async def stop(self) -> None:
        for worker in self._workers:
            worker.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        logger.info("Job queue stopped")

    async def join(self) -> None:
        await self._queue.join()

    async def _worker(self, index: int) -> None:
        while True:
            payload = await self._queue.get()
            try:
                logger.debug(f"Worker {index} picked up job {payload.job_id}")
                await self.handler(payload)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                # The handler records failures itself; keep the worker alive
                logger.error(f"Worker {index} crashed on job {payload.job_id}: {e}", exc_info=True)
            finally:
                self._queue.task_done()
