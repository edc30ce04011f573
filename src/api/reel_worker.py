"""Background worker pool that runs queued reel generations.

The HTTP handler only records a pending reel and enqueues it; generation
happens here, off the request path.
"""

import asyncio
import logging
from typing import Awaitable, Callable

from models.reel import ReelRequest, ReelStatus
from reel_pipeline.cancellation import CancellationToken

logger = logging.getLogger(__name__)

RunReel = Callable[[str, ReelRequest, CancellationToken], Awaitable[ReelStatus]]


class ReelWorker:
    """Fixed-size pool of tasks draining an asyncio queue of reel runs."""

    def __init__(
        self,
        run_reel: RunReel,
        concurrency: int = 2,
        shutdown_grace_seconds: float = 10.0,
    ):
        """Initialize worker pool.

        Args:
            run_reel: Coroutine running one reel to completion
            concurrency: Number of reels generated at once
            shutdown_grace_seconds: How long stop() waits for runs to reach a stage boundary
        """
        self.run_reel = run_reel
        self.concurrency = concurrency
        self.shutdown_grace_seconds = shutdown_grace_seconds
        self.cancel_token = CancellationToken()
        self._queue: asyncio.Queue[tuple[str, ReelRequest]] | None = None
        self._tasks: list[asyncio.Task] = []
        self._pending: set[str] = set()
        self._active: set[str] = set()

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    def is_busy(self, reel_id: str) -> bool:
        """True while a reel is queued or being generated."""
        return reel_id in self._pending or reel_id in self._active

    async def start(self) -> None:
        if self._tasks:
            return
        self._queue = asyncio.Queue()
        self._tasks = [
            asyncio.create_task(self._work(index), name=f"reel-worker-{index}")
            for index in range(self.concurrency)
        ]
        logger.info(f"Reel worker started with {self.concurrency} task(s)")

    async def enqueue(self, reel_id: str, request: ReelRequest) -> None:
        """Queue a reel for generation.

        Raises:
            RuntimeError: If the worker is not running or is shutting down
        """
        if self._queue is None or self.cancel_token.cancelled:
            raise RuntimeError("Reel worker is not accepting work")
        self._pending.add(reel_id)
        await self._queue.put((reel_id, request))
        logger.info(f"Queued reel {reel_id} ({self._queue.qsize()} waiting)")

    async def join(self) -> None:
        """Wait until every queued reel has been processed."""
        if self._queue is not None:
            await self._queue.join()

    async def _work(self, index: int) -> None:
        if self._queue is None:
            raise RuntimeError("Reel worker is not running")
        while True:
            reel_id, request = await self._queue.get()
            self._pending.discard(reel_id)
            try:
                if self.cancel_token.cancelled:
                    logger.info(f"Skipping reel {reel_id}: shutting down")
                    continue
                self._active.add(reel_id)
                status = await self.run_reel(reel_id, request, self.cancel_token)
                logger.info(f"Worker {index} finished reel {reel_id}: {status.value}")
            except Exception as e:
                # run_reel records failures itself; this only guards the pool
                logger.error(f"Worker {index} crashed on reel {reel_id}: {e}", exc_info=True)
            finally:
                self._active.discard(reel_id)
                self._queue.task_done()

    async def stop(self) -> None:
        """Signal cancellation, give runs a grace period, then cancel the tasks."""
        if not self._tasks:
            return

        self.cancel_token.cancel("shutdown")
        if self._active:
            logger.info(f"Waiting up to {self.shutdown_grace_seconds}s for {len(self._active)} reel(s)")
            deadline = asyncio.get_running_loop().time() + self.shutdown_grace_seconds
            while self._active and asyncio.get_running_loop().time() < deadline:
                await asyncio.sleep(0.1)

        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        logger.info("Reel worker stopped")
