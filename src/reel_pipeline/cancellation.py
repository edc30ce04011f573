"""Cooperative cancellation shared between the worker pool and pipeline runs."""

import asyncio

from reel_pipeline.errors import PipelineCancelled


class CancellationToken:
    """A shutdown signal checked at stage boundaries.

    Cancellation is not preemptive: an in-flight vendor call finishes, and
    the run stops at the next check.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "shutdown") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise PipelineCancelled(f"Run cancelled: {self.reason}")

    async def sleep(self, seconds: float) -> None:
        """Sleep for ``seconds`` or until cancelled, whichever comes first.

        Raises:
            PipelineCancelled: If cancellation happens before or during the wait
        """
        self.raise_if_cancelled()
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return
        self.raise_if_cancelled()
