"""Render orchestration: build the composition, submit it, and wait for the result."""

import time
from typing import Any, Callable

from pydantic import ValidationError

from models.reel import RenderJob, RenderResult, TimelineElement
from models.vendor import RenderStatusPayload
from reel_pipeline.cancellation import CancellationToken
from reel_pipeline.errors import (
    RenderFailedError,
    RenderPollingError,
    RenderSubmissionError,
    RenderTimeoutError,
)
from services.render_service import RenderService
from utils.logging import PipelineTelemetry, get_logger

logger = get_logger(__name__)

# Vertical 1080x1920 at 30 fps
OUTPUT_PROFILE = {
    "output_format": "mp4",
    "width": 1080,
    "height": 1920,
    "fps": 30,
}

VISUAL_TRACK = 1
OVERLAY_TRACK = 2

COMPLETED_STATUSES = frozenset({"completed", "succeeded"})
FAILED_STATUSES = frozenset({"failed"})
IN_PROGRESS_STATUSES = frozenset({"planned", "rendering", "transcribing"})

DEFAULT_POLL_INTERVAL = 5.0
DEFAULT_MAX_POLL_SECONDS = 300.0
DEFAULT_MAX_CONSECUTIVE_ERRORS = 3


class RenderOrchestrator:
    """Submits compositions to the render vendor and polls them to completion."""

    def __init__(
        self,
        render_service: RenderService,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        max_poll_seconds: float = DEFAULT_MAX_POLL_SECONDS,
        max_consecutive_errors: int = DEFAULT_MAX_CONSECUTIVE_ERRORS,
        telemetry: PipelineTelemetry | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize orchestrator.

        Args:
            render_service: Vendor client
            poll_interval: Seconds between status checks
            max_poll_seconds: Give up after this long
            max_consecutive_errors: Give up after this many failed checks in a row
            telemetry: Event emitter
            clock: Monotonic time source
        """
        self.render_service = render_service
        self.poll_interval = poll_interval
        self.max_poll_seconds = max_poll_seconds
        self.max_consecutive_errors = max_consecutive_errors
        self.telemetry = telemetry or PipelineTelemetry()
        self.clock = clock

    @staticmethod
    def build_request(
        elements: list[TimelineElement],
        audio_url: str | None = None,
        total_duration: float | None = None,
    ) -> dict[str, Any]:
        """Composition request: visuals on track 1, narration on track 2."""
        source_elements: list[dict[str, Any]] = [
            {
                "type": element.kind.value,
                "source": element.source,
                "track": VISUAL_TRACK,
                "time": element.start_time,
                "duration": element.duration,
            }
            for element in elements
        ]

        if audio_url:
            if total_duration is None:
                total_duration = elements[-1].end_time if elements else 0.0
            source_elements.append(
                {
                    "type": "audio",
                    "source": audio_url,
                    "track": OVERLAY_TRACK,
                    "time": 0,
                    "duration": total_duration,
                }
            )

        return {"source": {**OUTPUT_PROFILE, "elements": source_elements}}

    async def submit(
        self,
        elements: list[TimelineElement],
        audio_url: str | None = None,
        total_duration: float | None = None,
        reel_id: str | None = None,
    ) -> RenderJob:
        """Build and submit the primary composition."""
        if not elements:
            raise RenderSubmissionError("Cannot render an empty timeline")
        request = self.build_request(elements, audio_url, total_duration)
        return await self.submit_request(request, reel_id=reel_id)

    async def submit_request(self, request: dict[str, Any], reel_id: str | None = None) -> RenderJob:
        """Submit a prepared composition.

        Raises:
            RenderSubmissionError: If the vendor rejects it or returns no render
        """
        with self.telemetry.stage("render_submit", reel_id):
            try:
                renders = await self.render_service.create_render(request)
            except Exception as e:
                raise RenderSubmissionError(f"Render submission failed: {e}") from e

            if not renders:
                raise RenderSubmissionError("Render vendor returned no renders")

            try:
                first = RenderStatusPayload.model_validate(renders[0])
            except ValidationError as e:
                raise RenderSubmissionError(f"Malformed render submission response: {e}") from e

        logger.info("render_submitted", reel_id=reel_id, render_id=first.id, status=first.status)
        return RenderJob(id=first.id, status=first.status)

    async def await_completion(
        self,
        job: RenderJob,
        cancel_token: CancellationToken | None = None,
        reel_id: str | None = None,
        fallback_duration: float | None = None,
    ) -> RenderResult:
        """Poll a render until it completes.

        Args:
            job: Submitted render
            cancel_token: Checked between polls
            reel_id: For log correlation
            fallback_duration: Duration to report if the vendor omits one

        Returns:
            RenderResult with the output URL

        Raises:
            RenderFailedError: Vendor reported failure
            RenderTimeoutError: Not finished within max_poll_seconds
            RenderPollingError: Too many consecutive status check errors
            PipelineCancelled: Cancellation requested between polls
        """
        cancel_token = cancel_token or CancellationToken()
        started = self.clock()
        consecutive_errors = 0
        polls = 0

        while True:
            cancel_token.raise_if_cancelled()
            elapsed = self.clock() - started
            if elapsed >= self.max_poll_seconds:
                self.telemetry.event(
                    "render_poll", reel_id, outcome="timeout",
                    duration_ms=elapsed * 1000, render_id=job.id, polls=polls,
                )
                raise RenderTimeoutError(
                    f"Render {job.id} did not finish within {self.max_poll_seconds:.0f}s"
                )

            polls += 1
            try:
                status = RenderStatusPayload.model_validate(
                    await self.render_service.get_render(job.id)
                )
            except Exception as e:
                consecutive_errors += 1
                logger.warning(
                    "render_poll_error",
                    reel_id=reel_id,
                    render_id=job.id,
                    consecutive_errors=consecutive_errors,
                    error=str(e),
                )
                if consecutive_errors >= self.max_consecutive_errors:
                    self.telemetry.event(
                        "render_poll", reel_id, outcome="error",
                        duration_ms=(self.clock() - started) * 1000, render_id=job.id, polls=polls,
                    )
                    raise RenderPollingError(
                        f"Render {job.id}: {consecutive_errors} consecutive status check failures"
                    ) from e
                await cancel_token.sleep(self.poll_interval)
                continue

            consecutive_errors = 0
            state = status.status.lower()

            if state in COMPLETED_STATUSES:
                if not status.url:
                    raise RenderFailedError(f"Render {job.id} completed without an output URL")
                self.telemetry.event(
                    "render_poll", reel_id,
                    duration_ms=(self.clock() - started) * 1000, render_id=job.id, polls=polls,
                )
                return RenderResult(
                    id=status.id,
                    status=state,
                    url=status.url,
                    duration=status.duration if status.duration is not None else fallback_duration,
                )

            if state in FAILED_STATUSES:
                self.telemetry.event(
                    "render_poll", reel_id, outcome="failed",
                    duration_ms=(self.clock() - started) * 1000, render_id=job.id, polls=polls,
                )
                raise RenderFailedError(
                    f"Render {job.id} failed: {status.error_message or 'no reason given'}"
                )

            if state not in IN_PROGRESS_STATUSES:
                logger.warning("render_status_unknown", reel_id=reel_id, render_id=job.id, status=state)

            await cancel_token.sleep(self.poll_interval)

    async def render(
        self,
        request: dict[str, Any],
        cancel_token: CancellationToken | None = None,
        reel_id: str | None = None,
        fallback_duration: float | None = None,
    ) -> RenderResult:
        """Submit a composition and wait for it."""
        job = await self.submit_request(request, reel_id=reel_id)
        return await self.await_completion(
            job, cancel_token=cancel_token, reel_id=reel_id, fallback_duration=fallback_duration
        )
