"""Reel lifecycle: drives one generation run from pending to a terminal state.

Every run ends in ``completed`` or ``failed`` unless it is cancelled, in
which case the reel keeps the last status it reached. Progress only moves
forward while a run is in flight.
"""

import asyncio
import time
from typing import Awaitable, Callable

from models.reel import Reel, ReelRequest, ReelStatus, RenderResult
from reel_pipeline.cancellation import CancellationToken
from reel_pipeline.errors import ArtifactVerificationError, PipelineCancelled, ReelPipelineError
from reel_pipeline.media_catalog import MediaCatalog
from reel_pipeline.narration import NarrationSynthesizer
from reel_pipeline.render_orchestrator import RenderOrchestrator
from reel_pipeline.sequence_planner import SequencePlanner
from reel_pipeline.subtitle_compositor import SubtitleCompositor
from services.object_storage import ObjectStorage
from services.reel_store import ReelStore
from services.render_service import RenderService
from services.usage_service import UsageService
from utils.logging import PipelineTelemetry, clear_reel_context, get_logger, set_reel_context

logger = get_logger(__name__)

TransitionCallback = Callable[[Reel], Awaitable[None]]

STATUS_ORDER = [
    ReelStatus.PENDING,
    ReelStatus.PROCESSING,
    ReelStatus.GENERATING_AUDIO,
    ReelStatus.PROCESSING_MEDIA,
    ReelStatus.RENDERING_PREPARING,
    ReelStatus.RENDERING_PROCESSING,
    ReelStatus.RENDERING_FINALIZING,
    ReelStatus.COMPLETED,
]


class ReelLifecycleManager:
    """Runs the pipeline stages in order and records every transition."""

    def __init__(
        self,
        store: ReelStore,
        storage: ObjectStorage,
        render_service: RenderService,
        catalog: MediaCatalog,
        planner: SequencePlanner,
        orchestrator: RenderOrchestrator,
        subtitles: SubtitleCompositor,
        narrator: NarrationSynthesizer | None = None,
        usage: UsageService | None = None,
        output_bucket: str = "generated-reels",
        signed_url_ttl: int = 3600,
        telemetry: PipelineTelemetry | None = None,
        on_transition: TransitionCallback | None = None,
    ):
        self.store = store
        self.storage = storage
        self.render_service = render_service
        self.catalog = catalog
        self.planner = planner
        self.orchestrator = orchestrator
        self.subtitles = subtitles
        self.narrator = narrator
        self.usage = usage
        self.output_bucket = output_bucket
        self.signed_url_ttl = signed_url_ttl
        self.telemetry = telemetry or PipelineTelemetry()
        self.on_transition = on_transition

    async def _notify(self, reel: Reel) -> None:
        if self.on_transition is None:
            return
        try:
            await self.on_transition(reel)
        except Exception as e:
            logger.warning("transition_callback_failed", reel_id=reel.id, error=str(e))

    async def _transition(self, reel_id: str, current: ReelStatus, new: ReelStatus) -> ReelStatus:
        """Persist a forward transition with its progress percentage."""
        if STATUS_ORDER.index(new) < STATUS_ORDER.index(current):
            raise ReelPipelineError(f"Illegal transition {current.value} -> {new.value}")

        reel = await self.store.update_reel(
            reel_id, status=new, progress_percentage=new.progress
        )
        if reel is None:
            raise ReelPipelineError(f"Reel {reel_id} no longer exists")

        self.telemetry.event("transition", reel_id, status=new.value, progress=new.progress)
        await self._notify(reel)
        return new

    async def run(
        self,
        reel_id: str,
        request: ReelRequest,
        cancel_token: CancellationToken | None = None,
    ) -> ReelStatus:
        """Generate one reel.

        Args:
            reel_id: Pending reel row to drive
            request: Generation inputs
            cancel_token: Shutdown signal, checked between stages

        Returns:
            The status the reel was left in
        """
        token = cancel_token or CancellationToken()
        current = ReelStatus.PENDING
        started = time.perf_counter()
        set_reel_context(reel_id)

        try:
            reel = await self.store.get_reel(reel_id)
            if reel is None:
                raise ReelPipelineError(f"Reel {reel_id} not found")

            token.raise_if_cancelled()
            current = await self._transition(reel_id, current, ReelStatus.PROCESSING)

            narration = None
            if request.script_id and self.narrator is not None:
                token.raise_if_cancelled()
                current = await self._transition(reel_id, current, ReelStatus.GENERATING_AUDIO)
                try:
                    narration = await self.narrator.synthesize(reel, request.script_id, request.voice_id)
                except Exception as e:
                    logger.warning("narration_failed", reel_id=reel_id, error=str(e))
                    self.telemetry.event(
                        "narration", reel_id, outcome="degraded", level="warning", error=str(e)
                    )

            token.raise_if_cancelled()
            current = await self._transition(reel_id, current, ReelStatus.PROCESSING_MEDIA)
            media = await self.catalog.resolve(request.photo_ids, request.video_ids, reel_id=reel_id)

            token.raise_if_cancelled()
            current = await self._transition(reel_id, current, ReelStatus.RENDERING_PREPARING)
            transcript = narration.transcript if narration else None
            ordered = await self.planner.plan(media, transcript, reel_id=reel_id)
            await self.store.update_reel(reel_id, ordered_media=ordered.to_dict())

            token.raise_if_cancelled()
            job = await self.orchestrator.submit(
                ordered.elements,
                audio_url=narration.audio_url if narration else None,
                total_duration=ordered.total_duration,
                reel_id=reel_id,
            )
            current = await self._transition(reel_id, current, ReelStatus.RENDERING_PROCESSING)
            primary = await self.orchestrator.await_completion(
                job, cancel_token=token, reel_id=reel_id, fallback_duration=ordered.total_duration
            )

            token.raise_if_cancelled()
            current = await self._transition(reel_id, current, ReelStatus.RENDERING_FINALIZING)
            final = await self.subtitles.add_subtitles(
                primary, transcript, request.font_size, reel_id=reel_id, cancel_token=token
            )

            token.raise_if_cancelled()
            duration = primary.duration if primary.duration is not None else ordered.total_duration
            await self._persist_artifact(reel, final, duration)
            current = ReelStatus.COMPLETED

            await self._record_usage(request.user_id, reel_id)
            self.telemetry.event(
                "reel_run", reel_id, duration_ms=(time.perf_counter() - started) * 1000,
                status=current.value, strategy=ordered.strategy, narrated=narration is not None,
            )
            return current

        except PipelineCancelled:
            self.telemetry.event(
                "reel_run", reel_id, outcome="cancelled",
                duration_ms=(time.perf_counter() - started) * 1000, status=current.value,
            )
            return current

        except Exception as e:
            logger.exception("reel_run_failed", reel_id=reel_id, failed_stage=current.value, error=str(e))
            self.telemetry.event(
                "reel_run", reel_id, outcome="error", level="error",
                duration_ms=(time.perf_counter() - started) * 1000,
                failed_stage=current.value, error_type=type(e).__name__,
            )
            await self._fail(reel_id)
            return ReelStatus.FAILED

        finally:
            clear_reel_context()

    async def _persist_artifact(self, reel: Reel, render: RenderResult, duration: float) -> None:
        """Copy the render into storage, confirm it, then mark the reel completed.

        Raises:
            ArtifactVerificationError: If the uploaded object cannot be confirmed
        """
        with self.telemetry.stage("artifact_persist", reel.id, render_id=render.id):
            data = await self.render_service.download(render.url)
            file_name = f"{reel.user_id}/{reel.id}-{int(time.time() * 1000)}.mp4"

            await asyncio.to_thread(
                self.storage.upload_bytes, self.output_bucket, file_name, data, "video/mp4"
            )

            try:
                signed_url = await asyncio.to_thread(
                    self.storage.create_signed_url,
                    self.output_bucket,
                    file_name,
                    self.signed_url_ttl,
                )
            except Exception as e:
                raise ArtifactVerificationError(
                    f"Uploaded reel {self.output_bucket}/{file_name} could not be verified: {e}"
                ) from e
            if not signed_url:
                raise ArtifactVerificationError(
                    f"Uploaded reel {self.output_bucket}/{file_name} returned no signed URL"
                )

            updated = await self.store.update_reel(
                reel.id,
                status=ReelStatus.COMPLETED,
                progress_percentage=ReelStatus.COMPLETED.progress,
                storage_path=f"{self.output_bucket}/{file_name}",
                file_name=file_name,
                duration=duration,
            )
            if updated is None:
                raise ReelPipelineError(f"Reel {reel.id} no longer exists")

        logger.info("reel_completed", reel_id=reel.id, storage_path=updated.storage_path)
        await self._notify(updated)

    async def _record_usage(self, user_id: str, reel_id: str) -> None:
        if self.usage is None:
            return
        try:
            await self.usage.increment(user_id)
        except Exception as e:
            logger.warning("usage_increment_failed", reel_id=reel_id, user_id=user_id, error=str(e))

    async def _fail(self, reel_id: str) -> None:
        try:
            reel = await self.store.update_reel(
                reel_id, status=ReelStatus.FAILED, progress_percentage=ReelStatus.FAILED.progress
            )
        except Exception:
            logger.exception("mark_failed_error", reel_id=reel_id)
            return
        if reel is not None:
            await self._notify(reel)
