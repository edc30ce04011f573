"""End-to-end lifecycle runs against in-memory vendors and a real SQLite store."""

import json
from unittest.mock import AsyncMock, MagicMock, Mock

import pytest
import pytest_asyncio

from models.reel import ReelRequest, ReelStatus
from reel_pipeline import (
    CancellationToken,
    MediaCatalog,
    NarrationSynthesizer,
    ReelLifecycleManager,
    RenderOrchestrator,
    SequencePlanner,
    SubtitleCompositor,
)
from services.render_service import RenderServiceError
from services.tts_service import TTSServiceError
from services.usage_service import UsageService
from utils.logging import PipelineTelemetry

PUBLIC_PREFIX = "https://abc.supabase.co/storage/v1/object/public/media/"

ADAPTIVE_PLAN = json.dumps(
    {
        "elements": [
            {"id": "img-1", "type": "image", "start_time": 0, "duration": 3},
            {"id": "vid-1", "type": "video", "start_time": 3, "duration": 4},
            {"id": "img-2", "type": "image", "start_time": 7, "duration": 2},
        ],
        "total_duration": 9,
    }
)


class FakeRenderService:
    """Render vendor double: every render finishes on the first poll."""

    def __init__(self):
        self.requests: list[dict] = []
        self.downloads: list[str] = []
        self.fail_submission_at: set[int] = set()
        self.status_for: dict[int, str] = {}
        self.poll_error: Exception | None = None
        self.download_error: Exception | None = None
        self.on_poll = None

    async def create_render(self, payload):
        self.requests.append(payload)
        index = len(self.requests)
        if index in self.fail_submission_at:
            raise RenderServiceError(f"submission {index} rejected")
        return [{"id": f"render-{index}", "status": "planned"}]

    async def get_render(self, render_id):
        if self.on_poll is not None:
            self.on_poll(render_id)
        if self.poll_error is not None:
            raise self.poll_error
        index = int(render_id.rsplit("-", 1)[1])
        status = self.status_for.get(index, "succeeded")
        return {
            "id": render_id,
            "status": status,
            "url": f"https://cdn.test/{render_id}.mp4",
            "duration": 9.0,
        }

    async def download(self, url):
        if self.download_error is not None:
            raise self.download_error
        self.downloads.append(url)
        return b"mp4-bytes:" + url.encode()


class Harness:
    """Wires a lifecycle manager from fakes so each test can tweak one part."""

    def __init__(self, store, storage, telemetry, transcript):
        self.store = store
        self.storage = storage
        self.telemetry = telemetry
        self.render_service = FakeRenderService()
        self.ai = Mock()
        self.ai.generate_media_sequence = Mock(return_value=ADAPTIVE_PLAN)
        self.tts = AsyncMock()
        self.tts.synthesize.return_value = b"ID3narration"
        self.stt = AsyncMock()
        self.stt.transcribe.return_value = transcript
        self.usage = UsageService(store, limit=5)
        self.transitions: list[tuple[ReelStatus, int]] = []
        self.orchestrator_options = {"poll_interval": 0}

    async def record(self, reel):
        self.transitions.append((reel.status, reel.progress_percentage))

    def build(self) -> ReelLifecycleManager:
        orchestrator = RenderOrchestrator(
            self.render_service, telemetry=self.telemetry, **self.orchestrator_options
        )
        return ReelLifecycleManager(
            store=self.store,
            storage=self.storage,
            render_service=self.render_service,
            catalog=MediaCatalog(self.store, self.storage, telemetry=self.telemetry),
            planner=SequencePlanner(self.ai, telemetry=self.telemetry),
            orchestrator=orchestrator,
            subtitles=SubtitleCompositor(orchestrator, telemetry=self.telemetry),
            narrator=NarrationSynthesizer(
                self.store, self.storage, self.tts, self.stt,
                default_voice_id="voice-default", telemetry=self.telemetry,
            ),
            usage=self.usage,
            telemetry=self.telemetry,
            on_transition=self.record,
        )

    async def run(self, request: ReelRequest, reel_id: str = "reel-1", token=None) -> ReelStatus:
        await self.store.create_reel(request, reel_id=reel_id)
        return await self.build().run(reel_id, request, token)


def _request(**overrides) -> ReelRequest:
    fields = {
        "product_id": "p1",
        "title": "Trail backpack launch",
        "user_id": "user-1",
        "photo_ids": ["img-1", "img-2"],
        "video_ids": ["vid-1"],
        "script_id": "script-1",
        "font_size": 5,
    }
    fields.update(overrides)
    return ReelRequest(**fields)


@pytest_asyncio.fixture
async def harness(reel_store, fake_storage, telemetry, sample_transcript):
    await reel_store.add_photo("p1", "photos/p1/img-1.jpg", "Backpack on a trail", photo_id="img-1")
    await reel_store.add_photo("p1", PUBLIC_PREFIX + "photos/p1/img-2.jpg", photo_id="img-2")
    await reel_store.add_video("p1", "videos/p1/vid-1.mp4", duration=4.0, video_id="vid-1")
    await reel_store.add_script("p1", "Meet the new trail backpack.", script_id="script-1")
    for key in ("photos/p1/img-1.jpg", "photos/p1/img-2.jpg", "videos/p1/vid-1.mp4"):
        fake_storage.put("media", key)
    return Harness(reel_store, fake_storage, telemetry, sample_transcript)


def _assert_forward_only(transitions):
    progress = [p for status, p in transitions if status != ReelStatus.FAILED]
    assert progress == sorted(progress)


# =============================================================================
# Completed runs
# =============================================================================


@pytest.mark.integration
@pytest.mark.asyncio
async def test_narrated_reel_completes(harness):
    status = await harness.run(_request())

    assert status == ReelStatus.COMPLETED
    reel = await harness.store.get_reel("reel-1")
    assert reel.status == ReelStatus.COMPLETED
    assert reel.progress_percentage == 100
    assert reel.file_name.startswith("user-1/reel-1-")
    assert reel.storage_path == f"generated-reels/{reel.file_name}"
    assert reel.duration == 9.0
    assert reel.ordered_media["strategy"] == "adaptive"
    assert [e["id"] for e in reel.ordered_media["elements"]] == ["img-1", "vid-1", "img-2"]

    # Primary render carries the narration; second pass adds captions
    primary, captioned = harness.render_service.requests
    audio = [e for e in primary["source"]["elements"] if e["type"] == "audio"]
    assert len(audio) == 1 and audio[0]["time"] == 0
    assert any(e["type"] == "text" and e["font_size"] == "5 vmin" for e in captioned["source"]["elements"])

    # The captioned render is the one persisted
    assert harness.render_service.downloads == ["https://cdn.test/render-2.mp4"]
    assert harness.storage.objects[("generated-reels", reel.file_name)] == (
        b"mp4-bytes:https://cdn.test/render-2.mp4"
    )

    assert len(await harness.store.get_audio_for_reel("reel-1")) == 1
    assert (await harness.usage.check_limit("user-1")).current_usage == 1


@pytest.mark.integration
@pytest.mark.asyncio
async def test_transitions_follow_pipeline_order(harness):
    await harness.run(_request())

    assert [s for s, _ in harness.transitions] == [
        ReelStatus.PROCESSING,
        ReelStatus.GENERATING_AUDIO,
        ReelStatus.PROCESSING_MEDIA,
        ReelStatus.RENDERING_PREPARING,
        ReelStatus.RENDERING_PROCESSING,
        ReelStatus.RENDERING_FINALIZING,
        ReelStatus.COMPLETED,
    ]
    assert [p for _, p in harness.transitions] == [10, 30, 45, 60, 75, 90, 100]


@pytest.mark.integration
@pytest.mark.asyncio
async def test_reel_without_script_skips_narration(harness):
    status = await harness.run(_request(script_id=None))

    assert status == ReelStatus.COMPLETED
    assert ReelStatus.GENERATING_AUDIO not in [s for s, _ in harness.transitions]
    harness.tts.synthesize.assert_not_called()
    harness.ai.generate_media_sequence.assert_not_called()
    reel = await harness.store.get_reel("reel-1")
    assert reel.ordered_media["strategy"] == "fallback"
    assert reel.ordered_media["total_duration"] == 9.0
    assert len(harness.render_service.requests) == 1


@pytest.mark.integration
@pytest.mark.asyncio
async def test_tts_failure_degrades_to_silent_reel(harness):
    harness.tts.synthesize.side_effect = TTSServiceError("voice unavailable")

    status = await harness.run(_request())

    assert status == ReelStatus.COMPLETED
    reel = await harness.store.get_reel("reel-1")
    assert reel.ordered_media["strategy"] == "fallback"
    primary = harness.render_service.requests[0]
    assert all(e["type"] != "audio" for e in primary["source"]["elements"])
    # No transcript, no subtitle pass
    assert len(harness.render_service.requests) == 1
    assert harness.telemetry.outcomes("narration") == ["degraded"]
    _assert_forward_only(harness.transitions)


@pytest.mark.integration
@pytest.mark.asyncio
async def test_malformed_sequence_uses_fallback_layout(harness):
    harness.ai.generate_media_sequence.return_value = "```json\n{not valid json\n```"

    status = await harness.run(_request())

    assert status == ReelStatus.COMPLETED
    reel = await harness.store.get_reel("reel-1")
    assert reel.ordered_media["strategy"] == "fallback"
    assert [e["duration"] for e in reel.ordered_media["elements"]] == [3.0, 3.0, 3.0]


@pytest.mark.integration
@pytest.mark.asyncio
async def test_subtitle_failure_keeps_primary_render(harness):
    harness.render_service.fail_submission_at = {2}

    status = await harness.run(_request())

    assert status == ReelStatus.COMPLETED
    assert harness.render_service.downloads == ["https://cdn.test/render-1.mp4"]
    assert harness.telemetry.outcomes("subtitle_pass") == ["error"]


@pytest.mark.integration
@pytest.mark.asyncio
async def test_unresolvable_media_is_skipped(harness):
    harness.storage.unsignable_keys.add("videos/p1/vid-1.mp4")

    status = await harness.run(_request(photo_ids=["img-1", "missing"]))

    assert status == ReelStatus.COMPLETED
    elements = (await harness.store.get_reel("reel-1")).ordered_media["elements"]
    assert {e["id"] for e in elements} == {"img-1"}


# =============================================================================
# Failed runs
# =============================================================================


@pytest.mark.integration
@pytest.mark.asyncio
async def test_unverifiable_upload_fails_reel(harness):
    harness.storage.fail_all_signing_in.add("generated-reels")

    status = await harness.run(_request())

    assert status == ReelStatus.FAILED
    reel = await harness.store.get_reel("reel-1")
    assert reel.status == ReelStatus.FAILED
    assert reel.progress_percentage == 0
    assert reel.storage_path is None
    assert (await harness.usage.check_limit("user-1")).current_usage == 0


@pytest.mark.integration
@pytest.mark.asyncio
async def test_no_media_fails_reel(harness):
    status = await harness.run(_request(photo_ids=["gone-1"], video_ids=[]))

    assert status == ReelStatus.FAILED
    assert harness.render_service.requests == []
    assert harness.transitions[-1] == (ReelStatus.FAILED, 0)


@pytest.mark.integration
@pytest.mark.asyncio
async def test_vendor_reported_failure_fails_reel(harness):
    harness.render_service.status_for[1] = "failed"

    assert await harness.run(_request()) == ReelStatus.FAILED


@pytest.mark.integration
@pytest.mark.asyncio
async def test_failure_event_names_the_failed_stage(harness):
    logger = MagicMock()
    harness.telemetry = PipelineTelemetry(logger=logger)
    harness.render_service.status_for[1] = "failed"

    assert await harness.run(_request()) == ReelStatus.FAILED

    reel = await harness.store.get_reel("reel-1")
    assert reel.status == ReelStatus.FAILED
    assert reel.progress_percentage == 0
    run_errors = [
        c.kwargs for c in logger.error.call_args_list
        if c.kwargs.get("stage") == "reel_run"
    ]
    assert len(run_errors) == 1
    assert run_errors[0]["outcome"] == "error"
    assert run_errors[0]["failed_stage"] == ReelStatus.RENDERING_PROCESSING.value
    assert run_errors[0]["error_type"] == "RenderFailedError"


@pytest.mark.integration
@pytest.mark.asyncio
async def test_render_timeout_fails_reel(harness):
    harness.render_service.status_for[1] = "rendering"
    harness.orchestrator_options["max_poll_seconds"] = 0

    assert await harness.run(_request()) == ReelStatus.FAILED


@pytest.mark.integration
@pytest.mark.asyncio
@pytest.mark.parametrize(
    "break_stage",
    ["submit", "poll", "download", "storage_upload", "usage"],
)
async def test_every_run_reaches_a_terminal_state(harness, break_stage):
    if break_stage == "submit":
        harness.render_service.fail_submission_at = {1}
    elif break_stage == "poll":
        harness.render_service.poll_error = RenderServiceError("HTTP 502")
    elif break_stage == "download":
        harness.render_service.download_error = RenderServiceError("HTTP 404")
    elif break_stage == "storage_upload":
        harness.storage.upload_bytes = Mock(side_effect=RuntimeError("bucket unavailable"))
    elif break_stage == "usage":
        harness.usage.increment = AsyncMock(side_effect=RuntimeError("db locked"))

    status = await harness.run(_request())

    assert status.is_terminal
    reel = await harness.store.get_reel("reel-1")
    assert reel.status == status
    _assert_forward_only(harness.transitions)
    if break_stage == "usage":
        assert status == ReelStatus.COMPLETED


# =============================================================================
# Cancellation
# =============================================================================


@pytest.mark.integration
@pytest.mark.asyncio
async def test_cancel_before_start_leaves_reel_pending(harness):
    token = CancellationToken()
    token.cancel()

    status = await harness.run(_request(), token=token)

    assert status == ReelStatus.PENDING
    assert (await harness.store.get_reel("reel-1")).status == ReelStatus.PENDING
    assert harness.transitions == []


@pytest.mark.integration
@pytest.mark.asyncio
async def test_cancel_while_rendering_keeps_last_status(harness):
    token = CancellationToken()
    harness.render_service.status_for[1] = "rendering"
    harness.render_service.on_poll = lambda render_id: token.cancel("shutdown")

    status = await harness.run(_request(), token=token)

    assert status == ReelStatus.RENDERING_PROCESSING
    reel = await harness.store.get_reel("reel-1")
    assert reel.status == ReelStatus.RENDERING_PROCESSING
    assert reel.progress_percentage == 75
    assert harness.telemetry.outcomes("reel_run") == ["cancelled"]
    assert (await harness.usage.check_limit("user-1")).current_usage == 0
