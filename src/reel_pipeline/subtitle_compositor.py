"""Subtitle pass: overlay transcript-timed captions on a finished render.

The pass is best effort. If it fails for any reason other than shutdown,
the render without captions is kept.
"""

from typing import Any

from models.reel import RenderResult, Transcript, WordTiming
from reel_pipeline.cancellation import CancellationToken
from reel_pipeline.errors import PipelineCancelled
from reel_pipeline.render_orchestrator import OUTPUT_PROFILE, OVERLAY_TRACK, VISUAL_TRACK, RenderOrchestrator
from utils.logging import PipelineTelemetry, get_logger

logger = get_logger(__name__)

MAX_CAPTION_CHARS = 14
DEFAULT_FONT_SIZE = 4
MIN_CAPTION_SECONDS = 0.1
SENTENCE_ENDERS = (".", "!", "?")

CAPTION_STYLE = {
    "y": "82%",
    "width": "81%",
    "height": "35%",
    "x_alignment": "50%",
    "y_alignment": "50%",
    "fill_color": "#ffffff",
    "stroke_color": "#000000",
    "stroke_width": "0.5 vmin",
    "font_family": "Aileron",
    "font_weight": "700",
    "background_color": "rgba(0,0,0,0)",
    "background_border_radius": "5%",
}


def group_caption_words(
    words: list[WordTiming],
    max_chars: int = MAX_CAPTION_CHARS,
) -> list[tuple[list[WordTiming], float, float]]:
    """Group words into short captions.

    A caption closes at a sentence end or when adding the next word would
    exceed ``max_chars``. A single longer word gets a caption of its own.

    Returns:
        List of (words, start_seconds, end_seconds)
    """
    groups: list[tuple[list[WordTiming], float, float]] = []
    current: list[WordTiming] = []

    def close() -> None:
        nonlocal current
        if current:
            groups.append((current, current[0].start, current[-1].end))
            current = []

    for word in words:
        text = " ".join(w.word for w in current + [word])
        if current and len(text) > max_chars:
            close()
        current.append(word)
        if word.word.rstrip().endswith(SENTENCE_ENDERS):
            close()

    close()
    return groups


class SubtitleCompositor:
    """Runs the second render pass with caption text elements."""

    def __init__(
        self,
        orchestrator: RenderOrchestrator,
        telemetry: PipelineTelemetry | None = None,
    ):
        self.orchestrator = orchestrator
        self.telemetry = telemetry or PipelineTelemetry()

    def build_request(
        self,
        render: RenderResult,
        transcript: Transcript,
        font_size: int | None = None,
    ) -> dict[str, Any]:
        """Composition: the first-pass video on track 1, captions on track 2."""
        duration = render.duration if render.duration is not None else transcript.duration
        style = {**CAPTION_STYLE, "font_size": f"{font_size or DEFAULT_FONT_SIZE} vmin"}

        elements: list[dict[str, Any]] = [
            {
                "type": "video",
                "source": render.url,
                "track": VISUAL_TRACK,
                "time": 0,
                "duration": duration,
            }
        ]

        for words, start, end in group_caption_words(transcript.words):
            if start >= duration:
                break
            elements.append(
                {
                    "type": "text",
                    "text": " ".join(w.word for w in words),
                    "track": OVERLAY_TRACK,
                    "time": start,
                    "duration": max(min(end, duration) - start, MIN_CAPTION_SECONDS),
                    **style,
                }
            )

        return {"source": {**OUTPUT_PROFILE, "elements": elements}}

    async def add_subtitles(
        self,
        render: RenderResult,
        transcript: Transcript | None,
        font_size: int | None = None,
        reel_id: str | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> RenderResult:
        """Return a captioned render, or ``render`` itself if captioning is skipped or fails."""
        if transcript is None:
            return render

        try:
            with self.telemetry.stage("subtitle_pass", reel_id):
                request = self.build_request(render, transcript, font_size)
                result = await self.orchestrator.render(
                    request,
                    cancel_token=cancel_token,
                    reel_id=reel_id,
                    fallback_duration=render.duration,
                )
        except PipelineCancelled:
            raise
        except Exception as e:
            logger.warning("subtitle_pass_failed", reel_id=reel_id, render_id=render.id, error=str(e))
            return render

        logger.info("subtitles_added", reel_id=reel_id, render_id=result.id)
        return result
