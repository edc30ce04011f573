"""Sequence planning: order media against the narration.

The adaptive path asks the sequencing model for a timed element list, then
parses, clamps and repairs it locally. Anything that still breaks a
timeline rule falls back to an even, deterministic layout.

Timeline rules enforced on every accepted plan:
- elements are contiguous, starting at 0
- the last element ends at total_duration
- every element lasts at least MIN_ELEMENT_DURATION
- a video never outlasts its clip
"""

import asyncio
import math

from models.reel import (
    MIN_ELEMENT_DURATION,
    MediaDescriptor,
    OrderedMedia,
    TimelineElement,
    Transcript,
)
from models.vendor import SequencePayload
from reel_pipeline.errors import PlanValidationError
from services.prompts import MEDIA_SEQUENCER_SYSTEM, MEDIA_SEQUENCER_V1
from utils.logging import PipelineTelemetry, get_logger

logger = get_logger(__name__)

FALLBACK_SECONDS_PER_ITEM = 3.0
TIMING_TOLERANCE = 1e-3
EPSILON = 1e-9


def validate_timeline(
    elements: list[TimelineElement],
    total_duration: float,
    media_by_id: dict[str, MediaDescriptor] | None = None,
) -> None:
    """Check a timeline against the timeline rules.

    Raises:
        PlanValidationError: On the first broken rule
    """
    if not elements:
        raise PlanValidationError("Timeline has no elements")

    cursor = 0.0
    for index, element in enumerate(elements):
        if abs(element.start_time - cursor) > TIMING_TOLERANCE:
            raise PlanValidationError(
                f"Element {index} starts at {element.start_time:.3f}s, expected {cursor:.3f}s"
            )
        if element.duration < MIN_ELEMENT_DURATION - TIMING_TOLERANCE:
            raise PlanValidationError(
                f"Element {index} lasts {element.duration:.3f}s, minimum is {MIN_ELEMENT_DURATION}s"
            )
        if media_by_id is not None:
            media = media_by_id.get(element.id)
            if media is None:
                raise PlanValidationError(f"Element {index} references unknown media {element.id}")
            ceiling = media.ceiling
            if ceiling is not None and element.duration > ceiling + TIMING_TOLERANCE:
                raise PlanValidationError(
                    f"Video {element.id} shown for {element.duration:.3f}s but is only {ceiling:.3f}s long"
                )
        cursor = element.end_time

    if abs(cursor - total_duration) > TIMING_TOLERANCE:
        raise PlanValidationError(
            f"Timeline ends at {cursor:.3f}s, expected {total_duration:.3f}s"
        )


class SequencePlanner:
    """Builds the OrderedMedia timeline for a reel."""

    def __init__(self, ai_service=None, telemetry: PipelineTelemetry | None = None):
        """Initialize planner.

        Args:
            ai_service: Object with ``generate_media_sequence(prompt, system_instruction)``;
                without one every plan uses the fallback layout
            telemetry: Event emitter
        """
        self.ai_service = ai_service
        self.telemetry = telemetry or PipelineTelemetry()

    @staticmethod
    def _usable(media: list[MediaDescriptor]) -> list[MediaDescriptor]:
        usable = [m for m in media if m.ceiling is None or m.ceiling >= MIN_ELEMENT_DURATION]
        if not usable:
            raise PlanValidationError("No media long enough to place on the timeline")
        return usable

    @staticmethod
    def _element(media: MediaDescriptor, duration: float, start_time: float = 0.0) -> TimelineElement:
        return TimelineElement(
            id=media.id,
            kind=media.kind,
            start_time=start_time,
            duration=duration,
            source=media.source,
            description=media.description,
        )

    @staticmethod
    def _clamp(media: MediaDescriptor, duration: float) -> float:
        if not math.isfinite(duration):
            duration = MIN_ELEMENT_DURATION
        duration = max(duration, MIN_ELEMENT_DURATION)
        if media.ceiling is not None:
            duration = min(duration, media.ceiling)
        return duration

    async def plan(
        self,
        media: list[MediaDescriptor],
        transcript: Transcript | None = None,
        reel_id: str | None = None,
    ) -> OrderedMedia:
        """Plan the timeline.

        Uses the adaptive path when there is a transcript and a sequencing
        model; any failure there falls back to the even layout.

        Raises:
            PlanValidationError: If no media can be placed at all
        """
        media = self._usable(media)

        if transcript is None or self.ai_service is None:
            ordered = self.build_fallback(media)
            self.telemetry.event("sequence_planning", reel_id, outcome="fallback", reason="no_narration")
            return ordered

        try:
            with self.telemetry.stage("sequence_planning", reel_id, media_count=len(media)):
                return await self._plan_adaptive(media, transcript)
        except Exception as e:
            logger.warning("adaptive_plan_rejected", reel_id=reel_id, error=str(e))
            ordered = self.build_fallback(media)
            self.telemetry.event("sequence_planning", reel_id, outcome="fallback", reason=type(e).__name__)
            return ordered

    async def _plan_adaptive(
        self,
        media: list[MediaDescriptor],
        transcript: Transcript,
    ) -> OrderedMedia:
        total_duration = max(transcript.duration, MIN_ELEMENT_DURATION)
        prompt = self.build_prompt(media, transcript, total_duration)

        raw = await asyncio.to_thread(
            self.ai_service.generate_media_sequence, prompt, MEDIA_SEQUENCER_SYSTEM
        )
        # Raises pydantic.ValidationError on malformed JSON or shape
        payload = SequencePayload.model_validate_json(raw)

        elements = self.normalize(payload, media, total_duration)
        return OrderedMedia(elements=elements, total_duration=total_duration, strategy="adaptive")

    def build_prompt(
        self,
        media: list[MediaDescriptor],
        transcript: Transcript,
        total_duration: float,
    ) -> str:
        word_timings = "\n".join(
            f"{w.start:.2f}-{w.end:.2f} {w.word}" for w in transcript.words
        )
        inventory_lines = []
        for m in media:
            line = f"- id: {m.id} | type: {m.kind.value} | description: {m.description}"
            if m.ceiling is not None:
                line += f" | length: {m.ceiling:.1f}s"
            inventory_lines.append(line)

        return MEDIA_SEQUENCER_V1.format(
            transcript_text=transcript.text,
            word_timings=word_timings,
            media_inventory="\n".join(inventory_lines),
            total_duration=round(total_duration, 3),
            min_duration=MIN_ELEMENT_DURATION,
        )

    def normalize(
        self,
        payload: SequencePayload,
        media: list[MediaDescriptor],
        total_duration: float,
    ) -> list[TimelineElement]:
        """Turn a model proposal into a timeline that passes validation.

        Sources always come from the catalog, never from the model.

        Raises:
            PlanValidationError: If the proposal cannot be repaired
        """
        media_by_id = {m.id: m for m in media}

        elements: list[TimelineElement] = []
        for proposed in sorted(payload.elements, key=lambda e: e.start_time):
            descriptor = media_by_id.get(proposed.id)
            if descriptor is None:
                logger.debug("unknown_media_dropped", media_id=proposed.id)
                continue
            elements.append(self._element(descriptor, self._clamp(descriptor, proposed.duration)))

        if not elements:
            raise PlanValidationError("Sequencing proposal references none of the supplied media")

        elements = self._fit_to_duration(elements, media, media_by_id, total_duration)
        validate_timeline(elements, total_duration, media_by_id)
        return elements

    def _fit_to_duration(
        self,
        elements: list[TimelineElement],
        media: list[MediaDescriptor],
        media_by_id: dict[str, MediaDescriptor],
        total_duration: float,
    ) -> list[TimelineElement]:
        fitted: list[TimelineElement] = []
        elapsed = 0.0
        for element in elements:
            # Drop elements that would start at or after the end
            if elapsed >= total_duration - EPSILON:
                break
            fitted.append(element)
            elapsed += element.duration

        # More elements than fit at the minimum duration: drop from the end
        while len(fitted) > 1 and len(fitted) * MIN_ELEMENT_DURATION > total_duration + EPSILON:
            elapsed -= fitted.pop().duration

        if elapsed > total_duration + EPSILON:
            self._shrink(fitted, elapsed - total_duration)
        elif elapsed < total_duration - EPSILON:
            self._stretch(fitted, total_duration - elapsed, media, media_by_id)

        cursor = 0.0
        for element in fitted:
            element.start_time = cursor
            cursor += element.duration
        fitted[-1].duration = total_duration - fitted[-1].start_time
        return fitted

    @staticmethod
    def _shrink(elements: list[TimelineElement], excess: float) -> None:
        """Remove ``excess`` seconds, trimming from the end, never below the minimum."""
        for element in reversed(elements):
            room = element.duration - MIN_ELEMENT_DURATION
            if room <= 0:
                continue
            take = min(room, excess)
            element.duration -= take
            excess -= take
            if excess <= EPSILON:
                return
        raise PlanValidationError(
            f"Cannot shorten timeline by {excess:.3f}s without breaking the minimum duration"
        )

    def _stretch(
        self,
        elements: list[TimelineElement],
        deficit: float,
        media: list[MediaDescriptor],
        media_by_id: dict[str, MediaDescriptor],
    ) -> None:
        """Add ``deficit`` seconds: lengthen from the end, then reuse media."""
        for element in reversed(elements):
            ceiling = media_by_id[element.id].ceiling
            headroom = math.inf if ceiling is None else ceiling - element.duration
            take = min(headroom, deficit)
            if take > 0:
                element.duration += take
                deficit -= take
            if deficit <= EPSILON:
                return

        # Every element is at its clip length: cycle through the media again
        index = 0
        while deficit > EPSILON:
            descriptor = media[index % len(media)]
            index += 1
            duration = self._clamp(descriptor, deficit)
            elements.append(self._element(descriptor, duration))
            deficit -= duration

        if deficit < -EPSILON:
            self._shrink(elements, -deficit)

    def build_fallback(self, media: list[MediaDescriptor]) -> OrderedMedia:
        """Even layout: 3 seconds per item, back to back, in catalog order.

        A video shorter than its share is shown for its full length.
        """
        media = self._usable(media)
        synthetic_total = FALLBACK_SECONDS_PER_ITEM * len(media)
        share = max(MIN_ELEMENT_DURATION, synthetic_total / len(media))

        elements = []
        cursor = 0.0
        for descriptor in media:
            duration = self._clamp(descriptor, share)
            elements.append(self._element(descriptor, duration, start_time=cursor))
            cursor += duration

        validate_timeline(elements, cursor, {m.id: m for m in media})
        return OrderedMedia(elements=elements, total_duration=cursor, strategy="fallback")
