"""Reel data models for the generation pipeline."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

# Minimum on-screen time for any timeline element, in seconds
MIN_ELEMENT_DURATION = 2.0

VIDEO_PLACEHOLDER_DESCRIPTION = "Video content"
MISSING_PHOTO_DESCRIPTION = "No description available"


class ReelStatus(str, Enum):
    """Lifecycle status of a reel.

    Each status carries the progress percentage written alongside it.
    FAILED resets progress to 0.
    """

    PENDING = "pending"
    PROCESSING = "processing"
    GENERATING_AUDIO = "generating_audio"
    PROCESSING_MEDIA = "processing_media"
    RENDERING_PREPARING = "rendering_preparing"
    RENDERING_PROCESSING = "rendering_processing"
    RENDERING_FINALIZING = "rendering_finalizing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def progress(self) -> int:
        return STATUS_PROGRESS[self]

    @property
    def is_terminal(self) -> bool:
        return self in (ReelStatus.COMPLETED, ReelStatus.FAILED)


STATUS_PROGRESS: dict[ReelStatus, int] = {
    ReelStatus.PENDING: 0,
    ReelStatus.PROCESSING: 10,
    ReelStatus.GENERATING_AUDIO: 30,
    ReelStatus.PROCESSING_MEDIA: 45,
    ReelStatus.RENDERING_PREPARING: 60,
    ReelStatus.RENDERING_PROCESSING: 75,
    ReelStatus.RENDERING_FINALIZING: 90,
    ReelStatus.COMPLETED: 100,
    ReelStatus.FAILED: 0,
}


class MediaKind(str, Enum):
    """Kind of visual asset placed on the timeline."""

    IMAGE = "image"
    VIDEO = "video"


@dataclass
class ReelRequest:
    """Inputs for one reel generation run.

    Stored with the reel so that a retry re-runs with identical inputs.
    """

    product_id: str
    title: str
    user_id: str
    photo_ids: list[str] = field(default_factory=list)
    video_ids: list[str] = field(default_factory=list)
    script_id: str | None = None
    voice_id: str | None = None
    font_size: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "product_id": self.product_id,
            "title": self.title,
            "user_id": self.user_id,
            "photo_ids": list(self.photo_ids),
            "video_ids": list(self.video_ids),
            "script_id": self.script_id,
            "voice_id": self.voice_id,
            "font_size": self.font_size,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ReelRequest":
        return cls(
            product_id=data["product_id"],
            title=data["title"],
            user_id=data["user_id"],
            photo_ids=list(data.get("photo_ids") or []),
            video_ids=list(data.get("video_ids") or []),
            script_id=data.get("script_id"),
            voice_id=data.get("voice_id"),
            font_size=data.get("font_size"),
        )


@dataclass
class Reel:
    """A persisted reel row."""

    id: str
    product_id: str
    user_id: str
    title: str
    status: ReelStatus = ReelStatus.PENDING
    progress_percentage: int = 0
    script_id: str | None = None
    ordered_media: dict[str, Any] | None = None
    storage_path: str | None = None
    file_name: str | None = None
    duration: float | None = None
    request: ReelRequest | None = None
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for API responses."""
        return {
            "id": self.id,
            "product_id": self.product_id,
            "user_id": self.user_id,
            "title": self.title,
            "status": self.status.value,
            "progress_percentage": self.progress_percentage,
            "script_id": self.script_id,
            "ordered_media": self.ordered_media,
            "storage_path": self.storage_path,
            "file_name": self.file_name,
            "duration": self.duration,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass
class MediaDescriptor:
    """A resolved visual asset ready for planning.

    Attributes:
        id: Media row identifier
        kind: image or video
        source: Signed URL minted for this run
        original_path: Object key inside the media bucket
        description: Vision description (photos) or placeholder (videos)
        original_duration: Clip length in seconds; only set for videos.
            None means the clip length is unknown and not enforced.
    """

    id: str
    kind: MediaKind
    source: str
    original_path: str
    description: str
    original_duration: float | None = None

    @property
    def ceiling(self) -> float | None:
        """Maximum on-screen duration, if any."""
        if self.kind == MediaKind.VIDEO:
            return self.original_duration
        return None


@dataclass
class WordTiming:
    """A single transcribed word with timing in seconds."""

    word: str
    start: float
    end: float
    confidence: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "word": self.word,
            "start": self.start,
            "end": self.end,
            "confidence": self.confidence,
        }


@dataclass
class AudioEvent:
    """A non-speech event detected in the narration (laughter, music, ...)."""

    type: str
    start: float
    end: float

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "start": self.start, "end": self.end}


@dataclass
class Transcript:
    """Word-level transcript of the narration audio."""

    text: str
    words: list[WordTiming]
    audio_events: list[AudioEvent] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.words:
            raise ValueError("Transcript must contain at least one word")

    @property
    def duration(self) -> float:
        """Narration length: end time of the last word."""
        return max(word.end for word in self.words)

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "words": [w.to_dict() for w in self.words],
            "audio_events": [e.to_dict() for e in self.audio_events],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Transcript":
        return cls(
            text=data.get("text", ""),
            words=[WordTiming(**w) for w in data.get("words", [])],
            audio_events=[AudioEvent(**e) for e in data.get("audio_events", [])],
        )


@dataclass
class TimelineElement:
    """One visual element placed on the reel timeline."""

    id: str
    kind: MediaKind
    start_time: float
    duration: float
    source: str
    description: str | None = None

    @property
    def end_time(self) -> float:
        return self.start_time + self.duration

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.kind.value,
            "start_time": self.start_time,
            "duration": self.duration,
            "source": self.source,
            "description": self.description,
        }


@dataclass
class OrderedMedia:
    """Planner output: a gapless timeline covering total_duration."""

    elements: list[TimelineElement]
    total_duration: float
    strategy: str = "adaptive"

    def to_dict(self) -> dict[str, Any]:
        return {
            "elements": [e.to_dict() for e in self.elements],
            "total_duration": self.total_duration,
            "strategy": self.strategy,
        }


@dataclass
class RenderJob:
    """Handle for a submitted render."""

    id: str
    status: str


@dataclass
class RenderResult:
    """A finished render."""

    id: str
    status: str
    url: str
    duration: float | None = None


@dataclass
class NarrationResult:
    """Synthesized narration audio with its transcript."""

    audio_url: str
    transcript: Transcript
    file_name: str
