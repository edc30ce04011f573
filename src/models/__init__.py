# Data models for reelforge
from .reel import (
    MIN_ELEMENT_DURATION,
    AudioEvent,
    MediaDescriptor,
    MediaKind,
    NarrationResult,
    OrderedMedia,
    Reel,
    ReelRequest,
    ReelStatus,
    RenderJob,
    RenderResult,
    TimelineElement,
    Transcript,
    WordTiming,
)
from .vendor import (
    RenderStatusPayload,
    SequenceElementPayload,
    SequencePayload,
    TranscriptionPayload,
    VendorWord,
)

__all__ = [
    "MIN_ELEMENT_DURATION",
    "AudioEvent",
    "MediaDescriptor",
    "MediaKind",
    "NarrationResult",
    "OrderedMedia",
    "Reel",
    "ReelRequest",
    "ReelStatus",
    "RenderJob",
    "RenderResult",
    "TimelineElement",
    "Transcript",
    "WordTiming",
    # Vendor payloads
    "RenderStatusPayload",
    "SequenceElementPayload",
    "SequencePayload",
    "TranscriptionPayload",
    "VendorWord",
]
