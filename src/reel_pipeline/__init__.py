"""Reel pipeline - product media and narration into a rendered vertical reel."""

from .cancellation import CancellationToken
from .errors import (
    ArtifactVerificationError,
    NoMediaResolvedError,
    PipelineCancelled,
    PlanValidationError,
    ReelPipelineError,
    RenderFailedError,
    RenderPollingError,
    RenderSubmissionError,
    RenderTimeoutError,
    ScriptNotFoundError,
)
from .media_catalog import MediaCatalog, PhotoDescriber, extract_storage_path
from .narration import NarrationSynthesizer
from .sequence_planner import SequencePlanner, validate_timeline
from .render_orchestrator import RenderOrchestrator
from .subtitle_compositor import SubtitleCompositor, group_caption_words
from .lifecycle import ReelLifecycleManager

__all__ = [
    "CancellationToken",
    "ArtifactVerificationError",
    "NoMediaResolvedError",
    "PipelineCancelled",
    "PlanValidationError",
    "ReelPipelineError",
    "RenderFailedError",
    "RenderPollingError",
    "RenderSubmissionError",
    "RenderTimeoutError",
    "ScriptNotFoundError",
    "MediaCatalog",
    "PhotoDescriber",
    "extract_storage_path",
    "NarrationSynthesizer",
    "SequencePlanner",
    "validate_timeline",
    "RenderOrchestrator",
    "SubtitleCompositor",
    "group_caption_words",
    "ReelLifecycleManager",
]
