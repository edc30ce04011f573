"""Exceptions raised by the reel pipeline stages."""


class ReelPipelineError(Exception):
    """Base error for a reel generation run."""

    pass


class PipelineCancelled(ReelPipelineError):
    """Shutdown was requested; the run stops at the next stage boundary."""

    pass


class NoMediaResolvedError(ReelPipelineError):
    """None of the selected photos or videos could be resolved."""

    pass


class ScriptNotFoundError(ReelPipelineError):
    """The narration script is missing or empty."""

    pass


class PlanValidationError(ReelPipelineError):
    """A proposed timeline broke a timeline invariant."""

    pass


class RenderSubmissionError(ReelPipelineError):
    """The render vendor did not accept the composition."""

    pass


class RenderFailedError(ReelPipelineError):
    """The render vendor reported the render as failed."""

    pass


class RenderTimeoutError(ReelPipelineError):
    """The render did not finish within the polling window."""

    pass


class RenderPollingError(ReelPipelineError):
    """Too many consecutive status checks failed."""

    pass


class ArtifactVerificationError(ReelPipelineError):
    """The uploaded reel could not be confirmed in storage."""

    pass
