"""Pydantic schemas for vendor payloads.

Vendor responses are parsed into these models before anything downstream
reads them, so malformed payloads fail at the boundary.
"""

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class VendorWord(BaseModel):
    """One entry in a speech-to-text word list."""

    model_config = ConfigDict(extra="ignore")

    text: str = Field(validation_alias=AliasChoices("text", "word"))
    start: float
    end: float
    type: str | None = None
    logprob: float | None = None
    confidence: float | None = None


class TranscriptionPayload(BaseModel):
    """Speech-to-text response body."""

    model_config = ConfigDict(extra="ignore")

    text: str = ""
    language_code: str | None = None
    words: list[VendorWord] = Field(default_factory=list)
    audio_events: list[VendorWord] = Field(default_factory=list)


class SequenceElementPayload(BaseModel):
    """One element proposed by the sequencing model."""

    model_config = ConfigDict(extra="ignore")

    id: str
    type: str | None = None
    start_time: float = 0.0
    duration: float
    description: str | None = None


class SequencePayload(BaseModel):
    """The sequencing model's JSON answer."""

    model_config = ConfigDict(extra="ignore")

    elements: list[SequenceElementPayload]
    total_duration: float | None = None


class RenderStatusPayload(BaseModel):
    """Render vendor status document."""

    model_config = ConfigDict(extra="ignore")

    id: str
    status: str
    url: str | None = None
    duration: float | None = None
    error_message: str | None = None
