"""Pydantic request/response models for the reelforge API."""

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# =============================================================================
# Response Models
# =============================================================================


class MessageResponse(BaseModel):
    """Generic message response."""

    message: str


class RootResponse(BaseModel):
    """Root endpoint response."""

    message: str
    version: str

    model_config = {"json_schema_extra": {"examples": [{"message": "Reelforge API", "version": "1.0.0"}]}}


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    worker_running: bool = False


class UsageDetails(BaseModel):
    """Quota snapshot for the requesting user."""

    currentUsage: int
    limit: int
    planName: str
    metricName: str


class UsageLimitResponse(BaseModel):
    """Body of a 429 quota rejection."""

    error: str = "Usage limit exceeded"
    message: str
    details: UsageDetails


class ReelResponse(BaseModel):
    """A reel and its generation state."""

    id: str
    product_id: str
    user_id: str
    title: str
    status: str
    progress_percentage: int = Field(ge=0, le=100)
    script_id: str | None = None
    ordered_media: dict | None = None
    storage_path: str | None = None
    file_name: str | None = None
    duration: float | None = None
    created_at: str
    updated_at: str


class ReelListResponse(BaseModel):
    """List of reels."""

    reels: list[ReelResponse]
    total: int


class ReelCreateResponse(BaseModel):
    """Accepted reel generation request."""

    message: str
    reel_id: str
    status: str
    usage: UsageDetails | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "message": "Reel generation started",
                    "reel_id": "550e8400-e29b-41d4-a716-446655440000",
                    "status": "pending",
                }
            ]
        }
    }


class PhotoDescribeResponse(BaseModel):
    """Descriptions produced for a batch of photos."""

    descriptions: dict[str, str]
    described: int
    requested: int


# =============================================================================
# Request Models
# =============================================================================


class ReelCreateRequest(BaseModel):
    """Reel generation request.

    Accepts camelCase keys as sent by the web client, or snake_case.
    """

    model_config = ConfigDict(populate_by_name=True)

    product_id: str = Field(alias="productId", min_length=1)
    script_id: str | None = Field(default=None, alias="scriptId")
    photo_ids: list[str] = Field(default_factory=list, alias="photoIds")
    video_ids: list[str] = Field(default_factory=list, alias="videoIds")
    title: str = Field(min_length=1, max_length=200)
    voice_id: str | None = Field(default=None, alias="voiceId")
    font_size: int | None = Field(default=None, alias="fontSize", ge=1, le=20)

    @field_validator("title", "product_id")
    @classmethod
    def not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @model_validator(mode="after")
    def require_media(self) -> "ReelCreateRequest":
        if not self.photo_ids and not self.video_ids:
            raise ValueError("At least one photo or video is required")
        return self


class PhotoDescribeRequest(BaseModel):
    """Photos to describe after upload."""

    photo_ids: list[str] = Field(alias="photoIds", min_length=1)

    model_config = ConfigDict(populate_by_name=True)
