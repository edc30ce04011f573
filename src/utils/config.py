"""Configuration loading and validation for reelforge."""

import os
from pathlib import Path

from dotenv import load_dotenv

# Get the project root directory (parent of src)
PROJECT_ROOT = Path(__file__).parent.parent.parent

# Load environment variables from .env file in project root
load_dotenv(PROJECT_ROOT / ".env")

DEFAULT_VOICE_ID = "kPzsL2i3teMYv0FxEYQ6"


def load_config() -> dict:
    """Load configuration from environment variables."""

    # Helper function to resolve paths relative to project root
    def resolve_path(path: str | None, default_relative: str) -> str:
        if not path:
            return str(PROJECT_ROOT / default_relative)
        if Path(path).is_absolute():
            return path
        return str(PROJECT_ROOT / path)

    config = {
        # Narration (ElevenLabs)
        "elevenlabs_api_key": os.getenv("ELEVENLABS_API_KEY"),
        "elevenlabs_voice_id": os.getenv("ELEVENLABS_VOICE_ID", DEFAULT_VOICE_ID),
        "elevenlabs_tts_model": os.getenv("ELEVENLABS_TTS_MODEL", "eleven_multilingual_v2"),
        "elevenlabs_stt_model": os.getenv("ELEVENLABS_STT_MODEL", "scribe_v1"),
        "elevenlabs_output_format": os.getenv("ELEVENLABS_OUTPUT_FORMAT", "mp3_44100_128"),
        "elevenlabs_language_code": os.getenv("ELEVENLABS_LANGUAGE_CODE", "eng"),
        # Sequencing and vision (Gemini)
        "gemini_api_key": os.getenv("GEMINI_API_KEY"),
        "gemini_model": os.getenv("GEMINI_MODEL", "gemini-3-flash-preview"),
        # Render vendor
        "render_api_key": os.getenv("RENDER_API_KEY"),
        "render_api_base": os.getenv("RENDER_API_BASE", "https://api.creatomate.com/v1"),
        "render_poll_interval": float(os.getenv("RENDER_POLL_INTERVAL", "5")),
        "render_max_poll_seconds": float(os.getenv("RENDER_MAX_POLL_SECONDS", "300")),
        "render_max_consecutive_errors": int(os.getenv("RENDER_MAX_CONSECUTIVE_ERRORS", "3")),
        # Object storage (S3-compatible)
        "storage_endpoint_url": os.getenv("STORAGE_ENDPOINT_URL"),
        "storage_access_key_id": os.getenv("STORAGE_ACCESS_KEY_ID"),
        "storage_secret_access_key": os.getenv("STORAGE_SECRET_ACCESS_KEY"),
        "storage_region": os.getenv("STORAGE_REGION", "auto"),
        "media_bucket": os.getenv("MEDIA_BUCKET", "media"),
        "audio_bucket": os.getenv("AUDIO_BUCKET", "audio"),
        "output_bucket": os.getenv("OUTPUT_BUCKET", "generated-reels"),
        "signed_url_ttl": int(os.getenv("SIGNED_URL_TTL", "3600")),
        # Relational store
        "database_path": resolve_path(os.getenv("DATABASE_PATH"), ".reelforge/reels.db"),
        # Usage metering (-1 = unlimited)
        "reels_per_month_limit": int(os.getenv("REELS_PER_MONTH_LIMIT", "5")),
        "plan_name": os.getenv("PLAN_NAME", "Free Plan"),
        # Worker pool
        "worker_concurrency": int(os.getenv("WORKER_CONCURRENCY", "2")),
        "shutdown_grace_seconds": float(os.getenv("SHUTDOWN_GRACE_SECONDS", "10")),
        # Logging
        "log_level": os.getenv("LOG_LEVEL", "INFO"),
        "log_json": os.getenv("LOG_JSON", "false").lower() == "true",
        # Requests without an X-User-Id header are attributed to this user
        "default_user_id": os.getenv("DEFAULT_USER_ID", "anonymous"),
    }

    return config


def validate_config(config: dict) -> list[str]:
    """Validate configuration and return list of errors."""
    errors = []

    if not config.get("elevenlabs_api_key"):
        errors.append("ELEVENLABS_API_KEY is required")

    if not config.get("gemini_api_key"):
        errors.append("GEMINI_API_KEY is required")

    if not config.get("render_api_key"):
        errors.append("RENDER_API_KEY is required")

    if not config.get("storage_access_key_id") or not config.get("storage_secret_access_key"):
        errors.append(
            "STORAGE_ACCESS_KEY_ID and STORAGE_SECRET_ACCESS_KEY required for object storage"
        )

    if config.get("render_poll_interval", 0) <= 0:
        errors.append("RENDER_POLL_INTERVAL must be positive")

    if config.get("render_max_poll_seconds", 0) < config.get("render_poll_interval", 0):
        errors.append("RENDER_MAX_POLL_SECONDS must be at least RENDER_POLL_INTERVAL")

    if config.get("worker_concurrency", 0) < 1:
        errors.append("WORKER_CONCURRENCY must be at least 1")

    db_path = Path(config.get("database_path") or "")
    try:
        db_path.parent.mkdir(parents=True, exist_ok=True)
    except Exception as e:
        errors.append(f"Cannot create database folder: {e}")

    return errors
