"""Service singletons and dependency injection for the reelforge API."""

import logging

from api.reel_worker import ReelWorker
from api.websocket_manager import WebSocketManager
from reel_pipeline import (
    MediaCatalog,
    NarrationSynthesizer,
    PhotoDescriber,
    ReelLifecycleManager,
    RenderOrchestrator,
    SequencePlanner,
    SubtitleCompositor,
)
from services.ai_service import AIService
from services.object_storage import ObjectStorage
from services.reel_store import ReelStore
from services.render_service import RenderService
from services.transcription import TranscriptionService
from services.tts_service import TTSService
from services.usage_service import UsageService
from utils.config import load_config
from utils.logging import PipelineTelemetry

logger = logging.getLogger(__name__)

# Service singletons
_config: dict | None = None
_reel_store: ReelStore | None = None
_storage: ObjectStorage | None = None
_ai_service: AIService | None = None
_usage_service: UsageService | None = None
_reel_worker: ReelWorker | None = None
_photo_describer: PhotoDescriber | None = None
_http_clients: list = []

ws_manager = WebSocketManager()


def get_config() -> dict:
    """Get the loaded configuration."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


async def get_reel_store() -> ReelStore:
    """Get or create the connected reel store."""
    global _reel_store
    if _reel_store is None:
        _reel_store = ReelStore(get_config()["database_path"])
        await _reel_store.connect()
    return _reel_store


def get_storage() -> ObjectStorage:
    """Get or create the object storage client."""
    global _storage
    if _storage is None:
        config = get_config()
        _storage = ObjectStorage(
            endpoint_url=config.get("storage_endpoint_url"),
            access_key_id=config.get("storage_access_key_id"),
            secret_access_key=config.get("storage_secret_access_key"),
            region=config.get("storage_region", "auto"),
        )
    return _storage


def get_ai_service() -> AIService:
    """Get or create the AI service instance."""
    global _ai_service
    if _ai_service is None:
        config = get_config()
        _ai_service = AIService(
            api_key=config.get("gemini_api_key", ""),
            model_name=config.get("gemini_model", "gemini-3-flash-preview"),
        )
    return _ai_service


async def get_usage_service() -> UsageService:
    """Get or create the usage service."""
    global _usage_service
    if _usage_service is None:
        config = get_config()
        _usage_service = UsageService(
            await get_reel_store(),
            limit=config["reels_per_month_limit"],
            plan_name=config["plan_name"],
        )
    return _usage_service


async def get_photo_describer() -> PhotoDescriber:
    """Get or create the upload-time photo describer."""
    global _photo_describer
    if _photo_describer is None:
        _photo_describer = PhotoDescriber(
            await get_reel_store(),
            get_storage(),
            get_ai_service(),
            media_bucket=get_config()["media_bucket"],
        )
    return _photo_describer


async def build_lifecycle_manager(config: dict) -> ReelLifecycleManager:
    """Wire the pipeline components from configuration."""
    store = await get_reel_store()
    storage = get_storage()
    telemetry = PipelineTelemetry()

    tts = TTSService(
        api_key=config.get("elevenlabs_api_key", ""),
        model_id=config["elevenlabs_tts_model"],
        output_format=config["elevenlabs_output_format"],
    )
    transcriber = TranscriptionService(
        api_key=config.get("elevenlabs_api_key", ""),
        model_id=config["elevenlabs_stt_model"],
        language_code=config["elevenlabs_language_code"],
    )
    render_service = RenderService(
        api_key=config.get("render_api_key", ""),
        api_base=config["render_api_base"],
    )
    _http_clients.extend([tts, transcriber, render_service])

    orchestrator = RenderOrchestrator(
        render_service,
        poll_interval=config["render_poll_interval"],
        max_poll_seconds=config["render_max_poll_seconds"],
        max_consecutive_errors=config["render_max_consecutive_errors"],
        telemetry=telemetry,
    )

    return ReelLifecycleManager(
        store=store,
        storage=storage,
        render_service=render_service,
        catalog=MediaCatalog(
            store,
            storage,
            media_bucket=config["media_bucket"],
            signed_url_ttl=config["signed_url_ttl"],
            telemetry=telemetry,
        ),
        planner=SequencePlanner(get_ai_service(), telemetry=telemetry),
        orchestrator=orchestrator,
        subtitles=SubtitleCompositor(orchestrator, telemetry=telemetry),
        narrator=NarrationSynthesizer(
            store,
            storage,
            tts,
            transcriber,
            default_voice_id=config["elevenlabs_voice_id"],
            audio_bucket=config["audio_bucket"],
            signed_url_ttl=config["signed_url_ttl"],
            telemetry=telemetry,
        ),
        usage=await get_usage_service(),
        output_bucket=config["output_bucket"],
        signed_url_ttl=config["signed_url_ttl"],
        telemetry=telemetry,
        on_transition=ws_manager.broadcast_reel,
    )


def get_reel_worker() -> ReelWorker:
    """Get the running reel worker.

    Raises:
        RuntimeError: If the application has not started it
    """
    if _reel_worker is None:
        raise RuntimeError("Reel worker not started")
    return _reel_worker


async def start_services() -> None:
    """Connect the store, check buckets and start the worker pool."""
    global _reel_worker
    config = get_config()

    await get_reel_store()

    buckets = [config["media_bucket"], config["audio_bucket"], config["output_bucket"]]
    missing = get_storage().missing_buckets(buckets)
    if missing:
        logger.error(f"Storage buckets missing or unreachable: {', '.join(missing)}")

    manager = await build_lifecycle_manager(config)
    _reel_worker = ReelWorker(
        manager.run,
        concurrency=config["worker_concurrency"],
        shutdown_grace_seconds=config["shutdown_grace_seconds"],
    )
    await _reel_worker.start()


async def stop_services() -> None:
    """Stop the worker pool and release connections."""
    global _reel_worker, _reel_store, _usage_service, _photo_describer
    if _reel_worker is not None:
        await _reel_worker.stop()
        _reel_worker = None

    for client in _http_clients:
        await client.close()
    _http_clients.clear()

    if _reel_store is not None:
        await _reel_store.close()
        _reel_store = None
    _usage_service = None
    _photo_describer = None
