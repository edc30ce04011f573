"""Narration synthesis: script text to stored audio plus a word-level transcript."""

import asyncio
import time

from models.reel import NarrationResult, Reel
from reel_pipeline.errors import ScriptNotFoundError
from services.object_storage import ObjectStorage
from services.reel_store import ReelStore
from services.transcription import TranscriptionService
from services.tts_service import TTSService
from utils.logging import PipelineTelemetry, get_logger

logger = get_logger(__name__)


class NarrationSynthesizer:
    """Runs TTS, stores the audio, transcribes it and records the audio row.

    Any failure propagates; the lifecycle manager decides to continue
    without narration.
    """

    def __init__(
        self,
        store: ReelStore,
        storage: ObjectStorage,
        tts: TTSService,
        transcriber: TranscriptionService,
        default_voice_id: str,
        audio_bucket: str = "audio",
        signed_url_ttl: int = 3600,
        telemetry: PipelineTelemetry | None = None,
    ):
        self.store = store
        self.storage = storage
        self.tts = tts
        self.transcriber = transcriber
        self.default_voice_id = default_voice_id
        self.audio_bucket = audio_bucket
        self.signed_url_ttl = signed_url_ttl
        self.telemetry = telemetry or PipelineTelemetry()

    async def synthesize(
        self,
        reel: Reel,
        script_id: str,
        voice_id: str | None = None,
    ) -> NarrationResult:
        """Produce narration for a reel.

        Args:
            reel: The reel being generated (owner and id name the audio object)
            script_id: Script row to narrate
            voice_id: Vendor voice; the configured default when omitted

        Returns:
            NarrationResult with a signed audio URL and transcript

        Raises:
            ScriptNotFoundError: If the script is missing or empty
        """
        script = await self.store.get_script(script_id)
        if script is None or not (script.get("content") or "").strip():
            raise ScriptNotFoundError(f"Script {script_id} not found or empty")

        voice = voice_id or self.default_voice_id

        with self.telemetry.stage("tts", reel.id, voice_id=voice):
            audio = await self.tts.synthesize(script["content"], voice)

        file_name = f"{reel.user_id}/{reel.id}-{int(time.time() * 1000)}.mp3"

        with self.telemetry.stage("audio_upload", reel.id, bytes=len(audio)):
            await asyncio.to_thread(
                self.storage.upload_bytes, self.audio_bucket, file_name, audio, "audio/mpeg"
            )
            audio_url = await asyncio.to_thread(
                self.storage.create_signed_url, self.audio_bucket, file_name, self.signed_url_ttl
            )

        with self.telemetry.stage("stt", reel.id):
            transcript = await self.transcriber.transcribe(audio, file_name.rsplit("/", 1)[-1])

        await self.store.insert_audio(
            reel_id=reel.id,
            script_id=script_id,
            file_path=f"{self.audio_bucket}/{file_name}",
            file_name=file_name,
            user_id=reel.user_id,
            transcription=transcript.to_dict(),
        )

        logger.info(
            "narration_ready",
            reel_id=reel.id,
            words=len(transcript.words),
            duration=transcript.duration,
        )
        return NarrationResult(audio_url=audio_url, transcript=transcript, file_name=file_name)
