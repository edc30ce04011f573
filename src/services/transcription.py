"""Narration transcription service using ElevenLabs speech-to-text."""

import logging

import httpx
from pydantic import ValidationError

from models.reel import AudioEvent, Transcript, WordTiming
from models.vendor import TranscriptionPayload
from utils.retry import APIRateLimitError, NetworkError, retry_api_call

logger = logging.getLogger(__name__)

ELEVENLABS_API_BASE = "https://api.elevenlabs.io/v1"


class TranscriptionError(Exception):
    """Error from the speech-to-text vendor or its payload."""

    pass


class TranscriptionService:
    """Word-level transcription of narration audio."""

    def __init__(
        self,
        api_key: str,
        model_id: str = "scribe_v1",
        language_code: str = "eng",
        api_base: str = ELEVENLABS_API_BASE,
        client: httpx.AsyncClient | None = None,
    ):
        self.api_key = api_key
        self.model_id = model_id
        self.language_code = language_code
        self.api_base = api_base.rstrip("/")
        self.client = client or httpx.AsyncClient(timeout=300.0)

    @retry_api_call(max_retries=3, base_delay=2.0)
    async def _request(self, audio: bytes, file_name: str) -> dict:
        try:
            response = await self.client.post(
                f"{self.api_base}/speech-to-text",
                headers={"xi-api-key": self.api_key},
                data={"model_id": self.model_id, "language_code": self.language_code},
                files={"file": (file_name, audio, "audio/mpeg")},
            )
        except httpx.TransportError as e:
            raise NetworkError(f"Transcription request failed: {e}") from e

        if response.status_code == 429:
            raise APIRateLimitError("Transcription rate limit hit")
        if response.status_code != 200:
            raise TranscriptionError(
                f"Transcription failed with status {response.status_code}: {response.text[:200]}"
            )

        try:
            return response.json()
        except ValueError as e:
            raise TranscriptionError(f"Transcription response is not JSON: {e}") from e

    @staticmethod
    def parse_payload(data: dict) -> Transcript:
        """Validate a vendor payload into a Transcript.

        Spacing tokens are dropped; audio events are kept separately.

        Raises:
            TranscriptionError: If the payload is malformed or has no words
        """
        try:
            payload = TranscriptionPayload.model_validate(data)
        except ValidationError as e:
            raise TranscriptionError(f"Malformed transcription payload: {e}") from e

        words = []
        events = [AudioEvent(type=e.text, start=e.start, end=e.end) for e in payload.audio_events]
        for entry in payload.words:
            if entry.type == "audio_event":
                events.append(AudioEvent(type=entry.text, start=entry.start, end=entry.end))
                continue
            if entry.type not in (None, "word") or not entry.text.strip():
                continue
            if entry.end < entry.start:
                raise TranscriptionError(f"Word '{entry.text}' ends before it starts")
            words.append(
                WordTiming(
                    word=entry.text.strip(),
                    start=entry.start,
                    end=entry.end,
                    confidence=entry.confidence,
                )
            )

        if not words:
            raise TranscriptionError("Transcription contains no words")

        return Transcript(text=payload.text, words=words, audio_events=events)

    async def transcribe(self, audio: bytes, file_name: str = "narration.mp3") -> Transcript:
        """Transcribe narration audio with per-word timing.

        Args:
            audio: Audio bytes
            file_name: Name sent with the multipart upload

        Returns:
            Transcript with at least one word

        Raises:
            TranscriptionError: If the vendor fails or returns no words
        """
        if not audio:
            raise TranscriptionError("Cannot transcribe empty audio")

        logger.info(f"Transcribing {file_name} ({len(audio)} bytes)")
        transcript = self.parse_payload(await self._request(audio, file_name))
        logger.info(
            f"Transcribed {len(transcript.words)} words, duration {transcript.duration:.2f}s"
        )
        return transcript

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()
