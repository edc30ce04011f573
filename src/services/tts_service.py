"""TTS Service - HTTP client for ElevenLabs text-to-speech."""

import logging
import re

import httpx

from utils.retry import APIRateLimitError, NetworkError, retry_api_call

logger = logging.getLogger(__name__)

ELEVENLABS_API_BASE = "https://api.elevenlabs.io/v1"
DEFAULT_TTS_MODEL = "eleven_multilingual_v2"
DEFAULT_OUTPUT_FORMAT = "mp3_44100_128"
TTS_CHUNK_MAX_CHARS = 4500


class TTSServiceError(Exception):
    """Error from TTS service."""

    pass


class TTSService:
    """HTTP client for narration synthesis via ElevenLabs."""

    def __init__(
        self,
        api_key: str,
        model_id: str = DEFAULT_TTS_MODEL,
        output_format: str = DEFAULT_OUTPUT_FORMAT,
        api_base: str = ELEVENLABS_API_BASE,
        client: httpx.AsyncClient | None = None,
    ):
        """Initialize TTS service.

        Args:
            api_key: ElevenLabs API key (sent as xi-api-key)
            model_id: Synthesis model
            output_format: Vendor output format, e.g. mp3_44100_128
            api_base: API base URL
            client: Optional pre-built HTTP client
        """
        self.api_key = api_key
        self.model_id = model_id
        self.output_format = output_format
        self.api_base = api_base.rstrip("/")
        # Long timeout for synthesis of long scripts
        self.client = client or httpx.AsyncClient(timeout=300.0)

    @staticmethod
    def detect_audio_format(audio_bytes: bytes) -> str:
        """Detect audio format from magic bytes."""
        if len(audio_bytes) >= 12 and audio_bytes[:4] == b"RIFF" and audio_bytes[8:12] == b"WAVE":
            return "wav"
        if audio_bytes[:3] == b"ID3" or (
            len(audio_bytes) >= 2
            and audio_bytes[0] == 0xFF
            and (audio_bytes[1] & 0xE0) == 0xE0
        ):
            return "mp3"
        if audio_bytes[:4] == b"OggS":
            return "ogg"
        return "bin"

    def _split_text_chunks(self, text: str, max_chars: int = TTS_CHUNK_MAX_CHARS) -> list[str]:
        """Split long text into sentence-aware chunks."""
        normalized = " ".join(text.strip().split())
        if not normalized:
            return []

        if len(normalized) <= max_chars:
            return [normalized]

        chunks: list[str] = []
        current = ""

        def flush_into(part: str) -> None:
            nonlocal current
            candidate = f"{current} {part}" if current else part
            if len(candidate) <= max_chars:
                current = candidate
                return
            if current:
                chunks.append(current)
            current = part

        for sentence in re.split(r"(?<=[.!?])\s+", normalized):
            if len(sentence) <= max_chars:
                flush_into(sentence)
                continue

            # Overlong sentence: wrap on word boundaries
            line = ""
            for word in sentence.split():
                candidate = f"{line} {word}" if line else word
                if len(candidate) <= max_chars:
                    line = candidate
                else:
                    flush_into(line)
                    line = word
            if line:
                flush_into(line)

        if current:
            chunks.append(current)

        return chunks

    def _merge_audio_chunks(self, audio_chunks: list[bytes]) -> bytes:
        """Merge chunked narration audio into a single file."""
        if not audio_chunks:
            raise TTSServiceError("No audio chunks returned from TTS generation")
        if len(audio_chunks) == 1:
            return audio_chunks[0]

        formats = {self.detect_audio_format(chunk) for chunk in audio_chunks}
        if formats != {"mp3"}:
            raise TTSServiceError(f"Cannot merge TTS chunks with formats: {sorted(formats)}")

        # MP3 frame streams can be concatenated for sequential playback.
        return b"".join(audio_chunks)

    @retry_api_call(max_retries=3, base_delay=2.0)
    async def _synthesize_chunk(self, text: str, voice_id: str) -> bytes:
        url = f"{self.api_base}/text-to-speech/{voice_id}"
        try:
            response = await self.client.post(
                url,
                params={"output_format": self.output_format},
                headers={"xi-api-key": self.api_key, "Content-Type": "application/json"},
                json={"text": text, "model_id": self.model_id},
            )
        except httpx.TransportError as e:
            raise NetworkError(f"TTS request failed: {e}") from e

        if response.status_code == 429:
            raise APIRateLimitError("TTS rate limit hit")
        if response.status_code != 200:
            raise TTSServiceError(
                f"TTS request failed with status {response.status_code}: {response.text[:200]}"
            )
        if not response.content:
            raise TTSServiceError("TTS returned empty audio")

        return response.content

    async def synthesize(self, text: str, voice_id: str) -> bytes:
        """Synthesize narration audio for a script.

        Args:
            text: Script text
            voice_id: Vendor voice identifier

        Returns:
            Audio bytes (mp3)

        Raises:
            TTSServiceError: If synthesis fails or the text is empty
        """
        chunks = self._split_text_chunks(text)
        if not chunks:
            raise TTSServiceError("Cannot synthesize empty text")

        logger.info(f"Synthesizing {len(text)} chars in {len(chunks)} chunk(s) with voice {voice_id}")

        audio_chunks = []
        for chunk in chunks:
            audio_chunks.append(await self._synthesize_chunk(chunk, voice_id))

        return self._merge_audio_chunks(audio_chunks)

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()
