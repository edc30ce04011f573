"""AI service for media sequencing and photo description using Gemini."""

import logging

from google.genai import Client
from google.genai import types

from services.prompts import PHOTO_DESCRIBER_V1, strip_markdown_code_blocks
from utils.retry import APIRateLimitError, NetworkError, retry_api_call

logger = logging.getLogger(__name__)


class AIServiceError(Exception):
    """Error from the reasoning/vision vendor."""

    pass


def _classify_error(e: Exception) -> Exception:
    """Map vendor exceptions onto retryable errors where possible."""
    message = str(e).lower()
    if "rate limit" in message or "429" in message or "resource_exhausted" in message:
        return APIRateLimitError(f"Rate limit hit: {e}")
    if "network" in message or "timed out" in message or "connection" in message:
        return NetworkError(f"Network error: {e}")
    return AIServiceError(str(e))


class AIService:
    """Gemini-backed sequencing and vision calls.

    Methods are synchronous; pipeline code calls them via asyncio.to_thread.
    """

    def __init__(self, api_key: str, model_name: str = "gemini-3-flash-preview"):
        """Initialize Google GenAI client.

        Args:
            api_key: Google GenAI API key
            model_name: Gemini model to use
        """
        self.api_key = api_key
        self.model_name = model_name
        self.client = Client(api_key=api_key)
        logger.info(f"Initialized AI service with model: {model_name}")

    @retry_api_call(max_retries=3, base_delay=2.0)
    def generate_media_sequence(self, prompt: str, system_instruction: str) -> str:
        """Ask the model for a media sequence.

        Args:
            prompt: Filled sequencing prompt
            system_instruction: System role text

        Returns:
            Raw JSON text (markdown fences stripped); validated by the caller

        Raises:
            AIServiceError: If the model returns nothing or the call fails
        """
        try:
            response = self.client.models.generate_content(
                model=self.model_name,
                contents=prompt,
                config=types.GenerateContentConfig(
                    system_instruction=system_instruction,
                    temperature=0.4,
                    response_mime_type="application/json",
                ),
            )
        except Exception as e:
            logger.error(f"Media sequencing call failed: {e}")
            raise _classify_error(e) from e

        if not response.text:
            raise AIServiceError("Sequencing response is empty")

        return strip_markdown_code_blocks(response.text)

    @retry_api_call(max_retries=2, base_delay=1.0)
    def describe_image(self, image_bytes: bytes, mime_type: str = "image/jpeg") -> str:
        """Describe a product photo in one or two sentences.

        Raises:
            AIServiceError: If the model returns nothing or the call fails
        """
        try:
            response = self.client.models.generate_content(
                model=self.model_name,
                contents=[
                    types.Part.from_bytes(data=image_bytes, mime_type=mime_type),
                    PHOTO_DESCRIBER_V1,
                ],
                config=types.GenerateContentConfig(temperature=0.2),
            )
        except Exception as e:
            logger.error(f"Photo description call failed: {e}")
            raise _classify_error(e) from e

        description = (response.text or "").strip()
        if not description:
            raise AIServiceError("Photo description is empty")
        return description
