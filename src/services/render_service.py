"""HTTP client for the video render vendor (Creatomate-compatible API)."""

import logging

import httpx

from utils.retry import APIRateLimitError, NetworkError, retry_api_call

logger = logging.getLogger(__name__)

DEFAULT_RENDER_API_BASE = "https://api.creatomate.com/v1"


class RenderServiceError(Exception):
    """Error from the render vendor."""

    pass


class RenderService:
    """Submits compositions, fetches render status and downloads results."""

    def __init__(
        self,
        api_key: str,
        api_base: str = DEFAULT_RENDER_API_BASE,
        client: httpx.AsyncClient | None = None,
    ):
        self.api_key = api_key
        self.api_base = api_base.rstrip("/")
        self.client = client or httpx.AsyncClient(timeout=120.0)

    @property
    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    @staticmethod
    def _raise_for_status(response: httpx.Response, action: str) -> None:
        if response.status_code == 429:
            raise APIRateLimitError(f"Render vendor rate limit hit while trying to {action}")
        if response.status_code >= 400:
            raise RenderServiceError(
                f"Failed to {action}: HTTP {response.status_code} {response.text[:200]}"
            )

    @retry_api_call(max_retries=2, base_delay=2.0)
    async def create_render(self, payload: dict) -> list[dict]:
        """Submit a composition.

        Args:
            payload: Render request body

        Returns:
            List of render documents; the vendor may fan one request out into several

        Raises:
            RenderServiceError: If the vendor rejects the request
        """
        try:
            response = await self.client.post(
                f"{self.api_base}/renders", headers=self._headers, json=payload
            )
        except httpx.TransportError as e:
            raise NetworkError(f"Render submission failed: {e}") from e

        self._raise_for_status(response, "submit render")

        data = response.json()
        if isinstance(data, dict):
            data = [data]
        if not isinstance(data, list):
            raise RenderServiceError(f"Unexpected render response: {str(data)[:200]}")
        return data

    async def get_render(self, render_id: str) -> dict:
        """Fetch the current status document of a render.

        Not retried here; the poll loop owns its error budget.
        """
        try:
            response = await self.client.get(
                f"{self.api_base}/renders/{render_id}", headers=self._headers
            )
        except httpx.TransportError as e:
            raise NetworkError(f"Render status request failed: {e}") from e

        self._raise_for_status(response, f"fetch render {render_id}")
        return response.json()

    @retry_api_call(max_retries=2, base_delay=2.0)
    async def download(self, url: str) -> bytes:
        """Download a finished render.

        Raises:
            RenderServiceError: If the download fails or is empty
        """
        try:
            response = await self.client.get(url, follow_redirects=True)
        except httpx.TransportError as e:
            raise NetworkError(f"Render download failed: {e}") from e

        self._raise_for_status(response, "download render")
        if not response.content:
            raise RenderServiceError(f"Render download from {url} was empty")

        logger.info(f"Downloaded render ({len(response.content)} bytes)")
        return response.content

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()
