"""
Image Backends - external text-to-image endpoints

ImageBackend is the seam the synthesizer depends on; VeniceImageClient is
the production implementation (Venice AI image API over httpx).

A backend returns a displayable URL (https or data:) or None when the
service answered without an image. Transport and HTTP errors raise; the
synthesizer turns them into a degraded ImageResult.
"""

import logging
from typing import Optional, Protocol

import httpx

logger = logging.getLogger(__name__)

VENICE_API_BASE = "https://api.venice.ai/api/v1"


class ImageBackend(Protocol):
    async def generate(self, prompt: str, model: str, width: int, height: int) -> Optional[str]:
        ...


class VeniceImageClient:
    """Generates panel images via the Venice AI image endpoint."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_base: str = VENICE_API_BASE,
        timeout: float = 90.0,
    ):
        self.api_key = api_key
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        if not self.api_key:
            logger.warning("⚠️ VENICE_API_KEY not set, panels will render without images")
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout, connect=15.0),
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
            )
        return self._client

    async def close(self):
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def generate(self, prompt: str, model: str, width: int = 1024, height: int = 1024) -> Optional[str]:
        """
        Request one image.

        Args:
            prompt: Enhanced comic prompt
            model: Venice model id, e.g. "qwen-image"
            width: Pixel width
            height: Pixel height

        Returns:
            data: URL for base64 payloads, the service URL otherwise,
            None when unconfigured or the response holds no image

        Raises:
            httpx.HTTPError: Transport failure or non-2xx status
        """
        if not self.api_key:
            logger.warning("⚠️ Image generation skipped: no Venice API key")
            return None

        client = await self._get_client()
        response = await client.post(
            f"{self.api_base}/image/generate",
            json={
                "prompt": prompt,
                "model": model,
                "width": width,
                "height": height,
                "format": "png",
            },
        )
        response.raise_for_status()
        data = response.json()

        images = data.get("images") or []
        if images and images[0]:
            return f"data:image/png;base64,{images[0]}"
        if data.get("imageUrl"):
            return data["imageUrl"]

        logger.warning(f"⚠️ Venice response for {model} has no images")
        return None
