"""Download submitted images from the transport."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import httpx

from services.errors import RequestFailure

LOGGER = logging.getLogger(__name__)


class ImageFetcher:
    """Fetch image bytes for an image reference (an http(s) URL).

    Args:
        timeout_seconds: Bound for the whole download, including a slow body.
        max_bytes: Downloads larger than this are rejected.
        client: Optional shared `httpx.AsyncClient`; one is created when omitted.
    """

    def __init__(
        self,
        *,
        timeout_seconds: float = 30.0,
        max_bytes: int = 10 * 1024 * 1024,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        self.max_bytes = max_bytes
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds, follow_redirects=True)

    async def fetch(self, image_ref: str) -> bytes:
        """Return the downloaded bytes.

        Raises:
            RequestFailure: On a bad reference, HTTP error, timeout, or oversize body.
        """
        if not image_ref.startswith(("http://", "https://")):
            raise RequestFailure(f"Unsupported image reference: {image_ref!r}")
        try:
            data = await asyncio.wait_for(self._download(image_ref), timeout=self.timeout_seconds)
        except asyncio.TimeoutError as exc:
            LOGGER.warning("Image download timed out after %ss for %s", self.timeout_seconds, image_ref)
            raise RequestFailure(f"Image download exceeded {self.timeout_seconds}s") from exc
        if not data:
            raise RequestFailure("Downloaded image is empty")
        return data

    async def _download(self, image_ref: str) -> bytes:
        try:
            async with self._client.stream("GET", image_ref) as response:
                response.raise_for_status()
                chunks = []
                received = 0
                async for chunk in response.aiter_bytes():
                    received += len(chunk)
                    if received > self.max_bytes:
                        raise RequestFailure(f"Image exceeds {self.max_bytes} bytes")
                    chunks.append(chunk)
        except httpx.HTTPError as exc:
            LOGGER.warning("Image download failed for %s: %s", image_ref, exc)
            raise RequestFailure(f"Image download failed: {exc}") from exc
        return b"".join(chunks)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
