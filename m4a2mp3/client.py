"""
m4a2mp3 Client - call a deployed conversion endpoint

Usage:
    from m4a2mp3.client import ConvertClient

    client = ConvertClient("https://example.com/api/convert", token="secret")
    mp3_bytes = await client.convert("https://cdn.example.com/voice-note.m4a")
    await client.save("https://cdn.example.com/voice-note.m4a", "note.mp3")
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

import httpx

from .transcoding.signatures import is_mp3

logger = logging.getLogger(__name__)

# Smallest body accepted as real audio
MIN_AUDIO_BYTES = 100


class ConversionFailed(Exception):
    """The service returned an error, or something that is not valid audio."""

    def __init__(self, message: str, status_code: int = 0, payload: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload or {}

    @property
    def classification(self) -> Optional[str]:
        return self.payload.get("classification")


@dataclass
class ConversionResponse:
    """A successful conversion response."""
    data: bytes
    content_type: str
    strategy: Optional[str] = None
    processing_time_ms: Optional[int] = None
    diagnostics: Optional[str] = None

    @property
    def is_mp3(self) -> bool:
        return is_mp3(self.data)


class ConvertClient:
    """Client for the conversion endpoint."""

    def __init__(
        self,
        endpoint: str,
        token: Optional[str] = None,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.endpoint = endpoint
        self.token = token
        self.timeout = timeout
        self.transport = transport

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def request(self, url: str) -> ConversionResponse:
        """
        Post ``url`` to the endpoint.

        Returns:
            ConversionResponse for an audio body.

        Raises:
            ConversionFailed: transport error, error status or JSON error body.
        """
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(self.endpoint, json={"url": url}, headers=self._headers())
        except httpx.HTTPError as e:
            logger.error(f"[Client] Request failed: {e}")
            raise ConversionFailed(f"Request failed: {e}") from e

        content_type = response.headers.get("content-type", "")

        if "application/json" in content_type.lower():
            try:
                payload = response.json()
            except ValueError:
                payload = {}
            if not isinstance(payload, dict):
                payload = {}
            message = payload.get("error") or f"API returned HTTP {response.status_code}"
            raise ConversionFailed(message, response.status_code, payload)

        if response.status_code != 200:
            raise ConversionFailed(
                f"API returned HTTP {response.status_code}",
                response.status_code,
                {"body": response.text[:500]},
            )

        processing = response.headers.get("x-processing-time")
        return ConversionResponse(
            data=response.content,
            content_type=content_type,
            strategy=response.headers.get("x-conversion-strategy"),
            processing_time_ms=int(processing) if processing and processing.isdigit() else None,
            diagnostics=response.headers.get("x-diagnostics"),
        )

    async def convert(self, url: str) -> bytes:
        """Convert ``url`` and return the audio bytes."""
        result = await self.request(url)
        return result.data

    async def save(self, url: str, dest: Union[str, Path], require_mp3: bool = True) -> Path:
        """
        Convert ``url`` and write the result to ``dest``.

        Raises:
            ConversionFailed: service error, or the body is not valid MP3 data
                while ``require_mp3`` is set.
        """
        result = await self.request(url)

        if len(result.data) < MIN_AUDIO_BYTES:
            raise ConversionFailed(
                "Audio data too small",
                200,
                {"content_type": result.content_type, "size": len(result.data)},
            )
        if require_mp3 and not result.is_mp3:
            raise ConversionFailed(
                "Invalid MP3 data received from API",
                200,
                {
                    "content_type": result.content_type,
                    "strategy": result.strategy,
                    "body_start": result.data[:16].hex(),
                },
            )

        path = Path(dest)
        path.write_bytes(result.data)
        logger.info(f"[Client] Saved {len(result.data)} bytes to {path} ({result.strategy})")
        return path
