"""
Source download over HTTP(S).

Streams the response body to disk with a size cap and an overall timeout.
Every failure is raised as ``DownloadFailed`` carrying a cause that decides
the HTTP status returned to the caller.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

import httpx

from .errors import DownloadFailed, InvalidUrl

logger = logging.getLogger(__name__)

ALLOWED_SCHEMES = ("http", "https")


def validate_url(url: str) -> str:
    """
    Accept only absolute http(s) URLs with a host.

    Raises:
        InvalidUrl: anything else.
    """
    try:
        parsed = urlparse(url.strip())
    except (AttributeError, ValueError):
        raise InvalidUrl(str(url))
    if parsed.scheme.lower() not in ALLOWED_SCHEMES or not parsed.netloc:
        raise InvalidUrl(url)
    return url.strip()


async def _stream_to_file(
    client: httpx.AsyncClient,
    url: str,
    dest: Path,
    max_bytes: int,
    chunk_size: int,
) -> int:
    async with client.stream("GET", url) as response:
        if response.status_code >= 400:
            raise DownloadFailed(
                DownloadFailed.HTTP_STATUS,
                f"Source server returned HTTP {response.status_code}",
                detail=f"{response.status_code} {response.reason_phrase}",
            )

        declared = response.headers.get("content-length")
        if declared and declared.isdigit() and int(declared) > max_bytes:
            raise DownloadFailed(
                DownloadFailed.TOO_LARGE,
                "Source file exceeds the size limit",
                detail=f"Content-Length {declared} > {max_bytes}",
            )

        written = 0
        with open(dest, "wb") as f:
            async for chunk in response.aiter_bytes(chunk_size):
                written += len(chunk)
                if written > max_bytes:
                    raise DownloadFailed(
                        DownloadFailed.TOO_LARGE,
                        "Source file exceeds the size limit",
                        detail=f"More than {max_bytes} bytes received",
                    )
                f.write(chunk)
        return written


async def download_to_file(
    url: str,
    dest: Path,
    max_bytes: int = 50 * 1024 * 1024,
    timeout: float = 8.0,
    chunk_size: int = 64 * 1024,
    user_agent: Optional[str] = None,
) -> int:
    """
    Download ``url`` into ``dest``.

    Args:
        url: Absolute http(s) URL
        dest: Local file to create
        max_bytes: Size cap; exceeding it aborts the transfer
        timeout: Overall limit for connect plus body transfer, in seconds
        chunk_size: Read size while streaming
        user_agent: Optional User-Agent header

    Returns:
        Number of bytes written.

    Raises:
        DownloadFailed: timeout, network error, error status or size cap.
    """
    headers = {"User-Agent": user_agent} if user_agent else None
    timeout = max(timeout, 0.0)

    logger.info(f"[Download] Fetching {url} (timeout {timeout:.1f}s, cap {max_bytes} bytes)")
    try:
        async with httpx.AsyncClient(
            follow_redirects=True, timeout=timeout, headers=headers,
        ) as client:
            written = await asyncio.wait_for(
                _stream_to_file(client, url, dest, max_bytes, chunk_size),
                timeout=timeout,
            )
    except DownloadFailed as e:
        logger.warning(f"[Download] {e.message}: {e.detail}")
        raise
    except (asyncio.TimeoutError, httpx.TimeoutException) as e:
        logger.warning(f"[Download] Timed out after {timeout:.1f}s")
        raise DownloadFailed(
            DownloadFailed.TIMEOUT,
            "Download timed out",
            detail=str(e) or f"No complete response within {timeout:.1f}s",
        )
    except httpx.HTTPError as e:
        logger.warning(f"[Download] Network error: {e}")
        raise DownloadFailed(
            DownloadFailed.NETWORK,
            "Failed to download source file",
            detail=f"{type(e).__name__}: {e}",
        )

    logger.info(f"[Download] Complete: {written} bytes")
    return written
