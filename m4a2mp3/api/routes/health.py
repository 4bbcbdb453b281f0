"""
Health and capabilities API routes for m4a2mp3
"""

import time
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from ... import __version__
from ...errors import BinaryNotFound
from ...models import HealthResponse, CapabilitiesResponse
from .convert import get_pipeline

router = APIRouter()

# Start time - set by lifespan
start_time: float = time.time()


def set_start_time(t: float) -> None:
    """Set the server start time."""
    global start_time
    start_time = t


@router.get("/api/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse(
        status="healthy",
        version=__version__,
        uptime_seconds=time.time() - start_time,
    )


@router.get("/api/capabilities", response_model=CapabilitiesResponse)
async def get_capabilities_endpoint(request: Request):
    """Resolved transcoder binaries and the audio encoders they report."""
    pipeline = get_pipeline(request.app.state.config)
    try:
        binaries = pipeline.locator.locate()
    except BinaryNotFound as e:
        return JSONResponse(status_code=e.status_code, content=e.to_dict())

    capabilities = await pipeline.capability_prober.probe(
        binaries.ffmpeg, pipeline.config.transcoding.capability_timeout
    )

    return CapabilitiesResponse(
        ffmpeg_path=binaries.ffmpeg,
        ffprobe_path=binaries.ffprobe,
        probed=capabilities.probed,
        audio_encoders=sorted(capabilities.encoders),
        mp3=capabilities.has_mp3,
        aac=capabilities.has_aac,
        pcm=capabilities.has_pcm,
        strategies=[s.name for s in pipeline.strategies if capabilities.has(s.encoder)],
    )


# Compatibility routes (without /api/ prefix)
@router.get("/health", response_model=HealthResponse)
async def health_check_compat():
    """Health check endpoint (compatibility)."""
    return await health_check()


@router.get("/capabilities", response_model=CapabilitiesResponse)
async def capabilities_compat(request: Request):
    """Capabilities endpoint (compatibility)."""
    return await get_capabilities_endpoint(request)
