"""
Pydantic models for API requests and responses
"""

from typing import Optional, List
from pydantic import BaseModel, Field


class ConvertRequest(BaseModel):
    """Body of POST /api/convert."""
    url: Optional[str] = None


class ErrorResponse(BaseModel):
    """JSON body of every failed conversion request."""
    error: str
    classification: str
    detail: Optional[str] = None
    cause: Optional[str] = None
    processing_time_ms: int = 0
    attempted_strategies: List[str] = Field(default_factory=list)
    diagnostics: List[str] = Field(default_factory=list)


class HealthResponse(BaseModel):
    status: str = "healthy"
    version: str
    uptime_seconds: float


class CapabilitiesResponse(BaseModel):
    ffmpeg_path: str
    ffprobe_path: str
    probed: bool
    audio_encoders: List[str] = Field(default_factory=list)
    mp3: bool = False
    aac: bool = False
    pcm: bool = False
    strategies: List[str] = Field(default_factory=list)
