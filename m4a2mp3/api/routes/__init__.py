"""
API routes for m4a2mp3
"""

from .convert import router as convert_router
from .health import router as health_router

__all__ = ["convert_router", "health_router"]
