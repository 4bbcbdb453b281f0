"""
API package for m4a2mp3
"""

from .app import app, create_app
from .middleware import bearer_auth_middleware
from .routes.convert import get_pipeline, set_pipeline

__all__ = [
    "app",
    "create_app",
    "bearer_auth_middleware",
    "get_pipeline",
    "set_pipeline",
]
