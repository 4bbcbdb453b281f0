"""
FastAPI application for m4a2mp3
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from ..config import M4a2Mp3Config, get_config
from ..errors import ConversionError
from .middleware import bearer_auth_middleware
from .routes import convert_router, health_router
from .routes.health import set_start_time

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    set_start_time(time.time())
    config = app.state.config

    if config.security.auth_token:
        logger.info("[Auth] Bearer token required for conversion requests")
    else:
        logger.warning("[Auth] No auth token configured; conversion endpoint is open")

    logger.info(
        f"m4a2mp3 v{__version__} started on {config.server.host}:{config.server.port} "
        f"(budget {config.transcoding.total_budget:.0f}s)"
    )

    yield

    logger.info("m4a2mp3 shutdown complete")


async def conversion_error_handler(request: Request, exc: ConversionError) -> JSONResponse:
    """Classified errors raised outside the convert route."""
    payload = exc.to_dict()
    payload.update(processing_time_ms=0, diagnostics=[])
    return JSONResponse(status_code=exc.status_code, content=payload)


def create_app(config: Optional[M4a2Mp3Config] = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    config = config or get_config()

    app = FastAPI(
        title="m4a2mp3",
        description="M4A to MP3 conversion service with ffmpeg strategy fallback",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = config

    # Auth runs inside CORS so preflight requests are answered first
    app.middleware("http")(bearer_auth_middleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.security.allowed_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
        expose_headers=[
            "Content-Disposition",
            "X-Processing-Time",
            "X-Conversion-Strategy",
            "X-Diagnostics",
        ],
    )

    app.add_exception_handler(ConversionError, conversion_error_handler)

    app.include_router(health_router)
    app.include_router(convert_router)

    return app


app = create_app()
