"""
Bearer token middleware for m4a2mp3
"""

import hmac
import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from ..errors import AuthenticationFailed

logger = logging.getLogger(__name__)

# Reachable without a token
PUBLIC_PATHS = ("/api/health", "/health")


def _bearer_token(request: Request) -> str:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer":
        return ""
    return token.strip()


async def bearer_auth_middleware(request: Request, call_next):
    """Check the bearer token if the app's config sets one."""
    config = request.app.state.config
    auth_token = config.security.auth_token

    # Skip auth for health check and CORS preflight
    if request.url.path in PUBLIC_PATHS or request.method == "OPTIONS":
        return await call_next(request)

    # Skip if no token configured
    if not auth_token:
        return await call_next(request)

    presented = _bearer_token(request)
    if not presented or not hmac.compare_digest(presented.encode(), auth_token.encode()):
        logger.warning(f"[Auth] Rejected {request.method} {request.url.path}")
        error = AuthenticationFailed()
        payload = error.to_dict()
        payload.update(processing_time_ms=0, diagnostics=[])
        return JSONResponse(status_code=error.status_code, content=payload)

    return await call_next(request)
