"""
Conversion API routes for m4a2mp3
"""

import json
import logging
import time
from typing import List, Optional

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse

from ...config import M4a2Mp3Config, get_config
from ...errors import ConversionError, NoUrlProvided
from ...models import ConvertRequest, ErrorResponse
from ...pipeline import ConversionPipeline
from ...trace import DiagnosticTrace
from ...transcoding.signatures import extension_for, sniff_content_type

logger = logging.getLogger(__name__)

router = APIRouter()

# Upper bound for the X-Diagnostics header value
MAX_DIAGNOSTICS_HEADER = 4000

_pipeline: Optional[ConversionPipeline] = None


def get_pipeline(config: Optional[M4a2Mp3Config] = None) -> ConversionPipeline:
    """Get the global pipeline instance, built from ``config`` on first use."""
    global _pipeline
    if _pipeline is None:
        _pipeline = ConversionPipeline(config or get_config())
    return _pipeline


def set_pipeline(pipeline: Optional[ConversionPipeline]) -> None:
    """Set (or reset with None) the global pipeline instance."""
    global _pipeline
    _pipeline = pipeline


def diagnostics_header(lines: List[str], limit: int = MAX_DIAGNOSTICS_HEADER) -> str:
    """
    Encode trace lines as an ASCII JSON array no longer than ``limit``.

    Trailing lines are dropped (and a marker appended) until it fits.
    """
    encoded = json.dumps(lines, ensure_ascii=True)
    if len(encoded) <= limit:
        return encoded

    kept = list(lines)
    while kept:
        kept.pop()
        candidate = kept + [f"... {len(lines) - len(kept)} more"]
        encoded = json.dumps(candidate, ensure_ascii=True)
        if len(encoded) <= limit:
            return encoded
    return "[]"


def parse_url(body: bytes) -> str:
    """
    Extract ``url`` from a JSON request body.

    Raises:
        NoUrlProvided: body missing, not JSON, not an object, or no url.
    """
    if not body:
        raise NoUrlProvided("Request body is empty")
    try:
        data = json.loads(body)
    except (ValueError, UnicodeDecodeError) as e:
        raise NoUrlProvided(f"Request body is not JSON: {e}")
    if not isinstance(data, dict):
        raise NoUrlProvided("Request body must be a JSON object")

    request = ConvertRequest(url=data.get("url") if isinstance(data.get("url"), str) else None)
    if not request.url or not request.url.strip():
        raise NoUrlProvided("Field 'url' is missing or empty")
    return request.url


def error_response(
    error: ConversionError,
    trace: DiagnosticTrace,
    started: float,
) -> JSONResponse:
    elapsed_ms = int((time.monotonic() - started) * 1000)
    payload = error.to_dict()
    body = ErrorResponse(
        error=payload["error"],
        classification=payload["classification"],
        detail=payload.get("detail"),
        cause=payload.get("cause"),
        processing_time_ms=elapsed_ms,
        attempted_strategies=payload.get("attempted_strategies") or [],
        diagnostics=trace.lines(),
    )
    return JSONResponse(
        status_code=error.status_code,
        content=body.model_dump(),
        headers={"X-Processing-Time": str(elapsed_ms)},
    )


@router.post("/api/convert")
async def convert(request: Request):
    """Download the M4A at ``url`` and return the converted audio."""
    started = time.monotonic()
    trace = DiagnosticTrace()

    try:
        url = parse_url(await request.body())
        trace.add("request", f"url={url}")
        pipeline = get_pipeline(request.app.state.config)
        deadline = pipeline.start_deadline()
        result = await pipeline.run(url, trace, deadline)
    except ConversionError as e:
        logger.warning(f"[Convert] {e.classification}: {e.message} ({e.detail})")
        trace.add("response", f"{e.status_code} {e.classification}")
        return error_response(e, trace, started)
    except Exception as e:
        logger.exception(f"[Convert] Unexpected error: {e}")
        trace.add("response", f"500 internal_error: {type(e).__name__}")
        return error_response(ConversionError("Internal server error", detail=str(e)), trace, started)

    # Header must describe the bytes actually sent
    content_type = sniff_content_type(result.data) or result.content_type
    extension = extension_for(content_type) or result.extension

    elapsed_ms = int((time.monotonic() - started) * 1000)
    trace.add("response", f"200 {content_type} {len(result.data)} bytes")
    logger.info(f"[Convert] Done in {elapsed_ms}ms via {result.strategy}")

    return Response(
        content=result.data,
        media_type=content_type,
        headers={
            "Content-Disposition": f'attachment; filename="converted.{extension}"',
            "Content-Length": str(len(result.data)),
            "X-Processing-Time": str(elapsed_ms),
            "X-Conversion-Strategy": result.strategy,
            "X-Diagnostics": diagnostics_header(trace.lines()),
        },
    )


# Compatibility route (without /api/ prefix)
@router.post("/convert")
async def convert_compat(request: Request):
    """Conversion endpoint (compatibility)."""
    return await convert(request)
