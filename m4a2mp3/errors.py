"""
Error taxonomy for conversion invocations.

Every terminal failure maps to a stable ``classification`` and an HTTP
status code. ``message`` is the user-facing text; ``detail`` keeps the raw
underlying error (stderr tail, exception text) for diagnostics.
"""

from typing import Any, Dict, List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .transcoding.engine import AttemptRecord


class ConversionError(Exception):
    """Base class for classified invocation failures."""

    status_code: int = 500
    classification: str = "internal_error"

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail

    @property
    def attempted_strategies(self) -> List[str]:
        return []

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.message,
            "classification": self.classification,
            "detail": self.detail,
            "attempted_strategies": self.attempted_strategies,
        }


class BinaryNotFound(ConversionError):
    status_code = 503
    classification = "binary_not_found"

    def __init__(self, name: str, candidates: List[str]):
        super().__init__(
            f"Transcoder executable '{name}' is not available",
            detail="Checked: " + ", ".join(candidates),
        )
        self.name = name
        self.candidates = candidates


class AuthenticationFailed(ConversionError):
    status_code = 401
    classification = "authentication_failed"

    def __init__(self, detail: Optional[str] = None):
        super().__init__("Invalid or missing bearer token", detail=detail)


class NoUrlProvided(ConversionError):
    status_code = 400
    classification = "no_url_provided"

    def __init__(self, detail: Optional[str] = None):
        super().__init__("No URL provided", detail=detail)


class InvalidUrl(ConversionError):
    status_code = 400
    classification = "invalid_url"

    def __init__(self, url: str):
        super().__init__("Invalid URL: only absolute http(s) URLs are supported", detail=url)


class DownloadFailed(ConversionError):
    """Fetching the source failed. ``cause`` picks the status code."""

    classification = "download_failed"

    TIMEOUT = "timeout"
    NETWORK = "network"
    HTTP_STATUS = "http_status"
    TOO_LARGE = "too_large"

    _STATUS_BY_CAUSE = {
        TIMEOUT: 504,
        NETWORK: 400,
        HTTP_STATUS: 400,
        TOO_LARGE: 413,
    }

    def __init__(self, cause: str, message: str, detail: Optional[str] = None):
        super().__init__(message, detail=detail)
        self.cause = cause
        self.status_code = self._STATUS_BY_CAUSE.get(cause, 400)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["cause"] = self.cause
        return data


class EmptyInput(ConversionError):
    status_code = 500
    classification = "empty_input"

    def __init__(self):
        super().__init__("Downloaded file is empty")


class _AttemptsError(ConversionError):
    """Failure that carries the ordered attempt records of the engine."""

    def __init__(self, message: str, attempts: Optional[List["AttemptRecord"]] = None,
                 detail: Optional[str] = None):
        super().__init__(message, detail=detail)
        self.attempts: List["AttemptRecord"] = list(attempts or [])

    @property
    def attempted_strategies(self) -> List[str]:
        return [a.strategy for a in self.attempts]


class InsufficientTime(_AttemptsError):
    status_code = 504
    classification = "insufficient_time"

    def __init__(self, phase: str, available: float, required: float,
                 attempts: Optional[List["AttemptRecord"]] = None):
        super().__init__(
            f"Not enough time left to start {phase}",
            attempts=attempts,
            detail=f"{phase}: {max(available, 0.0):.2f}s available, {required:.2f}s required",
        )
        self.phase = phase
        self.available = available
        self.required = required


class AllStrategiesFailed(_AttemptsError):
    status_code = 422
    classification = "all_strategies_failed"

    def __init__(self, attempts: List["AttemptRecord"], reason: Optional[str] = None):
        last = attempts[-1] if attempts else None
        super().__init__(
            "Audio conversion failed with every available strategy",
            attempts=attempts,
            detail=reason or (last.error if last else None),
        )


class EmptyOutput(AllStrategiesFailed):
    """The final strategy exited cleanly but wrote a zero-byte file."""

    status_code = 500
    classification = "empty_output"

    def __init__(self, attempts: List["AttemptRecord"]):
        super().__init__(attempts, reason="Output file is empty")
        self.message = "Conversion produced an empty file"
        self.args = (self.message,)
