"""
FFmpeg error classification for attempt diagnostics.

Categories describe why a strategy attempt failed:
- encoder: the build lacks the encoder or rejects its parameters
- input: the source file is unreadable or unsupported
- resource: the host ran out of memory, disk or descriptors
- unknown: nothing matched

The engine advances to the next strategy on any failure; the category is
recorded on the attempt and in the trace so operators can tell a missing
encoder from a broken upload.
"""

import logging
from dataclasses import dataclass
from typing import List, Tuple, Optional

from .runner import ProcessResult

logger = logging.getLogger(__name__)


@dataclass
class FFmpegError:
    """Represents a classified FFmpeg error."""
    pattern: str
    category: str  # 'encoder', 'input', 'resource'
    description: str


FFMPEG_ERROR_MAP: List[FFmpegError] = [
    # === Encoder availability / parameters ===
    FFmpegError("unknown encoder", "encoder", "Encoder not compiled into this build"),
    FFmpegError("encoder not found", "encoder", "Encoder not found"),
    FFmpegError("codec not found", "encoder", "Codec not found"),
    FFmpegError("error while opening encoder", "encoder", "Encoder rejected parameters"),
    FFmpegError("could not find tag for codec", "encoder", "Codec not supported by container"),
    FFmpegError("invalid audio sample rate", "encoder", "Sample rate not supported by encoder"),
    FFmpegError("specified sample rate", "encoder", "Sample rate not supported by encoder"),
    FFmpegError("unsupported channel layout", "encoder", "Channel layout not supported"),
    FFmpegError("requested output format", "encoder", "Output format not available"),
    FFmpegError("filter not found", "encoder", "Filter not available"),
    FFmpegError("no such filter", "encoder", "Filter not available"),

    # === Input problems ===
    FFmpegError("moov atom not found", "input", "Truncated or invalid MP4 file"),
    FFmpegError("invalid data found", "input", "Invalid input data"),
    FFmpegError("invalid data", "input", "Invalid input data"),
    FFmpegError("does not contain any stream", "input", "Input has no streams"),
    FFmpegError("matches no streams", "input", "Input has no audio stream"),
    FFmpegError("decoder not found", "input", "No decoder for input codec"),
    FFmpegError("error while decoding", "input", "Decoding error"),
    FFmpegError("end of file", "input", "Unexpected end of file"),
    FFmpegError("no such file", "input", "Input file not found"),
    FFmpegError("permission denied", "input", "Permission denied"),

    # === Resource exhaustion ===
    FFmpegError("out of memory", "resource", "Out of memory"),
    FFmpegError("cannot allocate", "resource", "Memory allocation failed"),
    FFmpegError("too many open files", "resource", "File descriptor limit"),
    FFmpegError("no space left", "resource", "No disk space"),
    FFmpegError("disk quota", "resource", "Disk quota exceeded"),
]


class ErrorClassifier:
    """Classifies FFmpeg stderr for attempt records."""

    def __init__(self, error_map: Optional[List[FFmpegError]] = None):
        self.error_map = error_map or FFMPEG_ERROR_MAP

    def classify(self, error_msg: str) -> Tuple[Optional[FFmpegError], str]:
        """
        Classify FFmpeg error output.

        Args:
            error_msg: The error message from FFmpeg stderr

        Returns:
            Tuple of (matched_error, category). Category is 'unknown' if no match.
        """
        error_lower = (error_msg or "").lower()

        for error in self.error_map:
            if error.pattern in error_lower:
                return error, error.category

        return None, "unknown"

    def get_error_description(self, error_msg: str) -> str:
        """Get human-readable description of the error."""
        error, _ = self.classify(error_msg)
        if error:
            return error.description
        return "Unknown error"

    def describe(self, result: ProcessResult) -> Tuple[str, str]:
        """
        Summarize a failed process run.

        Returns:
            Tuple of (category, one-line description).
        """
        if result.spawn_error:
            return "spawn", f"Could not start transcoder: {result.spawn_error}"
        if result.timed_out:
            return "timeout", f"Killed after {result.duration:.1f}s"

        error, category = self.classify(result.stderr)
        last_line = _last_line(result.stderr)
        if error:
            return category, f"{error.description} (exit {result.returncode}): {last_line}"
        return category, f"exit {result.returncode}: {last_line or 'no stderr output'}"


def _last_line(text: str) -> str:
    for line in reversed((text or "").splitlines()):
        if line.strip():
            return line.strip()[:300]
    return ""


# Global classifier instance
_classifier: Optional[ErrorClassifier] = None


def get_error_classifier() -> ErrorClassifier:
    """Get the global error classifier instance."""
    global _classifier
    if _classifier is None:
        _classifier = ErrorClassifier()
    return _classifier
