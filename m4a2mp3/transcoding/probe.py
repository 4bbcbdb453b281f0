"""
Input inspection with ffprobe.

Probing is advisory: any failure yields ``None`` and conversion proceeds
without an InputProfile.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

from ..trace import DiagnosticTrace
from .runner import ProcessRunner, run_process

logger = logging.getLogger(__name__)

DEFAULT_PROBLEMATIC_CODECS = ("amr_nb", "amr_wb", "alac", "opus", "pcm_s16be")
DEFAULT_PROBLEMATIC_BRANDS = ("3gp4", "3gp5", "3gp6", "3g2a", "qt")


@dataclass(frozen=True)
class InputProfile:
    """Classification of the downloaded input."""
    format_name: Optional[str]
    audio_codec: Optional[str]
    problematic: bool
    size_bytes: int
    major_brand: Optional[str] = None
    sample_rate: Optional[int] = None
    channels: Optional[int] = None
    duration: Optional[float] = None

    def describe(self) -> str:
        return (
            f"format={self.format_name or '?'} codec={self.audio_codec or '?'} "
            f"brand={self.major_brand or '?'} rate={self.sample_rate or '?'} "
            f"channels={self.channels or '?'} problematic={self.problematic}"
        )


def _as_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _as_float(value: Any) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _as_str(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _is_attached_picture(stream: Dict[str, Any]) -> bool:
    disposition = stream.get("disposition")
    return isinstance(disposition, dict) and disposition.get("attached_pic") == 1


def classify_profile(
    audio_codec: Optional[str],
    major_brand: Optional[str],
    audio_streams: int,
    other_streams: int,
    problematic_codecs: Iterable[str] = DEFAULT_PROBLEMATIC_CODECS,
    problematic_brands: Iterable[str] = DEFAULT_PROBLEMATIC_BRANDS,
) -> bool:
    """
    Decide whether the input is a known problematic recording profile.

    Mobile recorders produce AMR/ALAC/Opus audio, 3GPP or QuickTime brands,
    or containers that carry cover art/data tracks or several audio tracks.
    """
    codecs = {c.lower() for c in problematic_codecs}
    brands = {b.lower().strip() for b in problematic_brands}

    if audio_codec and audio_codec.lower() in codecs:
        return True
    if major_brand and major_brand.lower().strip() in brands:
        return True
    if audio_streams > 1 or other_streams > 0:
        return True
    return False


def parse_probe_output(
    data: Dict[str, Any],
    size_bytes: int,
    problematic_codecs: Iterable[str] = DEFAULT_PROBLEMATIC_CODECS,
    problematic_brands: Iterable[str] = DEFAULT_PROBLEMATIC_BRANDS,
) -> Optional[InputProfile]:
    """
    Build an InputProfile from ffprobe ``-show_format -show_streams`` JSON.

    Returns None when the document has neither a format block nor streams.
    Missing fields default to None.
    """
    if not isinstance(data, dict):
        return None

    fmt = data.get("format") if isinstance(data.get("format"), dict) else {}
    streams = [s for s in data.get("streams") or [] if isinstance(s, dict)]
    if not fmt and not streams:
        return None

    audio = [s for s in streams if s.get("codec_type") == "audio"]
    # Embedded cover art is common in plain M4A files and harmless
    others = [
        s for s in streams
        if s.get("codec_type") != "audio" and not _is_attached_picture(s)
    ]
    first_audio = audio[0] if audio else {}

    tags = fmt.get("tags") if isinstance(fmt.get("tags"), dict) else {}
    audio_codec = _as_str(first_audio.get("codec_name"))
    major_brand = _as_str(tags.get("major_brand"))

    return InputProfile(
        format_name=_as_str(fmt.get("format_name")),
        audio_codec=audio_codec,
        problematic=classify_profile(
            audio_codec, major_brand, len(audio), len(others),
            problematic_codecs, problematic_brands,
        ),
        size_bytes=size_bytes,
        major_brand=major_brand,
        sample_rate=_as_int(first_audio.get("sample_rate")),
        channels=_as_int(first_audio.get("channels")),
        duration=_as_float(fmt.get("duration")),
    )


class MediaProbe:
    """Runs ffprobe against the local input."""

    def __init__(
        self,
        runner: ProcessRunner = run_process,
        problematic_codecs: Iterable[str] = DEFAULT_PROBLEMATIC_CODECS,
        problematic_brands: Iterable[str] = DEFAULT_PROBLEMATIC_BRANDS,
    ):
        self.runner = runner
        self.problematic_codecs = tuple(problematic_codecs)
        self.problematic_brands = tuple(problematic_brands)

    async def probe(
        self,
        ffprobe: str,
        input_path: Path,
        timeout: float,
        trace: Optional[DiagnosticTrace] = None,
    ) -> Optional[InputProfile]:
        """Return the InputProfile or None on any failure."""
        cmd = [
            ffprobe,
            "-v", "error",
            "-print_format", "json",
            "-show_format",
            "-show_streams",
            str(input_path),
        ]
        result = await self.runner(cmd, timeout)

        if not result.ok:
            reason = (
                "timeout" if result.timed_out
                else result.spawn_error or f"exit code {result.returncode}"
            )
            logger.warning(f"[Probe] ffprobe failed: {reason}")
            if trace is not None:
                trace.add("probe", f"ffprobe failed ({reason}); converting blind")
            return None

        try:
            data = json.loads(result.stdout)
        except json.JSONDecodeError as e:
            logger.warning(f"[Probe] Invalid ffprobe output: {e}")
            if trace is not None:
                trace.add("probe", "ffprobe output not JSON; converting blind")
            return None

        try:
            size = input_path.stat().st_size
        except OSError:
            size = 0

        profile = parse_probe_output(data, size, self.problematic_codecs, self.problematic_brands)
        if profile is None:
            if trace is not None:
                trace.add("probe", "ffprobe returned no format data; converting blind")
            return None

        logger.info(f"[Probe] {profile.describe()}")
        if trace is not None:
            trace.add("probe", profile.describe())
        return profile
