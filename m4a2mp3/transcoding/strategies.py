"""
Conversion strategy policy table and per-invocation selection.

Each strategy is one fixed combination of encoder, bitrate, sample rate,
channel count and container. Strategies are tried in table order; the first
success wins regardless of output quality. The table can be replaced from
configuration (``transcoding.strategies``).
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .capabilities import EncoderCapabilities
from .probe import InputProfile

logger = logging.getLogger(__name__)

# Matches any problematic input regardless of codec
ANY_CODEC = "*"

CONTENT_TYPES: Dict[str, str] = {
    "mp3": "audio/mpeg",
    "wav": "audio/wav",
    "aac": "audio/aac",
    "m4a": "audio/mp4",
    "mp4": "audio/mp4",
}


@dataclass(frozen=True)
class ConversionStrategy:
    """One ffmpeg argument profile."""
    name: str
    encoder: str
    extension: str
    output_format: str
    bitrate: Optional[str] = None
    sample_rate: Optional[int] = None
    channels: Optional[int] = None
    extra_args: Tuple[str, ...] = ()
    match_codecs: Tuple[str, ...] = ()

    @property
    def content_type(self) -> str:
        return CONTENT_TYPES.get(self.extension, "application/octet-stream")

    def matches(self, audio_codec: Optional[str]) -> bool:
        if ANY_CODEC in self.match_codecs:
            return True
        return bool(audio_codec) and audio_codec.lower() in self.match_codecs

    def build_command(self, ffmpeg: str, input_path: Path, output_path: Path) -> List[str]:
        """Build the ffmpeg command line for this strategy."""
        cmd = [ffmpeg, "-y", "-hide_banner", "-nostdin", "-loglevel", "error"]
        cmd.extend(["-i", str(input_path)])

        # Audio only; cover art and data tracks are dropped
        cmd.extend(["-vn", "-sn", "-dn", "-map", "0:a:0?"])
        cmd.extend(["-c:a", self.encoder])

        if self.encoder != "copy":
            if self.bitrate:
                cmd.extend(["-b:a", self.bitrate])
            if self.sample_rate:
                cmd.extend(["-ar", str(self.sample_rate)])
            if self.channels:
                cmd.extend(["-ac", str(self.channels)])

        cmd.extend(self.extra_args)
        cmd.extend(["-f", self.output_format, str(output_path)])
        return cmd

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConversionStrategy":
        """Build a strategy from a config mapping."""
        return cls(
            name=str(data["name"]),
            encoder=str(data["encoder"]),
            extension=str(data["extension"]).lstrip("."),
            output_format=str(data.get("output_format") or data["extension"]).lstrip("."),
            bitrate=data.get("bitrate"),
            sample_rate=data.get("sample_rate"),
            channels=data.get("channels"),
            extra_args=tuple(str(a) for a in data.get("extra_args") or ()),
            match_codecs=tuple(str(c).lower() for c in data.get("match_codecs") or ()),
        )


# Priority order: MP3 first (the product), then container/codec fallbacks for
# builds without an MP3 encoder or inputs that refuse to re-encode.
DEFAULT_STRATEGIES: Tuple[ConversionStrategy, ...] = (
    ConversionStrategy("mp3_fast", "libmp3lame", "mp3", "mp3", "96k", 22050, 1),
    ConversionStrategy("mp3_standard", "libmp3lame", "mp3", "mp3", "128k", 44100, 2),
    ConversionStrategy(
        "mp3_resampled", "libmp3lame", "mp3", "mp3", "64k", 16000, 1,
        extra_args=("-af", "aresample=async=1:first_pts=0"),
        match_codecs=(ANY_CODEC,),
    ),
    ConversionStrategy("mp3_shine", "libshine", "mp3", "mp3", "96k", 44100, 1),
    ConversionStrategy("aac_adts", "aac", "aac", "adts", "96k", 44100, 2),
    ConversionStrategy("aac_copy", "copy", "m4a", "ipod"),
    ConversionStrategy("wav_pcm", "pcm_s16le", "wav", "wav", None, 22050, 1),
)


def load_strategies(table: Sequence[Dict[str, Any]]) -> Tuple[ConversionStrategy, ...]:
    """Configured policy table, or the built-in one when empty."""
    if not table:
        return DEFAULT_STRATEGIES
    return tuple(ConversionStrategy.from_dict(entry) for entry in table)


def select_strategies(
    strategies: Sequence[ConversionStrategy],
    capabilities: EncoderCapabilities,
    profile: Optional[InputProfile],
) -> List[ConversionStrategy]:
    """
    Compute the active candidate list for one invocation.

    1. When capabilities were probed, drop strategies whose encoder is
       missing. If that removes everything, keep the unfiltered list: the
       listing may be wrong, and trying beats failing without an attempt.
    2. When the input is a problematic recording profile, stably move the
       strategies matching its codec to the front.

    Pure and deterministic for identical inputs.
    """
    active = list(strategies)

    if capabilities.probed:
        available = [s for s in active if capabilities.has(s.encoder)]
        dropped = [s.name for s in active if s not in available]
        if available:
            if dropped:
                logger.info(f"[Strategy] Dropped (encoder missing): {', '.join(dropped)}")
            active = available
        else:
            logger.warning("[Strategy] No strategy encoder reported available; trying all")

    if profile is not None and profile.problematic:
        promoted = [s for s in active if s.matches(profile.audio_codec)]
        if promoted:
            rest = [s for s in active if s not in promoted]
            active = promoted + rest
            logger.info(
                f"[Strategy] Problematic input ({profile.audio_codec}); promoted "
                f"{', '.join(s.name for s in promoted)}"
            )

    return active
