"""
Audio encoder detection for the deployed ffmpeg build.

Static and minimal ffmpeg builds routinely omit encoders (libmp3lame is the
usual casualty), so the encoder listing is probed once per invocation and
used to filter the strategy list.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import FrozenSet, Optional

from ..trace import DiagnosticTrace
from .runner import ProcessRunner, run_process

logger = logging.getLogger(__name__)

# " A....D libmp3lame           libmp3lame MP3 (MPEG audio layer 3) (codec mp3)"
_ENCODER_LINE = re.compile(r"^\s*([VASFXBD.]{6})\s+(\S+)(?:\s+(.*))?$")

# Pseudo-encoder handled by ffmpeg itself (stream copy)
ALWAYS_AVAILABLE: FrozenSet[str] = frozenset({"copy"})


@dataclass(frozen=True)
class EncoderCapabilities:
    """
    Audio encoders the transcoder reports.

    ``probed`` is False when the listing could not be obtained; every flag then
    reads False and callers must not filter on it.
    """
    encoders: FrozenSet[str] = field(default_factory=frozenset)
    probed: bool = False

    @classmethod
    def unknown(cls) -> "EncoderCapabilities":
        return cls(encoders=frozenset(), probed=False)

    def has(self, encoder: str) -> bool:
        if not self.probed:
            return False
        return encoder in ALWAYS_AVAILABLE or encoder in self.encoders

    @property
    def has_mp3(self) -> bool:
        return self.has("libmp3lame") or self.has("libshine")

    @property
    def has_aac(self) -> bool:
        return self.has("aac") or self.has("libfdk_aac")

    @property
    def has_pcm(self) -> bool:
        return self.has("pcm_s16le")


def parse_encoder_listing(text: str) -> FrozenSet[str]:
    """
    Extract audio encoder names from ``ffmpeg -encoders`` output.

    The listing starts with a legend block terminated by a ``------`` line;
    everything before it is ignored. Only entries whose first flag column is
    ``A`` are returned.
    """
    lines = text.splitlines()
    for i, line in enumerate(lines):
        if line.strip().startswith("---"):
            lines = lines[i + 1:]
            break

    encoders = set()
    for line in lines:
        match = _ENCODER_LINE.match(line)
        if not match:
            continue
        flags, name = match.group(1), match.group(2)
        if flags[0] == "A":
            encoders.add(name)
    return frozenset(encoders)


class CapabilityProber:
    """Runs the transcoder's encoder listing and parses it."""

    def __init__(self, runner: ProcessRunner = run_process):
        self.runner = runner

    async def probe(
        self,
        ffmpeg: str,
        timeout: float,
        trace: Optional[DiagnosticTrace] = None,
    ) -> EncoderCapabilities:
        """Never raises; failures degrade to ``EncoderCapabilities.unknown()``."""
        result = await self.runner([ffmpeg, "-hide_banner", "-encoders"], timeout)

        if not result.ok:
            reason = (
                "timeout" if result.timed_out
                else result.spawn_error or f"exit code {result.returncode}"
            )
            logger.warning(f"[Capabilities] Encoder listing failed: {reason}")
            if trace is not None:
                trace.add("capabilities", f"encoder probe failed ({reason}); selection unfiltered")
            return EncoderCapabilities.unknown()

        encoders = parse_encoder_listing(result.stdout)
        if not encoders:
            logger.warning("[Capabilities] Encoder listing contained no audio encoders")
            if trace is not None:
                trace.add("capabilities", "encoder listing unparseable; selection unfiltered")
            return EncoderCapabilities.unknown()

        caps = EncoderCapabilities(encoders=encoders, probed=True)
        logger.info(
            f"[Capabilities] {len(encoders)} audio encoders "
            f"(mp3={caps.has_mp3}, aac={caps.has_aac}, pcm={caps.has_pcm})"
        )
        if trace is not None:
            trace.add(
                "capabilities",
                f"mp3={caps.has_mp3} aac={caps.has_aac} pcm={caps.has_pcm} "
                f"({len(encoders)} audio encoders)",
            )
        return caps
