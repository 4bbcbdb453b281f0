"""
One conversion invocation, end to end.

Phases run strictly in sequence under a single deadline:
validate URL -> locate binaries -> download -> probe input (best effort)
-> probe encoders (best effort) -> select strategies -> fallback engine.
Scratch files are removed on every exit path; the produced bytes are read
into memory before cleanup.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Awaitable, Callable, List, Optional

from .config import M4a2Mp3Config, get_config
from .downloader import download_to_file, validate_url
from .errors import EmptyInput
from .scratch import ScratchSpace
from .trace import DiagnosticTrace
from .transcoding.capabilities import CapabilityProber, EncoderCapabilities
from .transcoding.deadline import Deadline
from .transcoding.engine import AttemptRecord, FallbackEngine
from .transcoding.locator import BinaryLocator
from .transcoding.probe import InputProfile, MediaProbe
from .transcoding.runner import ProcessRunner, run_process
from .transcoding.strategies import load_strategies, select_strategies

logger = logging.getLogger(__name__)

Downloader = Callable[..., Awaitable[int]]


@dataclass
class ConvertedAudio:
    """Produced audio, detached from the scratch directory."""
    data: bytes
    content_type: str
    extension: str
    strategy: str
    attempts: List[AttemptRecord] = field(default_factory=list)
    profile: Optional[InputProfile] = None


class ConversionPipeline:
    """Wires the transcoding components together for one request."""

    def __init__(
        self,
        config: Optional[M4a2Mp3Config] = None,
        runner: ProcessRunner = run_process,
        locator: Optional[BinaryLocator] = None,
        downloader: Downloader = download_to_file,
    ):
        self.config = config or get_config()
        tc = self.config.transcoding

        self.runner = runner
        self.locator = locator or BinaryLocator(
            ffmpeg_path=tc.ffmpeg_path,
            ffprobe_path=tc.ffprobe_path,
            bundled_dir=Path(tc.bin_directory) if tc.bin_directory else None,
        )
        self.downloader = downloader
        self.capability_prober = CapabilityProber(runner)
        self.media_probe = MediaProbe(runner, tc.problematic_codecs, tc.problematic_brands)
        self.engine = FallbackEngine(
            runner,
            per_attempt_cap=tc.per_attempt_cap,
            min_attempt_time=tc.min_attempt_time,
        )
        self.strategies = load_strategies(tc.strategies)

    def start_deadline(self) -> Deadline:
        tc = self.config.transcoding
        return Deadline.start(tc.total_budget, tc.safety_margin)

    def _probe_timeout(self, deadline: Deadline, cap: float) -> Optional[float]:
        """
        Timeout for an advisory probe, or None when it must be skipped.

        The first transcode attempt's minimum is always held back.
        """
        tc = self.config.transcoding
        timeout = min(cap, deadline.available() - tc.min_attempt_time)
        if timeout < tc.min_probe_time:
            return None
        return timeout

    async def run(
        self,
        url: str,
        trace: Optional[DiagnosticTrace] = None,
        deadline: Optional[Deadline] = None,
    ) -> ConvertedAudio:
        """
        Convert the audio at ``url``.

        Args:
            url: Source URL as received
            trace: Diagnostic trace for this invocation
            deadline: Invocation deadline; started here when omitted

        Returns:
            ConvertedAudio with the produced bytes.

        Raises:
            ConversionError: any classified failure.
        """
        trace = trace if trace is not None else DiagnosticTrace()
        deadline = deadline or self.start_deadline()
        dc = self.config.download
        tc = self.config.transcoding

        url = validate_url(url)

        binaries = self.locator.locate()
        trace.add("locator", f"ffmpeg={binaries.ffmpeg} ffprobe={binaries.ffprobe}")

        with ScratchSpace(tc.temp_directory) as scratch:
            # Download
            download_timeout = deadline.timeout_for("download", dc.timeout, dc.min_time)
            trace.add("download", f"start timeout={download_timeout:.1f}s")
            size = await self.downloader(
                url,
                scratch.input_path,
                max_bytes=dc.max_bytes,
                timeout=download_timeout,
                chunk_size=dc.chunk_size,
                user_agent=dc.user_agent,
            )
            trace.add("download", f"complete {size} bytes")
            if size <= 0:
                raise EmptyInput()

            # Input probe (advisory)
            profile = None
            probe_timeout = self._probe_timeout(deadline, tc.probe_timeout)
            if probe_timeout is not None:
                profile = await self.media_probe.probe(
                    binaries.ffprobe,
                    scratch.input_path,
                    probe_timeout,
                    trace,
                )
            else:
                trace.add("probe", "skipped: budget reserved for transcoding")

            # Encoder probe (advisory)
            capability_timeout = self._probe_timeout(deadline, tc.capability_timeout)
            if capability_timeout is not None:
                capabilities = await self.capability_prober.probe(
                    binaries.ffmpeg,
                    capability_timeout,
                    trace,
                )
            else:
                capabilities = EncoderCapabilities.unknown()
                trace.add("capabilities", "skipped: budget reserved for transcoding")

            active = select_strategies(self.strategies, capabilities, profile)
            trace.add("strategy", "order: " + ", ".join(s.name for s in active))

            result = await self.engine.convert(
                binaries.ffmpeg,
                scratch.input_path,
                scratch.directory,
                scratch.id,
                active,
                deadline,
                trace,
            )

            data = result.path.read_bytes()

        logger.info(
            f"[Pipeline] Converted {size} -> {len(data)} bytes with {result.strategy} "
            f"in {deadline.elapsed():.2f}s"
        )
        return ConvertedAudio(
            data=data,
            content_type=result.content_type,
            extension=result.extension,
            strategy=result.strategy,
            attempts=result.attempts,
            profile=profile,
        )
