"""
Strategy fallback engine.

Runs the active strategy list in order, one ffmpeg invocation per strategy,
until one produces a non-empty output file or the list is exhausted. Each
attempt gets the smaller of the per-attempt cap and the time left before the
deadline; an attempt is never started without its minimum viable duration.

State machine, implemented as a loop::

    Pending(i) -> Attempting(i) -> Succeeded
                                -> Pending(i + 1)
    Pending(len) -> Exhausted
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

from ..errors import AllStrategiesFailed, EmptyOutput
from ..trace import DiagnosticTrace
from .deadline import Deadline
from .error_classifier import ErrorClassifier, get_error_classifier
from .runner import ProcessRunner, run_process
from .signatures import extension_for, sniff_content_type
from .strategies import ConversionStrategy

logger = logging.getLogger(__name__)

# Enough for every signature in signatures.py
SNIFF_BYTES = 16


class AttemptOutcome:
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMEOUT = "timeout"
    SPAWN_ERROR = "spawn_error"
    EMPTY_OUTPUT = "empty_output"


@dataclass
class AttemptRecord:
    """One strategy attempt."""
    strategy: str
    outcome: str
    returncode: Optional[int] = None
    duration: float = 0.0
    category: Optional[str] = None
    error: Optional[str] = None
    stderr_tail: str = ""

    def describe(self) -> str:
        text = f"{self.strategy}: {self.outcome} in {self.duration:.2f}s"
        if self.error:
            text += f" ({self.error})"
        return text


@dataclass
class ConversionResult:
    """Output of the first successful strategy."""
    path: Path
    size: int
    extension: str
    content_type: str
    codec: str
    strategy: str
    attempts: List[AttemptRecord] = field(default_factory=list)


def output_path_for(output_dir: Path, stem: str, strategy: ConversionStrategy) -> Path:
    """Each strategy writes its own file so a failed attempt never shadows a later one."""
    return output_dir / f"out_{stem}_{strategy.name}.{strategy.extension}"


def _read_head(path: Path) -> bytes:
    try:
        with open(path, "rb") as f:
            return f.read(SNIFF_BYTES)
    except OSError as e:
        logger.debug(f"[Engine] Could not read output head: {e}")
        return b""


class FallbackEngine:
    """Ordered strategy attempts under a deadline."""

    def __init__(
        self,
        runner: ProcessRunner = run_process,
        per_attempt_cap: float = 15.0,
        min_attempt_time: float = 2.0,
        classifier: Optional[ErrorClassifier] = None,
    ):
        self.runner = runner
        self.per_attempt_cap = per_attempt_cap
        self.min_attempt_time = min_attempt_time
        self.classifier = classifier or get_error_classifier()

    async def convert(
        self,
        ffmpeg: str,
        input_path: Path,
        output_dir: Path,
        stem: str,
        strategies: Sequence[ConversionStrategy],
        deadline: Deadline,
        trace: Optional[DiagnosticTrace] = None,
    ) -> ConversionResult:
        """
        Try ``strategies`` in order until one succeeds.

        Args:
            ffmpeg: Resolved transcoder path
            input_path: Downloaded source file
            output_dir: Scratch directory for outputs
            stem: Per-invocation unique id used in output names
            strategies: Active candidate list, already filtered and ordered
            deadline: Invocation deadline
            trace: Diagnostic trace

        Returns:
            ConversionResult of the first success.

        Raises:
            InsufficientTime: not enough budget to start the next attempt
            EmptyOutput: exhausted, and the last attempt wrote zero bytes
            AllStrategiesFailed: exhausted for any other reason
        """
        attempts: List[AttemptRecord] = []

        for index, strategy in enumerate(strategies):
            timeout = deadline.timeout_for(
                "transcode", self.per_attempt_cap, self.min_attempt_time, attempts=attempts,
            )
            output_path = output_path_for(output_dir, stem, strategy)
            cmd = strategy.build_command(ffmpeg, input_path, output_path)

            logger.info(
                f"[Engine] Attempt {index + 1}/{len(strategies)}: {strategy.name} "
                f"(encoder={strategy.encoder}, timeout={timeout:.1f}s)"
            )
            if trace is not None:
                trace.add("engine", f"attempt {strategy.name} timeout={timeout:.1f}s")

            result = await self.runner(cmd, timeout)
            record = AttemptRecord(
                strategy=strategy.name,
                outcome=AttemptOutcome.FAILED,
                returncode=result.returncode,
                duration=result.duration,
                stderr_tail=result.stderr[-500:] if result.stderr else "",
            )

            if result.ok:
                size = output_path.stat().st_size if output_path.is_file() else 0
                if size > 0:
                    record.outcome = AttemptOutcome.SUCCEEDED
                    attempts.append(record)
                    return self._success(strategy, output_path, size, attempts, trace)

                record.outcome = AttemptOutcome.EMPTY_OUTPUT
                record.category = "output"
                record.error = (
                    "Output file is empty" if output_path.is_file() else "Output file not found"
                )
            else:
                category, description = self.classifier.describe(result)
                if result.timed_out:
                    record.outcome = AttemptOutcome.TIMEOUT
                elif result.spawn_error:
                    record.outcome = AttemptOutcome.SPAWN_ERROR
                record.category = category
                record.error = description

            attempts.append(record)
            logger.warning(f"[Engine] {record.describe()}")
            if trace is not None:
                trace.add("engine", record.describe())

        if trace is not None:
            trace.add("engine", f"exhausted after {len(attempts)} attempts")

        if attempts and attempts[-1].outcome == AttemptOutcome.EMPTY_OUTPUT:
            raise EmptyOutput(attempts)
        logger.error(f"[Engine] All {len(attempts)} strategies failed")
        raise AllStrategiesFailed(attempts, reason=None if attempts else "No strategies available")

    def _success(
        self,
        strategy: ConversionStrategy,
        output_path: Path,
        size: int,
        attempts: List[AttemptRecord],
        trace: Optional[DiagnosticTrace],
    ) -> ConversionResult:
        content_type = strategy.content_type
        extension = strategy.extension

        sniffed = sniff_content_type(_read_head(output_path))
        if sniffed and sniffed != content_type:
            logger.info(
                f"[Engine] {strategy.name} declared {content_type} but wrote {sniffed}"
            )
            content_type = sniffed
            extension = extension_for(sniffed) or extension

        logger.info(f"[Engine] {strategy.name} succeeded: {size} bytes {content_type}")
        if trace is not None:
            trace.add("engine", f"{strategy.name} succeeded ({size} bytes, {content_type})")

        return ConversionResult(
            path=output_path,
            size=size,
            extension=extension,
            content_type=content_type,
            codec=strategy.encoder,
            strategy=strategy.name,
            attempts=attempts,
        )
