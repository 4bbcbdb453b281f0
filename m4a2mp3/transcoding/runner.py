"""
Subprocess execution with a hard timeout.

Conversion attempts run under a shrinking wall-clock budget, so a timed-out
process is killed immediately; there is no SIGINT/SIGTERM grace period.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional

logger = logging.getLogger(__name__)

# Keep only the end of stderr; ffmpeg reports the actual failure last
STDERR_TAIL_CHARS = 4000


@dataclass
class ProcessResult:
    """Outcome of one subprocess run."""
    returncode: Optional[int]
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False
    spawn_error: Optional[str] = None
    duration: float = 0.0

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.timed_out and self.spawn_error is None


ProcessRunner = Callable[[List[str], float], Awaitable[ProcessResult]]


async def _kill(process: asyncio.subprocess.Process) -> None:
    """Kill the process unconditionally and reap it."""
    if process.returncode is not None:
        return
    try:
        process.kill()
    except (ProcessLookupError, OSError):
        pass
    try:
        await process.wait()
    except Exception as e:
        logger.debug(f"[Runner] wait after kill failed: {e}")


async def run_process(cmd: List[str], timeout: float) -> ProcessResult:
    """
    Run ``cmd`` to completion or kill it once ``timeout`` seconds elapse.

    Args:
        cmd: Executable followed by its arguments
        timeout: Seconds before the process is killed

    Returns:
        ProcessResult. ``returncode`` is None when the process could not be
        started (``spawn_error`` set) or was killed on timeout.
    """
    started = time.monotonic()
    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except (OSError, ValueError) as e:
        logger.warning(f"[Runner] Failed to start {cmd[0]}: {e}")
        return ProcessResult(
            returncode=None,
            spawn_error=str(e),
            duration=time.monotonic() - started,
        )

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=max(timeout, 0.0))
    except asyncio.TimeoutError:
        await _kill(process)
        elapsed = time.monotonic() - started
        logger.warning(f"[Runner] {cmd[0]} killed after {elapsed:.1f}s (timeout {timeout:.1f}s)")
        return ProcessResult(returncode=None, timed_out=True, duration=elapsed)
    except asyncio.CancelledError:
        await _kill(process)
        raise

    return ProcessResult(
        returncode=process.returncode,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace")[-STDERR_TAIL_CHARS:],
        duration=time.monotonic() - started,
    )
