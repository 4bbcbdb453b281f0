"""
Per-invocation scratch files.

Names are unique per invocation (millisecond timestamp plus random hex) so
concurrent invocations sharing a temp directory never collide. Every file
created under the invocation id is removed on exit, whatever the outcome.
"""

import logging
import secrets
import tempfile
import time
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger(__name__)


def new_invocation_id() -> str:
    return f"{int(time.time() * 1000)}_{secrets.token_hex(4)}"


class ScratchSpace:
    """
    Context manager owning the scratch files of one invocation.

    Usage:
        with ScratchSpace(temp_dir) as scratch:
            download_to(scratch.input_path)
            ...
    """

    def __init__(self, directory: Optional[str] = None, invocation_id: Optional[str] = None):
        self.directory = Path(directory) if directory else Path(tempfile.gettempdir())
        self.id = invocation_id or new_invocation_id()

    @property
    def input_path(self) -> Path:
        return self.directory / f"in_{self.id}.m4a"

    def files(self) -> List[Path]:
        """Existing scratch files owned by this invocation (outputs as named by ``output_path_for``)."""
        found = []
        if self.input_path.exists():
            found.append(self.input_path)
        found.extend(sorted(self.directory.glob(f"out_{self.id}_*")))
        return found

    def __enter__(self) -> "ScratchSpace":
        self.directory.mkdir(parents=True, exist_ok=True)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cleanup()

    def cleanup(self) -> int:
        """Delete every owned file. Errors are logged, never raised."""
        removed = 0
        try:
            paths = self.files()
        except OSError as e:
            logger.error(f"[Scratch] Could not list scratch files for {self.id}: {e}")
            return 0

        for path in paths:
            try:
                path.unlink()
                removed += 1
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.error(f"[Scratch] Cleanup failed for {path}: {e}")

        if removed:
            logger.debug(f"[Scratch] Removed {removed} file(s) for {self.id}")
        return removed
