"""
Locate ffmpeg and ffprobe across deployment environments.

Serverless bundles ship static binaries next to the code, containers install
them under system prefixes, and developer machines have them on PATH. The
locator checks an ordered list of explicit paths and only then falls back to
a PATH lookup of the bare command name.
"""

import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from ..errors import BinaryNotFound

logger = logging.getLogger(__name__)

# Project root: <root>/m4a2mp3/transcoding/locator.py
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent

SYSTEM_BIN_DIRS: Sequence[str] = (
    "/opt/bin",
    "/usr/local/bin",
    "/usr/bin",
    "/opt/homebrew/bin",
)


@dataclass(frozen=True)
class BinaryLocation:
    """Resolved executables for one invocation."""
    ffmpeg: str
    ffprobe: str


def candidate_paths(
    name: str,
    explicit: Optional[str] = None,
    bundled_dir: Optional[Path] = None,
    system_dirs: Sequence[str] = SYSTEM_BIN_DIRS,
    cwd: Optional[Path] = None,
) -> List[str]:
    """
    Build the ordered candidate list for an executable.

    Order: explicit configured path, deployment-bundled dir, ``<cwd>/bin``,
    well-known system prefixes, bare command name.
    """
    candidates: List[str] = []
    if explicit and explicit != "auto":
        candidates.append(explicit)

    bundled = bundled_dir if bundled_dir is not None else PROJECT_ROOT / "bin"
    candidates.append(str(bundled / name))
    candidates.append(str((cwd or Path.cwd()) / "bin" / name))
    candidates.extend(str(Path(d) / name) for d in system_dirs)
    candidates.append(name)

    # Drop duplicates, keep order
    seen = set()
    ordered = []
    for c in candidates:
        if c not in seen:
            seen.add(c)
            ordered.append(c)
    return ordered


def locate_executable(
    name: str,
    candidates: Sequence[str],
    which: Callable[[str], Optional[str]] = shutil.which,
) -> str:
    """
    Return the first candidate that is an existing regular file.

    The final bare-name candidate is resolved through PATH.

    Raises:
        BinaryNotFound: nothing matched and PATH lookup failed.
    """
    for candidate in candidates:
        if os.sep not in candidate:
            continue
        path = Path(candidate)
        if path.is_file():
            logger.debug(f"[Locator] {name} -> {path}")
            return str(path)

    for candidate in candidates:
        if os.sep in candidate:
            continue
        resolved = which(candidate)
        if resolved:
            logger.debug(f"[Locator] {name} -> {resolved} (PATH)")
            return resolved

    logger.error(f"[Locator] {name} not found in {len(candidates)} candidate locations")
    raise BinaryNotFound(name, list(candidates))


class BinaryLocator:
    """Resolves the transcoder and its probe companion."""

    def __init__(
        self,
        ffmpeg_path: str = "auto",
        ffprobe_path: str = "auto",
        bundled_dir: Optional[Path] = None,
        system_dirs: Sequence[str] = SYSTEM_BIN_DIRS,
        which: Callable[[str], Optional[str]] = shutil.which,
    ):
        self.ffmpeg_path = ffmpeg_path
        self.ffprobe_path = ffprobe_path
        self.bundled_dir = bundled_dir
        self.system_dirs = system_dirs
        self.which = which

    def locate(self) -> BinaryLocation:
        """Resolve both executables; either missing is terminal."""
        ffmpeg = locate_executable(
            "ffmpeg",
            candidate_paths("ffmpeg", self.ffmpeg_path, self.bundled_dir, self.system_dirs),
            self.which,
        )
        ffprobe = locate_executable(
            "ffprobe",
            candidate_paths("ffprobe", self.ffprobe_path, self.bundled_dir, self.system_dirs),
            self.which,
        )
        return BinaryLocation(ffmpeg=ffmpeg, ffprobe=ffprobe)
