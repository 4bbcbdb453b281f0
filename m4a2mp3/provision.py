"""
Deployment-time provisioning of static ffmpeg/ffprobe binaries.

Downloads a static build tarball and places ``ffmpeg`` and ``ffprobe`` in the
bundled binary directory the locator checks first. Run it while building a
deployment bundle:

    python -m m4a2mp3 provision --bin-dir ./bin
"""

import logging
import os
import shutil
import tarfile
import tempfile
from pathlib import Path
from typing import Dict, Optional

import httpx

from .transcoding.locator import PROJECT_ROOT

logger = logging.getLogger(__name__)

DEFAULT_FFMPEG_URL = "https://johnvansickle.com/ffmpeg/releases/ffmpeg-release-amd64-static.tar.xz"
BINARIES = ("ffmpeg", "ffprobe")


class ProvisionError(Exception):
    """Provisioning could not complete."""


def default_bin_dir() -> Path:
    return PROJECT_ROOT / "bin"


def binaries_present(bin_dir: Path) -> bool:
    return all((bin_dir / name).is_file() for name in BINARIES)


def download_archive(url: str, dest: Path, timeout: float = 300.0) -> int:
    """Stream ``url`` to ``dest``; redirects are followed."""
    written = 0
    try:
        with httpx.Client(follow_redirects=True, timeout=timeout) as client:
            with client.stream("GET", url) as response:
                if response.status_code != 200:
                    raise ProvisionError(f"Download failed with status: {response.status_code}")
                with open(dest, "wb") as f:
                    for chunk in response.iter_bytes(1024 * 1024):
                        f.write(chunk)
                        written += len(chunk)
    except httpx.HTTPError as e:
        raise ProvisionError(f"Download failed: {e}") from e
    return written


def extract_binaries(archive: Path, bin_dir: Path) -> Dict[str, Path]:
    """
    Copy ``ffmpeg`` and ``ffprobe`` out of a static build tarball.

    Members are matched by basename wherever they sit in the archive, so
    the versioned top-level directory of the tarball is irrelevant.
    """
    bin_dir.mkdir(parents=True, exist_ok=True)
    extracted: Dict[str, Path] = {}

    try:
        with tarfile.open(archive, "r:*") as tar:
            for member in tar:
                name = os.path.basename(member.name)
                if name not in BINARIES or name in extracted or not member.isfile():
                    continue
                source = tar.extractfile(member)
                if source is None:
                    continue
                target = bin_dir / name
                with source, open(target, "wb") as out:
                    shutil.copyfileobj(source, out)
                target.chmod(0o755)
                extracted[name] = target
                logger.info(f"[Provision] {name} ready at {target}")
    except tarfile.TarError as e:
        raise ProvisionError(f"Could not read archive: {e}") from e

    missing = [name for name in BINARIES if name not in extracted]
    if missing:
        raise ProvisionError(f"Archive does not contain: {', '.join(missing)}")
    return extracted


def provision(
    bin_dir: Optional[Path] = None,
    url: str = DEFAULT_FFMPEG_URL,
    force: bool = False,
    timeout: float = 300.0,
) -> Dict[str, Path]:
    """
    Make sure static binaries exist in ``bin_dir``.

    Args:
        bin_dir: Target directory (default ``<project>/bin``)
        url: Static build tarball URL
        force: Re-download even when both binaries exist
        timeout: Download timeout in seconds

    Returns:
        Mapping of binary name to its path.

    Raises:
        ProvisionError: download or extraction failed.
    """
    bin_dir = Path(bin_dir) if bin_dir else default_bin_dir()

    if binaries_present(bin_dir) and not force:
        logger.info(f"[Provision] Binaries already present in {bin_dir}, skipping download")
        return {name: bin_dir / name for name in BINARIES}

    bin_dir.mkdir(parents=True, exist_ok=True)
    with tempfile.TemporaryDirectory(dir=bin_dir) as tmp:
        archive = Path(tmp) / "ffmpeg-static.tar"
        logger.info(f"[Provision] Downloading {url}")
        size = download_archive(url, archive, timeout=timeout)
        logger.info(f"[Provision] Downloaded {size} bytes, extracting")
        return extract_binaries(archive, bin_dir)
