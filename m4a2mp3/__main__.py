"""
m4a2mp3 entry point

Usage:
    python -m m4a2mp3                      # start the conversion server
    python -m m4a2mp3 --config my.yaml     # with an explicit config file
    python -m m4a2mp3 provision            # fetch static ffmpeg/ffprobe into ./bin
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from . import __version__
from .config import load_config, set_config
from .logging_setup import setup_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="m4a2mp3",
        description="M4A to MP3 conversion service",
    )
    parser.add_argument("--version", action="version", version=f"m4a2mp3 {__version__}")
    parser.add_argument("-c", "--config", help="Path to m4a2mp3.yaml")
    parser.add_argument("--host", help="Bind address (overrides config)")
    parser.add_argument("--port", type=int, help="Port (overrides config)")

    sub = parser.add_subparsers(dest="command")
    prov = sub.add_parser("provision", help="Download static ffmpeg/ffprobe binaries")
    prov.add_argument("--bin-dir", help="Target directory (default: <project>/bin)")
    prov.add_argument("--url", help="Static build tarball URL")
    prov.add_argument("--force", action="store_true", help="Re-download even if present")
    return parser


def run_provision(args: argparse.Namespace) -> int:
    from .provision import DEFAULT_FFMPEG_URL, ProvisionError, provision

    try:
        paths = provision(
            bin_dir=Path(args.bin_dir) if args.bin_dir else None,
            url=args.url or DEFAULT_FFMPEG_URL,
            force=args.force,
        )
    except ProvisionError as e:
        logger.error(f"[Provision] {e}")
        logger.error("[Provision] The service will fall back to system ffmpeg if present")
        return 1

    for name, path in paths.items():
        logger.info(f"[Provision] {name}: {path}")
    return 0


def run_server(args: argparse.Namespace) -> int:
    import uvicorn

    config = load_config(args.config)
    if args.host:
        config.server.host = args.host
    if args.port:
        config.server.port = args.port
    set_config(config)
    setup_logging(config.logging)

    from .api import create_app

    uvicorn.run(
        create_app(config),
        host=config.server.host,
        port=config.server.port,
        log_config=None,
    )
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    if args.command == "provision":
        config = load_config(args.config)
        setup_logging(config.logging)
        return run_provision(args)

    return run_server(args)


if __name__ == "__main__":
    sys.exit(main())
