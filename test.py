#!/usr/bin/env python3
"""
m4a2mp3 test runner.

Usage:
    python test.py               # Everything (FFmpeg tests skip themselves if absent)
    python test.py unit          # Scripted ffmpeg only, no real binaries
    python test.py ffmpeg        # Only tests that drive a real FFmpeg
    python test.py quick         # Skip tests marked slow
    python test.py failed        # Re-run last failures
    python test.py <module>      # tests/test_<module>.py, else a -k filter
"""

import os
import subprocess
import sys
from typing import List, Tuple

PROJECT_DIR = os.path.dirname(os.path.abspath(__file__))

# mode -> (extra pytest args, banner)
MODES = {
    "unit": (["-m", "not integration and not requires_ffmpeg"], "Unit tests (scripted ffmpeg)"),
    "ffmpeg": (["-m", "requires_ffmpeg"], "Tests against a real FFmpeg"),
    "quick": (["-m", "not slow"], "Quick tests (skipping slow)"),
    "failed": (["--lf"], "Re-running failed tests"),
}


def build_command(args: List[str], project_dir: str = PROJECT_DIR) -> Tuple[List[str], str]:
    """Translate runner arguments into a pytest command line and a banner."""
    cmd = [sys.executable, "-m", "pytest", "tests/", "-v", "--tb=short"]

    if not args:
        return cmd, "All tests"

    mode = args[0]
    if mode in MODES:
        extra, banner = MODES[mode]
        return cmd + extra, banner

    test_file = os.path.join("tests", f"test_{mode}.py")
    if os.path.exists(os.path.join(project_dir, test_file)):
        return [sys.executable, "-m", "pytest", test_file, "-v", "--tb=short"], f"Module {mode}"
    return cmd + ["-k", mode], f"Tests matching '{mode}'"


def main() -> int:
    os.chdir(PROJECT_DIR)
    cmd, banner = build_command(sys.argv[1:])
    print(f"[TEST] {banner}\n")

    try:
        result = subprocess.run(cmd)
    except KeyboardInterrupt:
        print("\n[ABORT] Tests interrupted by user")
        return 1

    print("\n" + "=" * 60)
    if result.returncode == 0:
        print("[PASS] All tests passed!")
    else:
        print(f"[FAIL] Tests failed (exit code: {result.returncode})")
    print("=" * 60)
    return result.returncode


if __name__ == "__main__":
    sys.exit(main())
