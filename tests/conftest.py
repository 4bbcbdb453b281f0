"""
m4a2mp3 Test Configuration and Fixtures

Provides:
- A scripted ffmpeg/ffprobe stand-in (no real binaries needed)
- Real test media generation when FFmpeg is installed
- Config isolation and a local HTTP server serving fixture files
"""

import json
import shutil
import socket
import subprocess
import threading
import time
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Dict, Generator, List, Optional, Tuple

import pytest
from fastapi.testclient import TestClient

# Add project root to path
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from m4a2mp3.api.app import create_app
from m4a2mp3.api.routes.convert import set_pipeline
from m4a2mp3.config import M4a2Mp3Config, set_config
from m4a2mp3.pipeline import ConversionPipeline
from m4a2mp3.transcoding.locator import BinaryLocation
from m4a2mp3.transcoding.runner import ProcessResult


# =============================================================================
# FIXTURE BYTES
# =============================================================================

FAKE_MP3 = b"ID3\x03\x00\x00\x00\x00\x00\x00" + b"\xff\xfb\x90\x64" + b"\x00" * 400
FAKE_WAV = b"RIFF\x24\x00\x00\x00WAVEfmt " + b"\x00" * 400
FAKE_ADTS = b"\xff\xf1\x50\x80" + b"\x00" * 400
FAKE_M4A = b"\x00\x00\x00\x20ftypM4A \x00\x00\x02\x00M4A mp42isom" + b"\x00" * 400

ENCODER_LISTING = """Encoders:
 V..... = Video
 A..... = Audio
 S..... = Subtitle
 .F.... = Frame-level multithreading
 ..S... = Slice-level multithreading
 ...X.. = Codec is experimental
 ....B. = Supports draw_horiz_band
 .....D = Supports direct rendering method 1
 ------
 V....D libx264              libx264 H.264 / AVC / MPEG-4 AVC / MPEG-4 part 10 (codec h264)
 A....D aac                  AAC (Advanced Audio Coding)
 A....D libmp3lame           libmp3lame MP3 (MPEG audio layer 3) (codec mp3)
 A..... pcm_s16le            PCM signed 16-bit little-endian
 S..... srt                  SubRip subtitle
"""

ENCODER_LISTING_NO_MP3 = ENCODER_LISTING.replace(
    " A....D libmp3lame           libmp3lame MP3 (MPEG audio layer 3) (codec mp3)\n", ""
)

PROBE_AAC = {
    "streams": [
        {"index": 0, "codec_name": "aac", "codec_type": "audio",
         "sample_rate": "44100", "channels": 2},
    ],
    "format": {
        "format_name": "mov,mp4,m4a,3gp,3g2,mj2",
        "duration": "12.500000",
        "tags": {"major_brand": "M4A "},
    },
}

PROBE_AMR = {
    "streams": [
        {"index": 0, "codec_name": "amr_nb", "codec_type": "audio",
         "sample_rate": "8000", "channels": 1},
    ],
    "format": {
        "format_name": "mov,mp4,m4a,3gp,3g2,mj2",
        "duration": "4.0",
        "tags": {"major_brand": "3gp4"},
    },
}


# =============================================================================
# SCRIPTED FFMPEG
# =============================================================================

class FakeFFmpeg:
    """
    Scripted stand-in for ``run_process``.

    ``outcomes`` maps a strategy name to one of:
    ("ok", bytes), ("fail", stderr), ("timeout",), ("empty",), ("spawn",).
    Strategies without an entry succeed with ``default_output``.
    """

    def __init__(
        self,
        encoders: Optional[str] = ENCODER_LISTING,
        probe: Optional[dict] = None,
        default_output: bytes = FAKE_MP3,
        hang_probes: bool = False,
        clock: Optional["FakeClock"] = None,
    ):
        self.encoders = encoders
        self.probe = probe if probe is not None else PROBE_AAC
        self.default_output = default_output
        # Probes run until killed, advancing ``clock`` by their timeout
        self.hang_probes = hang_probes
        self.clock = clock
        self.outcomes: Dict[str, Tuple] = {}
        self.calls: List[Tuple[List[str], float]] = []

    @property
    def transcode_calls(self) -> List[List[str]]:
        return [cmd for cmd, _ in self.calls if "-c:a" in cmd]

    @property
    def attempted(self) -> List[str]:
        """Strategy names in the order they were run."""
        names = []
        for cmd in self.transcode_calls:
            stem = Path(cmd[-1]).stem
            names.append(self._strategy_from_stem(stem) or stem)
        return names

    def _strategy_from_stem(self, stem: str) -> Optional[str]:
        from m4a2mp3.transcoding.strategies import DEFAULT_STRATEGIES
        known = set(self.outcomes) | {s.name for s in DEFAULT_STRATEGIES}
        for name in sorted(known, key=len, reverse=True):
            if stem.endswith("_" + name):
                return name
        return None

    async def __call__(self, cmd: List[str], timeout: float) -> ProcessResult:
        self.calls.append((list(cmd), timeout))

        is_probe = "-encoders" in cmd or Path(cmd[0]).name == "ffprobe"
        if is_probe and self.hang_probes:
            if self.clock is not None:
                self.clock.advance(timeout)
            return ProcessResult(returncode=None, timed_out=True, duration=timeout)

        if "-encoders" in cmd:
            if self.encoders is None:
                return ProcessResult(returncode=1, stderr="boom", duration=0.01)
            return ProcessResult(returncode=0, stdout=self.encoders, duration=0.01)

        if Path(cmd[0]).name == "ffprobe":
            if self.probe is None:
                return ProcessResult(returncode=1, stderr="Invalid data found", duration=0.01)
            return ProcessResult(returncode=0, stdout=json.dumps(self.probe), duration=0.01)

        output = Path(cmd[-1])
        name = self._strategy_from_stem(output.stem)
        outcome = self.outcomes.get(name, ("ok", self.default_output))
        kind = outcome[0]

        if kind == "ok":
            output.write_bytes(outcome[1])
            return ProcessResult(returncode=0, duration=0.05)
        if kind == "empty":
            output.write_bytes(b"")
            return ProcessResult(returncode=0, duration=0.05)
        if kind == "timeout":
            return ProcessResult(returncode=None, timed_out=True, duration=timeout)
        if kind == "spawn":
            return ProcessResult(returncode=None, spawn_error="[Errno 2] No such file", duration=0.0)
        return ProcessResult(returncode=1, stderr=outcome[1], duration=0.05)


class StaticLocator:
    """Locator returning fixed paths."""

    def __init__(self, ffmpeg: str = "/fake/bin/ffmpeg", ffprobe: str = "/fake/bin/ffprobe"):
        self.location = BinaryLocation(ffmpeg=ffmpeg, ffprobe=ffprobe)

    def locate(self) -> BinaryLocation:
        return self.location


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# =============================================================================
# TEST MEDIA GENERATION
# =============================================================================

class TestMediaGenerator:
    """
    Generates real test audio using FFmpeg.
    No external downloads - creates synthetic tones.
    """

    def __init__(self, output_dir: Path):
        self.output_dir = output_dir
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self._ffmpeg = shutil.which("ffmpeg")

    @property
    def has_ffmpeg(self) -> bool:
        return self._ffmpeg is not None

    def generate_test_m4a(self, name: str = "tone", duration: int = 2) -> Optional[Path]:
        """
        Generate an AAC-in-M4A sine tone.

        Returns:
            Path to the file, or None if FFmpeg is not available
        """
        if not self.has_ffmpeg:
            return None

        output_path = self.output_dir / f"{name}.m4a"
        cmd = [
            self._ffmpeg, "-y",
            "-f", "lavfi",
            "-i", f"sine=frequency=440:duration={duration}",
            "-c:a", "aac", "-b:a", "96k",
            str(output_path),
        ]
        try:
            result = subprocess.run(cmd, capture_output=True, timeout=60)
            if result.returncode == 0 and output_path.exists():
                return output_path
        except (subprocess.TimeoutExpired, OSError) as e:
            print(f"Failed to generate test audio: {e}")
        return None


# =============================================================================
# PYTEST FIXTURES
# =============================================================================

@pytest.fixture(scope="session")
def test_media_dir(tmp_path_factory) -> Path:
    """Session-scoped directory served by ``http_server``."""
    media_dir = tmp_path_factory.mktemp("m4a2mp3_test_media")
    (media_dir / "voice.m4a").write_bytes(FAKE_M4A)
    (media_dir / "empty.m4a").write_bytes(b"")
    (media_dir / "large.m4a").write_bytes(b"\x00" * 200_000)
    return media_dir


@pytest.fixture(scope="session")
def media_generator(test_media_dir) -> TestMediaGenerator:
    return TestMediaGenerator(test_media_dir)


@pytest.fixture(scope="session")
def real_m4a(media_generator) -> Path:
    """Real 2-second M4A generated with FFmpeg."""
    if not media_generator.has_ffmpeg:
        pytest.skip("FFmpeg not available for test media generation")
    path = media_generator.generate_test_m4a()
    if not path:
        pytest.skip("Failed to generate test audio")
    return path


@pytest.fixture
def fake_ffmpeg() -> FakeFFmpeg:
    return FakeFFmpeg()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def scratch_dir(tmp_path) -> Path:
    path = tmp_path / "scratch"
    path.mkdir()
    return path


@pytest.fixture
def test_config(scratch_dir) -> Generator[M4a2Mp3Config, None, None]:
    """
    Isolated configuration installed as the global config.
    Uses a per-test scratch directory.
    """
    config = M4a2Mp3Config()
    config.transcoding.temp_directory = str(scratch_dir)
    config.logging.level = "WARNING"  # Less noise in tests

    set_config(config)
    set_pipeline(None)

    yield config

    set_pipeline(None)
    set_config(M4a2Mp3Config())


@pytest.fixture
def pipeline(test_config, fake_ffmpeg) -> ConversionPipeline:
    """Pipeline wired to the scripted ffmpeg."""
    return ConversionPipeline(test_config, runner=fake_ffmpeg, locator=StaticLocator())


@pytest.fixture
def api_client(test_config, pipeline) -> Generator[TestClient, None, None]:
    """Test client for API endpoints backed by the scripted pipeline."""
    set_pipeline(pipeline)
    with TestClient(create_app(test_config)) as client:
        yield client


# =============================================================================
# HTTP SERVER FOR TEST MEDIA
# =============================================================================

@pytest.fixture(scope="session")
def http_server(test_media_dir):
    """
    Serve ``test_media_dir`` over HTTP.

    Extra paths:
    - /slow: waits 3 seconds before answering
    - /status/<code>: answers with that status
    - /redirect: 302 to /voice.m4a
    """

    class QuietHandler(SimpleHTTPRequestHandler):
        def __init__(self, *args, **kwargs):
            super().__init__(*args, directory=str(test_media_dir), **kwargs)

        def do_GET(self):
            if self.path == "/slow":
                time.sleep(3)
                self._send(200, FAKE_M4A)
                return
            if self.path.startswith("/status/"):
                self._send(int(self.path.rsplit("/", 1)[1]), b"error")
                return
            if self.path == "/redirect":
                self.send_response(302)
                self.send_header("Location", "/voice.m4a")
                self.send_header("Content-Length", "0")
                self.end_headers()
                return
            super().do_GET()

        def _send(self, status: int, body: bytes):
            try:
                self.send_response(status)
                self.send_header("Content-Length", str(len(body)))
                self.end_headers()
                self.wfile.write(body)
            except (BrokenPipeError, ConnectionResetError):
                pass

        def log_message(self, format, *args):
            pass  # Suppress logging

    # Find available port
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        port = s.getsockname()[1]

    server = ThreadingHTTPServer(("127.0.0.1", port), QuietHandler)
    server.daemon_threads = True
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()

    yield f"http://127.0.0.1:{port}"

    server.shutdown()
    server.server_close()


# =============================================================================
# SKIP CONDITIONS
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "requires_ffmpeg: marks tests that require FFmpeg"
    )


@pytest.fixture
def requires_ffmpeg():
    """Skip test if FFmpeg not available."""
    if not shutil.which("ffmpeg") or not shutil.which("ffprobe"):
        pytest.skip("FFmpeg not available")
