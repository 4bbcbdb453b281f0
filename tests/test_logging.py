"""
Tests for logging setup, the diagnostic trace and the CLI entry point.
"""

import json
import logging

import pytest

from m4a2mp3 import __main__ as cli
from m4a2mp3.config import LoggingConfig
from m4a2mp3.logging_setup import JsonFormatter, setup_logging
from m4a2mp3.provision import ProvisionError
from m4a2mp3.trace import DiagnosticTrace

from conftest import FakeClock


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers = handlers
    root.setLevel(level)


def test_json_formatter():
    record = logging.LogRecord("m4a2mp3.engine", logging.WARNING, __file__, 10, "[Engine] %s", ("x",), None)
    data = json.loads(JsonFormatter().format(record))

    assert data["level"] == "WARNING"
    assert data["message"] == "[Engine] x"
    assert data["name"] == "m4a2mp3.engine"
    assert "exc" not in data


def test_setup_logging_replaces_handlers(restore_root_logger, tmp_path):
    log_file = tmp_path / "m4a2mp3.log"
    setup_logging(LoggingConfig(level="DEBUG", format="text", file=str(log_file)))
    setup_logging(LoggingConfig(level="DEBUG", format="text", file=str(log_file)))

    root = logging.getLogger()
    assert root.level == logging.DEBUG
    assert len(root.handlers) == 2


def test_trace_lines():
    clock = FakeClock()
    trace = DiagnosticTrace(clock=clock)
    trace.add("download", "start")
    clock.advance(0.25)
    trace.add("engine", "attempt mp3_fast")

    assert trace.lines() == ["+0ms [download] start", "+250ms [engine] attempt mp3_fast"]
    assert len(trace) == 2


def test_cli_provision_failure_exit_code(monkeypatch, restore_root_logger):
    def failing(**kwargs):
        raise ProvisionError("Download failed with status: 404")

    monkeypatch.setattr("m4a2mp3.provision.provision", failing)
    assert cli.main(["provision", "--bin-dir", "/tmp/nowhere"]) == 1


def test_cli_provision_success(monkeypatch, restore_root_logger, tmp_path):
    seen = {}

    def fake_provision(bin_dir=None, url=None, force=False):
        seen.update(bin_dir=bin_dir, url=url, force=force)
        return {"ffmpeg": bin_dir / "ffmpeg", "ffprobe": bin_dir / "ffprobe"}

    monkeypatch.setattr("m4a2mp3.provision.provision", fake_provision)

    assert cli.main(["provision", "--bin-dir", str(tmp_path), "--force"]) == 0
    assert seen["bin_dir"] == tmp_path
    assert seen["force"] is True
