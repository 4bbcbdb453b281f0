"""
Tests for deadline budget arithmetic.
"""

import pytest

from m4a2mp3.errors import InsufficientTime
from m4a2mp3.transcoding.deadline import Deadline
from m4a2mp3.transcoding.engine import AttemptRecord


class TestDeadline:

    def test_arithmetic(self, fake_clock):
        deadline = Deadline.start(26.0, 1.5, clock=fake_clock)
        assert deadline.remaining() == pytest.approx(26.0)
        assert deadline.available() == pytest.approx(24.5)

        fake_clock.advance(10)
        assert deadline.elapsed() == pytest.approx(10.0)
        assert deadline.remaining() == pytest.approx(16.0)
        assert deadline.available() == pytest.approx(14.5)

    def test_never_extended(self, fake_clock):
        deadline = Deadline.start(10.0, 1.0, clock=fake_clock)
        expires = deadline.expires_at
        fake_clock.advance(4)
        deadline.timeout_for("transcode", 2.0)
        assert deadline.expires_at == expires

    def test_remaining_goes_negative(self, fake_clock):
        deadline = Deadline.start(5.0, 1.0, clock=fake_clock)
        fake_clock.advance(7)
        assert deadline.remaining() == pytest.approx(-2.0)

    def test_ensure_returns_available(self, fake_clock):
        deadline = Deadline.start(10.0, 1.5, clock=fake_clock)
        assert deadline.ensure("download", 1.0) == pytest.approx(8.5)

    def test_ensure_fails_fast(self, fake_clock):
        deadline = Deadline.start(10.0, 1.5, clock=fake_clock)
        fake_clock.advance(7)  # 1.5s available

        with pytest.raises(InsufficientTime) as exc_info:
            deadline.ensure("transcode", 2.0)

        err = exc_info.value
        assert err.status_code == 504
        assert err.phase == "transcode"
        assert err.required == 2.0
        assert err.available == pytest.approx(1.5)
        assert err.attempted_strategies == []

    def test_ensure_carries_attempts(self, fake_clock):
        deadline = Deadline.start(3.0, 1.5, clock=fake_clock)
        attempts = [AttemptRecord(strategy="mp3_fast", outcome="failed")]

        with pytest.raises(InsufficientTime) as exc_info:
            deadline.ensure("transcode", 2.0, attempts=attempts)
        assert exc_info.value.attempted_strategies == ["mp3_fast"]

    def test_timeout_for_is_capped(self, fake_clock):
        deadline = Deadline.start(26.0, 1.5, clock=fake_clock)
        assert deadline.timeout_for("transcode", 15.0, 2.0) == pytest.approx(15.0)

        fake_clock.advance(20)  # 4.5s available
        assert deadline.timeout_for("transcode", 15.0, 2.0) == pytest.approx(4.5)

    def test_timeout_for_below_minimum(self, fake_clock):
        deadline = Deadline.start(26.0, 1.5, clock=fake_clock)
        fake_clock.advance(23)  # 1.5s available
        with pytest.raises(InsufficientTime):
            deadline.timeout_for("transcode", 15.0, 2.0)
