"""
Deadline budget tracking for one invocation.

The deadline is a single absolute instant (start + total budget) on the
monotonic clock. It is never extended; phases only consume it.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, TYPE_CHECKING

from ..errors import InsufficientTime

if TYPE_CHECKING:
    from .engine import AttemptRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Deadline:
    """Wall-clock budget for a single conversion."""
    started_at: float
    total: float
    safety_margin: float
    clock: Callable[[], float] = time.monotonic

    @classmethod
    def start(
        cls,
        total: float,
        safety_margin: float = 1.5,
        clock: Callable[[], float] = time.monotonic,
    ) -> "Deadline":
        return cls(started_at=clock(), total=total, safety_margin=safety_margin, clock=clock)

    @property
    def expires_at(self) -> float:
        return self.started_at + self.total

    def elapsed(self) -> float:
        return self.clock() - self.started_at

    def remaining(self) -> float:
        """Total budget minus elapsed time (may go negative)."""
        return self.expires_at - self.clock()

    def available(self) -> float:
        """Time a phase may use once the response/cleanup margin is reserved."""
        return self.remaining() - self.safety_margin

    def ensure(
        self,
        phase: str,
        minimum: float,
        attempts: Optional[List["AttemptRecord"]] = None,
    ) -> float:
        """
        Fail fast when less than ``minimum`` seconds are available.

        Returns:
            The available time in seconds.

        Raises:
            InsufficientTime: the phase must not start.
        """
        available = self.available()
        if available < minimum:
            logger.warning(
                f"[Deadline] {phase}: {available:.2f}s available, "
                f"{minimum:.2f}s required; aborting"
            )
            raise InsufficientTime(phase, available, minimum, attempts=attempts)
        return available

    def timeout_for(
        self,
        phase: str,
        cap: float,
        minimum: float = 0.0,
        attempts: Optional[List["AttemptRecord"]] = None,
    ) -> float:
        """Sub-timeout for a phase: the smaller of ``cap`` and the available budget."""
        available = self.ensure(phase, minimum, attempts=attempts)
        return min(cap, available)
