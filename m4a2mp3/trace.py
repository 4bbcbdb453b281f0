"""
Per-invocation diagnostic trace.

An append-only sequence of timestamped events passed explicitly to each
component. It is exported as plain strings at the HTTP boundary and is never
consulted for control decisions.
"""

import time
from dataclasses import dataclass, field
from typing import Callable, List


@dataclass(frozen=True)
class TraceEvent:
    """One diagnostic record."""
    offset_ms: int
    component: str
    message: str

    def format(self) -> str:
        return f"+{self.offset_ms}ms [{self.component}] {self.message}"


@dataclass
class DiagnosticTrace:
    """Ordered diagnostic records for one conversion invocation."""
    clock: Callable[[], float] = time.monotonic
    started_at: float = field(default=0.0)
    _events: List[TraceEvent] = field(default_factory=list)

    def __post_init__(self):
        if not self.started_at:
            self.started_at = self.clock()

    def add(self, component: str, message: str) -> None:
        offset = int((self.clock() - self.started_at) * 1000)
        self._events.append(TraceEvent(offset, component, message))

    @property
    def events(self) -> List[TraceEvent]:
        return list(self._events)

    def lines(self) -> List[str]:
        return [e.format() for e in self._events]

    def __len__(self) -> int:
        return len(self._events)
