from __future__ import annotations

import asyncio
import heapq
import itertools
from typing import Callable


class BaseScheduler:
    """Runs a callback after a delay expressed in milliseconds of virtual time."""

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> None: ...  # pragma: no cover


class LoopScheduler(BaseScheduler):
    """Schedules callbacks on the running asyncio loop.

    ``time_scale`` converts virtual milliseconds to wall-clock time, so a
    scale of 0.01 plays a one second tick in ten milliseconds.
    """

    def __init__(self, time_scale: float = 1.0, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._time_scale = max(0.0, time_scale)
        self._loop = loop

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> None:
        loop = self._loop or asyncio.get_running_loop()
        loop.call_later(delay_ms / 1000.0 * self._time_scale, callback)


class ManualScheduler(BaseScheduler):
    """Deterministic scheduler: callbacks fire only when virtual time is advanced."""

    def __init__(self) -> None:
        self.now = 0.0
        self._pending: list[tuple[float, int, Callable[[], None]]] = []
        self._seq = itertools.count()

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> None:
        heapq.heappush(self._pending, (self.now + max(0.0, delay_ms), next(self._seq), callback))

    @property
    def pending(self) -> int:
        return len(self._pending)

    def step(self) -> bool:
        """Fire the next due callback. Returns False when nothing is scheduled."""
        if not self._pending:
            return False
        due, _, callback = heapq.heappop(self._pending)
        self.now = max(self.now, due)
        callback()
        return True

    def advance(self, delay_ms: float) -> int:
        deadline = self.now + delay_ms
        fired = 0
        while self._pending and self._pending[0][0] <= deadline:
            self.step()
            fired += 1
        self.now = deadline
        return fired

    def run_until_idle(self, max_steps: int = 100_000) -> int:
        fired = 0
        while fired < max_steps and self.step():
            fired += 1
        if self._pending:
            raise RuntimeError(f"scheduler still busy after {max_steps} callbacks")
        return fired
