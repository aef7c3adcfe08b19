from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from adstudio.config import Settings
from adstudio.models.domain import JobPhase, JobTask
from adstudio.simulator.clock import BaseScheduler

QUEUED_PROGRESS = 5
PROCESSING_PROGRESS = 20
COMPLETE_PROGRESS = 100


class TickKind(str, Enum):
    START = "start"
    STEP = "step"
    PROMOTE = "promote"


@dataclass(frozen=True)
class Tick:
    kind: TickKind
    increment: float = 0


def advance(task: JobTask, tick: Tick) -> JobTask:
    """Apply one tick to a task and return the resulting task.

    Ticks that do not apply to the task's current phase leave it untouched,
    so the phase can only move one step forward per tick and never back.
    """
    if tick.kind == TickKind.START:
        if task.phase != JobPhase.QUEUED:
            return task
        return task.model_copy(
            update={"phase": JobPhase.PROCESSING, "progress": max(task.progress, PROCESSING_PROGRESS)}
        )
    if tick.kind == TickKind.STEP:
        if task.phase != JobPhase.PROCESSING:
            return task
        progress = min(COMPLETE_PROGRESS, task.progress + max(0, tick.increment))
        phase = JobPhase.DONE if progress >= COMPLETE_PROGRESS else JobPhase.PROCESSING
        return task.model_copy(update={"phase": phase, "progress": progress})
    if tick.kind == TickKind.PROMOTE:
        if task.phase != JobPhase.DONE or not task.url:
            return task
        return task.model_copy(update={"phase": JobPhase.DOWNLOADABLE, "progress": COMPLETE_PROGRESS})
    return task


class ProgressSimulator:
    """Drives a batch of simulated render tasks through their phases.

    Every scheduled tick carries the epoch of the batch it belongs to. Starting
    a new batch, resetting or halting moves the simulator away from that epoch,
    after which the tick is dropped when it fires.
    """

    def __init__(
        self,
        scheduler: BaseScheduler,
        rng: Optional[random.Random] = None,
        start_delay_ms: float = 500.0,
        tick_min_ms: float = 400.0,
        tick_max_ms: float = 1000.0,
        max_increment: int = 15,
        done_delay_ms: float = 800.0,
        observer: Optional[Callable[[JobTask], None]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if tick_min_ms > tick_max_ms:
            raise ValueError("tick_min_ms must not exceed tick_max_ms")
        if max_increment < 1:
            raise ValueError("max_increment must be at least 1")
        self.scheduler = scheduler
        self.rng = rng or random.Random()
        self.start_delay_ms = start_delay_ms
        self.tick_min_ms = tick_min_ms
        self.tick_max_ms = tick_max_ms
        self.max_increment = max_increment
        self.done_delay_ms = done_delay_ms
        self.observer = observer
        self.log = logger or logging.getLogger(__name__)
        self._tasks: Dict[str, JobTask] = {}
        self._epoch = 0
        self._halted = False

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        scheduler: BaseScheduler,
        rng: Optional[random.Random] = None,
        observer: Optional[Callable[[JobTask], None]] = None,
    ) -> "ProgressSimulator":
        return cls(
            scheduler=scheduler,
            rng=rng,
            start_delay_ms=settings.start_delay_ms,
            tick_min_ms=settings.tick_min_ms,
            tick_max_ms=settings.tick_max_ms,
            max_increment=settings.max_increment,
            done_delay_ms=settings.done_delay_ms,
            observer=observer,
        )

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def halted(self) -> bool:
        return self._halted

    def tasks(self) -> List[JobTask]:
        return list(self._tasks.values())

    def get(self, task_id: str) -> JobTask | None:
        return self._tasks.get(task_id)

    def start_batch(self, task_ids: Iterable[str]) -> int:
        ids = list(task_ids)
        if len(set(ids)) != len(ids):
            raise ValueError("task ids must be unique")
        self._epoch += 1
        self._halted = False
        self._tasks = {}
        epoch = self._epoch
        for task_id in ids:
            task = JobTask(id=task_id, phase=JobPhase.QUEUED, progress=QUEUED_PROGRESS)
            self._store(task)
            self._schedule(epoch, task_id, Tick(TickKind.START), self.start_delay_ms)
        self.log.debug("batch started", extra={"epoch": epoch, "tasks": len(ids)})
        return epoch

    def complete_batch(self, epoch: int, urls: Sequence[str]) -> bool:
        """Assign result urls to the batch in task order.

        Tasks that already finished become downloadable in the same step; the
        rest are promoted by their own pending tick once they reach ``done``.
        Returns False when the batch has been replaced in the meantime.
        """
        if epoch != self._epoch or self._halted:
            self.log.info("discarding results for stale batch", extra={"epoch": epoch, "current": self._epoch})
            return False
        if len(urls) != len(self._tasks):
            raise ValueError(f"expected {len(self._tasks)} urls, got {len(urls)}")
        for task, url in zip(list(self._tasks.values()), urls):
            with_url = task.model_copy(update={"url": url})
            self._store(advance(with_url, Tick(TickKind.PROMOTE)))
        return True

    def halt(self, epoch: int) -> None:
        if epoch == self._epoch:
            self._halted = True

    def reset(self) -> None:
        self._epoch += 1
        self._halted = False
        self._tasks = {}

    def _schedule(self, epoch: int, task_id: str, tick: Tick, delay_ms: float) -> None:
        self.scheduler.call_later(delay_ms, lambda: self._fire(epoch, task_id, tick))

    def _fire(self, epoch: int, task_id: str, tick: Tick) -> None:
        if epoch != self._epoch or self._halted:
            self.log.debug("stale tick dropped", extra={"epoch": epoch, "task_id": task_id})
            return
        task = self._tasks.get(task_id)
        if task is None:
            return
        updated = advance(task, tick)
        if updated is not task:
            self._store(updated)
        if updated.phase == JobPhase.PROCESSING:
            step = Tick(TickKind.STEP, increment=self.rng.randint(1, self.max_increment))
            self._schedule(epoch, task_id, step, self.rng.uniform(self.tick_min_ms, self.tick_max_ms))
        elif updated.phase == JobPhase.DONE and task.phase == JobPhase.PROCESSING:
            self._schedule(epoch, task_id, Tick(TickKind.PROMOTE), self.done_delay_ms)

    def _store(self, task: JobTask) -> None:
        self._tasks[task.id] = task
        if self.observer is not None:
            self.observer(task)
