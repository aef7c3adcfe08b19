from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple
from uuid import uuid4

from adstudio.backends.generation import GenerationBackend
from adstudio.clients.openrouter import ScriptDraftClient, ScriptDraftFailure
from adstudio.config import Settings
from adstudio.models.api import AdForm, BatchView, TaskView, ValidationReport
from adstudio.models.domain import BatchStatus, JobRequest
from adstudio.services.credits import CreditLedger
from adstudio.services.request_builder import AdRequestBuilder
from adstudio.simulator.progress import ProgressSimulator


class SubmissionBlocked(ValueError):
    def __init__(self, report: ValidationReport) -> None:
        super().__init__("; ".join(issue.message for issue in report.issues))
        self.report = report


class BackendFailure(Exception):
    """The generation backend failed for at least one unit of the batch."""


class ManifestUnavailable(ValueError):
    pass


@dataclass
class Submission:
    epoch: int
    request: JobRequest
    cost: int


class AdStudioSession:
    """State of one user's "Create Ad" view: current batch, credits and drafts.

    All mutation happens on the event loop thread. ``begin`` creates the batch
    and starts the progress simulation; ``finish`` awaits the backend and, only
    once every unit has settled, assigns urls and debits the ledger.
    """

    def __init__(
        self,
        settings: Settings,
        backend: GenerationBackend,
        simulator: ProgressSimulator,
        ledger: CreditLedger,
        script_client: ScriptDraftClient | None = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.settings = settings
        self.backend = backend
        self.simulator = simulator
        self.ledger = ledger
        self.builder = AdRequestBuilder(settings)
        self.script_client = script_client
        self.log = logger or logging.getLogger(__name__)
        self.status = BatchStatus.IDLE
        self.error: str | None = None
        self._in_flight = False
        self._background: asyncio.Task | None = None

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @property
    def credits(self) -> int:
        return self.ledger.balance

    def validate(self, form: AdForm) -> ValidationReport:
        return self.builder.validate(form, self.ledger, in_flight=self._in_flight)

    def begin(self, form: AdForm) -> Submission:
        report = self.validate(form)
        if not report.ok:
            self.log.info("submission blocked", extra={"codes": report.codes()})
            raise SubmissionBlocked(report)
        request = self.builder.build(form)
        task_ids = [uuid4().hex for _ in range(self.settings.batch_size)]
        epoch = self.simulator.start_batch(task_ids)
        self._in_flight = True
        self.status = BatchStatus.RENDERING
        self.error = None
        self.log.info(
            "batch submitted",
            extra={"epoch": epoch, "mode": request.mode.value, "units": len(task_ids)},
        )
        return Submission(epoch=epoch, request=request, cost=self.builder.batch_cost)

    async def finish(self, submission: Submission) -> List[str]:
        try:
            urls = await self._generate(submission.request)
        except Exception as exc:
            self.log.exception("batch generation failed", extra={"epoch": submission.epoch})
            self.simulator.halt(submission.epoch)
            if submission.epoch == self.simulator.epoch:
                self.status = BatchStatus.FAILED
                self.error = str(exc) or exc.__class__.__name__
            raise BackendFailure(str(exc)) from exc
        finally:
            self._in_flight = False

        if not self.simulator.complete_batch(submission.epoch, urls):
            return []
        balance = self.ledger.debit(submission.cost)
        self.status = BatchStatus.COMPLETED
        self.log.info("batch completed", extra={"epoch": submission.epoch, "credits": balance})
        return urls

    async def submit(self, form: AdForm) -> List[str]:
        return await self.finish(self.begin(form))

    def spawn(self, submission: Submission) -> asyncio.Task:
        self._background = asyncio.get_running_loop().create_task(self._finish_in_background(submission))
        return self._background

    def reset(self) -> None:
        self.simulator.reset()
        self.status = BatchStatus.IDLE
        self.error = None
        self.log.info("batch reset", extra={"epoch": self.simulator.epoch})

    def presentation(self) -> BatchView:
        tasks = [
            TaskView(
                id=task.id,
                phase=task.phase,
                progress=task.progress,
                url=task.url,
                can_open=bool(task.url),
                can_download=bool(task.url),
            )
            for task in self.simulator.tasks()
        ]
        return BatchView(
            status=self.status,
            credits=self.ledger.balance,
            tasks=tasks,
            download_all_enabled=bool(tasks) and all(task.url for task in tasks),
            error=self.error,
        )

    def manifest(self) -> str:
        view = self.presentation()
        if not view.download_all_enabled:
            raise ManifestUnavailable("not every video in the batch has a download url yet")
        return "\n".join(task.url for task in view.tasks) + "\n"

    async def draft_script(self, topic: str, current_script: str = "") -> Tuple[str, bool]:
        if self.script_client is None:
            return current_script, False
        try:
            return await self.script_client.draft_script(topic), True
        except ScriptDraftFailure:
            self.log.warning("script draft failed", extra={"topic": topic[:200]}, exc_info=True)
            return current_script, False

    async def _generate(self, request: JobRequest) -> List[str]:
        timeout = self.settings.generation_timeout_seconds
        if timeout:
            urls = await asyncio.wait_for(self.backend.generate(request), timeout)
        else:
            urls = await self.backend.generate(request)
        if len(urls) != self.settings.batch_size:
            raise ValueError(f"backend returned {len(urls)} urls for a batch of {self.settings.batch_size}")
        return list(urls)

    async def _finish_in_background(self, submission: Submission) -> None:
        try:
            await self.finish(submission)
        except BackendFailure:
            # already logged and recorded as the batch error
            return
