from __future__ import annotations

from typing import List

from adstudio.config import Settings
from adstudio.models.api import AdForm, ValidationIssue, ValidationReport
from adstudio.models.domain import GenerationMode, JobRequest
from adstudio.services.credits import CreditLedger

MIN_IMAGES = 3
MAX_IMAGES = 6


class AdRequestBuilder:
    """Gates submission of the "Create Ad" form and packages it as a JobRequest."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    @property
    def batch_cost(self) -> int:
        return self.settings.batch_cost

    def validate(self, form: AdForm, ledger: CreditLedger, in_flight: bool = False) -> ValidationReport:
        issues: List[ValidationIssue] = []
        if not form.title.strip():
            issues.append(ValidationIssue(field="title", code="title_required", message="Title is required"))
        if not form.voice_id.strip():
            issues.append(ValidationIssue(field="voice_id", code="voice_required", message="Select a voice"))
        if form.mode == GenerationMode.SCRIPT:
            if not form.avatar_id.strip():
                issues.append(ValidationIssue(field="avatar_id", code="avatar_required", message="Select an avatar"))
            if not form.script.strip():
                issues.append(ValidationIssue(field="script", code="script_required", message="Script is required"))
        else:
            count = len(form.images)
            if not MIN_IMAGES <= count <= MAX_IMAGES:
                issues.append(
                    ValidationIssue(
                        field="images",
                        code="images_count",
                        message=f"Upload between {MIN_IMAGES} and {MAX_IMAGES} images (got {count})",
                    )
                )
        balance = ledger.balance
        if ledger.below_floor(self.settings.low_balance_floor):
            issues.append(
                ValidationIssue(
                    field="credits",
                    code="insufficient_credits",
                    message=f"Balance {balance} is below the minimum of {self.settings.low_balance_floor} credits",
                )
            )
        if not ledger.can_afford(self.batch_cost):
            issues.append(
                ValidationIssue(
                    field="credits",
                    code="batch_unaffordable",
                    message=f"A batch costs {self.batch_cost} credits, balance is {balance}",
                )
            )
        if in_flight:
            issues.append(
                ValidationIssue(
                    field="form",
                    code="submission_in_flight",
                    message="A batch is already being generated",
                )
            )
        return ValidationReport(issues=issues)

    def build(self, form: AdForm) -> JobRequest:
        title = form.title.strip()
        if form.mode == GenerationMode.SCRIPT:
            return JobRequest(
                title=title,
                mode=form.mode,
                ratio=form.ratio,
                voice_id=form.voice_id.strip(),
                avatar_id=form.avatar_id.strip(),
                script=form.script.strip(),
            )
        return JobRequest(
            title=title,
            mode=form.mode,
            ratio=form.ratio,
            voice_id=form.voice_id.strip(),
            images=list(form.images),
            narration=self.narration_placeholder(title, len(form.images)),
        )

    def narration_placeholder(self, title: str, image_count: int) -> str:
        return f"Narration for '{title}' across {image_count} scenes."
