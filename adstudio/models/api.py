from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field, validator

from .domain import AspectRatio, BatchStatus, GenerationMode, JobPhase, UserRecord


class AdForm(BaseModel):
    """Raw state of the "Create Ad" form. Fields may be incomplete."""

    title: str = ""
    mode: GenerationMode = GenerationMode.SCRIPT
    ratio: AspectRatio = AspectRatio.LANDSCAPE
    voice_id: str = ""
    avatar_id: str = ""
    script: str = ""
    images: List[str] = Field(default_factory=list)


class ValidationIssue(BaseModel):
    field: str
    code: str
    message: str


class ValidationReport(BaseModel):
    issues: List[ValidationIssue] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.issues

    @property
    def insufficient_credits(self) -> bool:
        return any(issue.code == "insufficient_credits" for issue in self.issues)

    @property
    def credit_issues_only(self) -> bool:
        return bool(self.issues) and all(issue.field == "credits" for issue in self.issues)

    def codes(self) -> list[str]:
        return [issue.code for issue in self.issues]


class ValidationResponse(BaseModel):
    ok: bool
    insufficient_credits: bool
    issues: List[ValidationIssue]

    @classmethod
    def from_report(cls, report: ValidationReport) -> "ValidationResponse":
        return cls(ok=report.ok, insufficient_credits=report.insufficient_credits, issues=report.issues)


class TaskView(BaseModel):
    id: str
    phase: JobPhase
    progress: float
    url: Optional[str] = None
    can_open: bool = False
    can_download: bool = False


class BatchView(BaseModel):
    status: BatchStatus
    credits: int
    tasks: List[TaskView] = Field(default_factory=list)
    download_all_enabled: bool = False
    error: Optional[str] = None


class CreditsResponse(BaseModel):
    credits: int
    batch_cost: int
    low_balance_floor: int


class ScriptDraftRequest(BaseModel):
    topic: str
    current_script: str = ""

    @validator("topic")
    def validate_topic(cls, value: str) -> str:  # noqa: D417
        if not value.strip():
            raise ValueError("topic must not be empty")
        return value


class ScriptDraftResponse(BaseModel):
    script: str
    drafted: bool


class UserUpsertRequest(BaseModel):
    name: str
    email: str
    picture: str = ""


class UserResponse(BaseModel):
    user: UserRecord


class VoiceInfo(BaseModel):
    voice_id: str
    name: Optional[str] = None
    description: Optional[str] = None
    preview_url: Optional[str] = None


class VoiceListResponse(BaseModel):
    items: List[VoiceInfo]


class AvatarInfo(BaseModel):
    avatar_id: str
    name: Optional[str] = None
    preview_url: Optional[str] = None


class AvatarListResponse(BaseModel):
    items: List[AvatarInfo]
