from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator


class JobPhase(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    DONE = "done"
    DOWNLOADABLE = "downloadable"

    @property
    def rank(self) -> int:
        return _PHASE_ORDER.index(self)


_PHASE_ORDER = [JobPhase.QUEUED, JobPhase.PROCESSING, JobPhase.DONE, JobPhase.DOWNLOADABLE]


class BatchStatus(str, Enum):
    IDLE = "idle"
    RENDERING = "rendering"
    COMPLETED = "completed"
    FAILED = "failed"


class GenerationMode(str, Enum):
    SCRIPT = "script"
    PHOTOS = "photos"


class AspectRatio(str, Enum):
    LANDSCAPE = "16:9"
    PORTRAIT = "9:16"
    SQUARE = "1:1"


class JobTask(BaseModel):
    id: str
    phase: JobPhase = JobPhase.QUEUED
    progress: float = Field(default=0, ge=0, le=100)
    url: Optional[str] = None


class JobRequest(BaseModel):
    title: str
    mode: GenerationMode
    ratio: AspectRatio = AspectRatio.LANDSCAPE
    voice_id: str
    avatar_id: Optional[str] = None
    script: Optional[str] = None
    images: Optional[List[str]] = None
    narration: Optional[str] = None

    @model_validator(mode="after")
    def check_payload(self) -> "JobRequest":
        if self.mode == GenerationMode.SCRIPT:
            if not self.script or self.images:
                raise ValueError("script mode requires a script and no images")
        elif not self.images or self.script:
            raise ValueError("photos mode requires images and no script")
        return self


class UserRecord(BaseModel):
    name: str
    email: str
    picture: str = ""
    credits: int = 0
    payment_id: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
