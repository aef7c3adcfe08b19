from __future__ import annotations

import asyncio
import logging
import random
from typing import Optional
from uuid import uuid4

from adstudio.models.domain import JobRequest


class RenderFailure(Exception):
    """Raised when a stub renderer simulates a provider error."""


class StubRenderer:
    kind = "render"

    def __init__(
        self,
        base_url: str,
        latency_min: float = 0.5,
        latency_max: float = 2.0,
        failure_rate: float = 0.0,
        rng: Optional[random.Random] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.latency_min = max(0.0, latency_min)
        self.latency_max = max(self.latency_min, latency_max)
        self.failure_rate = failure_rate
        self.rng = rng or random.Random()
        self.log = logger or logging.getLogger(__name__)

    async def render(self, request: JobRequest, unit: int) -> str:
        delay = self.rng.uniform(self.latency_min, self.latency_max)
        await asyncio.sleep(delay)
        if self.failure_rate and self.rng.random() < self.failure_rate:
            self.log.warning("stub render failed", extra={"kind": self.kind, "unit": unit})
            raise RenderFailure(f"{self.kind} provider failed for unit {unit}")
        url = f"{self.base_url}/{self.kind}/{uuid4().hex}-{unit}.mp4"
        self.log.debug("stub render completed", extra={"kind": self.kind, "unit": unit, "delay": delay})
        return url


class TalkingAvatarRenderer(StubRenderer):
    """Avatar reads the script with the selected voice."""

    kind = "avatar"


class ImageToVideoRenderer(StubRenderer):
    kind = "img2vid"


class CompositorRenderer(StubRenderer):
    """Slideshow composition of the uploaded images, used when image-to-video is off."""

    kind = "composite"
