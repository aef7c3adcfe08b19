from __future__ import annotations

import asyncio
import logging
import random
from typing import Awaitable, Callable, List, Optional, Sequence

from adstudio.backends.renderers import (
    CompositorRenderer,
    ImageToVideoRenderer,
    StubRenderer,
    TalkingAvatarRenderer,
)
from adstudio.clients.generation_api import HttpGenerationHandler
from adstudio.config import Settings
from adstudio.models.domain import GenerationMode, JobRequest

GenerationHandler = Callable[[JobRequest, int], Awaitable[Sequence[str]]]


class GenerationBackend:
    """Produces one result url per unit of a batch."""

    async def generate(self, request: JobRequest) -> List[str]: ...  # pragma: no cover


class ExternalBackend(GenerationBackend):
    def __init__(self, handler: GenerationHandler, batch_size: int) -> None:
        self._handler = handler
        self._batch_size = batch_size

    async def generate(self, request: JobRequest) -> List[str]:
        urls = list(await self._handler(request, self._batch_size))
        if len(urls) != self._batch_size or not all(urls):
            raise ValueError(f"external generation returned {len(urls)} urls, expected {self._batch_size}")
        return urls


class StubBackend(GenerationBackend):
    def __init__(
        self,
        batch_size: int,
        avatar: StubRenderer,
        image_to_video: StubRenderer | None,
        compositor: StubRenderer,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._batch_size = batch_size
        self.avatar = avatar
        self.image_to_video = image_to_video
        self.compositor = compositor
        self.log = logger or logging.getLogger(__name__)

    def renderer_for(self, request: JobRequest) -> StubRenderer:
        if request.mode == GenerationMode.SCRIPT:
            return self.avatar
        return self.image_to_video or self.compositor

    async def generate(self, request: JobRequest) -> List[str]:
        renderer = self.renderer_for(request)
        self.log.info(
            "stub generation started",
            extra={"mode": request.mode.value, "renderer": renderer.kind, "units": self._batch_size},
        )
        units = [renderer.render(request, unit) for unit in range(self._batch_size)]
        return list(await asyncio.gather(*units))


def build_backend(
    settings: Settings,
    handler: GenerationHandler | None = None,
    rng: Optional[random.Random] = None,
) -> GenerationBackend:
    if handler is not None:
        return ExternalBackend(handler, settings.batch_size)
    if settings.generation_backend == "external":
        if not settings.external_generation_url:
            raise ValueError("external_generation_url is required for the external backend")
        http_handler = HttpGenerationHandler(
            url=settings.external_generation_url,
            api_key=settings.external_generation_api_key,
            timeout=settings.external_generation_timeout,
        )
        return ExternalBackend(http_handler, settings.batch_size)
    if settings.generation_backend != "stub":
        raise ValueError(f"unknown generation backend: {settings.generation_backend}")

    def make(renderer_cls: type[StubRenderer]) -> StubRenderer:
        return renderer_cls(
            base_url=settings.stub_media_base_url,
            latency_min=settings.stub_latency_min_seconds,
            latency_max=settings.stub_latency_max_seconds,
            failure_rate=settings.stub_failure_rate,
            rng=rng,
        )

    return StubBackend(
        batch_size=settings.batch_size,
        avatar=make(TalkingAvatarRenderer),
        image_to_video=make(ImageToVideoRenderer) if settings.image_to_video_enabled else None,
        compositor=make(CompositorRenderer),
    )
