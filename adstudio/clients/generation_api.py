from __future__ import annotations

import logging
from typing import Any, List, Optional

import httpx

from adstudio.models.domain import JobRequest


class HttpGenerationHandler:
    """Delegates a whole batch to an external video generation provider."""

    def __init__(
        self,
        url: str,
        api_key: str | None = None,
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.url = url
        self.api_key = (api_key or "").strip()
        self.timeout = timeout
        self.transport = transport
        self.log = logger or logging.getLogger(__name__)

    async def __call__(self, request: JobRequest, units: int) -> List[str]:
        payload = {"request": request.model_dump(mode="json"), "units": units}
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.post(self.url, headers=headers, json=payload)
            try:
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                self.log.error(
                    "generation provider HTTP error",
                    extra={"status": exc.response.status_code, "body": exc.response.text},
                )
                raise
            body: dict[str, Any] = response.json()
        urls = body.get("urls") or []
        self.log.info("generation provider responded", extra={"units": units, "urls": len(urls)})
        return [str(url) for url in urls]
