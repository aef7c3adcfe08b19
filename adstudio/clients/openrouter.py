from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

GENERATE_SCRIPT_PROMPT = (
    "Write a 30 second video ad script about: {topic}. "
    "Open with a strong hook, name one concrete benefit and finish with a call to action. "
    "Return only the lines the narrator speaks, without scene directions or markdown."
)


class ScriptDraftFailure(Exception):
    """Raised when the script could not be drafted."""


class ScriptDraftClient:
    def __init__(
        self,
        api_key: str | None,
        model: str = "google/gemini-2.5-flash-preview-09-2025",
        base_url: str = "https://openrouter.ai/api/v1",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.api_key = (api_key or "").strip()
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport
        self.log = logger or logging.getLogger(__name__)

    def enabled(self) -> bool:
        return bool(self.api_key)

    async def draft_script(self, topic: str) -> str:
        if not self.enabled():
            raise ScriptDraftFailure("OpenRouter API key is not configured")

        url = f"{self.base_url}/chat/completions"
        payload = {
            "model": self.model,
            "messages": [{"role": "user", "content": GENERATE_SCRIPT_PROMPT.replace("{topic}", topic.strip())}],
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                response = await client.post(url, headers=headers, json=payload)
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                self.log.error(
                    "openrouter HTTP error",
                    extra={"status": exc.response.status_code, "body": exc.response.text, "model": self.model},
                )
                raise ScriptDraftFailure(f"OpenRouter HTTP {exc.response.status_code}") from exc
            except httpx.HTTPError as exc:
                self.log.error("openrouter request failed", extra={"error": str(exc), "model": self.model})
                raise ScriptDraftFailure(str(exc)) from exc
            try:
                body = response.json()
            except ValueError as exc:
                self.log.error("openrouter returned invalid JSON", extra={"body": response.text[:500], "model": self.model})
                raise ScriptDraftFailure("OpenRouter response is not valid JSON") from exc
        self.log.info("openrouter response", extra={"model": self.model})
        return self._extract_text(body)

    def _extract_text(self, payload: Any) -> str:
        choices = payload.get("choices") if isinstance(payload, dict) else None
        if not isinstance(choices, list) or not choices:
            raise ScriptDraftFailure("OpenRouter response missing choices")
        choice = choices[0]
        message = choice.get("message") if isinstance(choice, dict) else None
        if not isinstance(message, dict):
            raise ScriptDraftFailure("OpenRouter response missing message")
        content = message.get("content")
        if not isinstance(content, str) or not content.strip():
            raise ScriptDraftFailure("OpenRouter response missing message content")
        return content.strip()
