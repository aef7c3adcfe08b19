from __future__ import annotations

import logging
import random
from typing import Dict, Optional

from adstudio.backends.generation import GenerationBackend, GenerationHandler, build_backend
from adstudio.clients.openrouter import ScriptDraftClient
from adstudio.config import Settings
from adstudio.models.api import UserUpsertRequest
from adstudio.models.domain import UserRecord
from adstudio.services.credits import CreditLedger
from adstudio.services.session import AdStudioSession
from adstudio.simulator.clock import BaseScheduler, LoopScheduler
from adstudio.simulator.progress import ProgressSimulator
from adstudio.storage.repository import UserRecordRepository


class StudioService:
    def __init__(
        self,
        repo: UserRecordRepository,
        settings: Settings,
        handler: GenerationHandler | None = None,
        scheduler: BaseScheduler | None = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.repo = repo
        self.settings = settings
        self.log = logging.getLogger(__name__)
        self.rng = rng
        self.backend: GenerationBackend = build_backend(settings, handler=handler, rng=rng)
        self.scheduler = scheduler or LoopScheduler(time_scale=settings.time_scale)
        self.script_client = ScriptDraftClient(
            api_key=settings.openrouter_api_key,
            model=settings.openrouter_model,
            base_url=settings.openrouter_base_url,
            timeout=settings.openrouter_timeout,
            logger=self.log,
        )
        self._sessions: Dict[str, AdStudioSession] = {}

    def upsert_user(self, payload: UserUpsertRequest) -> UserRecord:
        existing = self.repo.get(payload.email)
        if existing is None:
            user = UserRecord(
                name=payload.name,
                email=payload.email,
                picture=payload.picture,
                credits=self.settings.default_credits,
            )
            self.log.info("user created", extra={"email": payload.email})
        else:
            user = existing.model_copy(update={"name": payload.name, "picture": payload.picture or existing.picture})
        return self.repo.save(user)

    def get_user(self, user_id: str) -> UserRecord:
        user = self.repo.get(user_id)
        if user is None:
            raise ValueError("User not found")
        return user

    def session_for(self, user_id: str) -> AdStudioSession:
        session = self._sessions.get(user_id)
        if session is None:
            user = self.repo.get_or_create(user_id, default_credits=self.settings.default_credits)
            simulator = ProgressSimulator.from_settings(self.settings, self.scheduler, rng=self.rng)
            session = AdStudioSession(
                settings=self.settings,
                backend=self.backend,
                simulator=simulator,
                ledger=CreditLedger(user.credits),
                script_client=self.script_client,
            )
            self._sessions[user_id] = session
            self.log.info("session opened", extra={"user_id": user_id, "credits": user.credits})
        return session

    def list_voices(self) -> list[dict[str, str]]:
        normalized: list[dict[str, str]] = []
        for entry in self.settings.voice_catalog:
            voice_id = entry.get("voice_id") or entry.get("id")
            if not voice_id:
                continue
            normalized.append(
                {
                    "voice_id": voice_id,
                    "name": entry.get("name"),
                    "description": entry.get("description"),
                    "preview_url": entry.get("preview_url") or entry.get("url"),
                }
            )
        return normalized

    def list_avatars(self) -> list[dict[str, str]]:
        normalized: list[dict[str, str]] = []
        for entry in self.settings.avatar_catalog:
            avatar_id = entry.get("avatar_id") or entry.get("id")
            if not avatar_id:
                continue
            normalized.append(
                {
                    "avatar_id": avatar_id,
                    "name": entry.get("name"),
                    "preview_url": entry.get("preview_url") or entry.get("url"),
                }
            )
        return normalized
