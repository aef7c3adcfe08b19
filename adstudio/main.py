from __future__ import annotations

import logging

from fastapi import Depends, FastAPI, Header, HTTPException, status
from fastapi.responses import JSONResponse, PlainTextResponse

from adstudio.config import Settings, get_settings
from adstudio.models.api import (
    AdForm,
    AvatarListResponse,
    BatchView,
    CreditsResponse,
    ScriptDraftRequest,
    ScriptDraftResponse,
    UserResponse,
    UserUpsertRequest,
    ValidationResponse,
    VoiceListResponse,
)
from adstudio.services.session import AdStudioSession, ManifestUnavailable, SubmissionBlocked
from adstudio.services.studio_service import StudioService
from adstudio.storage.repository import UserRecordRepository

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

app = FastAPI()

_repo = UserRecordRepository()
_service: StudioService | None = None


def require_user_id(x_user_id: str = Header(default=None, alias="X-User-ID")) -> str:
    if not x_user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="X-User-ID header required")
    return x_user_id


def get_studio_service(settings: Settings = Depends(get_settings)) -> StudioService:
    global _service
    if _service is None:
        _service = StudioService(repo=_repo, settings=settings)
    return _service


async def get_session(
    user_id: str = Depends(require_user_id),
    service: StudioService = Depends(get_studio_service),
) -> AdStudioSession:
    return service.session_for(user_id)


@app.post("/users", response_model=UserResponse)
def upsert_user(
    payload: UserUpsertRequest,
    service: StudioService = Depends(get_studio_service),
) -> UserResponse:
    return UserResponse(user=service.upsert_user(payload))


@app.get("/users/me", response_model=UserResponse)
def get_me(
    user_id: str = Depends(require_user_id),
    service: StudioService = Depends(get_studio_service),
) -> UserResponse:
    try:
        user = service.get_user(user_id)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return UserResponse(user=user)


@app.get("/voices", response_model=VoiceListResponse)
def list_voices(service: StudioService = Depends(get_studio_service)) -> VoiceListResponse:
    return VoiceListResponse(items=service.list_voices())


@app.get("/avatars", response_model=AvatarListResponse)
def list_avatars(service: StudioService = Depends(get_studio_service)) -> AvatarListResponse:
    return AvatarListResponse(items=service.list_avatars())


@app.post("/ads:validate", response_model=ValidationResponse)
async def validate_ad(form: AdForm, session: AdStudioSession = Depends(get_session)) -> ValidationResponse:
    return ValidationResponse.from_report(session.validate(form))


@app.post("/ads", response_model=BatchView, status_code=status.HTTP_202_ACCEPTED)
async def create_ad(form: AdForm, session: AdStudioSession = Depends(get_session)):
    try:
        submission = session.begin(form)
    except SubmissionBlocked as exc:
        code = status.HTTP_402_PAYMENT_REQUIRED if exc.report.credit_issues_only else 422
        body = ValidationResponse.from_report(exc.report)
        return JSONResponse(status_code=code, content={"detail": str(exc), **body.model_dump(mode="json")})
    session.spawn(submission)
    return session.presentation()


@app.get("/ads/batch", response_model=BatchView)
async def get_batch(session: AdStudioSession = Depends(get_session)) -> BatchView:
    return session.presentation()


@app.post("/ads:reset", response_model=BatchView)
async def reset_batch(session: AdStudioSession = Depends(get_session)) -> BatchView:
    session.reset()
    return session.presentation()


@app.get("/ads/manifest", response_class=PlainTextResponse)
async def download_manifest(session: AdStudioSession = Depends(get_session)) -> PlainTextResponse:
    try:
        manifest = session.manifest()
    except ManifestUnavailable as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    return PlainTextResponse(
        manifest,
        headers={"Content-Disposition": 'attachment; filename="ad-videos.txt"'},
    )


@app.get("/credits", response_model=CreditsResponse)
async def get_credits(
    session: AdStudioSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> CreditsResponse:
    return CreditsResponse(
        credits=session.credits,
        batch_cost=settings.batch_cost,
        low_balance_floor=settings.low_balance_floor,
    )


@app.post("/scripts:draft", response_model=ScriptDraftResponse)
async def draft_script(
    payload: ScriptDraftRequest,
    session: AdStudioSession = Depends(get_session),
) -> ScriptDraftResponse:
    script, drafted = await session.draft_script(payload.topic, payload.current_script)
    return ScriptDraftResponse(script=script, drafted=drafted)
