"""
voxai API routes.

Endpoints:
    GET  /api/health                    - Liveness plus ledger/history stats
    GET  /metrics                       - Prometheus metrics
    GET  /api/user                      - Current account
    POST /api/user/deduct               - Manual credit deduction
    GET  /api/voices                    - Voice catalog (?q= search)
    GET  /api/voices/{voice_id}/preview - Unmetered WAV preview
    POST /api/generate                  - Run a generation
    POST /api/generate/cancel           - Cancel the caller's in-flight generation
    GET  /api/history                   - Caller's history, newest first
    GET  /api/history/{item_id}/audio   - Stored WAV for a history item

Authentication endpoints live in api/auth.py.

Error Handling:
    Errors are returned as JSON:
    {
        "ok": false,
        "error": "<ERROR_CODE>",
        "message": "<human readable message>",
        "details": {...}
    }

    HTTP status codes are mapped from VoxError codes by STATUS_MAP.
    A cancelled generation is answered with 204 and no body.
"""
from __future__ import annotations

import base64
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Response
from fastapi.responses import JSONResponse

from voxai.api.dependencies import get_credentials, get_orchestrator
from voxai.api.schemas import CancelRequest, DeductRequest, GenerateRequest, GenerateResponse
from voxai.core.logging import error, get_logger, info, set_request_id
from voxai.core.metrics import metrics
from voxai.services.errors import ErrorCode, HistoryNotFoundError, VoxError
from voxai.services.orchestrator import GenerationOrchestrator
from voxai.services.sessions import Credentials
from voxai.services.validators import validate_mime_type, validate_target_language, validate_upload_b64
from voxai.tts.pipeline import GenerationRequest, Mode, Upload
from voxai.tts.voices import list_voices

router = APIRouter()

_LOG = get_logger("voxai.api")

STATUS_MAP = {
    ErrorCode.UNAUTHENTICATED: 401,
    ErrorCode.ACCOUNT_NOT_FOUND: 404,
    ErrorCode.INSUFFICIENT_CREDITS: 400,
    ErrorCode.TEXT_TOO_LONG: 400,
    ErrorCode.TEXT_REQUIRED: 400,
    ErrorCode.UPLOAD_REQUIRED: 400,
    ErrorCode.INVALID_INPUT: 400,
    ErrorCode.VOICE_NOT_FOUND: 404,
    ErrorCode.HISTORY_NOT_FOUND: 404,
    ErrorCode.EMPTY_TRANSCRIPTION: 422,
    ErrorCode.EMPTY_SYNTHESIS: 502,
    ErrorCode.UPSTREAM_QUOTA_EXCEEDED: 429,
    ErrorCode.UPSTREAM_FAILED: 502,
    ErrorCode.IDENTITY_PROVIDER_FAILED: 500,
    ErrorCode.INTERNAL_ERROR: 500,
}


def _new_request_id() -> str:
    rid = str(uuid.uuid4())[:12]
    set_request_id(rid)
    return rid


def error_response(e: VoxError, rid: Optional[str] = None) -> JSONResponse:
    """Standardized JSON error response for a VoxError."""
    content = e.to_dict()
    if rid:
        content["request_id"] = rid
    return JSONResponse(status_code=STATUS_MAP.get(e.code, 500), content=content)


def internal_error_response(rid: str) -> JSONResponse:
    # Log internally but don't expose details
    return JSONResponse(
        status_code=500,
        content={
            "ok": False,
            "error": ErrorCode.INTERNAL_ERROR,
            "message": "Internal server error",
            "request_id": rid,
        },
    )


@router.get("/api/health")
def health(orchestrator: GenerationOrchestrator = Depends(get_orchestrator)):
    """Health check for load balancers and probes."""
    return {
        "status": "ok",
        "model": orchestrator.model.describe(),
        "preview_login": orchestrator.config.auth.allow_preview,
        **orchestrator.stats(),
    }


@router.get("/metrics")
def prometheus_metrics():
    content, content_type = metrics.get_metrics_response()
    return Response(content=content, media_type=content_type)


@router.get("/api/user")
def get_user(
    credentials: Credentials = Depends(get_credentials),
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
):
    rid = _new_request_id()
    try:
        return orchestrator.account(credentials).to_dict()
    except VoxError as e:
        return error_response(e, rid)


@router.post("/api/user/deduct")
def deduct(
    req: DeductRequest,
    credentials: Credentials = Depends(get_credentials),
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
):
    rid = _new_request_id()
    try:
        return orchestrator.deduct(credentials, req.amount).to_dict()
    except VoxError as e:
        return error_response(e, rid)


@router.get("/api/voices")
def voices(q: Optional[str] = None):
    """Voice catalog, optionally filtered by a name/tag search."""
    return {"voices": [v.to_dict() for v in list_voices(q)]}


@router.get("/api/voices/{voice_id}/preview", response_class=Response)
async def voice_preview(
    voice_id: str,
    credentials: Credentials = Depends(get_credentials),
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
):
    """WAV of the voice speaking the preview sentence. Not metered."""
    rid = _new_request_id()
    try:
        wav = await orchestrator.preview_voice(credentials, voice_id)
    except VoxError as e:
        return error_response(e, rid)
    except Exception as e:
        error(_LOG, "preview_failed", voice=voice_id, error=f"{type(e).__name__}: {e}")
        return internal_error_response(rid)
    return Response(content=wav, media_type="audio/wav", headers={"X-Request-Id": rid})


def _to_generation_request(req: GenerateRequest, orchestrator: GenerationOrchestrator) -> GenerationRequest:
    config = orchestrator.config
    mode = Mode(req.mode)
    upload = None
    if mode is not Mode.DIRECT:
        data = validate_upload_b64(req.audio_b64, max_decoded_size=config.upload.max_bytes)
        if data:
            upload = Upload(data=data, mime_type=validate_mime_type(req.audio_mime_type))
    return GenerationRequest(
        mode=mode,
        text=req.text,
        upload=upload,
        voice_id=req.voice_id or config.model.default_voice,
        target_language=validate_target_language(req.target_language, config.model.default_target_language),
    )


@router.post("/api/generate")
async def generate(
    req: GenerateRequest,
    credentials: Credentials = Depends(get_credentials),
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
):
    """
    Run a generation.

    Returns:
        200 with GenerateResponse, 204 if cancelled, or an error body.
    """
    rid = _new_request_id()
    try:
        request = _to_generation_request(req, orchestrator)
        outcome = await orchestrator.generate(credentials, request, session_key=req.client_id)
    except VoxError as e:
        return error_response(e, rid)
    except Exception as e:
        error(_LOG, "generate_failed", error=f"{type(e).__name__}: {e}")
        return internal_error_response(rid)

    if outcome.cancelled or outcome.result is None:
        return Response(status_code=204, headers={"X-Request-Id": rid})

    result = outcome.result
    body = GenerateResponse(
        request_id=rid,
        mode=result.mode.value,
        text=result.text,
        audio_b64=base64.b64encode(result.wav).decode("ascii"),
        sample_rate=result.sample_rate,
        duration_seconds=round(result.duration_seconds, 3),
        cost=result.cost,
        charged=result.charged,
        account=result.account.to_dict(),
        history_item=result.history_item.to_dict(),
        timings={k: round(v, 4) for k, v in result.timings.items()},
    )
    return JSONResponse(content=body.model_dump(), headers={"X-Request-Id": rid})


@router.post("/api/generate/cancel")
def cancel(
    req: Optional[CancelRequest] = None,
    credentials: Credentials = Depends(get_credentials),
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
):
    """Cancel the caller's in-flight generation. Only the caller's own runs can be cancelled."""
    rid = _new_request_id()
    client_id = req.client_id if req else None
    try:
        cancelled = orchestrator.cancel(credentials, client_id)
    except VoxError as e:
        return error_response(e, rid)

    info(_LOG, "cancel", client_id=client_id, cancelled=cancelled)
    return {"cancelled": cancelled}


@router.get("/api/history")
def history(
    credentials: Credentials = Depends(get_credentials),
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
):
    rid = _new_request_id()
    try:
        items = orchestrator.history_for(credentials)
    except VoxError as e:
        return error_response(e, rid)
    return {"items": [item.to_dict() for item in items]}


@router.get("/api/history/{item_id}/audio", response_class=Response)
def history_audio(
    item_id: str,
    credentials: Credentials = Depends(get_credentials),
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
):
    rid = _new_request_id()
    try:
        wav = orchestrator.history_audio(credentials, item_id)
        if wav is None:
            raise HistoryNotFoundError(item_id)
    except VoxError as e:
        return error_response(e, rid)
    return Response(content=wav, media_type="audio/wav")
