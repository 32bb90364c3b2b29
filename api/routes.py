"""FastAPI routes for stateful practice session control."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from api.schemas import AckResp, EndResp, RenderCompleteReq, SpeechReq, StartSessionReq, UtteranceReq
from config import settings
from practice_session import (
    ConfigError,
    InvalidTurnError,
    ResourceAcquisitionError,
    SessionFinishedError,
    SessionOrchestrator,
    SessionPhase,
)
from services.sessions import SessionNotFoundError, SessionService, get_session_service, snapshot
from speech_channel import ClientRelayChannel


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sessions")


def _load(service: SessionService, session_id: str) -> SessionOrchestrator:
    try:
        return service.get(session_id)
    except SessionNotFoundError as exc:
        raise HTTPException(status_code=404, detail="session not found") from exc


def _relay(orchestrator: SessionOrchestrator) -> ClientRelayChannel:
    if orchestrator.phase is SessionPhase.FINISHED:
        raise HTTPException(status_code=409, detail=f"Session {orchestrator.session_id} has finished")
    channel = orchestrator.channel
    if not isinstance(channel, ClientRelayChannel):
        raise HTTPException(status_code=409, detail="Session channel is not client driven")
    return channel


@router.post("/start", status_code=201)
async def start(
    req: StartSessionReq,
    service: SessionService = Depends(get_session_service),
) -> Dict[str, Any]:
    try:
        config = req.session_config(
            default_persona=settings.PERSONA_DEFAULT,
            default_max_exchanges=settings.DEFAULT_MAX_EXCHANGES,
        )
        orchestrator = await service.start(config, use_avatar=req.useAvatar)
    except ConfigError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except ResourceAcquisitionError as exc:
        logger.warning("Session resources unavailable: %s", exc)
        raise HTTPException(status_code=503, detail=f"Session resources unavailable: {exc}") from exc
    return snapshot(orchestrator)


@router.get("/{session_id}")
async def get_session(
    session_id: str,
    wait_for: Optional[SessionPhase] = None,
    timeout: float = Query(default=5.0, ge=0.0, le=30.0),
    service: SessionService = Depends(get_session_service),
) -> Dict[str, Any]:
    try:
        return await service.describe(session_id, wait_for=wait_for, timeout=timeout)
    except SessionNotFoundError as exc:
        raise HTTPException(status_code=404, detail="session not found") from exc


@router.post("/{session_id}/speech", response_model=AckResp)
async def speech(
    session_id: str,
    req: SpeechReq,
    service: SessionService = Depends(get_session_service),
) -> AckResp:
    channel = _relay(_load(service, session_id))
    return AckResp(accepted=channel.push_partial(req.text))


@router.post("/{session_id}/utterance", response_model=AckResp)
async def utterance(
    session_id: str,
    req: UtteranceReq,
    service: SessionService = Depends(get_session_service),
) -> AckResp:
    orchestrator = _load(service, session_id)
    try:
        await orchestrator.submit_text(req.text)
    except SessionFinishedError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except InvalidTurnError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return AckResp(accepted=True)


@router.post("/{session_id}/render-complete", response_model=AckResp)
async def render_complete(
    session_id: str,
    req: RenderCompleteReq,
    service: SessionService = Depends(get_session_service),
) -> AckResp:
    channel = _relay(_load(service, session_id))
    return AckResp(accepted=channel.complete_render(req.render_id, req.error))


@router.post("/{session_id}/end", response_model=EndResp)
async def end(
    session_id: str,
    service: SessionService = Depends(get_session_service),
) -> EndResp:
    orchestrator = _load(service, session_id)
    ended = await orchestrator.end()
    return EndResp(ended=ended, session=snapshot(orchestrator))
