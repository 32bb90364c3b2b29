"""Stateless single-turn endpoint, optionally streamed as NDJSON."""
from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterator, Callable, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse, StreamingResponse

from api.schemas import TurnReq, TurnResp
from config import settings
from practice_session import (
    ConfigError,
    GenerationError,
    InvalidTurnError,
    ResponseGenerator,
    SessionConfig,
    TranscriptStore,
    compute_directive,
    validate_config,
)
from services.sessions import get_avatar_factory, get_generator
from speech_channel import AvatarServiceError, DidStreamClient


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


@router.post("/ai-interviewer", response_model=None)
async def ai_interviewer(
    req: TurnReq,
    generator: ResponseGenerator = Depends(get_generator),
    avatar_factory: Optional[Callable[[], DidStreamClient]] = Depends(get_avatar_factory),
) -> Any:
    try:
        config = req.session_config(
            default_persona=settings.PERSONA_DEFAULT,
            default_max_exchanges=settings.DEFAULT_MAX_EXCHANGES,
        )
        validate_config(config)
        store = TranscriptStore()
        for entry in req.transcript:
            store.record(entry.speaker, entry.text, entry.timestamp)
        history = store.to_ordered_sequence()
        exchange_count = store.count("ai")
        short_answer_words = getattr(getattr(generator, "flow", None), "short_answer_words", 8)
        directive = compute_directive(history, config, exchange_count, short_answer_words=short_answer_words)
        turn = await generator.generate(history, config, directive)
    except (ConfigError, InvalidTurnError) as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except GenerationError as exc:
        logger.exception("Turn generation failed")
        raise HTTPException(status_code=502, detail=f"LLM request failed: {exc}") from exc
    except Exception as exc:
        logger.exception("Unexpected error in ai-interviewer turn")
        return JSONResponse(status_code=500, content={"error": str(exc) or "An unknown error occurred"})

    payload = TurnResp(
        response_text=turn.response_text,
        question_category=turn.question_category,
        should_wrap_up=directive.should_wrap_up,
        is_end_of_session=turn.is_end_of_session,
        exchange_count=exchange_count + 1,
        feedback=turn.feedback,
    )
    if not req.stream:
        return payload
    use_avatar = avatar_factory is not None and req.avatarType is not None
    return StreamingResponse(
        _stream_turn(payload, config, avatar_factory if use_avatar else None),
        media_type="application/x-ndjson",
    )


async def _stream_turn(
    payload: TurnResp,
    config: SessionConfig,
    avatar_factory: Optional[Callable[[], DidStreamClient]],
) -> AsyncIterator[str]:  # Text chunk first, then avatar handshake metadata
    text_chunk: Dict[str, Any] = {"type": "text"}
    text_chunk.update(payload.model_dump(mode="json"))
    yield json.dumps(text_chunk) + "\n"
    if avatar_factory is None:
        return
    client = avatar_factory()
    try:
        handshake = await client.open_realtime_handshake(payload.response_text, config.avatar)
    except AvatarServiceError as exc:
        logger.warning("Avatar handshake failed: %s", exc)
        yield json.dumps({"type": "error", "error": str(exc)}) + "\n"
        return
    finally:
        await client.aclose()
    meta: Dict[str, Any] = {"type": "meta"}
    meta.update(handshake.model_dump(mode="json"))
    yield json.dumps(meta) + "\n"
