"""Registry and factory for running practice sessions."""
from __future__ import annotations

import asyncio
import logging
from functools import lru_cache
from pathlib import Path
from threading import RLock
from typing import Any, Callable, Dict, List, Optional

from config import settings
from practice_session import ResponseGenerator, SessionConfig, SessionOrchestrator, SessionPhase
from practice_session.orchestrator import SessionState, TurnGenerator
from speech_channel import AvatarChannel, ClientRelayChannel, DidStreamClient
from storage.archive import SessionArchive


logger = logging.getLogger(__name__)


class SessionNotFoundError(KeyError):  # Raised when a session id is unknown
    pass


class SessionRegistry:  # Thread-safe in-memory map of orchestrators
    def __init__(self) -> None:
        self._sessions: Dict[str, SessionOrchestrator] = {}
        self._lock = RLock()

    def add(self, orchestrator: SessionOrchestrator) -> None:
        with self._lock:
            self._sessions[orchestrator.session_id] = orchestrator

    def get(self, session_id: str) -> SessionOrchestrator:
        with self._lock:
            stored = self._sessions.get(session_id)
        if stored is None:
            raise SessionNotFoundError(session_id)
        return stored

    def remove(self, session_id: str) -> None:
        with self._lock:
            self._sessions.pop(session_id, None)

    def all(self) -> List[SessionOrchestrator]:
        with self._lock:
            return list(self._sessions.values())


class SessionService:
    """Create orchestrators with their channel and archive wiring."""

    def __init__(
        self,
        generator: TurnGenerator,
        *,
        archive: Optional[SessionArchive] = None,
        avatar_client_factory: Optional[Callable[[], DidStreamClient]] = None,
        registry: Optional[SessionRegistry] = None,
        silence_timeout: Optional[float] = None,
        capture_restart: Optional[float] = None,
        finished_ttl: Optional[float] = None,
    ) -> None:
        self._generator = generator
        self._archive = archive
        self._avatar_client_factory = avatar_client_factory
        self._registry = registry or SessionRegistry()
        self._silence_timeout = silence_timeout
        self._capture_restart = capture_restart
        self._finished_ttl = settings.FINISHED_SESSION_TTL_S if finished_ttl is None else finished_ttl

    @property
    def registry(self) -> SessionRegistry:
        return self._registry

    @property
    def avatars_enabled(self) -> bool:
        return self._avatar_client_factory is not None

    def create(self, config: SessionConfig, *, use_avatar: bool = False) -> SessionOrchestrator:
        channel: ClientRelayChannel
        if use_avatar and self._avatar_client_factory is not None:
            channel = AvatarChannel(self._avatar_client_factory(), config.avatar, close_client=True)
        else:
            channel = ClientRelayChannel()
        short_answer_words = getattr(getattr(self._generator, "flow", None), "short_answer_words", 8)
        orchestrator = SessionOrchestrator(
            config,
            self._generator,
            channel,
            silence_timeout=self._silence_timeout,
            capture_restart=self._capture_restart,
            short_answer_words=short_answer_words,
            archive=self._on_finished,
        )
        self._registry.add(orchestrator)
        return orchestrator

    async def start(self, config: SessionConfig, *, use_avatar: bool = False) -> SessionOrchestrator:
        orchestrator = self.create(config, use_avatar=use_avatar)
        try:
            await orchestrator.start()
        except Exception:
            self._registry.remove(orchestrator.session_id)
            raise
        return orchestrator

    def get(self, session_id: str) -> SessionOrchestrator:
        return self._registry.get(session_id)

    async def describe(
        self,
        session_id: str,
        *,
        wait_for: Optional[SessionPhase] = None,
        timeout: float = 5.0,
    ) -> Dict[str, Any]:
        """Snapshot the session, optionally long-polling for a phase first."""

        orchestrator = self.get(session_id)
        if wait_for is not None:
            try:
                await orchestrator.wait_for_phase(wait_for, SessionPhase.FINISHED, timeout=timeout)
            except asyncio.TimeoutError:
                pass
            channel = orchestrator.channel
            if isinstance(channel, ClientRelayChannel):
                if orchestrator.phase is SessionPhase.SPEAKING:
                    await channel.wait_for_render(timeout)
                elif orchestrator.phase is SessionPhase.AWAITING_RESPONSE:
                    await channel.wait_for_capture(timeout)
        return snapshot(orchestrator)

    async def shutdown(self) -> None:  # End every running session
        for orchestrator in self._registry.all():
            await orchestrator.end("server_shutdown")

    async def _on_finished(self, state: SessionState) -> None:
        """Archive the finished session and drop it from the registry once its snapshot has expired."""

        if self._finished_ttl > 0:
            asyncio.get_running_loop().call_later(self._finished_ttl, self._registry.remove, state.session_id)
        else:
            self._registry.remove(state.session_id)
        if self._archive is not None:
            await asyncio.to_thread(self._archive.save, state)
            logger.info("Archived session %s", state.session_id)


def snapshot(orchestrator: SessionOrchestrator) -> Dict[str, Any]:  # Session view returned to clients
    data = orchestrator.snapshot()
    channel = orchestrator.channel
    pending = None
    capturing = False
    handshake = None
    if isinstance(channel, ClientRelayChannel):
        request = channel.pending_render
        if request is not None:
            pending = {"render_id": request.render_id, "text": request.text}
        capturing = channel.capturing
    if isinstance(channel, AvatarChannel) and channel.handshake is not None:
        handshake = channel.handshake.model_dump()
    data.update({"pending_render": pending, "capturing": capturing, "handshake": handshake})
    return data


@lru_cache(maxsize=1)
def get_session_service() -> SessionService:  # FastAPI dependency
    return SessionService(
        get_generator(),
        archive=SessionArchive(Path(settings.DB_PATH)),
        avatar_client_factory=get_avatar_factory(),
    )


@lru_cache(maxsize=1)
def get_generator() -> ResponseGenerator:  # FastAPI dependency
    return ResponseGenerator.from_config(Path(settings.APP_CONFIG_PATH))


def get_avatar_factory() -> Optional[Callable[[], DidStreamClient]]:  # FastAPI dependency, None without an API key
    if not settings.D_ID_API_KEY:
        return None
    return DidStreamClient


__all__ = [
    "SessionNotFoundError",
    "SessionRegistry",
    "SessionService",
    "get_avatar_factory",
    "get_generator",
    "get_session_service",
    "snapshot",
]
