"""Event-driven state machine that runs one practice session."""
from __future__ import annotations

import asyncio
import inspect
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Sequence, Union

from config import settings
from observability import log_event, span
from speech_channel.base import SpeechChannel, merge_partial

from .errors import (
    GenerationError,
    InvalidTurnError,
    ResourceAcquisitionError,
    SessionError,
    SessionFinishedError,
)
from .models import (
    FeedbackReport,
    GeneratedTurn,
    NoticeKind,
    SessionConfig,
    SessionNotice,
    SessionPhase,
    TranscriptItem,
    TurnDirective,
)
from .transcript import TranscriptStore, utc_timestamp
from .turn_policy import compute_directive, hard_limit, validate_config


logger = logging.getLogger(__name__)


class TurnGenerator(Protocol):  # Anything able to produce the next AI turn
    async def generate(
        self,
        history: Sequence[TranscriptItem],
        config: SessionConfig,
        directive: TurnDirective,
    ) -> GeneratedTurn: ...


@dataclass(frozen=True)
class UtteranceCaptured:
    text: str
    epoch: int


@dataclass(frozen=True)
class SilenceTimeoutElapsed:
    epoch: int


@dataclass(frozen=True)
class CaptureFailed:
    error: str
    epoch: int


@dataclass(frozen=True)
class RenderCompleted:
    epoch: int


@dataclass(frozen=True)
class RenderFailed:
    error: str
    epoch: int


@dataclass(frozen=True)
class GenerationCompleted:
    turn: GeneratedTurn
    directive: TurnDirective
    epoch: int


@dataclass(frozen=True)
class GenerationFailed:
    error: str
    epoch: int


@dataclass(frozen=True)
class EndRequested:
    reason: str


SessionEvent = Union[
    UtteranceCaptured,
    SilenceTimeoutElapsed,
    CaptureFailed,
    RenderCompleted,
    RenderFailed,
    GenerationCompleted,
    GenerationFailed,
    EndRequested,
]

ArchiveCallback = Callable[["SessionState"], Union[Awaitable[None], None]]


@dataclass
class SessionState:
    """Mutable per-session state, owned by exactly one orchestrator."""

    session_id: str
    config: SessionConfig
    phase: SessionPhase = SessionPhase.IDLE
    transcript: TranscriptStore = field(default_factory=TranscriptStore)
    exchange_count: int = 0
    end_requested: bool = False
    end_reason: Optional[str] = None
    last_directive: Optional[TurnDirective] = None
    final_turn: bool = False
    capturing: bool = False
    rendering: bool = False
    feedback: Dict[int, FeedbackReport] = field(default_factory=dict)  # keyed by the assessed user item index
    notices: List[SessionNotice] = field(default_factory=list)
    events: List[Dict[str, Any]] = field(default_factory=list)  # span timings

    def snapshot(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "phase": self.phase.value,
            "mode": self.config.mode,
            "exchange_count": self.exchange_count,
            "max_exchanges": self.config.max_exchanges,
            "should_wrap_up": self.last_directive.should_wrap_up if self.last_directive else False,
            "end_reason": self.end_reason,
            "transcript": [item.model_dump() for item in self.transcript.to_ordered_sequence()],
            "feedback": {str(index): report.model_dump() for index, report in self.feedback.items()},
            "notices": [notice.model_dump() for notice in self.notices],
        }


class SessionOrchestrator:
    """Drive one session through idle, starting, active, awaiting_response,
    speaking, ending and finished.

    Every external call (generation, rendering, capture) runs as the single
    in-flight task, stamped with an epoch. The task reports back by posting
    an event; a single loop applies events one at a time and discards any
    whose epoch is stale or that arrive after the session finished.
    """

    def __init__(
        self,
        config: SessionConfig,
        generator: TurnGenerator,
        channel: SpeechChannel,
        *,
        session_id: Optional[str] = None,
        silence_timeout: Optional[float] = None,
        capture_restart: Optional[float] = None,
        short_answer_words: int = 8,
        archive: Optional[ArchiveCallback] = None,
    ) -> None:
        self.state = SessionState(session_id=session_id or uuid.uuid4().hex, config=config)
        self._generator = generator
        self._channel = channel
        self._silence_timeout = silence_timeout if silence_timeout is not None else settings.SILENCE_TIMEOUT_S
        self._capture_restart = capture_restart if capture_restart is not None else settings.CAPTURE_RESTART_S
        self._short_answer_words = short_answer_words
        self._archive = archive
        self._events: asyncio.Queue[SessionEvent] = asyncio.Queue()
        self._epoch = 0
        self._inflight: Optional[asyncio.Task[None]] = None
        self._loop_task: Optional[asyncio.Task[None]] = None
        self._phase_changed = asyncio.Event()
        self._acquired = False

    @property
    def session_id(self) -> str:
        return self.state.session_id

    @property
    def config(self) -> SessionConfig:
        return self.state.config

    @property
    def phase(self) -> SessionPhase:
        return self.state.phase

    @property
    def channel(self) -> SpeechChannel:
        return self._channel

    # ----- public API -------------------------------------------------

    async def start(self) -> None:
        """Acquire channel resources and request the opening turn."""

        if self.state.phase is not SessionPhase.IDLE:
            raise SessionError(f"Session {self.session_id} cannot start from {self.state.phase.value}")
        validate_config(self.config)
        self._set_phase(SessionPhase.STARTING)
        try:
            with span(self.state, "acquire"):
                await self._channel.acquire()
        except Exception as exc:
            self._set_phase(SessionPhase.IDLE)
            log_event("acquire_failed", self.session_id, level=logging.WARNING, error=str(exc))
            if self.state.end_requested:
                await self._teardown(self.state.end_reason or "user_hangup")
            if isinstance(exc, ResourceAcquisitionError):
                raise
            raise ResourceAcquisitionError(str(exc)) from exc
        self._acquired = True
        if self.state.end_requested:
            await self._teardown(self.state.end_reason or "user_hangup")
            return
        self._set_phase(SessionPhase.ACTIVE)
        self._loop_task = asyncio.create_task(self._run(), name=f"session-{self.session_id}")
        self._launch_generation()

    async def end(self, reason: str = "user_hangup") -> bool:
        """Finish the session from any phase. Returns False when already ending or finished."""

        if self.state.phase is SessionPhase.FINISHED:
            return False
        if self.state.end_requested:
            await self.wait_for_phase(SessionPhase.FINISHED)
            return False
        self.state.end_requested = True
        self.state.end_reason = reason
        log_event("end_requested", self.session_id, phase=self.state.phase.value, event=reason)
        if self._loop_task is None:
            if self.state.phase is SessionPhase.IDLE:
                await self._teardown(reason)
            else:
                await self.wait_for_phase(SessionPhase.FINISHED)
            return True
        await self._events.put(EndRequested(reason))
        await self.wait_for_phase(SessionPhase.FINISHED)
        return True

    async def submit_text(self, text: str) -> None:
        """Typed input; accepted only while awaiting a response."""

        if self.state.phase is SessionPhase.FINISHED:
            raise SessionFinishedError(self.session_id)
        if not text.strip():
            raise InvalidTurnError("Utterance text cannot be blank")
        if self.state.phase is not SessionPhase.AWAITING_RESPONSE:
            raise InvalidTurnError(f"Session is {self.state.phase.value}, not awaiting a response")
        await self._events.put(UtteranceCaptured(text=text.strip(), epoch=self._epoch))

    async def wait_for_phase(self, *phases: SessionPhase, timeout: Optional[float] = None) -> SessionPhase:
        async def _wait() -> SessionPhase:
            while self.state.phase not in phases:
                changed = self._phase_changed
                await changed.wait()
            return self.state.phase

        return await asyncio.wait_for(_wait(), timeout)

    def snapshot(self) -> Dict[str, Any]:
        return self.state.snapshot()

    # ----- event loop -------------------------------------------------

    async def _run(self) -> None:
        while self.state.phase is not SessionPhase.FINISHED:
            event = await self._events.get()
            try:
                await self._dispatch(event)
            except InvalidTurnError as exc:
                log_event("invalid_turn", self.session_id, level=logging.ERROR, error=str(exc))
                await self._teardown("invalid_turn")
            except Exception:
                logger.exception("Session %s event handling failed", self.session_id)
                await self._teardown("internal_error")

    async def _dispatch(self, event: SessionEvent) -> None:
        if isinstance(event, EndRequested):
            await self._teardown(event.reason)
            return
        if self.state.phase is SessionPhase.FINISHED or event.epoch != self._epoch:
            log_event(
                "late_result_discarded",
                self.session_id,
                phase=self.state.phase.value,
                event=type(event).__name__,
                epoch=event.epoch,
            )
            return
        if isinstance(event, GenerationCompleted):
            self._on_generation_completed(event)
        elif isinstance(event, GenerationFailed):
            self._notice("generation_failed", event.error)
            self._await_response(delay=0.0)
        elif isinstance(event, RenderCompleted):
            await self._on_render_finished()
        elif isinstance(event, RenderFailed):
            self._notice("render_failed", event.error)
            await self._on_render_finished()
        elif isinstance(event, UtteranceCaptured):
            await self._on_utterance(event)
        elif isinstance(event, SilenceTimeoutElapsed):
            self._launch(lambda epoch: self._capture(epoch, self._capture_restart))
        elif isinstance(event, CaptureFailed):
            self._notice("capture_failed", event.error)
            self._launch(lambda epoch: self._capture(epoch, self._capture_restart))

    def _on_generation_completed(self, event: GenerationCompleted) -> None:
        if self.state.phase is not SessionPhase.ACTIVE:
            log_event("unexpected_event", self.session_id, phase=self.state.phase.value, event="GenerationCompleted")
            return
        transcript = self.state.transcript
        assessed = len(transcript) - 1
        transcript.record("ai", event.turn.response_text)
        self.state.exchange_count += 1
        if event.turn.feedback is not None and assessed >= 0:
            self.state.feedback[assessed] = event.turn.feedback
        self.state.final_turn = (
            event.turn.is_end_of_session and event.directive.should_wrap_up
        ) or self.state.exchange_count >= hard_limit(self.config)
        log_event(
            "turn_generated",
            self.session_id,
            exchange=self.state.exchange_count,
            category=event.turn.question_category,
            outcome="final" if self.state.final_turn else "continue",
        )
        self._set_phase(SessionPhase.SPEAKING)
        text = event.turn.response_text
        self._launch(lambda epoch: self._render(epoch, text))

    async def _on_render_finished(self) -> None:
        if self.state.phase is not SessionPhase.SPEAKING:
            log_event("unexpected_event", self.session_id, phase=self.state.phase.value, event="RenderFinished")
            return
        if self.state.final_turn:
            await self._teardown("completed")
            return
        self._await_response(delay=0.0)

    async def _on_utterance(self, event: UtteranceCaptured) -> None:
        if self.state.phase is not SessionPhase.AWAITING_RESPONSE:
            log_event("unexpected_event", self.session_id, phase=self.state.phase.value, event="UtteranceCaptured")
            return
        await self._cancel_inflight()
        self.state.transcript.record("user", event.text)
        self._set_phase(SessionPhase.ACTIVE)
        self._launch_generation()

    def _await_response(self, *, delay: float) -> None:
        self._set_phase(SessionPhase.AWAITING_RESPONSE)
        self._launch(lambda epoch: self._capture(epoch, delay))

    def _launch_generation(self) -> None:
        directive = compute_directive(
            self.state.transcript.to_ordered_sequence(),
            self.config,
            self.state.exchange_count,
            short_answer_words=self._short_answer_words,
        )
        self.state.last_directive = directive
        self._launch(lambda epoch: self._generate(epoch, directive))

    # ----- in-flight work ---------------------------------------------

    # work receives the new epoch and is only called once the task runs
    def _launch(self, work: Callable[[int], Awaitable[Optional[SessionEvent]]]) -> None:
        if self._inflight is not None and not self._inflight.done():
            raise RuntimeError("An external call is already in flight")
        self._epoch += 1
        self._inflight = asyncio.create_task(self._post(work, self._epoch))

    async def _post(self, work: Callable[[int], Awaitable[Optional[SessionEvent]]], epoch: int) -> None:
        event = await work(epoch)
        if event is not None:
            await self._events.put(event)

    async def _cancel_inflight(self) -> None:
        task, self._inflight = self._inflight, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _generate(self, epoch: int, directive: TurnDirective) -> SessionEvent:
        history = self.state.transcript.to_ordered_sequence()
        try:
            with span(self.state, "generate"):
                turn = await self._generator.generate(history, self.config, directive)
        except GenerationError as exc:
            return GenerationFailed(error=str(exc), epoch=epoch)
        except Exception as exc:
            logger.exception("Session %s generation crashed", self.session_id)
            return GenerationFailed(error=str(exc) or type(exc).__name__, epoch=epoch)
        return GenerationCompleted(turn=turn, directive=directive, epoch=epoch)

    async def _render(self, epoch: int, text: str) -> SessionEvent:
        await self._channel.stop_capture()
        self.state.rendering = True
        try:
            with span(self.state, "render"):
                await self._channel.render_speech(text)
        except Exception as exc:
            return RenderFailed(error=str(exc) or type(exc).__name__, epoch=epoch)
        finally:
            self.state.rendering = False
        return RenderCompleted(epoch=epoch)

    async def _capture(self, epoch: int, delay: float) -> SessionEvent:
        if delay > 0:
            await asyncio.sleep(delay)
        text = ""
        self.state.capturing = True
        try:
            with span(self.state, "capture"):
                async for partial in self._channel.capture_utterance(self._silence_timeout):
                    text = merge_partial(text, partial)
        except Exception as exc:
            return CaptureFailed(error=str(exc) or type(exc).__name__, epoch=epoch)
        finally:
            self.state.capturing = False
            await self._channel.stop_capture()
        if text.strip():
            return UtteranceCaptured(text=text, epoch=epoch)
        return SilenceTimeoutElapsed(epoch=epoch)

    # ----- teardown and bookkeeping -----------------------------------

    async def _teardown(self, reason: str) -> None:
        if self.state.phase is SessionPhase.FINISHED:
            return
        self.state.end_reason = self.state.end_reason or reason
        self._set_phase(SessionPhase.ENDING)
        await self._cancel_inflight()
        self._epoch += 1
        if self._acquired:
            self._acquired = False
            try:
                await self._channel.release()
            except Exception as exc:
                log_event("release_failed", self.session_id, level=logging.WARNING, error=str(exc))
        self.state.transcript.freeze()
        self._set_phase(SessionPhase.FINISHED)
        log_event(
            "session_finished",
            self.session_id,
            exchange=self.state.exchange_count,
            outcome=self.state.end_reason,
        )
        if self._archive is not None:
            try:
                result = self._archive(self.state)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Session %s archive failed", self.session_id)

    def _set_phase(self, phase: SessionPhase) -> None:
        previous = self.state.phase
        self.state.phase = phase
        changed, self._phase_changed = self._phase_changed, asyncio.Event()
        changed.set()
        log_event("phase", self.session_id, phase=phase.value, event=previous.value, exchange=self.state.exchange_count)

    def _notice(self, kind: NoticeKind, message: str) -> None:
        notice = SessionNotice(
            kind=kind,
            message=message,
            turn_index=self.state.exchange_count,
            timestamp=utc_timestamp(),
        )
        self.state.notices.append(notice)
        log_event("notice", self.session_id, level=logging.WARNING, event=kind, error=message)


__all__ = [
    "CaptureFailed",
    "EndRequested",
    "GenerationCompleted",
    "GenerationFailed",
    "RenderCompleted",
    "RenderFailed",
    "SessionEvent",
    "SessionOrchestrator",
    "SessionState",
    "SilenceTimeoutElapsed",
    "TurnGenerator",
    "UtteranceCaptured",
]
