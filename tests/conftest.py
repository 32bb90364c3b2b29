import asyncio
import os
import sys
import tempfile
from pathlib import Path
from typing import Callable, List, Optional, Sequence

import pytest

os.environ.setdefault("ENABLE_FILE_LOGS", "0")

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from config.settings import settings
from practice_session.errors import GenerationError, RenderError, ResourceAcquisitionError
from practice_session.models import (
    FeedbackReport,
    FluencyFeedback,
    GeneratedTurn,
    GrammarFeedback,
    PronunciationFeedback,
    SessionConfig,
    TranscriptItem,
    TurnDirective,
    VocabularyFeedback,
)


@pytest.fixture(autouse=True)
def tmp_db(monkeypatch):
    td = tempfile.TemporaryDirectory()
    db_path = os.path.join(td.name, "test.db")
    monkeypatch.setattr(settings, "DB_PATH", db_path, raising=False)
    monkeypatch.setattr(settings, "D_ID_API_KEY", "", raising=False)
    try:
        yield
    finally:
        td.cleanup()


def sample_feedback() -> FeedbackReport:
    return FeedbackReport(
        grammar=GrammarFeedback(score=80, issues=["Missing article"], suggestions=["Say 'a book'"]),
        vocabulary=VocabularyFeedback(score=75, new_words=["itinerary"], suggestions=["journey"]),
        pronunciation=PronunciationFeedback(score=85, tips=["Stress the second syllable"]),
        fluency=FluencyFeedback(score=70, observations=["Good pace"]),
        encouragement="Great effort, keep going!",
    )


class ScriptedGenerator:
    """Generator double numbering its questions and ending on wrap-up turns."""

    def __init__(
        self,
        *,
        failures: Sequence[int] = (),
        end_on_wrap_up: bool = True,
        gate: Optional[asyncio.Event] = None,
        with_feedback: bool = False,
    ) -> None:
        self.calls: List[tuple] = []
        self._failures = set(failures)
        self._end_on_wrap_up = end_on_wrap_up
        self._gate = gate
        self._with_feedback = with_feedback

    async def generate(
        self,
        history: Sequence[TranscriptItem],
        config: SessionConfig,
        directive: TurnDirective,
    ) -> GeneratedTurn:
        call_index = len(self.calls)
        self.calls.append((tuple(history), directive))
        if self._gate is not None:
            await self._gate.wait()
        if call_index in self._failures:
            raise GenerationError("LLM output validation failed")
        asked = sum(1 for item in history if item.speaker == "ai")
        return GeneratedTurn(
            response_text=f"Question {asked + 1}?",
            question_category=directive.question_category,
            feedback=sample_feedback() if self._with_feedback and asked else None,
            is_end_of_session=self._end_on_wrap_up and directive.should_wrap_up,
        )


class AutoChannel:
    """Speech channel double that plays scripted answers and records ordering violations."""

    def __init__(
        self,
        answers: Sequence[str] = (),
        *,
        fail_acquire: bool = False,
        render_failures: int = 0,
        capture_failures: int = 0,
    ) -> None:
        self.answers = list(answers)
        self.fail_acquire = fail_acquire
        self.render_failures = render_failures
        self.capture_failures = capture_failures
        self.rendered: List[str] = []
        self.violations: List[str] = []
        self.capture_count = 0
        self.release_calls = 0
        self.capture_active = False
        self.render_active = False
        self._stop = asyncio.Event()

    async def acquire(self) -> None:
        if self.fail_acquire:
            raise ResourceAcquisitionError("microphone unavailable")

    async def render_speech(self, text: str) -> None:
        if self.capture_active:
            self.violations.append(f"render while capturing: {text}")
        self.render_active = True
        try:
            await asyncio.sleep(0)
            self.rendered.append(text)
            if self.render_failures:
                self.render_failures -= 1
                raise RenderError("speech synthesis unavailable")
        finally:
            self.render_active = False

    def capture_utterance(self, silence_timeout: float):
        return self._capture()

    async def _capture(self):
        if self.render_active:
            self.violations.append("capture while rendering")
        self.capture_count += 1
        self.capture_active = True
        self._stop = asyncio.Event()
        try:
            if self.capture_failures:
                self.capture_failures -= 1
                raise RuntimeError("microphone glitch")
            if self.answers:
                words = self.answers.pop(0).split()
                for end in range(1, len(words) + 1):
                    await asyncio.sleep(0)
                    yield " ".join(words[:end])
                return
            await self._stop.wait()
        finally:
            self.capture_active = False

    async def stop_capture(self) -> None:
        self._stop.set()

    async def release(self) -> None:
        self.release_calls += 1


async def eventually(predicate: Callable[[], object], timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)


@pytest.fixture
def interview_config() -> SessionConfig:
    return SessionConfig(
        mode="technical",
        job_role="Backend Engineer",
        job_description="Build Python services.",
        max_exchanges=3,
        wrap_up_offset=1,
        user_profile={"name": "Sam", "skills": ["Python", "SQL"]},
    )


@pytest.fixture
def practice_config() -> SessionConfig:
    return SessionConfig(
        mode="english-practice",
        topic="travel",
        proficiency="intermediate",
        accent="british",
        max_exchanges=3,
        wrap_up_offset=1,
    )


@pytest.fixture
def feedback_report() -> FeedbackReport:
    return sample_feedback()


@pytest.fixture
def scripted_generator():
    return ScriptedGenerator


@pytest.fixture
def auto_channel():
    return AutoChannel


@pytest.fixture
def wait_until():
    return eventually
