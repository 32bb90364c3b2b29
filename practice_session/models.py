from __future__ import annotations  # Practice session data models

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, ValidationError, field_validator

from .errors import ConfigError

Speaker = Literal["user", "ai"]
SessionMode = Literal["technical", "hr", "mixed", "english-practice"]
PracticeTopic = Literal["daily", "interview", "travel", "technical", "idioms", "debate"]
Proficiency = Literal["basic", "intermediate", "advanced"]
Accent = Literal["american", "british", "australian", "neutral"]
AvatarSelection = Literal["HR", "Mentor", "Robot"]
NoticeKind = Literal["generation_failed", "render_failed", "capture_failed"]
SpokenText = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]  # Text an LLM reply must say aloud

INTERVIEW_MODES = ("technical", "hr", "mixed")
PRACTICE_MODE = "english-practice"


class SessionPhase(str, Enum):  # Orchestrator lifecycle phases
    IDLE = "idle"
    STARTING = "starting"
    ACTIVE = "active"
    AWAITING_RESPONSE = "awaiting_response"
    SPEAKING = "speaking"
    ENDING = "ending"
    FINISHED = "finished"


class TranscriptItem(BaseModel):  # One utterance, immutable once appended
    model_config = ConfigDict(frozen=True)

    speaker: Speaker
    text: str
    timestamp: str

    @field_validator("timestamp")
    @classmethod
    def _iso_timestamp(cls, value: str) -> str:
        datetime.fromisoformat(value)
        return value

    def moment(self) -> datetime:
        parsed = datetime.fromisoformat(self.timestamp)
        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=timezone.utc)
        return parsed


class SessionConfig(BaseModel):  # Immutable configuration captured at session start
    model_config = ConfigDict(frozen=True, extra="forbid")

    mode: SessionMode
    topic: Optional[PracticeTopic] = None
    proficiency: Optional[Proficiency] = None
    accent: Accent = "neutral"
    job_role: Optional[str] = None
    job_description: str = ""
    persona: str = "Alex"
    avatar: AvatarSelection = "HR"
    max_exchanges: int = 6
    wrap_up_offset: int = 1
    user_profile: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def parse(cls, data: Dict[str, Any]) -> "SessionConfig":  # Validate raw config, raising ConfigError
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise ConfigError(f"Invalid session configuration: {exc}") from exc

    @property
    def is_practice(self) -> bool:
        return self.mode == PRACTICE_MODE


class TurnDirective(BaseModel):  # Transient policy output consumed by the generator
    model_config = ConfigDict(frozen=True)

    question_category: str
    should_wrap_up: bool
    style_hints: Dict[str, str] = Field(default_factory=dict)


class GrammarFeedback(BaseModel):
    score: int = Field(ge=0, le=100)
    issues: List[str] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)


class VocabularyFeedback(BaseModel):
    score: int = Field(ge=0, le=100)
    new_words: List[str] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)


class PronunciationFeedback(BaseModel):
    score: int = Field(ge=0, le=100)
    tips: List[str] = Field(default_factory=list)


class FluencyFeedback(BaseModel):
    score: int = Field(ge=0, le=100)
    observations: List[str] = Field(default_factory=list)


class FeedbackReport(BaseModel):  # Per-turn language feedback for english practice
    grammar: GrammarFeedback
    vocabulary: VocabularyFeedback
    pronunciation: PronunciationFeedback
    fluency: FluencyFeedback
    encouragement: str


class InterviewTurnOutput(BaseModel):  # Interviewer output schema enforced on the LLM
    private_analysis: str = ""
    response_text: SpokenText
    question_category: str = ""
    is_end_of_session: bool = False

    @classmethod
    def from_raw_content(cls, content: str) -> "InterviewTurnOutput":  # Accept the older plain reply shapes
        data = json.loads(content)
        if isinstance(data, dict):
            for key in ("response", "firstQuestion"):
                value = data.get(key)
                if isinstance(value, str) and value.strip():
                    return cls(response_text=value)
        raise ValueError("Content does not match a known interviewer reply shape")


class PracticeTurnOutput(BaseModel):  # English practice follow-up schema
    response: SpokenText
    feedback: FeedbackReport
    is_end_of_session: bool = False


class PracticeStarterOutput(BaseModel):  # English practice opening schema
    greeting: SpokenText


class GeneratedTurn(BaseModel):  # Response generator result
    response_text: str
    question_category: Optional[str] = None
    feedback: Optional[FeedbackReport] = None
    is_end_of_session: bool = False


class SessionNotice(BaseModel):  # Non-fatal per-turn problem surfaced to the client
    kind: NoticeKind
    message: str
    turn_index: int
    timestamp: str


__all__ = [
    "AvatarSelection",
    "FeedbackReport",
    "FluencyFeedback",
    "GeneratedTurn",
    "GrammarFeedback",
    "INTERVIEW_MODES",
    "InterviewTurnOutput",
    "PRACTICE_MODE",
    "PracticeStarterOutput",
    "PracticeTurnOutput",
    "PronunciationFeedback",
    "SessionConfig",
    "SessionMode",
    "SessionNotice",
    "SessionPhase",
    "Speaker",
    "TranscriptItem",
    "TurnDirective",
    "VocabularyFeedback",
]
