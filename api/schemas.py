"""Pydantic schemas for the practice session API."""
from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from practice_session.models import FeedbackReport, SessionConfig


class TranscriptEntry(BaseModel):
    speaker: Literal["user", "ai"]
    text: str
    timestamp: Optional[str] = None


class SessionSettingsReq(BaseModel):
    userProfile: Dict[str, Any] = Field(default_factory=dict)
    mode: Optional[str] = None
    interviewType: Optional[str] = None
    jobRole: Optional[str] = None
    jobDescription: Optional[str] = None
    topic: Optional[str] = None
    proficiency: Optional[str] = None
    accent: Optional[str] = None
    persona: Optional[str] = None
    avatarType: Optional[str] = None
    maxExchanges: Optional[int] = None
    wrapUpOffset: Optional[int] = None

    def session_config(self, *, default_persona: str, default_max_exchanges: int) -> SessionConfig:
        raw: Dict[str, Any] = {
            "mode": self.mode or self.interviewType,
            "topic": self.topic,
            "proficiency": self.proficiency,
            "accent": self.accent,
            "job_role": self.jobRole,
            "job_description": self.jobDescription,
            "persona": self.persona or default_persona,
            "avatar": self.avatarType,
            "max_exchanges": self.maxExchanges or default_max_exchanges,
            "wrap_up_offset": self.wrapUpOffset,
            "user_profile": self.userProfile,
        }
        return SessionConfig.parse({key: value for key, value in raw.items() if value is not None})


class TurnReq(SessionSettingsReq):
    transcript: List[TranscriptEntry] = Field(default_factory=list)
    stream: bool = False


class TurnResp(BaseModel):
    response_text: str
    question_category: Optional[str] = None
    should_wrap_up: bool
    is_end_of_session: bool
    exchange_count: int
    feedback: Optional[FeedbackReport] = None


class StartSessionReq(SessionSettingsReq):
    useAvatar: bool = False


class SpeechReq(BaseModel):
    text: str


class UtteranceReq(BaseModel):
    text: str


class RenderCompleteReq(BaseModel):
    render_id: Optional[int] = None
    error: Optional[str] = None


class AckResp(BaseModel):
    accepted: bool


class EndResp(BaseModel):
    ended: bool
    session: Dict[str, Any]


class ProfileSaveReq(BaseModel):
    uid: Optional[str] = None
    profileData: Optional[Dict[str, Any]] = None
