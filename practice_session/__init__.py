"""Practice session core: transcript, turn policy, generation and orchestration."""
from .errors import (
    ConfigError,
    GenerationError,
    InvalidTurnError,
    RenderError,
    ResourceAcquisitionError,
    SessionError,
    SessionFinishedError,
)
from .generator import ResponseGenerator
from .models import (
    FeedbackReport,
    GeneratedTurn,
    SessionConfig,
    SessionNotice,
    SessionPhase,
    TranscriptItem,
    TurnDirective,
)
from .orchestrator import SessionOrchestrator, SessionState
from .transcript import TranscriptStore
from .turn_policy import compute_directive, validate_config

__all__ = [
    "ConfigError",
    "FeedbackReport",
    "GeneratedTurn",
    "GenerationError",
    "InvalidTurnError",
    "RenderError",
    "ResourceAcquisitionError",
    "ResponseGenerator",
    "SessionConfig",
    "SessionError",
    "SessionFinishedError",
    "SessionNotice",
    "SessionOrchestrator",
    "SessionPhase",
    "SessionState",
    "TranscriptItem",
    "TranscriptStore",
    "TurnDirective",
    "compute_directive",
    "validate_config",
]
