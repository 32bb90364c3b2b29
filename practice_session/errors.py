from __future__ import annotations  # Error taxonomy for practice sessions


class SessionError(RuntimeError):  # Base class for session failures
    pass


class ConfigError(SessionError):  # Malformed session configuration, fatal at start
    pass


class ResourceAcquisitionError(SessionError):  # Speech/avatar resources unavailable, start may be retried
    pass


class GenerationError(SessionError):  # Text generation failed for one turn
    pass


class RenderError(SessionError):  # Speech or avatar playback failed for one turn
    pass


class InvalidTurnError(SessionError):  # Transcript ordering violation
    pass


class SessionFinishedError(SessionError):  # Input arrived after the session finished
    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session {session_id} has finished")
        self.session_id = session_id


__all__ = [
    "ConfigError",
    "GenerationError",
    "InvalidTurnError",
    "RenderError",
    "ResourceAcquisitionError",
    "SessionError",
    "SessionFinishedError",
]
