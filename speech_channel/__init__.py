"""Speech and avatar channels used by practice sessions."""
from .base import SpeechChannel, merge_partial, until_silence
from .did import AVATARS, AvatarChannel, AvatarServiceError, DidStreamClient, HandshakeMetadata
from .relay import ClientRelayChannel, RenderRequest

__all__ = [
    "AVATARS",
    "AvatarChannel",
    "AvatarServiceError",
    "ClientRelayChannel",
    "DidStreamClient",
    "HandshakeMetadata",
    "RenderRequest",
    "SpeechChannel",
    "merge_partial",
    "until_silence",
]
