"""Speech channel protocol and recognizer helpers."""
from __future__ import annotations

import asyncio
from typing import AsyncIterable, AsyncIterator, Protocol, runtime_checkable


@runtime_checkable
class SpeechChannel(Protocol):
    """Bidirectional voice surface driven by the session orchestrator.

    ``render_speech`` returns once the utterance has finished playing.
    ``capture_utterance`` yields partial transcriptions and stops after
    ``silence_timeout`` seconds without new speech, or when
    ``stop_capture`` is called.
    """

    async def acquire(self) -> None: ...

    async def render_speech(self, text: str) -> None: ...

    def capture_utterance(self, silence_timeout: float) -> AsyncIterator[str]: ...

    async def stop_capture(self) -> None: ...

    async def release(self) -> None: ...


def merge_partial(current: str, partial: str) -> str:  # Fold recognizer output into the running utterance
    incoming = " ".join(partial.split())
    if not incoming:
        return current
    existing = " ".join(current.split())
    if not existing:
        return incoming
    if incoming.startswith(existing):  # cumulative recognizer result
        return incoming
    if existing.endswith(incoming):  # repeated segment
        return existing
    return f"{existing} {incoming}"


async def until_silence(source: AsyncIterable[str], timeout: float) -> AsyncIterator[str]:
    """Relay partials until ``timeout`` passes without one after speech began."""

    iterator = source.__aiter__()
    heard = False
    while True:
        try:
            if heard:
                partial = await asyncio.wait_for(iterator.__anext__(), timeout)
            else:
                partial = await iterator.__anext__()
        except (StopAsyncIteration, asyncio.TimeoutError):
            return
        if partial.strip():
            heard = True
        yield partial


__all__ = ["SpeechChannel", "merge_partial", "until_silence"]
