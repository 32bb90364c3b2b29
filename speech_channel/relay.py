from __future__ import annotations  # Browser-driven speech channel relayed over HTTP

import asyncio
import itertools
import logging
from dataclasses import dataclass
from typing import AsyncIterator, Optional

from config import settings
from practice_session.errors import RenderError, ResourceAcquisitionError

from .base import until_silence


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RenderRequest:  # Utterance waiting for the client to speak it
    render_id: int
    text: str


class ClientRelayChannel:
    """Speech channel whose audio lives in the browser.

    Render requests are parked until the client reports completion, and
    recognizer partials are pushed in by the client while capture is armed.
    """

    def __init__(self, *, render_timeout: Optional[float] = None) -> None:
        self._render_timeout = render_timeout if render_timeout is not None else settings.RENDER_TIMEOUT_S
        self._ids = itertools.count(1)
        self._pending: Optional[RenderRequest] = None
        self._render_future: Optional[asyncio.Future[None]] = None
        self._partials: Optional[asyncio.Queue[Optional[str]]] = None
        self._acquired = False
        self._render_ready = asyncio.Event()
        self._capture_ready = asyncio.Event()
        self.released = False

    @property
    def acquired(self) -> bool:
        return self._acquired

    @property
    def capturing(self) -> bool:
        return self._partials is not None

    @property
    def pending_render(self) -> Optional[RenderRequest]:
        return self._pending

    async def acquire(self) -> None:
        if self.released:
            raise ResourceAcquisitionError("Channel was already released")
        self._acquired = True

    async def render_speech(self, text: str) -> None:
        if not self._acquired:
            raise RenderError("Channel is not acquired")
        if self.capturing:
            raise RenderError("Cannot render while capture is armed")
        loop = asyncio.get_running_loop()
        self._render_future = loop.create_future()
        self._pending = RenderRequest(render_id=next(self._ids), text=text)
        self._render_ready.set()
        try:
            await asyncio.wait_for(asyncio.shield(self._render_future), self._render_timeout)
        except asyncio.TimeoutError as exc:
            raise RenderError(f"Client did not finish rendering within {self._render_timeout}s") from exc
        finally:
            self._render_ready.clear()
            self._pending = None
            self._render_future = None

    async def wait_for_render(self, timeout: float) -> Optional[RenderRequest]:  # Long-poll helper for clients
        try:
            await asyncio.wait_for(self._render_ready.wait(), timeout)
        except asyncio.TimeoutError:
            return None
        return self._pending

    async def wait_for_capture(self, timeout: float) -> bool:
        try:
            await asyncio.wait_for(self._capture_ready.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return True

    def complete_render(self, render_id: Optional[int] = None, error: Optional[str] = None) -> bool:  # Client playback callback
        pending = self._pending
        future = self._render_future
        if pending is None or future is None or future.done():
            return False
        if render_id is not None and render_id != pending.render_id:
            logger.info("Ignoring completion for stale render %s (pending %s)", render_id, pending.render_id)
            return False
        if error:
            future.set_exception(RenderError(error))
        else:
            future.set_result(None)
        return True

    def capture_utterance(self, silence_timeout: float) -> AsyncIterator[str]:
        if self._render_future is not None:
            raise RuntimeError("Cannot capture while a render is in progress")
        self._partials = asyncio.Queue()
        self._capture_ready.set()
        return until_silence(self._drain(self._partials), silence_timeout)

    async def _drain(self, queue: asyncio.Queue[Optional[str]]) -> AsyncIterator[str]:
        while True:
            item = await queue.get()
            if item is None:
                return
            yield item

    def push_partial(self, text: str) -> bool:  # Recognizer output from the client
        if self._partials is None:
            return False
        self._partials.put_nowait(text)
        return True

    async def stop_capture(self) -> None:
        queue, self._partials = self._partials, None
        self._capture_ready.clear()
        if queue is not None:
            queue.put_nowait(None)

    async def release(self) -> None:
        await self.stop_capture()
        future = self._render_future
        if future is not None and not future.done():
            future.set_exception(RenderError("Channel released"))
        self._acquired = False
        self.released = True


__all__ = ["ClientRelayChannel", "RenderRequest"]
