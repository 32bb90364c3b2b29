from __future__ import annotations  # D-ID streaming avatar client and channel

import asyncio
import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel, Field

from config import settings
from practice_session.errors import RenderError, ResourceAcquisitionError
from practice_session.models import AvatarSelection

from .relay import ClientRelayChannel


logger = logging.getLogger(__name__)

AVATARS: Dict[str, str] = {  # Presenter images per avatar selection
    "HR": "https://cdn.d-id.com/avatars/fT47o6iKk2_SGS2A8m53I.png",
    "Mentor": "https://cdn.d-id.com/avatars/enhanced/o_jC4I2Aa0Cj8y0sBso_U.jpeg",
    "Robot": "https://cdn.d-id.com/avatars/enhanced/Cubs2gK3cDmF6xK2pGv01.jpeg",
}


class AvatarServiceError(RuntimeError):  # Vendor call failed or timed out
    pass


class HandshakeMetadata(BaseModel):  # WebRTC handshake data handed to the browser
    session_id: str
    stream_id: str
    ice_servers: List[Dict[str, Any]] = Field(default_factory=list)
    offer: Optional[Dict[str, Any]] = None


class DidStreamClient:
    """Thin async wrapper over the D-ID ``/talks/streams`` API."""

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        poll_interval: Optional[float] = None,
        poll_attempts: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        key = api_key if api_key is not None else settings.D_ID_API_KEY
        self._poll_interval = poll_interval if poll_interval is not None else settings.AVATAR_POLL_INTERVAL_S
        self._poll_attempts = poll_attempts if poll_attempts is not None else settings.AVATAR_POLL_ATTEMPTS
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.D_ID_BASE_URL,
            headers={"Authorization": f"Basic {key}", "Content-Type": "application/json"},
            timeout=30.0,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def create_stream(self, avatar: AvatarSelection, text: Optional[str] = None) -> Dict[str, Any]:
        body: Dict[str, Any] = {"source_url": AVATARS[avatar]}
        if text:
            body["script"] = {"type": "text", "input": text}
            body["config"] = {"result_format": "mp4"}
        return await self._request("POST", "/talks/streams", json=body)

    async def wait_until_ready(self, stream_id: str) -> Dict[str, Any]:  # Poll until the stream reports started
        for attempt in range(self._poll_attempts):
            data = await self._request("GET", f"/talks/streams/{stream_id}")
            if data.get("status") == "started" and data.get("ice_servers"):
                return data
            logger.debug("Avatar stream %s not ready (attempt %d): %s", stream_id, attempt + 1, data.get("status"))
            await asyncio.sleep(self._poll_interval)
        raise AvatarServiceError(f"Avatar stream {stream_id} not ready after {self._poll_attempts} polls")

    async def submit_answer(self, stream_id: str, session_id: str, answer: Dict[str, Any]) -> None:
        await self._request(
            "POST",
            f"/talks/streams/{stream_id}/sdp",
            json={"answer": answer, "session_id": session_id},
        )

    async def talk(self, stream_id: str, session_id: str, text: str) -> None:
        await self._request(
            "POST",
            f"/talks/streams/{stream_id}",
            json={"script": {"type": "text", "input": text}, "session_id": session_id},
        )

    async def close_session(self, stream_id: str, session_id: str) -> None:
        await self._request("DELETE", f"/talks/streams/{stream_id}", json={"session_id": session_id})

    async def open_realtime_handshake(self, text: Optional[str], persona: AvatarSelection) -> HandshakeMetadata:
        """Create a stream for ``persona`` and wait until the browser can connect."""

        created = await self.create_stream(persona, text)
        stream_id = str(created.get("id") or created.get("session_id") or "")
        if not stream_id:
            raise AvatarServiceError("Avatar service did not return a stream id")
        session_id = str(created.get("session_id") or stream_id)
        ready = await self.wait_until_ready(stream_id)
        metadata = HandshakeMetadata(
            session_id=session_id,
            stream_id=stream_id,
            ice_servers=ready.get("ice_servers") or created.get("ice_servers") or [],
            offer=ready.get("offer") or created.get("offer"),
        )
        logger.info("Avatar stream ready stream=%s avatar=%s", stream_id, persona)
        return metadata

    async def _request(self, method: str, path: str, *, json: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        try:
            response = await self._client.request(method, path, json=json)
        except httpx.HTTPError as exc:
            logger.error("Avatar transport failure %s %s: %s", method, path, exc)
            raise AvatarServiceError("Avatar service unreachable") from exc
        if response.status_code >= 400:
            logger.error("Avatar service error %s %s: %s %s", method, path, response.status_code, response.text)
            raise AvatarServiceError(f"Avatar service returned status {response.status_code}")
        if not response.content:
            return {}
        try:
            data = response.json()
        except ValueError as exc:
            raise AvatarServiceError("Avatar service returned invalid JSON") from exc
        return data if isinstance(data, dict) else {}


class AvatarChannel(ClientRelayChannel):
    """Relay channel that also drives a D-ID avatar stream."""

    def __init__(
        self,
        client: DidStreamClient,
        avatar: AvatarSelection,
        *,
        render_timeout: Optional[float] = None,
        close_client: bool = False,
    ) -> None:
        super().__init__(render_timeout=render_timeout)
        self._client = client
        self._avatar = avatar
        self._close_client = close_client
        self.handshake: Optional[HandshakeMetadata] = None

    async def acquire(self) -> None:
        await super().acquire()
        try:
            self.handshake = await self._client.open_realtime_handshake(None, self._avatar)
        except AvatarServiceError as exc:
            self._acquired = False
            if self._close_client:
                await self._client.aclose()
            raise ResourceAcquisitionError(str(exc)) from exc

    async def render_speech(self, text: str) -> None:
        handshake = self.handshake
        if handshake is None:
            raise RenderError("Avatar stream is not open")
        try:
            await self._client.talk(handshake.stream_id, handshake.session_id, text)
        except AvatarServiceError as exc:
            raise RenderError(str(exc)) from exc
        await super().render_speech(text)

    async def release(self) -> None:
        handshake, self.handshake = self.handshake, None
        await super().release()
        try:
            if handshake is not None:
                await self._client.close_session(handshake.stream_id, handshake.session_id)
        except AvatarServiceError as exc:
            logger.warning("Avatar stream %s close failed: %s", handshake.stream_id, exc)
        finally:
            if self._close_client:
                await self._client.aclose()


__all__ = ["AVATARS", "AvatarChannel", "AvatarServiceError", "DidStreamClient", "HandshakeMetadata"]
