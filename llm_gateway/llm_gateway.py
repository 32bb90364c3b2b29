from __future__ import annotations  # LLM request gateway module

import json
import logging
import os
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol, Sequence, Tuple, Type, TypeVar

import httpx
from langchain_core.messages import BaseMessage
from langchain_core.runnables import RunnableLambda
from pydantic import BaseModel, ValidationError

from config import LlmRoute


logger = logging.getLogger(__name__)  # Module logger setup


class HttpClient(Protocol):  # Minimal async HTTP client protocol
    async def post(self, url: str, *, json: Dict[str, Any], headers: Dict[str, str], timeout: float) -> "HttpResponse": ...


class HttpResponse(Protocol):  # Minimal HTTP response protocol
    @property
    def status_code(self) -> int: ...

    def json(self) -> Any: ...

    @property
    def text(self) -> str: ...


class LlmGatewayError(RuntimeError):  # Base gateway error
    pass


T = TypeVar("T", bound=BaseModel)


async def call(
    task: str,
    schema: Type[T],
    *,
    cfg: LlmRoute,
    client: Optional[HttpClient] = None,
    options: Optional[Dict[str, Any]] = None,
    attempts: Optional[int] = None,
) -> T:  # Invoke configured LLM route with a single user task
    return await chat(
        [{"role": "user", "content": task}],
        schema,
        cfg=cfg,
        client=client,
        options=options,
        attempts=attempts,
    )


async def chat(
    messages: Sequence[Dict[str, str]],
    schema: Type[T],
    *,
    cfg: LlmRoute,
    client: Optional[HttpClient] = None,
    options: Optional[Dict[str, Any]] = None,
    attempts: Optional[int] = None,
) -> T:  # Send the chat payload, resending it unchanged on failure
    input_messages = _normalize_messages(messages)
    base_messages: list[Dict[str, str]] = []
    if cfg.enforce_json:
        schema_json = json.dumps(schema.model_json_schema(), indent=2)
        system_prompt = "Reply with a single JSON object matching this schema:\n" + schema_json
        base_messages.append({"role": "system", "content": system_prompt})
    base_messages.extend(input_messages)
    total = attempts if attempts is not None else cfg.max_retries + 1
    total = max(total, 1)
    payload: Dict[str, Any] = {"model": cfg.model, "messages": base_messages}
    if options:
        payload.update(options)
    if cfg.response_format:
        payload["response_format"] = {"type": cfg.response_format}
    headers = {"Content-Type": "application/json"}
    if cfg.api_key_env:
        api_key = os.getenv(cfg.api_key_env)
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
    headers.update(cfg.extra_headers)
    preview = _preview(base_messages)
    if len(preview) > 120:
        preview = preview[:117] + "..."
    logger.info(
        "LLM request start route=%s model=%s attempts=%d preview=%s",
        cfg.name,
        cfg.model,
        total,
        preview,
    )
    last_error: Optional[Exception] = None
    for attempt in range(total):
        logger.info(
            "LLM request send route=%s model=%s attempt=%d/%d",
            cfg.name,
            cfg.model,
            attempt + 1,
            total,
        )
        try:
            parsed = await _attempt(f"{cfg.base_url}{cfg.endpoint}", payload, headers, cfg.timeout_s, schema, client)
        except (LlmGatewayError, json.JSONDecodeError, ValidationError) as exc:
            logger.warning("LLM attempt %d/%d failed: %s", attempt + 1, total, exc)
            last_error = exc
            continue
        logger.info(
            "LLM request done route=%s model=%s attempt=%d",
            cfg.name,
            cfg.model,
            attempt + 1,
        )
        return parsed
    if isinstance(last_error, (json.JSONDecodeError, ValidationError)):
        raise LlmGatewayError("LLM output validation failed") from last_error
    raise LlmGatewayError(str(last_error) if last_error else "LLM request failed") from last_error


def runnable(
    route: LlmRoute,
    schema: Type[T],
    *,
    client: Optional[HttpClient] = None,
    options: Optional[Dict[str, Any]] = None,
    attempts: Optional[int] = None,
) -> RunnableLambda:  # Provide runnable interface for LangChain pipelines
    async def _invoke(payload: Any) -> T:
        messages = _coerce_messages(payload)
        return await chat(messages, schema, cfg=route, client=client, options=options, attempts=attempts)

    return RunnableLambda(_invoke)


async def _attempt(
    url: str,
    payload: Dict[str, Any],
    headers: Dict[str, str],
    timeout: float,
    schema: Type[T],
    client: Optional[HttpClient],
) -> T:  # Single request/validate round trip
    try:
        response, close_cb = await _post(url, payload, headers, timeout, client)
    except httpx.HTTPError as exc:
        logger.error("LLM transport failure: %s", exc)
        raise LlmGatewayError("LLM transport failed") from exc
    try:
        if response.status_code >= 400:
            logger.error("LLM error status: %s", response.status_code)
            raise LlmGatewayError(f"LLM returned status {response.status_code}")
        try:
            data = response.json()
        except ValueError as exc:
            logger.error("Invalid JSON payload from LLM: %s", exc)
            raise LlmGatewayError("LLM payload was not JSON") from exc
        content = _extract_content(data)
        return _validate(schema, content)
    finally:
        await _close_safely(close_cb)


async def _post(
    url: str,
    payload: Dict[str, Any],
    headers: Dict[str, str],
    timeout: float,
    client: Optional[HttpClient],
) -> Tuple[HttpResponse, Optional[Callable[[], Awaitable[None]]]]:  # Dispatch HTTP request
    if client is not None:
        response = await client.post(url, json=payload, headers=headers, timeout=timeout)
        return response, None
    http_client = httpx.AsyncClient(timeout=timeout)
    try:
        response = await http_client.post(url, json=payload, headers=headers)
    except BaseException:
        await http_client.aclose()
        raise
    return response, http_client.aclose


async def _close_safely(close_cb: Optional[Callable[[], Awaitable[None]]]) -> None:  # Close HTTP client callback when provided
    if close_cb is not None:
        await close_cb()


def _normalize_messages(messages: Sequence[Dict[str, str]]) -> list[Dict[str, str]]:  # Ensure message payload shape
    normalized: list[Dict[str, str]] = []
    for item in messages:
        if not isinstance(item, dict):
            raise TypeError("Each chat message must be a dict with role/content")
        role = str(item.get("role", "")).strip()
        content = str(item.get("content", ""))
        if not role:
            raise ValueError("Chat message missing role")
        normalized.append({"role": role, "content": content})
    return normalized


def _preview(messages: Sequence[Dict[str, str]]) -> str:  # Build preview string for logging
    for message in messages:
        if message.get("role") == "system":
            continue
        text = message.get("content", "").strip()
        if text:
            return text.splitlines()[0]
    return ""


def _extract_content(data: Any) -> str:  # Extract message content from LLM response
    if isinstance(data, dict):
        choices = data.get("choices")
        if isinstance(choices, list) and choices:
            message = choices[0].get("message") if isinstance(choices[0], dict) else None
            content = message.get("content") if isinstance(message, dict) else None
            if isinstance(content, str):
                return content
        if isinstance(data.get("content"), str):
            return data["content"]
    raise LlmGatewayError("LLM response missing content")


def _validate(schema: Type[T], content: str) -> T:  # Parse JSON content with schema
    cleaned = _strip_code_fences(content)
    try:
        return schema.model_validate_json(cleaned)
    except ValidationError as exc:
        adapter = getattr(schema, "from_raw_content", None)
        if callable(adapter):
            try:
                return adapter(cleaned)  # type: ignore[return-value]
            except (ValueError, ValidationError):
                pass
        raise exc


def _strip_code_fences(content: str) -> str:  # Remove common markdown fences from LLM output
    text = content.strip()
    if text.startswith("```"):
        lines = text.splitlines()
        if lines:
            lines = lines[1:]
            while lines and lines[0].strip() == "":
                lines = lines[1:]
            while lines and lines[-1].strip() == "":
                lines = lines[:-1]
            if lines and lines[-1].strip() == "```":
                lines = lines[:-1]
            text = "\n".join(lines).strip()
    return text


def _coerce_messages(payload: Any) -> Sequence[Dict[str, str]]:  # Convert LangChain payloads into dict messages
    if hasattr(payload, "to_messages"):
        payload = payload.to_messages()
    if isinstance(payload, dict):
        return [payload]
    if isinstance(payload, BaseMessage):
        return [_message_dict(payload)]
    if isinstance(payload, (list, tuple)):
        if all(isinstance(item, dict) for item in payload):
            return list(payload)  # type: ignore[return-value]
        if all(isinstance(item, BaseMessage) for item in payload):
            return [_message_dict(item) for item in payload]
    raise TypeError("Unsupported message payload for LLM runnable")


def _message_dict(message: BaseMessage) -> Dict[str, str]:  # Map LangChain BaseMessage to role/content dict
    role = message.type
    if role == "human":
        role = "user"
    elif role == "ai":
        role = "assistant"
    content = message.content
    if not isinstance(content, str):
        content = json.dumps(content)
    return {"role": role, "content": content}
