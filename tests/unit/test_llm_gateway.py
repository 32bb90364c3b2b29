import json

import httpx
import pytest
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage
from pydantic import BaseModel

from config import LlmRoute
from llm_gateway import LlmGatewayError, call, chat, runnable
from practice_session.models import InterviewTurnOutput


class Echo(BaseModel):
    answer: str


def _route(**overrides) -> LlmRoute:
    fields = {
        "name": "test_route",
        "base_url": "http://llm.test",
        "endpoint": "/v1/chat/completions",
        "model": "test-model",
        "timeout_s": 5.0,
        "max_retries": 1,
        "response_format": "json_object",
    }
    fields.update(overrides)
    return LlmRoute(**fields)


def _completion(content: str) -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


class Recorder:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status, body = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        return httpx.Response(status, json=body)

    def payloads(self):
        return [json.loads(request.content) for request in self.requests]


@pytest.mark.asyncio
async def test_chat_returns_validated_schema():
    recorder = Recorder((200, _completion('{"answer": "42"}')))
    async with httpx.AsyncClient(transport=httpx.MockTransport(recorder)) as client:
        result = await call("What is the answer?", Echo, cfg=_route(), client=client, options={"temperature": 0.2})

    assert result == Echo(answer="42")
    payload = recorder.payloads()[0]
    assert str(recorder.requests[0].url) == "http://llm.test/v1/chat/completions"
    assert payload["model"] == "test-model"
    assert payload["temperature"] == 0.2
    assert payload["response_format"] == {"type": "json_object"}
    assert payload["messages"][0]["role"] == "system"
    assert payload["messages"][-1] == {"role": "user", "content": "What is the answer?"}


@pytest.mark.asyncio
async def test_code_fences_are_stripped():
    recorder = Recorder((200, _completion('```json\n{"answer": "fenced"}\n```')))
    async with httpx.AsyncClient(transport=httpx.MockTransport(recorder)) as client:
        result = await call("hi", Echo, cfg=_route(), client=client)

    assert result.answer == "fenced"


@pytest.mark.asyncio
async def test_retry_resends_identical_payload():
    recorder = Recorder(
        (200, _completion("not json at all")),
        (200, _completion('{"answer": "second time lucky"}')),
    )
    async with httpx.AsyncClient(transport=httpx.MockTransport(recorder)) as client:
        result = await call("hi", Echo, cfg=_route(), client=client, attempts=2)

    assert result.answer == "second time lucky"
    assert len(recorder.requests) == 2
    assert recorder.requests[0].content == recorder.requests[1].content


@pytest.mark.asyncio
async def test_exhausted_validation_attempts_raise_gateway_error():
    recorder = Recorder((200, _completion('{"unexpected": true}')))
    async with httpx.AsyncClient(transport=httpx.MockTransport(recorder)) as client:
        with pytest.raises(LlmGatewayError, match="LLM output validation failed"):
            await call("hi", Echo, cfg=_route(max_retries=2), client=client)

    assert len(recorder.requests) == 3


@pytest.mark.asyncio
async def test_error_status_raises_gateway_error():
    recorder = Recorder((500, {"error": "boom"}))
    async with httpx.AsyncClient(transport=httpx.MockTransport(recorder)) as client:
        with pytest.raises(LlmGatewayError, match="status 500"):
            await call("hi", Echo, cfg=_route(), client=client, attempts=1)

    assert len(recorder.requests) == 1


@pytest.mark.asyncio
async def test_legacy_interviewer_reply_is_adapted():
    recorder = Recorder((200, _completion('{"response": "Tell me about a recent project."}')))
    async with httpx.AsyncClient(transport=httpx.MockTransport(recorder)) as client:
        result = await call("hi", InterviewTurnOutput, cfg=_route(), client=client)

    assert result.response_text == "Tell me about a recent project."
    assert result.is_end_of_session is False


@pytest.mark.asyncio
async def test_chat_rejects_messages_without_role():
    with pytest.raises(ValueError):
        await chat([{"content": "orphan"}], Echo, cfg=_route())


@pytest.mark.asyncio
async def test_runnable_maps_langchain_roles():
    recorder = Recorder((200, _completion('{"answer": "ok"}')))
    async with httpx.AsyncClient(transport=httpx.MockTransport(recorder)) as client:
        chain = runnable(_route(enforce_json=False), Echo, client=client)
        result = await chain.ainvoke(
            [
                SystemMessage(content="Be brief."),
                AIMessage(content="Hello, who are you?"),
                HumanMessage(content="A candidate."),
            ]
        )

    assert result.answer == "ok"
    roles = [message["role"] for message in recorder.payloads()[0]["messages"]]
    assert roles == ["system", "assistant", "user"]
