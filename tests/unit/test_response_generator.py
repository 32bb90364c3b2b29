import json
from pathlib import Path

import httpx
import pytest

from practice_session import GenerationError, ResponseGenerator, TranscriptStore, compute_directive
from practice_session.generator import INTERVIEW_TURN_KEY, template_key

ROOT = Path(__file__).resolve().parents[2]


def _reply(body: dict) -> httpx.Response:
    return httpx.Response(200, json={"choices": [{"message": {"content": json.dumps(body)}}]})


class Replies:
    def __init__(self, *bodies):
        self.bodies = list(bodies)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        body = self.bodies.pop(0) if len(self.bodies) > 1 else self.bodies[0]
        return _reply(body)

    def payload(self, index: int = 0) -> dict:
        return json.loads(self.requests[index].content)


def _history(*pairs):
    store = TranscriptStore()
    for index, (speaker, text) in enumerate(pairs):
        store.record(speaker, text, f"2024-05-01T10:00:{index:02d}Z")
    return store.to_ordered_sequence()


@pytest.mark.asyncio
async def test_interview_turn_uses_persona_history_and_temperature(interview_config):
    replies = Replies(
        {
            "private_analysis": "Solid answer, probe the database layer.",
            "response_text": "Which database did you pick for that service and why?",
            "question_category": "",
            "is_end_of_session": False,
        }
    )
    history = _history(
        ("ai", "Welcome Sam, tell me about your background."),
        ("user", "I have built payment APIs in Python for four years."),
    )
    directive = compute_directive(history, interview_config, 1)

    async with httpx.AsyncClient(transport=httpx.MockTransport(replies)) as client:
        generator = ResponseGenerator.from_config(ROOT / "app_config.json", client=client)
        turn = await generator.generate(history, interview_config, directive)

    assert turn.response_text == "Which database did you pick for that service and why?"
    assert turn.question_category == directive.question_category
    assert turn.feedback is None
    payload = replies.payload()
    assert payload["model"] == "gpt-4o-mini"
    assert payload["temperature"] == 0.7
    roles = [message["role"] for message in payload["messages"]]
    assert roles == ["system", "system", "assistant", "user", "user"]
    assert '"Alex"' in payload["messages"][1]["content"]
    final = payload["messages"][-1]["content"]
    assert "Target role: Backend Engineer" in final
    assert f"Question category for this turn: {directive.question_category}" in final
    assert "Wrap up now: no" in final


@pytest.mark.asyncio
async def test_practice_opening_uses_greeting_schema(practice_config):
    replies = Replies({"greeting": "Hi, I'm Alex! Where did you travel most recently?"})
    directive = compute_directive((), practice_config, 0)

    async with httpx.AsyncClient(transport=httpx.MockTransport(replies)) as client:
        generator = ResponseGenerator.from_config(ROOT / "app_config.json", client=client)
        turn = await generator.generate((), practice_config, directive)

    assert turn.response_text.startswith("Hi, I'm Alex!")
    assert turn.is_end_of_session is False
    payload = replies.payload()
    assert payload["temperature"] == 1.0
    assert "greeting" in payload["messages"][0]["content"]
    assert "Conversation topic: travel" in payload["messages"][-1]["content"]


@pytest.mark.asyncio
async def test_practice_follow_up_returns_feedback(practice_config, feedback_report):
    replies = Replies(
        {
            "response": "Lisbon sounds lovely! What did you eat there?",
            "feedback": feedback_report.model_dump(),
            "is_end_of_session": False,
        }
    )
    history = _history(("ai", "Where did you travel last?"), ("user", "I goes to Lisbon last summer."))
    directive = compute_directive(history, practice_config, 1)

    async with httpx.AsyncClient(transport=httpx.MockTransport(replies)) as client:
        generator = ResponseGenerator.from_config(ROOT / "app_config.json", client=client)
        turn = await generator.generate(history, practice_config, directive)

    assert template_key(practice_config, history) == "practice"
    assert turn.feedback is not None
    assert turn.feedback.grammar.score == 80
    assert replies.payload()["temperature"] == 0.9


@pytest.mark.asyncio
async def test_invalid_output_is_retried_once_then_fails(interview_config):
    replies = Replies({"unexpected": "shape"})
    directive = compute_directive((), interview_config, 0)

    async with httpx.AsyncClient(transport=httpx.MockTransport(replies)) as client:
        generator = ResponseGenerator.from_config(ROOT / "app_config.json", client=client)
        with pytest.raises(GenerationError, match="validation failed"):
            await generator.generate((), interview_config, directive)

    assert len(replies.requests) == 2
    assert replies.requests[0].content == replies.requests[1].content


@pytest.mark.asyncio
async def test_blank_response_is_retried_then_fails(interview_config):
    replies = Replies({"response_text": "   ", "is_end_of_session": False})
    directive = compute_directive((), interview_config, 0)

    async with httpx.AsyncClient(transport=httpx.MockTransport(replies)) as client:
        generator = ResponseGenerator.from_config(ROOT / "app_config.json", client=client)
        with pytest.raises(GenerationError, match="validation failed"):
            await generator.generate((), interview_config, directive)

    assert len(replies.requests) == 2


@pytest.mark.asyncio
async def test_blank_greeting_recovers_on_retry(practice_config):
    replies = Replies({"greeting": ""}, {"greeting": "Hello! What is your favourite city to visit?"})
    directive = compute_directive((), practice_config, 0)

    async with httpx.AsyncClient(transport=httpx.MockTransport(replies)) as client:
        generator = ResponseGenerator.from_config(ROOT / "app_config.json", client=client)
        turn = await generator.generate((), practice_config, directive)

    assert turn.response_text == "Hello! What is your favourite city to visit?"
    assert len(replies.requests) == 2


def test_missing_registry_entries_are_rejected():
    with pytest.raises(KeyError, match=INTERVIEW_TURN_KEY):
        ResponseGenerator({})
