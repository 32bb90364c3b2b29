from pathlib import Path

import pytest

from config.settings import settings
from observability import log_event, span
from observability.admin_cli import show_session, tail_sessions
from observability.logger import _format_human
from practice_session import SessionState
from storage.archive import SessionArchive


def test_human_line_lists_known_fields_in_order():
    line = _format_human(
        {"session_id": "s1", "kind": "phase", "outcome": "ok", "phase": "speaking", "exchange": 2, "error": None}
    )
    assert line == "session=s1 kind=phase phase=speaking exchange=2 outcome=ok"


def test_log_event_accepts_arbitrary_fields():
    log_event("late_result_discarded", "s1", phase="finished", epoch=7, payload={"nested": True})


def test_span_records_timing_and_outcome(interview_config):
    state = SessionState(session_id="s1", config=interview_config)

    with span(state, "render"):
        pass
    with pytest.raises(RuntimeError):
        with span(state, "generate"):
            raise RuntimeError("no model")

    assert [(event["span"], event["outcome"]) for event in state.events] == [("render", "ok"), ("generate", "error")]
    assert all(event["ms"] >= 0 for event in state.events)


def test_admin_cli_prints_archived_sessions(capsys, interview_config):
    state = SessionState(session_id="s-archived", config=interview_config)
    state.transcript.record("ai", "Tell me about yourself.", "2024-05-01T10:00:00Z")
    state.end_reason = "completed"
    SessionArchive(Path(settings.DB_PATH)).save(state)

    tail_sessions(5)
    show_session("s-archived")
    show_session("nope")

    out = capsys.readouterr().out
    assert "s-archived mode=technical" in out
    assert "ai: Tell me about yourself." in out
    assert "Session nope not found" in out
