from practice_session import SessionNotice, SessionState
from storage.archive import SessionArchive
from storage.profiles import ProfileStore, default_profile


def test_profile_defaults_are_not_persisted(tmp_path):
    store = ProfileStore(tmp_path / "profiles.db")

    profile = store.get_or_default("uid-1")

    assert profile["skills"] == []
    assert profile["preferences"] == {"location": "", "remote": False, "industries": []}
    assert store.get("uid-1") is None
    assert set(default_profile()) == set(profile)


def test_profile_upsert_merges_and_keeps_creation_time(tmp_path):
    store = ProfileStore(tmp_path / "profiles.db")

    first = store.upsert("uid-1", {"name": "Sam", "preferences": {"remote": True}, "createdAt": "ignored"})
    second = store.upsert("uid-1", {"skills": ["Python"], "preferences": {"location": "Berlin"}})

    assert first["createdAt"] != "ignored"
    assert second["createdAt"] == first["createdAt"]
    assert second["updatedAt"] >= first["updatedAt"]
    stored = store.get("uid-1")
    assert stored["name"] == "Sam"
    assert stored["skills"] == ["Python"]
    assert stored["preferences"] == {"remote": True, "location": "Berlin"}


def test_archive_round_trips_transcript_feedback_and_notices(tmp_path, practice_config, feedback_report):
    state = SessionState(session_id="sess-1", config=practice_config)
    state.transcript.record("ai", "Hi! Where have you travelled?", "2024-05-01T10:00:00Z")
    state.transcript.record("user", "I goes to Rome.", "2024-05-01T10:00:05Z")
    state.transcript.record("ai", "Rome is lovely! What did you see?", "2024-05-01T10:00:09Z")
    state.exchange_count = 2
    state.end_reason = "user_hangup"
    state.feedback[1] = feedback_report
    state.notices.append(
        SessionNotice(kind="render_failed", message="speech unavailable", turn_index=1, timestamp="2024-05-01T10:00:02Z")
    )
    archive = SessionArchive(tmp_path / "archive.db")

    archive.save(state)
    archive.save(state)
    record = archive.load("sess-1")

    assert record["mode"] == "english-practice"
    assert record["end_reason"] == "user_hangup"
    assert [item.text for item in record["transcript"]] == [
        "Hi! Where have you travelled?",
        "I goes to Rome.",
        "Rome is lovely! What did you see?",
    ]
    assert list(record["feedback"]) == [1]
    assert record["feedback"][1].grammar.issues == ["Missing article"]
    assert record["notices"][0]["kind"] == "render_failed"
    assert record["config"]["topic"] == "travel"
    assert [row["session_id"] for row in archive.recent()] == ["sess-1"]
    assert archive.load("missing") is None
