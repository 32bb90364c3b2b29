import pytest

from practice_session import InvalidTurnError, TranscriptItem, TranscriptStore
from practice_session.transcript import count_ai_turns, last_user_text


def _item(speaker, text, ts):
    return TranscriptItem(speaker=speaker, text=text, timestamp=ts)


def test_append_preserves_conversational_order():
    store = TranscriptStore()
    store.append(_item("ai", "Welcome! Tell me about yourself.", "2024-05-01T10:00:00Z"))
    store.append(_item("user", "I am a backend developer.", "2024-05-01T10:00:05Z"))
    store.append(_item("ai", "What stack do you use?", "2024-05-01T10:00:09Z"))

    items = store.to_ordered_sequence()
    assert isinstance(items, tuple)
    assert [item.speaker for item in items] == ["ai", "user", "ai"]
    assert store.count("ai") == count_ai_turns(items) == 2
    assert last_user_text(items) == "I am a backend developer."
    assert last_user_text(items[:1]) == ""


def test_equal_timestamps_are_allowed_but_earlier_ones_are_rejected():
    store = TranscriptStore()
    store.append(_item("ai", "Hi", "2024-05-01T10:00:00+00:00"))
    store.append(_item("user", "Hello", "2024-05-01T10:00:00Z"))

    with pytest.raises(InvalidTurnError):
        store.append(_item("ai", "Too early", "2024-05-01T09:59:59Z"))
    assert len(store) == 2


def test_naive_timestamps_are_treated_as_utc():
    store = TranscriptStore()
    store.append(_item("ai", "Hi", "2024-05-01T10:00:00"))
    with pytest.raises(InvalidTurnError):
        store.append(_item("user", "Earlier", "2024-05-01T11:00:00+02:00"))


def test_blank_text_is_rejected():
    store = TranscriptStore()
    with pytest.raises(InvalidTurnError):
        store.record("user", "   ")
    assert len(store) == 0


def test_consecutive_ai_turns_only_allowed_after_opening():
    store = TranscriptStore()
    store.record("ai", "Hello there.", "2024-05-01T10:00:00Z")
    store.record("ai", "Let's begin with your background.", "2024-05-01T10:00:01Z")

    with pytest.raises(InvalidTurnError):
        store.record("ai", "A third AI line", "2024-05-01T10:00:02Z")

    store.record("user", "Sure.", "2024-05-01T10:00:03Z")
    store.record("user", "I studied physics.", "2024-05-01T10:00:04Z")
    assert [item.speaker for item in store.to_ordered_sequence()] == ["ai", "ai", "user", "user"]


def test_frozen_store_rejects_appends():
    store = TranscriptStore()
    store.record("ai", "Hi", "2024-05-01T10:00:00Z")
    store.freeze()

    assert store.frozen
    with pytest.raises(InvalidTurnError):
        store.record("user", "Am I late?")
    assert len(store) == 1


def test_record_strips_text_and_stamps_time():
    store = TranscriptStore()
    item = store.record("user", "  I like hiking.  ")

    assert item.text == "I like hiking."
    assert item.moment().tzinfo is not None
    assert store.last() == item


def test_invalid_timestamp_is_rejected_by_the_model():
    with pytest.raises(ValueError):
        TranscriptItem(speaker="user", text="hi", timestamp="yesterday")
