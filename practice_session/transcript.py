"""Append-only, speaker-tagged transcript log owned by one session."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, List, Optional, Sequence, Tuple

from .errors import InvalidTurnError
from .models import Speaker, TranscriptItem


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class TranscriptStore:
    """Ordered log of utterances; insertion order is conversational order.

    Two AI items in a row are accepted only directly after the opening
    item. Timestamps must be non-decreasing. Once frozen the store rejects
    every append.
    """

    def __init__(self, items: Iterable[TranscriptItem] = ()) -> None:
        self._items: List[TranscriptItem] = []
        self._frozen = False
        for item in items:
            self.append(item)

    def append(self, item: TranscriptItem) -> None:
        if self._frozen:
            raise InvalidTurnError("Transcript is archived and read-only")
        if not item.text.strip():
            raise InvalidTurnError("Transcript items must carry text")
        last = self.last()
        if last is not None:
            if item.speaker == "ai" and last.speaker == "ai" and len(self._items) > 1:
                raise InvalidTurnError("Two consecutive AI turns outside session bootstrap")
            if item.moment() < last.moment():
                raise InvalidTurnError(
                    f"Timestamp {item.timestamp} precedes previous turn at {last.timestamp}"
                )
        self._items.append(item)

    def record(self, speaker: Speaker, text: str, timestamp: Optional[str] = None) -> TranscriptItem:
        item = TranscriptItem(speaker=speaker, text=text.strip(), timestamp=timestamp or utc_timestamp())
        self.append(item)
        return item

    def to_ordered_sequence(self) -> Tuple[TranscriptItem, ...]:
        return tuple(self._items)

    def last(self) -> Optional[TranscriptItem]:
        return self._items[-1] if self._items else None

    def count(self, speaker: Speaker) -> int:
        return sum(1 for item in self._items if item.speaker == speaker)

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def __len__(self) -> int:
        return len(self._items)


def count_ai_turns(items: Sequence[TranscriptItem]) -> int:
    return sum(1 for item in items if item.speaker == "ai")


def last_user_text(items: Sequence[TranscriptItem]) -> str:
    return next((item.text for item in reversed(items) if item.speaker == "user"), "")


__all__ = ["TranscriptStore", "count_ai_turns", "last_user_text", "utc_timestamp"]
