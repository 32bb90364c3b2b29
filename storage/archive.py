from __future__ import annotations  # Finished session archive

import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from practice_session.models import FeedbackReport, TranscriptItem

if TYPE_CHECKING:
    from practice_session.orchestrator import SessionState


class SessionArchive:  # SQLite-backed read-only copies of finished sessions
    def __init__(self, path: Path) -> None:  # Initialize archive with database path
        self._path = Path(path)
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:  # Open SQLite connection with schema settings
        self._path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self._path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def _ensure_schema(self) -> None:  # Create archive tables if missing
        conn = self._connect()
        try:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS archived_sessions (
                    session_id TEXT PRIMARY KEY,
                    mode TEXT NOT NULL,
                    persona TEXT NOT NULL,
                    config_json TEXT NOT NULL,
                    exchange_count INTEGER NOT NULL,
                    end_reason TEXT,
                    notices_json TEXT NOT NULL,
                    finished_at TEXT NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS archived_turns (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    session_id TEXT NOT NULL,
                    sequence INTEGER NOT NULL,
                    speaker TEXT NOT NULL,
                    text TEXT NOT NULL,
                    timestamp TEXT NOT NULL,
                    feedback_json TEXT,
                    FOREIGN KEY(session_id) REFERENCES archived_sessions(session_id) ON DELETE CASCADE
                )
                """
            )
            conn.commit()
        finally:
            conn.close()

    def save(self, state: "SessionState") -> None:  # Persist transcript, feedback and notices of a finished session
        items = state.transcript.to_ordered_sequence()
        now = datetime.now(timezone.utc).isoformat(timespec="seconds")
        conn = self._connect()
        try:
            conn.execute("DELETE FROM archived_turns WHERE session_id = ?", (state.session_id,))
            conn.execute(
                """
                INSERT OR REPLACE INTO archived_sessions (
                    session_id,
                    mode,
                    persona,
                    config_json,
                    exchange_count,
                    end_reason,
                    notices_json,
                    finished_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    state.session_id,
                    state.config.mode,
                    state.config.persona,
                    state.config.model_dump_json(),
                    state.exchange_count,
                    state.end_reason,
                    json.dumps([notice.model_dump() for notice in state.notices]),
                    now,
                ),
            )
            for sequence, item in enumerate(items):
                feedback = state.feedback.get(sequence)
                conn.execute(
                    """
                    INSERT INTO archived_turns (
                        session_id,
                        sequence,
                        speaker,
                        text,
                        timestamp,
                        feedback_json
                    ) VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        state.session_id,
                        sequence,
                        item.speaker,
                        item.text,
                        item.timestamp,
                        feedback.model_dump_json() if feedback else None,
                    ),
                )
            conn.commit()
        finally:
            conn.close()

    def load(self, session_id: str) -> Optional[Dict[str, Any]]:  # Archived session header with transcript
        conn = self._connect()
        try:
            header = conn.execute(
                "SELECT * FROM archived_sessions WHERE session_id = ?",
                (session_id,),
            ).fetchone()
            if header is None:
                return None
            rows = conn.execute(
                """
                SELECT sequence, speaker, text, timestamp, feedback_json
                FROM archived_turns
                WHERE session_id = ?
                ORDER BY sequence
                """,
                (session_id,),
            ).fetchall()
        finally:
            conn.close()
        return {
            "session_id": header["session_id"],
            "mode": header["mode"],
            "persona": header["persona"],
            "config": json.loads(header["config_json"]),
            "exchange_count": header["exchange_count"],
            "end_reason": header["end_reason"],
            "notices": json.loads(header["notices_json"]),
            "finished_at": header["finished_at"],
            "transcript": [
                TranscriptItem(speaker=row["speaker"], text=row["text"], timestamp=row["timestamp"])
                for row in rows
            ],
            "feedback": {
                row["sequence"]: FeedbackReport.model_validate_json(row["feedback_json"])
                for row in rows
                if row["feedback_json"]
            },
        }

    def recent(self, limit: int = 10) -> List[Dict[str, Any]]:  # Newest archived session headers
        conn = self._connect()
        try:
            rows = conn.execute(
                """
                SELECT session_id, mode, persona, exchange_count, end_reason, finished_at
                FROM archived_sessions
                ORDER BY finished_at DESC, session_id
                LIMIT ?
                """,
                (limit,),
            ).fetchall()
        finally:
            conn.close()
        return [dict(row) for row in rows]


__all__ = ["SessionArchive"]
