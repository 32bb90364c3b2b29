"""Lightweight CLI helpers for inspecting archived practice sessions."""
from __future__ import annotations

import argparse
from pathlib import Path

from config.settings import settings
from storage.archive import SessionArchive


def tail_sessions(limit: int = 10) -> None:
    archive = SessionArchive(Path(settings.DB_PATH))
    for row in archive.recent(limit):
        print(
            f"[{row['finished_at']}] {row['session_id']} mode={row['mode']} persona={row['persona']}"
            f" exchanges={row['exchange_count']} end={row['end_reason']}"
        )


def show_session(session_id: str) -> None:
    archive = SessionArchive(Path(settings.DB_PATH))
    record = archive.load(session_id)
    if record is None:
        print(f"Session {session_id} not found")
        return
    print(f"{record['session_id']} mode={record['mode']} exchanges={record['exchange_count']} end={record['end_reason']}")
    for index, item in enumerate(record["transcript"]):
        print(f"  [{item.timestamp}] {item.speaker}: {item.text}")
        feedback = record["feedback"].get(index)
        if feedback is not None:
            print(
                f"      grammar={feedback.grammar.score} vocabulary={feedback.vocabulary.score}"
                f" pronunciation={feedback.pronunciation.score} fluency={feedback.fluency.score}"
            )
    for notice in record["notices"]:
        print(f"  notice turn={notice['turn_index']} {notice['kind']}: {notice['message']}")


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--tail-sessions", type=int, help="Show the latest archived sessions")
    parser.add_argument("--show", help="Print the archived transcript for a session id")
    args = parser.parse_args()

    if args.tail_sessions:
        tail_sessions(args.tail_sessions)
    if args.show:
        show_session(args.show)


if __name__ == "__main__":
    main()
