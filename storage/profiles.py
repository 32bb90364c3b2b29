from __future__ import annotations  # User profile persistence layer

import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Mapping, Optional


def default_profile() -> Dict[str, Any]:  # Empty profile shape returned before the first save
    now = _now()
    return {
        "name": "",
        "email": "",
        "phone": "",
        "dob": None,
        "gender": "",
        "photoURL": "",
        "linkedin": "",
        "github": "",
        "summary": "",
        "careerGoals": "",
        "education": [],
        "experience": [],
        "skills": [],
        "interests": [],
        "preferences": {
            "location": "",
            "remote": False,
            "industries": [],
        },
        "createdAt": now,
        "updatedAt": now,
    }


class ProfileStore:  # SQLite-backed user profiles keyed by uid
    def __init__(self, path: Path) -> None:  # Initialize store with database path
        self._path = Path(path)
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:  # Open SQLite connection with row access by name
        self._path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self._path)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:  # Create profile table if missing
        conn = self._connect()
        try:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS user_profiles (
                    uid TEXT PRIMARY KEY,
                    data_json TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )
            conn.commit()
        finally:
            conn.close()

    def get(self, uid: str) -> Optional[Dict[str, Any]]:  # Stored profile or None
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT data_json, created_at, updated_at FROM user_profiles WHERE uid = ?",
                (uid,),
            ).fetchone()
        finally:
            conn.close()
        if row is None:
            return None
        data = json.loads(row["data_json"])
        data["createdAt"] = row["created_at"]
        data["updatedAt"] = row["updated_at"]
        return data

    def get_or_default(self, uid: str) -> Dict[str, Any]:  # Stored profile or the default shape, never persisted
        stored = self.get(uid)
        return stored if stored is not None else default_profile()

    def upsert(self, uid: str, profile_data: Mapping[str, Any]) -> Dict[str, Any]:  # Merge fields into the stored profile
        now = _now()
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT data_json, created_at FROM user_profiles WHERE uid = ?",
                (uid,),
            ).fetchone()
            incoming = {key: value for key, value in profile_data.items() if key not in ("createdAt", "updatedAt")}
            if row is None:
                merged = dict(incoming)
                created_at = now
            else:
                merged = _deep_merge(json.loads(row["data_json"]), incoming)
                created_at = row["created_at"]
            conn.execute(
                """
                INSERT INTO user_profiles (uid, data_json, created_at, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(uid) DO UPDATE SET
                    data_json = excluded.data_json,
                    updated_at = excluded.updated_at
                """,
                (uid, json.dumps(merged, ensure_ascii=False), created_at, now),
            )
            conn.commit()
        finally:
            conn.close()
        merged["createdAt"] = created_at
        merged["updatedAt"] = now
        return merged


def _deep_merge(base: Dict[str, Any], update: Mapping[str, Any]) -> Dict[str, Any]:  # Nested maps merge, other values replace
    result = dict(base)
    for key, value in update.items():
        current = result.get(key)
        if isinstance(current, dict) and isinstance(value, Mapping):
            result[key] = _deep_merge(current, value)
        else:
            result[key] = value
    return result


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds")


__all__ = ["ProfileStore", "default_profile"]
