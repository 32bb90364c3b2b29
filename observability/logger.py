"""Structured session event logging.

Every event becomes one human-readable line on stdout. When file logs are
enabled the same event is also written as a JSON line to ``LOG_FILE`` and
as a human line to the sibling ``-human.log`` file, both rotated.
"""
from __future__ import annotations

import json
import logging
import logging.handlers
import os
import sys
import time
import uuid
from typing import Any, List

from config.settings import settings

_logger = logging.getLogger("practice_session.events")
_logger.propagate = False

_HUMAN_FORMAT = "[%(asctime)s] %(levelname)s %(name)s :: %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
_HUMAN_KEYS = ("phase", "event", "epoch", "exchange", "category", "ms", "outcome", "error")


def _is_json(record: logging.LogRecord) -> bool:
    return getattr(record, "is_json", False) is True


def _rotating(path: str) -> logging.Handler:
    return logging.handlers.RotatingFileHandler(
        path,
        maxBytes=settings.LOG_MAX_BYTES,
        backupCount=settings.LOG_BACKUP_COUNT,
    )


def _build_handlers() -> List[logging.Handler]:
    human = logging.Formatter(_HUMAN_FORMAT, datefmt=_DATE_FORMAT)

    console = logging.StreamHandler(stream=sys.stdout)
    console.setFormatter(human)
    console.addFilter(lambda record: not _is_json(record))
    handlers: List[logging.Handler] = [console]
    if not settings.ENABLE_FILE_LOGS:
        return handlers

    log_dir = os.path.dirname(settings.LOG_FILE)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)

    json_file = _rotating(settings.LOG_FILE)
    json_file.setFormatter(logging.Formatter("%(message)s"))
    json_file.addFilter(_is_json)

    base = settings.LOG_FILE[: -len(".log")] if settings.LOG_FILE.endswith(".log") else settings.LOG_FILE
    human_file = _rotating(f"{base}-human.log")
    human_file.setFormatter(human)
    human_file.addFilter(lambda record: not _is_json(record))
    return handlers + [json_file, human_file]


def _ensure_handlers() -> None:
    if _logger.handlers:
        return
    _logger.setLevel(settings.LOG_LEVEL.upper())
    for handler in _build_handlers():
        _logger.addHandler(handler)


def _format_human(evt: dict[str, Any]) -> str:
    extras = [f"{key}={evt[key]}" for key in _HUMAN_KEYS if evt.get(key) is not None]
    return " ".join([f"session={evt['session_id']} kind={evt['kind']}"] + extras)


def _emit(level: int, message: str, *, is_json: bool) -> None:
    record = _logger.makeRecord(_logger.name, level, "", 0, message, (), None)
    record.is_json = is_json  # type: ignore[attr-defined]
    _logger.handle(record)


def log_event(kind: str, session_id: str, *, level: int = logging.INFO, **fields: Any) -> None:
    """Record one orchestration event such as a phase change or a discarded late result."""

    _ensure_handlers()
    if not _logger.isEnabledFor(level):
        return

    payload: dict[str, Any] = {
        "ts": time.time(),
        "trace": uuid.uuid4().hex,
        "kind": kind,
        "session_id": session_id,
    }
    payload.update(fields)

    _emit(level, _format_human(payload), is_json=False)
    if settings.ENABLE_FILE_LOGS:
        _emit(level, json.dumps(payload, ensure_ascii=False, default=str), is_json=True)


__all__ = ["log_event"]
