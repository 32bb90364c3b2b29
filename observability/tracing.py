"""Simple span helper for recording external call timings."""
from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Any, Iterator


@contextmanager
def span(state: Any, name: str) -> Iterator[None]:
    start = time.monotonic()
    outcome = "ok"
    try:
        yield
    except BaseException:
        outcome = "error"
        raise
    finally:
        elapsed_ms = int((time.monotonic() - start) * 1000)
        state.events.append({"span": name, "ms": elapsed_ms, "outcome": outcome})


__all__ = ["span"]
