"""
JSONL event logger.

- Write one JSON object per line
- Output to stdout
- No buffering, no batching
- Level filtering only (no handlers, no formatters)
"""

from __future__ import annotations

import json
import sys
import time
from typing import Any, Mapping, Callable


_LEVELS: dict[str, int] = {
    "DEBUG": 10,
    "INFO": 20,
    "WARNING": 30,
    "ERROR": 40,
}

_min_level: int = _LEVELS["INFO"]


# ------------------------------------------------------------------
# Explicit output sink (patchable in tests)
# ------------------------------------------------------------------

def _stdout_print(line: str) -> None:
    sys.stdout.write(line + "\n")
    sys.stdout.flush()

_print: Callable[[str], None] = _stdout_print


def configure(min_level: str) -> None:
    """
    Set the lowest level that is written.

    Unknown level names raise ValueError so a typo in LOG_LEVEL fails at
    startup instead of silently muting logs.
    """
    global _min_level  # pylint: disable=global-statement
    key = min_level.upper()
    if key not in _LEVELS:
        raise ValueError(f"unknown log level {min_level!r}")
    _min_level = _LEVELS[key]


def log_event(event: Mapping[str, Any], *, level: str = "INFO") -> None:
    """
    Write a single JSONL event to stdout.

    The caller supplies event_type and any correlation fields
    (connect_id, phase, decision, ...). This function:
    - Stamps ts_ms and level if absent
    - Serializes to JSON
    - Writes exactly one line, or nothing if below the configured level
    - Never raises
    """
    if _LEVELS.get(level.upper(), _LEVELS["INFO"]) < _min_level:
        return

    record: dict[str, Any] = {
        "ts_ms": time.time_ns() // 1_000_000,
        "level": level.upper(),
    }
    record.update(event)

    try:
        line = json.dumps(record, ensure_ascii=False, separators=(",", ":"))
    except (TypeError, ValueError) as e:
        # Last-resort record: logging never crashes the caller
        fallback: dict[str, Any] = {
            "ts_ms": record.get("ts_ms"),
            "level": "ERROR",
            "event_type": "LOGGER_SERIALIZATION_ERROR",
            "error": str(e),
            "original_event_repr": repr(event),
        }
        line = json.dumps(fallback, ensure_ascii=False, separators=(",", ":"))

    _print(line)
