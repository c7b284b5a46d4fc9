"""
Transcription session phase enumeration.

Rules:
- This enum defines ONLY the session phases.
- No behavior beyond the terminal check.
- Transitions are defined exclusively in TranscriptionSession.
"""

from __future__ import annotations

from enum import Enum


class SessionPhase(str, Enum):
    """
    Lifecycle of one transcription attempt.

    IDLE → CONNECTING → CONFIGURING → STREAMING → AWAITING_FINAL → COMPLETED
    Any phase may end in FAILED.
    """

    IDLE = "IDLE"
    CONNECTING = "CONNECTING"
    CONFIGURING = "CONFIGURING"
    STREAMING = "STREAMING"
    AWAITING_FINAL = "AWAITING_FINAL"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionPhase.COMPLETED, SessionPhase.FAILED)
