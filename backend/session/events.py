"""
Session event definitions.

Rules:
- Events describe facts that have occurred (socket or pacer side).
- Events carry data only (no behavior).
- Producers: WebSocketTransport receive task, session pacer task.
- Consumer: TranscriptionSession's event loop, and nothing else.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from protocol.errors import TranscriptionError


# ------------------------------------------------------------------
# Transport events
# ------------------------------------------------------------------

@dataclass(frozen=True)
class MessageReceived:
    """One binary message from the service (not yet decoded)."""
    data: bytes


@dataclass(frozen=True)
class TransportErrored:
    """The socket failed while open. Always terminal for the session."""
    error: BaseException


@dataclass(frozen=True)
class TransportClosed:
    """The socket closed (cleanly or not) from the remote side."""
    code: int | None = None
    reason: str = ""


# ------------------------------------------------------------------
# Pacer events
# ------------------------------------------------------------------

@dataclass(frozen=True)
class AudioStreamFinished:
    """The is_last chunk was sent with LAST_PACKET."""
    chunks_sent: int


@dataclass(frozen=True)
class AudioStreamFailed:
    """The pacer could not send a chunk."""
    error: TranscriptionError


TransportEvent = Union[MessageReceived, TransportErrored, TransportClosed]
SessionEvent = Union[
    MessageReceived,
    TransportErrored,
    TransportClosed,
    AudioStreamFinished,
    AudioStreamFailed,
]
