"""
Transcription error taxonomy.

Every failure a transcription attempt can end in is one of these classes.
They are raised where detected (codec, transport, session loop), captured
into SessionOutcome.error by the session, and mapped to the fallback
transcript only at the service boundary.
"""

from __future__ import annotations


class TranscriptionError(Exception):
    """Base class for all transcription protocol failures."""

    reason: str = "transcription_error"


class ConfigurationMissing(TranscriptionError):
    """Credentials or endpoint absent; the live path is never attempted."""

    reason = "configuration_missing"

    def __init__(self, missing: tuple[str, ...]) -> None:
        super().__init__(f"missing ASR configuration: {', '.join(missing)}")
        self.missing = missing


class ConnectError(TranscriptionError):
    """Socket failed to open, or the open timeout elapsed first."""

    reason = "connect_error"

    def __init__(self, message: str, *, timed_out: bool = False) -> None:
        super().__init__(message)
        self.timed_out = timed_out


class SendError(TranscriptionError):
    """Write to a closed, erroring or stalled socket."""

    reason = "send_error"


class MalformedFrame(TranscriptionError):
    """
    Decode-time structural violation.

    Size mismatch, truncated header, unknown enumerant, or a payload that
    does not match the expected schema.
    """

    reason = "malformed_frame"


class ServerError(TranscriptionError):
    """The service answered with an explicit ERROR_MESSAGE frame."""

    reason = "server_error"

    def __init__(self, code: int, message: str) -> None:
        super().__init__(f"server error {code}: {message}")
        self.code = code
        self.message = message


class ResponseTimeout(TranscriptionError):
    """No final response arrived within the response bound."""

    reason = "response_timeout"

    def __init__(self, timeout_s: float) -> None:
        super().__init__(f"no final response within {timeout_s:.1f}s")
        self.timeout_s = timeout_s


class ConnectionLost(TranscriptionError):
    """
    Transport dropped or closed before a usable result.

    A close while awaiting the final response with text already accumulated
    is a completion, not this error.
    """

    reason = "connection_lost"

    def __init__(self, message: str, *, code: int | None = None) -> None:
        super().__init__(message)
        self.code = code


class StreamingError(TranscriptionError):
    """The audio pacer stopped on a failure other than a send error."""

    reason = "streaming_error"
