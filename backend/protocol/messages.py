"""
Typed JSON payloads carried inside frames.

One concrete type per message kind:
- ClientConfig        → FULL_CLIENT_REQUEST payload (outbound)
- ServerResponse      ← FULL_SERVER_RESPONSE payload (inbound)
- (audio chunks are raw bytes, ERROR_MESSAGE is surfaced by the codec as ServerError)

Inbound payloads are decoded explicitly field by field; any shape mismatch
raises MalformedFrame instead of leaking an untyped dict.
"""

from __future__ import annotations

import gzip
import json
import zlib
from dataclasses import dataclass
from typing import Any

from audio.formats import AudioFormat
from constants import (
    ASR_DEFAULT_USER_ID,
    ASR_MODEL_NAME,
    ASR_PLATFORM,
    RESULT_TYPES,
)
from protocol.binary import Compression, Frame, MessageType, Serialization
from protocol.errors import MalformedFrame


# =============================================================================
# Outbound: request configuration
# =============================================================================

@dataclass(frozen=True)
class RecognitionOptions:
    """
    Recognition switches sent once per session.

    enable_itn:   inverse text normalization ("一百" -> "100")
    enable_punc:  punctuation
    enable_ddc:   semantic smoothing (disfluency removal)
    result_type:  "full" (cumulative text) or "single" (per-utterance)
    """
    enable_itn: bool = True
    enable_punc: bool = True
    enable_ddc: bool = False
    result_type: str = "full"
    show_utterances: bool = False

    def __post_init__(self) -> None:
        if self.result_type not in RESULT_TYPES:
            raise ValueError(f"result_type must be one of {RESULT_TYPES}, got {self.result_type!r}")


@dataclass(frozen=True)
class ClientConfig:
    """Immutable FULL_CLIENT_REQUEST body."""
    audio: AudioFormat
    options: RecognitionOptions = RecognitionOptions()
    uid: str = ASR_DEFAULT_USER_ID
    platform: str = ASR_PLATFORM
    model_name: str = ASR_MODEL_NAME

    def to_payload(self) -> dict[str, Any]:
        return {
            "user": {
                "uid": self.uid,
                "platform": self.platform,
            },
            "audio": {
                "format": self.audio.container,
                "codec": self.audio.codec,
                "rate": self.audio.sample_rate_hz,
                "bits": self.audio.bits_per_sample,
                "channel": self.audio.channels,
            },
            "request": {
                "model_name": self.model_name,
                "enable_itn": self.options.enable_itn,
                "enable_punc": self.options.enable_punc,
                "enable_ddc": self.options.enable_ddc,
                "result_type": self.options.result_type,
                "show_utterances": self.options.show_utterances,
            },
        }

    def to_json_bytes(self) -> bytes:
        return json.dumps(self.to_payload(), ensure_ascii=False, separators=(",", ":")).encode("utf-8")


# =============================================================================
# Inbound: recognition results
# =============================================================================

@dataclass(frozen=True)
class Utterance:
    """One recognized segment. Times are milliseconds from stream start."""
    text: str
    start_time_ms: int
    end_time_ms: int
    definite: bool


@dataclass(frozen=True)
class ServerResponse:
    """
    Decoded FULL_SERVER_RESPONSE.

    text is the service's cumulative transcript so far (may be empty on
    early keep-alive style responses).
    """
    sequence: int
    is_final: bool
    text: str
    utterances: tuple[Utterance, ...] = ()
    audio_duration_ms: int | None = None


def _payload_bytes(frame: Frame) -> bytes:
    if frame.compression is Compression.GZIP:
        try:
            return gzip.decompress(frame.payload)
        except (OSError, EOFError, zlib.error) as e:
            raise MalformedFrame(f"gzip payload failed to inflate: {e}") from e
    return frame.payload


def _require_int(value: Any, field: str) -> int:
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, int):
        raise MalformedFrame(f"{field} must be an integer, got {type(value).__name__}")
    return value


def _parse_utterance(raw: Any) -> Utterance:
    if not isinstance(raw, dict):
        raise MalformedFrame("utterance entry is not an object")
    text = raw.get("text", "")
    if not isinstance(text, str):
        raise MalformedFrame("utterance text is not a string")
    return Utterance(
        text=text,
        start_time_ms=_require_int(raw.get("start_time", 0), "utterances[].start_time"),
        end_time_ms=_require_int(raw.get("end_time", 0), "utterances[].end_time"),
        definite=bool(raw.get("definite", False)),
    )


def parse_server_response(frame: Frame) -> ServerResponse:
    """
    Decode a FULL_SERVER_RESPONSE frame into a ServerResponse.

    Accepted payload shape:

        {"audio_info": {"duration": 3200},
         "result": {"text": "...", "utterances": [{"text", "start_time", "end_time", "definite"}]}}

    `utterances` may also appear at top level. A missing `result` is an
    empty (non-final text) response.
    """
    if frame.message_type is not MessageType.FULL_SERVER_RESPONSE:
        raise MalformedFrame(f"expected FULL_SERVER_RESPONSE, got {frame.message_type.name}")
    if frame.serialization is not Serialization.JSON:
        raise MalformedFrame("server response is not JSON-serialized")

    raw = _payload_bytes(frame)
    if not raw:
        body: Any = {}
    else:
        try:
            body = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            raise MalformedFrame(f"server response JSON invalid: {e}") from e

    if not isinstance(body, dict):
        raise MalformedFrame("server response JSON is not an object")

    result = body.get("result", {})
    if result is None:
        result = {}
    if not isinstance(result, dict):
        raise MalformedFrame("result is not an object")

    text = result.get("text", "")
    if text is None:
        text = ""
    if not isinstance(text, str):
        raise MalformedFrame("result.text is not a string")

    raw_utterances = result.get("utterances", body.get("utterances", []))
    if raw_utterances is None:
        raw_utterances = []
    if not isinstance(raw_utterances, list):
        raise MalformedFrame("utterances is not a list")

    duration: int | None = None
    audio_info = body.get("audio_info")
    if isinstance(audio_info, dict) and "duration" in audio_info:
        duration = _require_int(audio_info["duration"], "audio_info.duration")

    if frame.sequence is None:
        raise MalformedFrame("server response without a sequence number")
    return ServerResponse(
        sequence=frame.sequence,
        is_final=frame.is_final,
        text=text,
        utterances=tuple(_parse_utterance(u) for u in raw_utterances),
        audio_duration_ms=duration,
    )
