# backend/protocol/binary.py
"""
Binary framing for the streaming ASR protocol.

Header (4 bytes, one nibble per field):

    byte 0   version (hi)        | header size in 4-byte words (lo)
    byte 1   message type (hi)   | flags (lo)
    byte 2   serialization (hi)  | compression (lo)
    byte 3   reserved (0 on encode, ignored on decode)

Body:

- Client → Server (FULL_CLIENT_REQUEST / AUDIO_ONLY_REQUEST):
    4 bytes  payload size (u32, big-endian)
    N bytes  payload

- Server → Client (FULL_SERVER_RESPONSE / ERROR_MESSAGE):
    4 bytes  sequence number, or error code for ERROR_MESSAGE (u32, big-endian)
    4 bytes  payload size (u32, big-endian)
    N bytes  payload

Usage example:

    ws.send(encode_full_client_request(config_json))
    ws.send(encode_audio_only_request(chunk.data, last=chunk.is_last))

    frame = decode_frame(raw)          # may raise MalformedFrame / ServerError
    if frame.is_final:
        ...

Pure functions only. No I/O.
"""

from __future__ import annotations

import gzip
import json
import struct
import zlib
from dataclasses import dataclass
from enum import IntEnum
from typing import Optional

from constants import (
    HEADER_BYTES,
    HEADER_SIZE_WORDS,
    HEADER_WORD_BYTES,
    PAYLOAD_SIZE_FIELD_BYTES,
    PAYLOAD_SIZE_MAX,
    PROTOCOL_VERSION,
    SEQUENCE_FIELD_BYTES,
    SEQUENCE_MAX,
)
from protocol.errors import MalformedFrame, ServerError


# -------------------------
# Header enumerants
# -------------------------

class MessageType(IntEnum):
    """High nibble of header byte 1."""
    FULL_CLIENT_REQUEST = 0b0001
    AUDIO_ONLY_REQUEST = 0b0010
    FULL_SERVER_RESPONSE = 0b1001
    ERROR_MESSAGE = 0b1111

    @property
    def from_server(self) -> bool:
        return self in (MessageType.FULL_SERVER_RESPONSE, MessageType.ERROR_MESSAGE)


class MessageFlags(IntEnum):
    """Low nibble of header byte 1. Distinguishes intermediate and final packets."""
    NONE = 0b0000
    POSITIVE_SEQUENCE = 0b0001
    LAST_PACKET = 0b0010
    NEGATIVE_SEQUENCE = 0b0011


class Serialization(IntEnum):
    NONE = 0b0000
    JSON = 0b0001


class Compression(IntEnum):
    NONE = 0b0000
    GZIP = 0b0001


FINAL_FLAGS = frozenset({MessageFlags.LAST_PACKET, MessageFlags.NEGATIVE_SEQUENCE})


@dataclass(frozen=True)
class Frame:
    """
    One logical wire message.

    sequence:
        Present only on server-originated frames. For ERROR_MESSAGE it
        carries the error code instead, but decode_frame never returns
        those (it raises ServerError).
    """
    message_type: MessageType
    flags: MessageFlags = MessageFlags.NONE
    serialization: Serialization = Serialization.NONE
    compression: Compression = Compression.NONE
    payload: bytes = b""
    sequence: Optional[int] = None

    @property
    def is_final(self) -> bool:
        return self.flags in FINAL_FLAGS


# -------------------------
# Low-level helpers
# -------------------------

def _u32_be(value: int) -> bytes:
    return struct.pack(">I", value)


def _read_u32_be(buf: bytes, offset: int = 0) -> int:
    return struct.unpack_from(">I", buf, offset)[0]


def _enum_or_malformed(enum_cls: type[IntEnum], value: int, field: str) -> IntEnum:
    try:
        return enum_cls(value)
    except ValueError as e:
        raise MalformedFrame(f"unknown {field} 0b{value:04b}") from e


def _error_text(payload: bytes, compression: IntEnum) -> str:
    """Best-effort extraction of the message carried by an ERROR_MESSAGE frame."""
    if compression == Compression.GZIP:
        try:
            payload = gzip.decompress(payload)
        except (OSError, EOFError, zlib.error):
            return repr(payload)
    text = payload.decode("utf-8", errors="replace")
    try:
        body = json.loads(text)
    except ValueError:
        return text
    if isinstance(body, dict):
        for key in ("message", "error"):
            value = body.get(key)
            if isinstance(value, str):
                return value
    return text


# -------------------------
# Encode
# -------------------------

def encode_frame(
    *,
    message_type: MessageType,
    flags: MessageFlags = MessageFlags.NONE,
    serialization: Serialization = Serialization.NONE,
    compression: Compression = Compression.NONE,
    payload: bytes = b"",
    sequence: Optional[int] = None,
) -> bytes:
    """
    Serialize one frame.

    Server-originated message types require `sequence`; request types must
    not carry one (the client never emits its own sequence field).
    """
    if len(payload) > PAYLOAD_SIZE_MAX:
        raise ValueError(f"payload of {len(payload)} bytes exceeds u32 size field")

    header = bytes((
        (PROTOCOL_VERSION << 4) | HEADER_SIZE_WORDS,
        (int(message_type) << 4) | int(flags),
        (int(serialization) << 4) | int(compression),
        0,
    ))

    if message_type.from_server:
        if sequence is None:
            raise ValueError(f"{message_type.name} requires a sequence number")
        if sequence < 0 or sequence > SEQUENCE_MAX:
            raise ValueError(f"sequence {sequence} outside u32 range")
        prefix = _u32_be(sequence)
    else:
        if sequence is not None:
            raise ValueError(f"{message_type.name} does not carry a sequence number")
        prefix = b""

    return header + prefix + _u32_be(len(payload)) + payload


def encode_full_client_request(payload_json: bytes) -> bytes:
    """First frame of every session: JSON request configuration."""
    return encode_frame(
        message_type=MessageType.FULL_CLIENT_REQUEST,
        serialization=Serialization.JSON,
        payload=payload_json,
    )


def encode_audio_only_request(audio: bytes, *, last: bool) -> bytes:
    """One raw audio chunk; the final chunk is flagged LAST_PACKET."""
    return encode_frame(
        message_type=MessageType.AUDIO_ONLY_REQUEST,
        flags=MessageFlags.LAST_PACKET if last else MessageFlags.NONE,
        payload=audio,
    )


# -------------------------
# Decode
# -------------------------

def decode_frame(buf: bytes) -> Frame:
    """
    Parse one received buffer.

    Raises:
        MalformedFrame on any structural violation.
        ServerError when the frame is an ERROR_MESSAGE.
    """
    if len(buf) < HEADER_BYTES:
        raise MalformedFrame(f"frame of {len(buf)} bytes shorter than header")

    version = buf[0] >> 4
    header_words = buf[0] & 0x0F
    if version != PROTOCOL_VERSION:
        raise MalformedFrame(f"unsupported protocol version {version}")
    if header_words == 0:
        raise MalformedFrame("header size of zero words")

    message_type = _enum_or_malformed(MessageType, buf[1] >> 4, "message type")
    flags = _enum_or_malformed(MessageFlags, buf[1] & 0x0F, "flags")
    serialization = _enum_or_malformed(Serialization, buf[2] >> 4, "serialization")
    compression = _enum_or_malformed(Compression, buf[2] & 0x0F, "compression")

    # Header extension words, if any, are skipped.
    offset = header_words * HEADER_WORD_BYTES

    sequence: Optional[int] = None
    if message_type.from_server:
        if len(buf) < offset + SEQUENCE_FIELD_BYTES:
            raise MalformedFrame("frame truncated before sequence field")
        sequence = _read_u32_be(buf, offset)
        offset += SEQUENCE_FIELD_BYTES

    if len(buf) < offset + PAYLOAD_SIZE_FIELD_BYTES:
        raise MalformedFrame("frame truncated before payload size field")
    payload_size = _read_u32_be(buf, offset)
    offset += PAYLOAD_SIZE_FIELD_BYTES

    remaining = len(buf) - offset
    if payload_size != remaining:
        raise MalformedFrame(
            f"declared payload size {payload_size} != remaining {remaining}"
        )
    payload = bytes(buf[offset:])

    if message_type is MessageType.ERROR_MESSAGE:
        raise ServerError(code=sequence or 0, message=_error_text(payload, compression))

    return Frame(
        message_type=MessageType(message_type),
        flags=MessageFlags(flags),
        serialization=Serialization(serialization),
        compression=Compression(compression),
        payload=payload,
        sequence=sequence,
    )
