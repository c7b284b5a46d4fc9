"""
Audio chunking and real-time pacing.

Purpose:
- Split a captured audio buffer into fixed-duration byte chunks sized from
  the audio format.
- Pace their delivery so the service sees an approximately live stream.

Invariants:
- Concatenating every chunk, in order, reproduces the input exactly.
- Exactly one chunk is marked is_last; it carries the remainder (which may
  be shorter than nominal). Empty input yields one empty final chunk.
- No padding, no resampling, no header stripping.

Design:
- iter_chunks() is pure and lazy (no timing).
- paced_chunks() adds the cooperative inter-chunk delay; the sleep
  function is injectable so tests run without real time passing.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import AsyncIterator, Awaitable, Callable, Iterator

from audio.formats import AudioFormat
from constants import CHUNK_DURATION_MS

SleepFn = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class AudioChunk:
    """
    One byte range of the input buffer.

    index:
        0-based position in the chunk sequence.
    data:
        Raw audio bytes for this range.
    is_last:
        True for exactly one chunk: the final one.
    """
    index: int
    data: bytes
    is_last: bool


def chunk_size_bytes(
    sample_rate_hz: int,
    bits_per_sample: int,
    channels: int,
    chunk_duration_ms: int = CHUNK_DURATION_MS,
) -> int:
    """
    Bytes carried by one chunk of `chunk_duration_ms` audio, truncated.

    Raises:
        ValueError if any parameter or the resulting size is not positive.
    """
    if sample_rate_hz <= 0:
        raise ValueError("sample_rate_hz must be > 0")
    if bits_per_sample <= 0:
        raise ValueError("bits_per_sample must be > 0")
    if channels <= 0:
        raise ValueError("channels must be > 0")
    if chunk_duration_ms <= 0:
        raise ValueError("chunk_duration_ms must be > 0")

    size = int(sample_rate_hz * (bits_per_sample / 8) * channels * chunk_duration_ms / 1000)
    if size <= 0:
        raise ValueError("chunk size must be > 0")
    return size


def iter_chunks(
    audio: bytes,
    *,
    sample_rate_hz: int,
    bits_per_sample: int,
    channels: int,
    chunk_duration_ms: int = CHUNK_DURATION_MS,
) -> Iterator[AudioChunk]:
    """
    Lazily yield AudioChunks covering `audio` in order.

    Single pass. Calling again re-reads the same buffer from the start.
    """
    size = chunk_size_bytes(sample_rate_hz, bits_per_sample, channels, chunk_duration_ms)

    total = len(audio)
    if total == 0:
        yield AudioChunk(index=0, data=b"", is_last=True)
        return

    index = 0
    for offset in range(0, total, size):
        end = offset + size
        yield AudioChunk(
            index=index,
            data=bytes(audio[offset:end]),
            is_last=end >= total,
        )
        index += 1


def iter_format_chunks(
    audio: bytes,
    fmt: AudioFormat,
    chunk_duration_ms: int = CHUNK_DURATION_MS,
) -> Iterator[AudioChunk]:
    return iter_chunks(
        audio,
        sample_rate_hz=fmt.sample_rate_hz,
        bits_per_sample=fmt.bits_per_sample,
        channels=fmt.channels,
        chunk_duration_ms=chunk_duration_ms,
    )


async def paced_chunks(
    audio: bytes,
    fmt: AudioFormat,
    *,
    chunk_duration_ms: int = CHUNK_DURATION_MS,
    sleep: SleepFn = asyncio.sleep,
) -> AsyncIterator[AudioChunk]:
    """
    Yield chunks with a `chunk_duration_ms` suspension after each non-final one.

    The delay happens once the consumer has handled the chunk (i.e. after
    it was sent), never after the final chunk.
    """
    delay_s = chunk_duration_ms / 1000.0
    for chunk in iter_format_chunks(audio, fmt, chunk_duration_ms):
        yield chunk
        if not chunk.is_last:
            await sleep(delay_s)


def audio_duration_ms(num_bytes: int, fmt: AudioFormat) -> int:
    """Duration represented by `num_bytes` of audio in `fmt` (floor)."""
    if num_bytes <= 0 or fmt.bytes_per_second <= 0:
        return 0
    return (num_bytes * 1000) // fmt.bytes_per_second
