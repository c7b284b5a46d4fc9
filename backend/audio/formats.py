"""
Audio format description.

Pure data plus WAV header sniffing. The recognition request must describe
the audio exactly as it is sent; chunk sizing derives from the same values.
"""

from __future__ import annotations

import io
import wave
from dataclasses import dataclass

from constants import (
    AUDIO_BITS_PER_SAMPLE,
    AUDIO_CHANNELS,
    AUDIO_CODEC,
    AUDIO_CONTAINER,
    AUDIO_SAMPLE_RATE_HZ,
    SUPPORTED_CODECS,
    SUPPORTED_CONTAINERS,
)


@dataclass(frozen=True)
class AudioFormat:
    """
    Immutable audio description.

    container:
        "pcm" | "wav" | "ogg" | "mp3"
    codec:
        "raw" for PCM/WAV, "opus" for ogg/opus
    """
    container: str = AUDIO_CONTAINER
    codec: str = AUDIO_CODEC
    sample_rate_hz: int = AUDIO_SAMPLE_RATE_HZ
    bits_per_sample: int = AUDIO_BITS_PER_SAMPLE
    channels: int = AUDIO_CHANNELS

    def __post_init__(self) -> None:
        if self.container not in SUPPORTED_CONTAINERS:
            raise ValueError(f"unsupported container {self.container!r}")
        if self.codec not in SUPPORTED_CODECS:
            raise ValueError(f"unsupported codec {self.codec!r}")
        if self.sample_rate_hz <= 0:
            raise ValueError("sample_rate_hz must be > 0")
        if self.bits_per_sample <= 0:
            raise ValueError("bits_per_sample must be > 0")
        if self.channels <= 0:
            raise ValueError("channels must be > 0")

    @property
    def bytes_per_second(self) -> int:
        return self.sample_rate_hz * (self.bits_per_sample // 8) * self.channels


def sniff_wav(audio: bytes) -> AudioFormat | None:
    """
    Return the format of a RIFF/WAVE buffer, or None if `audio` is not one.

    Unreadable WAV headers also return None; the caller then sends the
    buffer with its configured default format.
    """
    if len(audio) < 12 or audio[:4] != b"RIFF" or audio[8:12] != b"WAVE":
        return None

    try:
        with wave.open(io.BytesIO(audio), "rb") as wf:
            return AudioFormat(
                container="wav",
                codec="raw",
                sample_rate_hz=wf.getframerate(),
                bits_per_sample=wf.getsampwidth() * 8,
                channels=wf.getnchannels(),
            )
    except (wave.Error, EOFError, ValueError):
        return None
