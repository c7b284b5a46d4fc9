# tests/unit/test_chunking.py

import asyncio

import pytest

from audio.chunking import (
    AudioChunk,
    audio_duration_ms,
    chunk_size_bytes,
    iter_chunks,
    paced_chunks,
)
from audio.formats import AudioFormat


PCM16_MONO_16K = {"sample_rate_hz": 16_000, "bits_per_sample": 16, "channels": 1}


def test_chunk_size_from_format():
    # 16000 samples/s * 2 bytes * 0.2 s
    assert chunk_size_bytes(16_000, 16, 1, 200) == 6_400
    assert chunk_size_bytes(44_100, 16, 2, 100) == 17_640


def test_chunk_size_truncates():
    # 11025 * 1 * 1 * 33 / 1000 = 363.825
    assert chunk_size_bytes(11_025, 8, 1, 33) == 363


@pytest.mark.parametrize("args", [(0, 16, 1, 200), (16_000, 0, 1, 200), (16_000, 16, 0, 200), (16_000, 16, 1, 0)])
def test_chunk_size_rejects_non_positive(args):
    with pytest.raises(ValueError):
        chunk_size_bytes(*args)


def test_three_point_two_seconds_gives_sixteen_chunks():
    audio = bytes(range(256)) * 400  # 102400 bytes = 3.2 s PCM16 mono 16kHz

    chunks = list(iter_chunks(audio, chunk_duration_ms=200, **PCM16_MONO_16K))

    assert len(chunks) == 16
    assert all(len(c.data) == 6_400 for c in chunks)
    assert [c.is_last for c in chunks].count(True) == 1
    assert chunks[-1].is_last
    assert [c.index for c in chunks] == list(range(16))


def test_remainder_goes_into_shorter_last_chunk():
    audio = b"\x01" * (6_400 * 2 + 100)

    chunks = list(iter_chunks(audio, **PCM16_MONO_16K))

    assert [len(c.data) for c in chunks] == [6_400, 6_400, 100]
    assert [c.is_last for c in chunks] == [False, False, True]


@pytest.mark.parametrize("length", [1, 6_399, 6_400, 6_401, 50_000])
def test_chunks_reassemble_to_input(length: int):
    audio = bytes(i % 251 for i in range(length))

    chunks = list(iter_chunks(audio, **PCM16_MONO_16K))

    assert b"".join(c.data for c in chunks) == audio
    assert sum(c.is_last for c in chunks) == 1


def test_empty_audio_yields_single_empty_final_chunk():
    chunks = list(iter_chunks(b"", **PCM16_MONO_16K))

    assert chunks == [AudioChunk(index=0, data=b"", is_last=True)]


def test_paced_chunks_sleep_between_chunks_only():
    delays: list[float] = []

    async def fake_sleep(seconds: float) -> None:
        delays.append(seconds)

    async def collect() -> list[AudioChunk]:
        return [
            c async for c in paced_chunks(
                b"\x00" * (6_400 * 3),
                AudioFormat(),
                chunk_duration_ms=200,
                sleep=fake_sleep,
            )
        ]

    chunks = asyncio.run(collect())

    assert len(chunks) == 3
    assert delays == [0.2, 0.2]


def test_audio_duration_ms():
    assert audio_duration_ms(102_400, AudioFormat()) == 3_200
    assert audio_duration_ms(0, AudioFormat()) == 0
