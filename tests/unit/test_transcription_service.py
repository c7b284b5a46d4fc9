# pylint: disable=missing-module-docstring,missing-function-docstring

import asyncio
import io
import json
import wave
from typing import Any, Callable, Iterator

import pytest

from adapters.asr.fallback import FallbackTranscriber
from config import AppConfig
from constants import FALLBACK_PHRASES
from observability import logger
from protocol.binary import (
    MessageFlags,
    MessageType,
    Serialization,
    decode_frame,
    encode_frame,
)
from protocol.errors import ConfigurationMissing, ResponseTimeout, ServerError
from services import transcription_service
from services.transcription_service import TranscriptionService
from session.events import MessageReceived, SessionEvent


CONFIGURED = AppConfig(
    asr_app_key="app-key",
    asr_access_token="token",
    response_timeout_s=0.05,
    fallback_delay_s=0,
)


def response(text: str, *, final: bool) -> MessageReceived:
    return MessageReceived(
        data=encode_frame(
            message_type=MessageType.FULL_SERVER_RESPONSE,
            flags=MessageFlags.NEGATIVE_SEQUENCE if final else MessageFlags.POSITIVE_SEQUENCE,
            serialization=Serialization.JSON,
            payload=json.dumps({"result": {"text": text}}, ensure_ascii=False).encode("utf-8"),
            sequence=1,
        )
    )


def error_reply(message: str) -> MessageReceived:
    return MessageReceived(
        data=encode_frame(
            message_type=MessageType.ERROR_MESSAGE,
            serialization=Serialization.JSON,
            payload=json.dumps({"message": message}).encode("utf-8"),
            sequence=45000151,
        )
    )


class ReplyOnLastPacket:
    """Answers with `replies` once the LAST_PACKET audio frame is sent."""

    def __init__(self, emit_event: Callable[[SessionEvent], Any], replies: list[SessionEvent]) -> None:
        self._emit = emit_event
        self._replies = replies
        self._player: asyncio.Task[None] | None = None
        self.sent: list[bytes] = []
        self.close_calls = 0

    async def open(self, url: str) -> None:
        pass

    async def send(self, data: bytes) -> None:
        self.sent.append(data)
        if decode_frame(data).flags is MessageFlags.LAST_PACKET:
            self._player = asyncio.create_task(self._play())

    async def _play(self) -> None:
        await asyncio.sleep(0)
        for reply in self._replies:
            await self._emit(reply)

    async def close(self) -> None:
        self.close_calls += 1


def factory_replying(*replies: SessionEvent):
    created: list[ReplyOnLastPacket] = []

    def factory(emit_event):
        transport = ReplyOnLastPacket(emit_event, list(replies))
        created.append(transport)
        return transport

    return factory, created


async def no_sleep(_seconds: float) -> None:
    await asyncio.sleep(0)


@pytest.fixture(name="captured")
def fixture_captured(monkeypatch: pytest.MonkeyPatch) -> Iterator[list[dict[str, Any]]]:
    records: list[dict[str, Any]] = []

    monkeypatch.setattr(logger, "_print", lambda line: records.append(json.loads(line)))
    logger.configure("INFO")
    yield records
    logger.configure("INFO")


def fallback_records(records: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return [r for r in records if r["event_type"] == "TRANSCRIPTION_FALLBACK"]


# ---------------------------------------------------------------------
# Unconfigured
# ---------------------------------------------------------------------

def test_missing_credentials_use_fallback_without_network(captured):
    factory_calls: list[Any] = []

    service = TranscriptionService(
        AppConfig(fallback_delay_s=0),
        transport_factory=factory_calls.append,
    )

    text = asyncio.run(service.transcribe(b"\x00" * 6_400))

    assert text == FALLBACK_PHRASES[0]
    assert factory_calls == []
    [record] = fallback_records(captured)
    assert record["decision"] == ConfigurationMissing.reason
    assert record["level"] == "INFO"


def test_attempt_reports_configuration_missing():
    service = TranscriptionService(AppConfig(asr_app_key="only-key"))

    result = asyncio.run(service.attempt(b"\x00"))

    assert not result.ok
    assert isinstance(result.error, ConfigurationMissing)
    assert result.error.missing == ("DOUBAO_ASR_ACCESS_TOKEN",)


def test_empty_endpoint_is_configuration_missing():
    factory_calls: list[Any] = []
    service = TranscriptionService(
        AppConfig(asr_app_key="k", asr_access_token="t", asr_endpoint="", fallback_delay_s=0),
        transport_factory=factory_calls.append,
    )

    result = asyncio.run(service.attempt(b"\x00" * 100))
    text = asyncio.run(service.transcribe(b"\x00" * 100))

    assert isinstance(result.error, ConfigurationMissing)
    assert result.error.missing == ("DOUBAO_ASR_ENDPOINT",)
    assert text == FALLBACK_PHRASES[0]
    assert factory_calls == []


def test_fallback_delay_is_applied():
    delays: list[float] = []

    async def fake_sleep(seconds: float) -> None:
        delays.append(seconds)

    service = TranscriptionService(AppConfig(fallback_delay_s=1.0), sleep=fake_sleep)

    asyncio.run(service.transcribe(b"\x00"))

    assert delays == [1.0]


# ---------------------------------------------------------------------
# Live path
# ---------------------------------------------------------------------

def test_live_transcript_is_returned():
    factory, created = factory_replying(response("你好", final=True))
    service = TranscriptionService(CONFIGURED, transport_factory=factory, sleep=no_sleep)

    text = asyncio.run(service.transcribe(b"\x00" * 12_800))

    assert text == "你好"
    assert created[0].close_calls == 1


def test_attempt_exposes_phase_and_connect_id():
    factory, _ = factory_replying(response("ok", final=True))
    service = TranscriptionService(CONFIGURED, transport_factory=factory, sleep=no_sleep)

    result = asyncio.run(service.attempt(b"\x00" * 100))

    assert result.ok
    assert result.text == "ok"
    assert result.phase.value == "completed"
    assert result.connect_id


def test_completed_with_empty_text_returns_empty_string():
    factory, _ = factory_replying(response("", final=True))
    service = TranscriptionService(CONFIGURED, transport_factory=factory, sleep=no_sleep)

    assert asyncio.run(service.transcribe(b"\x00" * 100)) == ""


def test_server_error_falls_back_and_logs_reason(captured):
    factory, _ = factory_replying(error_reply("quota exceeded"))
    service = TranscriptionService(CONFIGURED, transport_factory=factory, sleep=no_sleep)

    text = asyncio.run(service.transcribe(b"\x00" * 100))

    assert text == FALLBACK_PHRASES[0]
    assert "quota exceeded" not in text
    [record] = fallback_records(captured)
    assert record["decision"] == ServerError.reason
    assert record["level"] == "WARNING"
    assert "quota exceeded" in record["message"]
    assert record["connect_id"]


def test_timeout_falls_back():
    factory, _ = factory_replying(response("partial", final=False))
    service = TranscriptionService(CONFIGURED, transport_factory=factory, sleep=no_sleep)

    result = asyncio.run(service.attempt(b"\x00" * 100))
    text = asyncio.run(service.transcribe(b"\x00" * 100))

    assert isinstance(result.error, ResponseTimeout)
    assert text == FALLBACK_PHRASES[0]


def test_unexpected_exception_still_falls_back(captured):
    def broken_factory(emit_event):
        raise RuntimeError("factory bug")

    service = TranscriptionService(CONFIGURED, transport_factory=broken_factory, sleep=no_sleep)

    text = asyncio.run(service.transcribe(b"\x00" * 100))

    assert text == FALLBACK_PHRASES[0]
    [record] = fallback_records(captured)
    assert record["decision"] == "unexpected_exception"
    assert record["level"] == "ERROR"


def test_custom_fallback_is_used():
    service = TranscriptionService(
        AppConfig(),
        fallback=FallbackTranscriber(delay_s=0, phrases=("placeholder",)),
    )

    assert asyncio.run(service.transcribe(b"\x00")) == "placeholder"


def test_wav_input_is_described_from_its_header():
    buf = io.BytesIO()
    with wave.open(buf, "wb") as w:
        w.setnchannels(1)
        w.setsampwidth(2)
        w.setframerate(8_000)
        w.writeframes(b"\x00\x00" * 1_600)

    factory, created = factory_replying(response("ok", final=True))
    service = TranscriptionService(CONFIGURED, transport_factory=factory, sleep=no_sleep)

    asyncio.run(service.transcribe(buf.getvalue()))

    config_body = json.loads(decode_frame(created[0].sent[0]).payload)
    assert config_body["audio"]["format"] == "wav"
    assert config_body["audio"]["rate"] == 8_000


def test_concurrent_calls_use_independent_sessions():
    factory, created = factory_replying(response("same", final=True))
    service = TranscriptionService(CONFIGURED, transport_factory=factory, sleep=no_sleep)

    async def run_many() -> list[str]:
        return await asyncio.gather(*(service.transcribe(b"\x00" * 6_400) for _ in range(5)))

    texts = asyncio.run(run_many())

    assert texts == ["same"] * 5
    assert len(created) == 5
    assert [t.close_calls for t in created] == [1] * 5


# ---------------------------------------------------------------------
# Module-level entry point
# ---------------------------------------------------------------------

def test_module_transcribe_reads_environment(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv("DOUBAO_ASR_APP_KEY", raising=False)
    monkeypatch.delenv("DOUBAO_ASR_ACCESS_TOKEN", raising=False)
    monkeypatch.delenv("FALLBACK_SEED", raising=False)
    monkeypatch.setenv("FALLBACK_DELAY_S", "0")

    text = asyncio.run(transcription_service.transcribe(b"\x00" * 100))

    assert text == FALLBACK_PHRASES[0]


def test_module_transcribe_survives_malformed_environment(monkeypatch: pytest.MonkeyPatch, captured):
    monkeypatch.delenv("DOUBAO_ASR_APP_KEY", raising=False)
    monkeypatch.setenv("ASR_CHUNK_MS", "two hundred")

    text = asyncio.run(transcription_service.transcribe(b"\x00"))

    assert text == FALLBACK_PHRASES[0]
    assert any(r["event_type"] == "TRANSCRIPTION_CONFIG_INVALID" for r in captured)
