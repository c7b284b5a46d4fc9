"""
Transcription service (public entry point).

transcribe(audio) -> str never raises. Every failure of the live path,
including missing credentials, is logged and mapped to the fallback
transcript in exactly one place (TranscriptionService.transcribe).

attempt(audio) exposes the same work as an explicit TranscriptionResult so
callers and tests can inspect which error variant occurred.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable

from adapters.asr.fallback import FallbackTranscriber
from audio.formats import AudioFormat, sniff_wav
from config import AppConfig
from observability.logger import log_event
from protocol.errors import ConfigurationMissing, TranscriptionError
from protocol.messages import ClientConfig, RecognitionOptions
from session.phase import SessionPhase
from session.transcription_session import TranscriptionSession, TransportFactory


@dataclass(frozen=True)
class TranscriptionResult:
    """
    Outcome of one live attempt.

    text is meaningful only when error is None.
    """
    text: str
    error: TranscriptionError | None = None
    phase: SessionPhase = SessionPhase.IDLE
    connect_id: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class TranscriptionService:
    """
    Long-lived service object; holds only immutable configuration.

    Each call builds its own TranscriptionSession (and socket), so
    concurrent calls share no mutable state.
    """

    def __init__(
        self,
        config: AppConfig,
        *,
        audio_format: AudioFormat | None = None,
        options: RecognitionOptions | None = None,
        fallback: FallbackTranscriber | None = None,
        transport_factory: TransportFactory | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._config = config
        self._audio_format = audio_format or AudioFormat()
        self._options = options or RecognitionOptions()
        self._fallback = fallback or FallbackTranscriber(
            delay_s=config.fallback_delay_s,
            seed=config.fallback_seed,
            sleep=sleep,
        )
        self._transport_factory = transport_factory
        self._sleep = sleep

    @property
    def config(self) -> AppConfig:
        return self._config

    def _client_config_for(self, audio: bytes) -> ClientConfig:
        fmt = sniff_wav(audio) or self._audio_format
        return ClientConfig(
            audio=fmt,
            options=self._options,
            uid=self._config.asr_user_id,
        )

    async def attempt(self, audio: bytes) -> TranscriptionResult:
        """
        Run one live attempt without fallback.

        Returns ConfigurationMissing as an error result (no network I/O)
        when credentials are absent.
        """
        if not self._config.asr_configured:
            return TranscriptionResult(
                text="",
                error=ConfigurationMissing(self._config.missing_asr_keys()),
            )

        session = TranscriptionSession(
            config=self._config,
            client_config=self._client_config_for(audio),
            transport_factory=self._transport_factory,
            sleep=self._sleep,
        )
        outcome = await session.run(audio)

        return TranscriptionResult(
            text=outcome.text,
            error=outcome.error,
            phase=outcome.phase,
            connect_id=outcome.connect_id,
        )

    async def transcribe(self, audio: bytes) -> str:
        """Return the live transcript, or the fallback transcript on any failure."""
        try:
            result = await self.attempt(audio)
        except Exception as e:  # pylint: disable=broad-exception-caught
            # Programming errors still must not reach the recording flow.
            log_event({
                "event_type": "TRANSCRIPTION_FALLBACK",
                "decision": "unexpected_exception",
                "exception": type(e).__name__,
                "message": str(e),
            }, level="ERROR")
            return await self._fallback.transcribe(audio)

        error = result.error
        if error is None:
            return result.text

        # Missing credentials is an expected dev setup, not an incident.
        is_config = isinstance(error, ConfigurationMissing)
        log_event({
            "event_type": "TRANSCRIPTION_FALLBACK",
            "decision": error.reason,
            "connect_id": result.connect_id,
            "phase": result.phase.value,
            "exception": type(error).__name__,
            "message": str(error),
        }, level="INFO" if is_config else "WARNING")

        return await self._fallback.transcribe(audio)


async def transcribe(audio: bytes) -> str:
    """
    Module-level convenience: read configuration from the environment at
    call time and transcribe with a fresh service.
    """
    try:
        config = AppConfig.load_from_env()
    except ValueError as e:
        log_event({
            "event_type": "TRANSCRIPTION_CONFIG_INVALID",
            "message": str(e),
        }, level="ERROR")
        config = AppConfig()
    return await TranscriptionService(config).transcribe(audio)
