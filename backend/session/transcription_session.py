"""
Transcription session (one attempt, one socket).

Responsibilities:
- Own the phase state machine for a single transcription attempt:
    IDLE → CONNECTING → CONFIGURING → STREAMING → AWAITING_FINAL → COMPLETED
    any phase → FAILED
- Send the JSON configuration frame, then pace audio frames
- Consume typed events (socket + pacer) from one queue, in one task
- Accumulate the cumulative transcript (last non-empty text wins)
- Enforce the response timeout once the last audio frame is out
- Release pacer task and transport exactly once on every exit path

Non-responsibilities:
- No fallback decisions (TranscriptionService owns those)
- No socket details (WebSocketTransport owns those)
- No wire layout (protocol.binary owns that)

Concurrency model:
- run() is the only writer of phase / accumulated text / error.
- The pacer runs as a separate task and reports completion or failure as
  events, so there is nothing to lock.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable
from uuid import uuid4

from adapters.asr.websocket_transport import EventSink, WebSocketTransport, build_auth_url
from audio.chunking import audio_duration_ms, paced_chunks
from config import AppConfig
from observability.logger import log_event
from protocol.binary import (
    MessageType,
    decode_frame,
    encode_audio_only_request,
    encode_full_client_request,
)
from protocol.errors import (
    ConfigurationMissing,
    ConnectionLost,
    MalformedFrame,
    ResponseTimeout,
    StreamingError,
    TranscriptionError,
)
from protocol.messages import ClientConfig, Utterance, parse_server_response
from session.events import (
    AudioStreamFailed,
    AudioStreamFinished,
    MessageReceived,
    SessionEvent,
    TransportClosed,
    TransportErrored,
)
from session.phase import SessionPhase

TransportFactory = Callable[[EventSink], Any]
SleepFn = Callable[[float], Awaitable[None]]


_ALLOWED_TRANSITIONS: dict[SessionPhase, frozenset[SessionPhase]] = {
    SessionPhase.IDLE: frozenset({SessionPhase.CONNECTING, SessionPhase.FAILED}),
    SessionPhase.CONNECTING: frozenset({SessionPhase.CONFIGURING, SessionPhase.FAILED}),
    SessionPhase.CONFIGURING: frozenset({SessionPhase.STREAMING, SessionPhase.FAILED}),
    SessionPhase.STREAMING: frozenset({
        SessionPhase.AWAITING_FINAL,
        SessionPhase.COMPLETED,
        SessionPhase.FAILED,
    }),
    SessionPhase.AWAITING_FINAL: frozenset({SessionPhase.COMPLETED, SessionPhase.FAILED}),
    SessionPhase.COMPLETED: frozenset(),
    SessionPhase.FAILED: frozenset(),
}


def _new_connect_id() -> str:
    return str(uuid4())


@dataclass(frozen=True)
class SessionOutcome:
    """
    Result of TranscriptionSession.run().

    Exactly one of (phase == COMPLETED) or (error is not None) holds.
    """
    phase: SessionPhase
    text: str
    error: TranscriptionError | None
    connect_id: str
    frames_sent: int
    utterances: tuple[Utterance, ...] = ()

    @property
    def ok(self) -> bool:
        return self.phase is SessionPhase.COMPLETED


class TranscriptionSession:
    """
    One transcription attempt. Single-use: run() may be called once.
    """

    def __init__(
        self,
        *,
        config: AppConfig,
        client_config: ClientConfig,
        transport_factory: TransportFactory | None = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        if not config.asr_configured:
            raise ValueError("TranscriptionSession requires configured ASR credentials")

        self._config = config
        self._client_config = client_config
        self._transport_factory = transport_factory or self._default_transport
        self._sleep = sleep

        self._connect_id = _new_connect_id()
        self._phase = SessionPhase.IDLE
        self._text = ""
        self._utterances: tuple[Utterance, ...] = ()
        self._error: TranscriptionError | None = None

        self._events: asyncio.Queue[SessionEvent] = asyncio.Queue()
        self._transport: Any = None
        self._pacer: asyncio.Task[None] | None = None
        self._deadline: float | None = None

        self._frames_sent = 0
        self._responses = 0
        self._close_count = 0

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def connect_id(self) -> str:
        return self._connect_id

    @property
    def phase(self) -> SessionPhase:
        return self._phase

    @property
    def accumulated_text(self) -> str:
        return self._text

    @property
    def last_error(self) -> TranscriptionError | None:
        return self._error

    @property
    def frames_sent(self) -> int:
        return self._frames_sent

    @property
    def close_count(self) -> int:
        return self._close_count

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def run(self, audio: bytes) -> SessionOutcome:
        """
        Drive the session to COMPLETED or FAILED.

        Protocol failures end up in SessionOutcome.error; they are not raised.
        """
        if self._phase is not SessionPhase.IDLE:
            raise RuntimeError("TranscriptionSession.run() may only be called once")

        log_event({
            "event_type": "ASR_SESSION_START",
            "connect_id": self._connect_id,
            "audio_bytes": len(audio),
            "audio_ms": audio_duration_ms(len(audio), self._client_config.audio),
            "audio_format": self._client_config.audio.container,
        })

        try:
            await self._connect()
            await self._configure()
            self._pacer = asyncio.create_task(self._stream_audio(audio))
            await self._event_loop()
        except TranscriptionError as e:
            self._fail(e)
        finally:
            await self._teardown()

        return self.outcome()

    def outcome(self) -> SessionOutcome:
        return SessionOutcome(
            phase=self._phase,
            text=self._text,
            error=self._error,
            connect_id=self._connect_id,
            frames_sent=self._frames_sent,
            utterances=self._utterances,
        )

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    def _default_transport(self, emit_event: EventSink) -> WebSocketTransport:
        return WebSocketTransport(
            emit_event=emit_event,
            connect_timeout_s=self._config.connect_timeout_s,
        )

    async def _connect(self) -> None:
        self._transition(SessionPhase.CONNECTING, decision="open_socket")

        app_key = self._config.asr_app_key
        access_token = self._config.asr_access_token
        if not app_key or not access_token:
            raise ConfigurationMissing(self._config.missing_asr_keys())
        url = build_auth_url(
            self._config.asr_endpoint,
            app_key=app_key,
            access_token=access_token,
            resource_id=self._config.asr_resource_id,
            connect_id=self._connect_id,
        )

        self._transport = self._transport_factory(self._events.put)
        await self._transport.open(url)

        self._transition(SessionPhase.CONFIGURING, decision="socket_open")

    async def _configure(self) -> None:
        # Fire-and-forget: no server acknowledgement is awaited.
        await self._send_frame(
            encode_full_client_request(self._client_config.to_json_bytes())
        )
        self._transition(SessionPhase.STREAMING, decision="config_sent")

    async def _stream_audio(self, audio: bytes) -> None:
        """Pacer task. Reports its end through the event queue."""
        sent = 0
        try:
            async for chunk in paced_chunks(
                audio,
                self._client_config.audio,
                chunk_duration_ms=self._config.chunk_duration_ms,
                sleep=self._sleep,
            ):
                if self._phase.is_terminal:
                    return
                await self._send_frame(
                    encode_audio_only_request(chunk.data, last=chunk.is_last)
                )
                sent += 1
        except TranscriptionError as e:
            await self._events.put(AudioStreamFailed(error=e))
            return
        except Exception as e:  # pylint: disable=broad-exception-caught
            # Any pacer death must reach the event loop, which has no deadline yet.
            await self._events.put(AudioStreamFailed(
                error=StreamingError(f"audio pacer failed: {e!r}"),
            ))
            return

        await self._events.put(AudioStreamFinished(chunks_sent=sent))

    async def _send_frame(self, frame: bytes) -> None:
        await self._transport.send(frame)
        self._frames_sent += 1

    # ------------------------------------------------------------------
    # Event loop
    # ------------------------------------------------------------------

    def _remaining_response_time(self) -> float | None:
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - asyncio.get_running_loop().time())

    async def _event_loop(self) -> None:
        while not self._phase.is_terminal:
            try:
                event = await asyncio.wait_for(
                    self._events.get(),
                    timeout=self._remaining_response_time(),
                )
            except asyncio.TimeoutError as e:
                raise ResponseTimeout(self._config.response_timeout_s) from e

            self._handle_event(event)

    def _handle_event(self, event: SessionEvent) -> None:
        if isinstance(event, MessageReceived):
            self._on_message(event.data)

        elif isinstance(event, AudioStreamFinished):
            self._transition(
                SessionPhase.AWAITING_FINAL,
                decision="last_packet_sent",
                chunks_sent=event.chunks_sent,
            )
            self._deadline = (
                asyncio.get_running_loop().time() + self._config.response_timeout_s
            )

        elif isinstance(event, AudioStreamFailed):
            raise event.error

        elif isinstance(event, TransportErrored):
            if isinstance(event.error, TranscriptionError):
                raise event.error
            raise ConnectionLost(f"transport error: {event.error!r}")

        elif isinstance(event, TransportClosed):
            if self._phase is SessionPhase.AWAITING_FINAL and self._text:
                self._complete(decision="closed_with_text")
                return
            raise ConnectionLost(
                f"connection closed in {self._phase.value} without a final response",
                code=event.code,
            )

    def _on_message(self, data: bytes) -> None:
        frame = decode_frame(data)
        if frame.message_type is not MessageType.FULL_SERVER_RESPONSE:
            raise MalformedFrame(f"unexpected {frame.message_type.name} from server")

        response = parse_server_response(frame)
        self._responses += 1

        # Cumulative text: newest non-empty value replaces the old one.
        if response.text:
            self._text = response.text
        if response.utterances:
            self._utterances = response.utterances

        log_event({
            "event_type": "ASR_RESPONSE",
            "connect_id": self._connect_id,
            "sequence": response.sequence,
            "final": response.is_final,
            "chars": len(self._text),
        }, level="DEBUG")

        if response.is_final:
            self._complete(decision="final_response")

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _transition(self, new_phase: SessionPhase, *, decision: str, **fields: Any) -> None:
        old_phase = self._phase
        if new_phase not in _ALLOWED_TRANSITIONS[old_phase]:
            raise RuntimeError(f"illegal session transition {old_phase.value} -> {new_phase.value}")
        self._phase = new_phase

        log_event({
            "event_type": "ASR_PHASE",
            "connect_id": self._connect_id,
            "from": old_phase.value,
            "to": new_phase.value,
            "decision": decision,
            **fields,
        }, level="DEBUG")

    def _complete(self, *, decision: str) -> None:
        self._transition(SessionPhase.COMPLETED, decision=decision, chars=len(self._text))

    def _fail(self, error: TranscriptionError) -> None:
        if self._phase.is_terminal:
            return
        self._error = error
        self._transition(
            SessionPhase.FAILED,
            decision=error.reason,
            message=str(error),
        )

    async def _teardown(self) -> None:
        if not self._phase.is_terminal:
            self._fail(ConnectionLost("session aborted before reaching a terminal phase"))

        try:
            pacer = self._pacer
            self._pacer = None
            if pacer is not None and not pacer.done():
                pacer.cancel()
                try:
                    await pacer
                except asyncio.CancelledError:
                    pass
            elif pacer is not None and not pacer.cancelled() and pacer.exception() is not None:
                log_event({
                    "event_type": "ASR_PACER_ERROR",
                    "connect_id": self._connect_id,
                    "exception": repr(pacer.exception()),
                }, level="ERROR")
        finally:
            if self._transport is not None and self._close_count == 0:
                self._close_count += 1
                await self._transport.close()

        log_event({
            "event_type": "ASR_SESSION_END",
            "connect_id": self._connect_id,
            "phase": self._phase.value,
            "frames_sent": self._frames_sent,
            "responses": self._responses,
            "chars": len(self._text),
            "error": type(self._error).__name__ if self._error else None,
        })
