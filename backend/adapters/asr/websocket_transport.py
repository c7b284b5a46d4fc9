"""
WebSocket transport for the streaming ASR protocol.

Core model:
- One transport == one socket == one transcription session. No reconnection;
  a dropped socket is terminal for the session that owns it.
- Binary mode only. A text message from the service is reported as an error.
- Authentication travels in URL query parameters (appkey, token,
  resource_id, connect_id), not headers.
- Received messages are NOT decoded here. The receive task posts typed
  events (MessageReceived / TransportErrored / TransportClosed) to the
  owning session through emit_event.

Design constraints:
- Transport must not decode frames or track session phase.
- Transport enforces the connect timeout and a per-send timeout.
- close() is idempotent and safe to call from any exit path.
"""

from __future__ import annotations

import asyncio
import urllib.parse
from typing import Any, Awaitable, Callable

from websockets.asyncio.client import connect as ws_connect
from websockets.exceptions import ConnectionClosed

from constants import CONNECT_TIMEOUT_S, SEND_TIMEOUT_S, WS_MAX_MESSAGE_BYTES
from protocol.errors import ConnectError, MalformedFrame, SendError
from session.events import (
    MessageReceived,
    TransportClosed,
    TransportErrored,
    TransportEvent,
)

EventSink = Callable[[TransportEvent], Awaitable[None]]
ConnectFn = Callable[..., Awaitable[Any]]


def build_auth_url(
    endpoint: str,
    *,
    app_key: str,
    access_token: str,
    resource_id: str,
    connect_id: str,
) -> str:
    """Append the authentication query parameters to `endpoint`, keeping any existing query."""
    parts = urllib.parse.urlsplit(endpoint)
    query = urllib.parse.parse_qsl(parts.query, keep_blank_values=True)
    query.extend([
        ("appkey", app_key),
        ("token", access_token),
        ("resource_id", resource_id),
        ("connect_id", connect_id),
    ])
    return urllib.parse.urlunsplit(parts._replace(query=urllib.parse.urlencode(query)))


class WebSocketTransport:
    """
    Single-use binary WebSocket driver.

    Public interface:
    - open(url): connect (bounded by connect_timeout_s), start receive task
    - send(data): write one binary message (bounded by send_timeout_s)
    - close(): release socket and receive task, idempotent

    Events posted to emit_event:
    - MessageReceived(data) per binary message
    - TransportErrored(error) on abnormal termination or a text message
    - TransportClosed(code, reason) on clean remote close
    """

    def __init__(
        self,
        *,
        emit_event: EventSink,
        connect: ConnectFn = ws_connect,
        connect_timeout_s: float = CONNECT_TIMEOUT_S,
        send_timeout_s: float = SEND_TIMEOUT_S,
    ) -> None:
        self._emit = emit_event
        self._connect = connect
        self._connect_timeout_s = connect_timeout_s
        self._send_timeout_s = send_timeout_s

        self._ws: Any = None
        self._recv_task: asyncio.Task[None] | None = None
        self._closed: bool = False

    @property
    def is_open(self) -> bool:
        return self._ws is not None and not self._closed

    # -------------------------------------------------------------------------
    # Connection management
    # -------------------------------------------------------------------------

    async def open(self, url: str) -> None:
        """
        Establish the socket.

        Raises:
            ConnectError(timed_out=True) if the connect timeout elapses first.
            ConnectError on any other failure, or if already opened/closed.
        """
        if self._ws is not None or self._closed:
            raise ConnectError("transport is single-use and was already opened")

        try:
            ws = await asyncio.wait_for(
                self._connect(
                    url,
                    max_size=WS_MAX_MESSAGE_BYTES,
                    ping_interval=None,
                    open_timeout=None,
                ),
                timeout=self._connect_timeout_s,
            )
        except asyncio.TimeoutError as e:
            raise ConnectError(
                f"connect timed out after {self._connect_timeout_s:.1f}s",
                timed_out=True,
            ) from e
        except Exception as e:  # pylint: disable=broad-exception-caught
            raise ConnectError(f"connect failed: {e!r}") from e

        self._ws = ws
        # Start receiver loop once per connection.
        self._recv_task = asyncio.create_task(self._recv_loop(ws))

    async def send(self, data: bytes) -> None:
        """
        Send one binary message.

        Raises:
            SendError if not open, closed, erroring, or stalled past send_timeout_s.
        """
        ws = self._ws
        if ws is None or self._closed:
            raise SendError("transport is not open")

        try:
            await asyncio.wait_for(ws.send(data), timeout=self._send_timeout_s)
        except asyncio.TimeoutError as e:
            raise SendError(f"send timed out after {self._send_timeout_s:.1f}s") from e
        except ConnectionClosed as e:
            raise SendError(f"socket closed: {e}") from e
        except Exception as e:  # pylint: disable=broad-exception-caught
            raise SendError(f"send failed: {e!r}") from e

    async def close(self) -> None:
        """Release the socket and receive task. Safe to call repeatedly."""
        if self._closed:
            return
        self._closed = True

        rt = self._recv_task
        self._recv_task = None
        if rt is not None and not rt.done():
            rt.cancel()
            try:
                await rt
            except asyncio.CancelledError:
                pass

        ws = self._ws
        self._ws = None
        if ws is not None:
            try:
                await ws.close()
            except Exception:  # pylint: disable=broad-exception-caught
                # Close best-effort; the session is already terminal.
                pass

    # -------------------------------------------------------------------------
    # Background loop
    # -------------------------------------------------------------------------

    async def _recv_loop(self, ws: Any) -> None:
        """Forward every received message to the session as a typed event."""
        try:
            async for raw in ws:
                if isinstance(raw, str):
                    await self._emit(TransportErrored(
                        error=MalformedFrame("text message received; binary frames required"),
                    ))
                    return
                await self._emit(MessageReceived(data=bytes(raw)))
        except asyncio.CancelledError:
            return
        except Exception as e:  # pylint: disable=broad-exception-caught
            # ConnectionClosedError (abnormal close) lands here too.
            await self._emit(TransportErrored(error=e))
            return

        await self._emit(TransportClosed(
            code=getattr(ws, "close_code", None),
            reason=getattr(ws, "close_reason", None) or "",
        ))
