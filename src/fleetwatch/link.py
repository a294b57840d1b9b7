"""WebSocket session management for the realtime telemetry channel.

:class:`RealtimeLink` owns one connection at a time. A supervisor task
connects, subscribes, pumps inbound frames to ``on_message`` and runs the
heartbeat probe; when the session ends for any reason other than
:meth:`RealtimeLink.close` it waits ``reconnect_delay`` and starts over.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from collections.abc import Awaitable, Callable, Mapping
from enum import StrEnum
from typing import Any, Protocol

import aiohttp

from fleetwatch.config import FleetwatchConfig
from fleetwatch.exceptions import FleetwatchProtocolError, FleetwatchServerError, FleetwatchTransportError
from fleetwatch.ingestion.messages import MessageType, decode_message, parse_server_error
from fleetwatch.models.alert import ViolationEvent

_logger = logging.getLogger(__name__)


class LinkState(StrEnum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    CLOSED = "closed"


class LinkConnection(Protocol):
    """Minimal text-frame connection used by :class:`RealtimeLink`."""

    @property
    def closed(self) -> bool: ...

    async def send_str(self, data: str) -> None: ...

    async def receive(self) -> str | bytes | None:
        """Next data frame, or ``None`` once the peer has closed."""
        ...

    async def close(self) -> None: ...


ConnectFactory = Callable[[str, Mapping[str, str]], Awaitable[LinkConnection]]

_TRANSPORT_ERRORS = (aiohttp.ClientError, ConnectionError, OSError, TimeoutError, FleetwatchTransportError)


class _AiohttpConnection:
    """Adapts :class:`aiohttp.ClientWebSocketResponse` to :class:`LinkConnection`."""

    def __init__(self, ws: aiohttp.ClientWebSocketResponse, endpoint: str) -> None:
        self._ws = ws
        self._endpoint = endpoint

    @property
    def closed(self) -> bool:
        return self._ws.closed

    async def send_str(self, data: str) -> None:
        await self._ws.send_str(data)

    async def receive(self) -> str | bytes | None:
        while True:
            msg = await self._ws.receive()
            if msg.type in (aiohttp.WSMsgType.TEXT, aiohttp.WSMsgType.BINARY):
                return msg.data
            if msg.type == aiohttp.WSMsgType.ERROR:
                raise FleetwatchTransportError(f"WebSocket error: {self._ws.exception()}", endpoint=self._endpoint)
            if msg.type in (aiohttp.WSMsgType.CLOSE, aiohttp.WSMsgType.CLOSING, aiohttp.WSMsgType.CLOSED):
                return None

    async def close(self) -> None:
        await self._ws.close()


class RealtimeLink:
    """Reconnecting realtime channel.

    Usage::

        async with RealtimeLink(config, on_message=handle) as link:
            await link.wait_connected()
            link.refresh()

    Parameters
    ----------
    config : FleetwatchConfig
        Endpoint, identity, channel list and timer settings.
    on_message : callable, optional
        Receives every decoded inbound message except ``error``.
    on_state_change : callable, optional
        Receives the new :class:`LinkState` on every transition.
    on_server_error : callable, optional
        Receives a :class:`FleetwatchServerError` for each ``error``
        message. The connection stays up.
    connect : callable, optional
        ``await connect(endpoint, params)`` returning a
        :class:`LinkConnection`. Defaults to ``aiohttp`` ``ws_connect``.
    session : aiohttp.ClientSession, optional
        Externally owned HTTP session for the default connector.
    """

    def __init__(
        self,
        config: FleetwatchConfig,
        *,
        on_message: Callable[[dict[str, Any]], None] | None = None,
        on_state_change: Callable[[LinkState], None] | None = None,
        on_server_error: Callable[[FleetwatchServerError], None] | None = None,
        connect: ConnectFactory | None = None,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._config = config
        self._on_message = on_message
        self._on_state_change = on_state_change
        self._on_server_error = on_server_error
        self._connect = connect or self._connect_aiohttp
        self._external_session = session is not None
        self._http_session = session

        self._state = LinkState.DISCONNECTED
        self._conn: LinkConnection | None = None
        self._supervisor: asyncio.Task[None] | None = None
        self._send_tasks: set[asyncio.Task[bool]] = set()
        self._pong = asyncio.Event()
        self._connected = asyncio.Event()
        self._sessions = 0
        self._closing = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> RealtimeLink:
        await self.open()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    @property
    def state(self) -> LinkState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is LinkState.CONNECTED

    async def open(self) -> None:
        """Start the connection supervisor. Returns without waiting for a connection."""
        if self._state is LinkState.CLOSED:
            raise FleetwatchTransportError("Link is closed", endpoint=self._config.endpoint)
        if self._supervisor is not None:
            return
        self._supervisor = asyncio.create_task(self._supervise(), name="fleetwatch-link")

    async def wait_connected(self, timeout: float | None = None) -> bool:
        """Wait until the link is connected; ``False`` on timeout."""
        try:
            await asyncio.wait_for(self._connected.wait(), timeout)
        except TimeoutError:
            return False
        return True

    async def close(self) -> None:
        """Stop reconnecting, close the socket and any owned HTTP session."""
        if self._state is LinkState.CLOSED:
            return
        self._closing = True

        supervisor = self._supervisor
        self._supervisor = None
        if supervisor is not None and supervisor is not asyncio.current_task():
            supervisor.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await supervisor

        for task in list(self._send_tasks):
            task.cancel()
        self._send_tasks.clear()

        await self._drop_connection()
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None

        self._connected.clear()
        self._state = LinkState.CLOSED
        _logger.info("Realtime link closed")
        self._notify_state(LinkState.CLOSED)

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    def refresh(self) -> bool:
        """Request a fresh bulk snapshot. Dropped unless connected."""
        return self._send_nowait({"type": "refresh", **self._identity()}, label="refresh")

    def send_alert(self, event: ViolationEvent) -> bool:
        """Push a violation to the server. Dropped unless connected."""
        return self._send_nowait({"type": "alert", "data": event.to_alert_payload()}, label="alert")

    def _identity(self) -> dict[str, Any]:
        return {"userId": self._config.user_id, "channels": list(self._config.channels)}

    def _send_nowait(self, payload: dict[str, Any], *, label: str) -> bool:
        if self._state is not LinkState.CONNECTED or self._conn is None:
            _logger.warning("Dropping outbound %s: link is %s", label, self._state)
            return False
        task = asyncio.create_task(self._send(self._conn, payload, label=label))
        self._send_tasks.add(task)
        task.add_done_callback(self._send_tasks.discard)
        return True

    async def _send(self, conn: LinkConnection, payload: dict[str, Any], *, label: str) -> bool:
        try:
            await conn.send_str(json.dumps(payload))
        except _TRANSPORT_ERRORS as exc:
            _logger.warning("Failed to send %s: %s", label, exc)
            return False
        _logger.debug("Sent %s", label)
        return True

    # ------------------------------------------------------------------
    # Supervisor
    # ------------------------------------------------------------------

    async def _supervise(self) -> None:
        attempt = 0
        while not self._closing:
            self._set_state(LinkState.CONNECTING)
            try:
                conn = await self._connect(self._config.endpoint, {"userId": self._config.user_id})
            except _TRANSPORT_ERRORS as exc:
                attempt += 1
                _logger.warning("Connect to %s failed: %s", self._config.endpoint, exc)
                await self._wait_before_reconnect(attempt)
                continue

            attempt = 0
            await self._run_session(conn)
            if self._closing:
                return
            attempt += 1
            await self._wait_before_reconnect(attempt)

    async def _wait_before_reconnect(self, attempt: int) -> None:
        self._set_state(LinkState.DISCONNECTED)
        delay = self._config.reconnect_delay_for(attempt)
        _logger.debug("Reconnecting in %.1fs (attempt %d)", delay, attempt)
        await asyncio.sleep(delay)

    async def _run_session(self, conn: LinkConnection) -> None:
        self._conn = conn
        self._pong.clear()
        is_reconnect = self._sessions > 0
        self._sessions += 1
        self._set_state(LinkState.CONNECTED)
        _logger.info("Realtime link connected to %s", self._config.endpoint)

        reader: asyncio.Task[None] | None = None
        heartbeat: asyncio.Task[None] | None = None
        try:
            await conn.send_str(json.dumps({"type": "subscribe", **self._identity()}))
            if is_reconnect:
                await conn.send_str(json.dumps({"type": "refresh", **self._identity()}))

            reader = asyncio.create_task(self._read_loop(conn))
            heartbeat = asyncio.create_task(self._heartbeat(conn))
            done, _ = await asyncio.wait({reader, heartbeat}, return_when=asyncio.FIRST_COMPLETED)
            for task in done:
                exc = task.exception()
                if exc is not None:
                    _logger.info("Realtime link lost: %s", exc)
        except _TRANSPORT_ERRORS as exc:
            _logger.info("Realtime link lost during subscribe: %s", exc)
        finally:
            for task in (reader, heartbeat):
                if task is not None and not task.done():
                    task.cancel()
            await asyncio.gather(*(t for t in (reader, heartbeat) if t is not None), return_exceptions=True)
            await self._drop_connection()
            if not self._closing:
                _logger.info("Realtime link disconnected")

    async def _drop_connection(self) -> None:
        conn = self._conn
        self._conn = None
        self._connected.clear()
        if conn is None or conn.closed:
            return
        try:
            await conn.close()
        except _TRANSPORT_ERRORS:
            _logger.debug("Error closing realtime connection", exc_info=True)

    async def _read_loop(self, conn: LinkConnection) -> None:
        while True:
            frame = await conn.receive()
            if frame is None:
                _logger.debug("Peer closed the realtime connection")
                return
            try:
                message = decode_message(frame)
            except FleetwatchProtocolError as exc:
                _logger.warning("Skipping undecodable frame: %s", exc)
                continue
            self._dispatch(message)

    def _dispatch(self, message: dict[str, Any]) -> None:
        msg_type = message.get("type")
        _logger.debug("Inbound message type=%s", msg_type)
        if msg_type == MessageType.PONG:
            self._pong.set()
        elif msg_type == MessageType.ERROR:
            error = parse_server_error(message)
            _logger.warning("Server reported error: %s", error)
            if self._on_server_error is not None:
                try:
                    self._on_server_error(error)
                except Exception:
                    _logger.warning("on_server_error callback failed", exc_info=True)
            return

        if self._on_message is not None:
            try:
                self._on_message(message)
            except Exception:
                _logger.warning("on_message callback failed for type=%s", msg_type, exc_info=True)

    async def _heartbeat(self, conn: LinkConnection) -> None:
        """Ping every interval; return when a pong does not come back in time."""
        while True:
            await asyncio.sleep(self._config.heartbeat_interval)
            self._pong.clear()
            await conn.send_str(json.dumps({"type": "ping"}))
            try:
                await asyncio.wait_for(self._pong.wait(), self._config.heartbeat_timeout)
            except TimeoutError:
                _logger.warning(
                    "No pong within %.1fs; dropping realtime connection",
                    self._config.heartbeat_timeout,
                )
                return

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def _set_state(self, state: LinkState) -> None:
        if self._closing or state is self._state:
            return
        _logger.debug("Link state %s -> %s", self._state, state)
        self._state = state
        if state is LinkState.CONNECTED:
            self._connected.set()
        else:
            self._connected.clear()
        self._notify_state(state)

    def _notify_state(self, state: LinkState) -> None:
        if self._on_state_change is None:
            return
        try:
            self._on_state_change(state)
        except Exception:
            _logger.warning("on_state_change callback failed", exc_info=True)

    async def _connect_aiohttp(self, endpoint: str, params: Mapping[str, str]) -> LinkConnection:
        if self._http_session is None:
            self._http_session = aiohttp.ClientSession()
        try:
            ws = await self._http_session.ws_connect(endpoint, params=dict(params))
        except aiohttp.ClientError as exc:
            raise FleetwatchTransportError(f"WebSocket connect failed: {exc}", endpoint=endpoint) from exc
        return _AiohttpConnection(ws, endpoint)
