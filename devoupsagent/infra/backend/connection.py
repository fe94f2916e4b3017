"""Backend connection lifecycle: connect, read, send, reconnect, disconnect."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Protocol
from urllib.parse import parse_qsl, quote, urlencode, urlsplit, urlunsplit

import websockets
from websockets.exceptions import ConnectionClosed
from websockets.protocol import State

from devoupsagent.config import AgentConfig
from devoupsagent.infra.backend.dispatcher import MessageDispatcher
from devoupsagent.infra.backend.heartbeat import HeartbeatScheduler
from devoupsagent.infra.backend.reconnect import ReconnectionScheduler
from devoupsagent.models.connection import ConnectionState, InvalidTransitionError
from devoupsagent.models.message import (
    Message,
    MessageDecodeError,
    decode_message,
    encode_message,
    make_heartbeat,
)

logger = logging.getLogger(__name__)


class Transport(Protocol):
    """The subset of a websockets client connection the manager relies on."""

    state: State
    close_code: int | None
    close_reason: str | None

    async def send(self, message: str) -> None: ...

    async def close(self) -> None: ...

    def __aiter__(self) -> AsyncIterator[str | bytes]: ...


ConnectFactory = Callable[[str], Awaitable[Transport]]


def build_connection_url(backend_url: str, token: str, hostname: str) -> str:
    """Append percent-encoded ``token`` and ``hostname`` query parameters."""
    parts = urlsplit(backend_url)
    query = [
        (k, v)
        for k, v in parse_qsl(parts.query, keep_blank_values=True)
        if k not in ("token", "hostname")
    ]
    query += [("token", token), ("hostname", hostname)]
    return urlunsplit(parts._replace(query=urlencode(query, quote_via=quote)))


async def open_websocket(url: str) -> Transport:
    return await websockets.connect(
        url,
        open_timeout=30,
        ping_interval=30,
        ping_timeout=10,
        close_timeout=10,
        compression=None,
        max_size=16 * 2**20,
    )


class ConnectionManager:
    """Owns the backend transport and the connection state machine.

    Transient failures (open errors, remote closes, transport errors) are
    logged and answered with a backoff reconnect; only ``disconnect()``
    stops the cycle, permanently.
    """

    def __init__(
        self,
        config: AgentConfig,
        dispatcher: MessageDispatcher,
        connect_factory: ConnectFactory | None = None,
    ) -> None:
        self._config = config
        self._dispatcher = dispatcher
        self._open = connect_factory or open_websocket
        self._state = ConnectionState.DISCONNECTED
        self._ws: Transport | None = None
        self._reader: asyncio.Task | None = None
        self._inflight: set[asyncio.Task] = set()
        self._should_reconnect = True
        self._failures = 0
        self.reconnect = ReconnectionScheduler(
            initial_delay=config.reconnect_delay_s,
            max_delay=config.reconnect_max_delay_s,
            reconnect=self.connect,
            should_reconnect=lambda: self._should_reconnect,
        )
        self.heartbeat = HeartbeatScheduler(
            interval=config.heartbeat_interval_s,
            build=lambda: make_heartbeat(config.hostname, config.server_id),
            send=self.send,
        )

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    @property
    def should_reconnect(self) -> bool:
        return self._should_reconnect

    def _transition(self, target: ConnectionState) -> None:
        if not self._state.can_transition_to(target):
            raise InvalidTransitionError(self._state, target)
        logger.debug("Connection state %s -> %s", self._state.value, target.value)
        self._state = target

    async def connect(self) -> None:
        """Open the backend connection; transient failures schedule a retry."""
        if self._state is not ConnectionState.DISCONNECTED:
            logger.debug("connect() ignored in state %s", self._state.value)
            return

        self._transition(ConnectionState.CONNECTING)
        target = self._config.redacted_backend_url
        url = build_connection_url(
            self._config.backend_url, self._config.token, self._config.hostname
        )
        logger.info("Connecting to backend %s as %s", target, self._config.hostname)

        try:
            ws = await self._open(url)
        except Exception as e:
            logger.error("Failed to connect to backend %s: %s", target, e)
            self._failures += 1
            self._on_closed(None)
            return

        if self._state.is_terminal:
            # disconnect() ran while the handshake was in flight
            await self._close_quietly(ws)
            return

        self._ws = ws
        self._transition(ConnectionState.CONNECTED)
        self._failures = 0
        self.reconnect.reset()
        self.heartbeat.start()
        self._reader = asyncio.get_running_loop().create_task(self._read_loop(ws))
        logger.info("Connected to backend %s", target)

    async def _read_loop(self, ws: Transport) -> None:
        try:
            async for frame in ws:
                self._on_frame(ws, frame)
        except ConnectionClosed as e:
            logger.warning("Backend connection lost: %s", e)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("Backend connection error: %s", e)
        finally:
            logger.info(
                "Backend connection closed (code=%s, reason=%r)",
                ws.close_code,
                ws.close_reason or "",
            )
            self._on_closed(ws)

    def _on_frame(self, ws: Transport, frame: str | bytes) -> None:
        try:
            message = decode_message(frame)
        except MessageDecodeError as e:
            logger.error("Dropping malformed frame from backend: %s", e)
            return

        logger.debug("Received %s message", message.type)

        async def respond(reply: Message) -> bool:
            return await self._send_on(ws, reply)

        task = asyncio.get_running_loop().create_task(
            self._dispatcher.dispatch(message, respond)
        )
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    def _on_closed(self, ws: Transport | None) -> None:
        """Single close path for open failures, remote closes and errors."""
        if ws is not None and ws is not self._ws:
            return
        self.heartbeat.stop()
        self._ws = None
        self._reader = None

        if self._state.is_terminal:
            return

        self._transition(ConnectionState.DISCONNECTED)
        if self._should_reconnect:
            delay = self.reconnect.schedule()
            logger.info("Reconnecting to backend in %gs", delay)

    async def send(self, message: Message) -> bool:
        """Best-effort send on the current connection; False if dropped."""
        return await self._send_on(self._ws, message)

    async def _send_on(self, ws: Transport | None, message: Message) -> bool:
        if (
            self._state is not ConnectionState.CONNECTED
            or ws is None
            or ws is not self._ws
            or ws.state is not State.OPEN
        ):
            logger.warning(
                "Dropping %s message: backend connection is not open (state=%s)",
                message.type,
                self._state.value,
            )
            return False

        try:
            await ws.send(encode_message(message))
        except ConnectionClosed as e:
            logger.warning("Connection closed while sending %s message: %s", message.type, e)
            return False
        except Exception as e:
            logger.error("Failed to send %s message: %s", message.type, e)
            return False
        return True

    async def disconnect(self) -> None:
        """Close the connection and disable reconnection for good. Idempotent."""
        if self._state.is_terminal:
            return

        self._should_reconnect = False
        self._transition(ConnectionState.SHUTTING_DOWN)
        self.reconnect.cancel()
        self.heartbeat.stop()

        for task in list(self._inflight):
            task.cancel()

        ws, self._ws = self._ws, None
        reader, self._reader = self._reader, None
        if ws is not None:
            await self._close_quietly(ws)
        if reader is not None and reader is not asyncio.current_task():
            await asyncio.gather(reader, return_exceptions=True)

        logger.info("Disconnected from backend")

    async def _close_quietly(self, ws: Transport) -> None:
        try:
            await ws.close()
        except Exception as e:
            logger.warning("Error closing backend connection: %s", e)

    def status(self) -> dict:
        return {
            "state": self._state.value,
            "backend_url": self._config.redacted_backend_url,
            "hostname": self._config.hostname,
            "server_id": self._config.server_id,
            "reconnect_delay": self.reconnect.current_delay,
            "consecutive_failures": self._failures,
            "inflight": len(self._inflight),
        }
