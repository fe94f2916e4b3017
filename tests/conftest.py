"""Shared fixtures: an in-memory stand-in for the backend WebSocket."""

from __future__ import annotations

import asyncio
import json

import pytest
from websockets.exceptions import ConnectionClosedOK
from websockets.protocol import State

from devoupsagent.config import AgentConfig, ControlConfig

_CLOSED = object()


class FakeTransport:
    """Mimics the parts of a websockets ClientConnection the agent uses."""

    def __init__(self) -> None:
        self.state = State.OPEN
        self.sent: list[str] = []
        self.close_calls = 0
        self.close_code: int | None = None
        self.close_reason: str | None = None
        self._frames: asyncio.Queue = asyncio.Queue()

    @property
    def sent_messages(self) -> list[dict]:
        return [json.loads(s) for s in self.sent]

    def sent_of_type(self, msg_type: str) -> list[dict]:
        return [m for m in self.sent_messages if m.get("type") == msg_type]

    def feed(self, frame: str | bytes | dict) -> None:
        if isinstance(frame, dict):
            frame = json.dumps(frame)
        self._frames.put_nowait(frame)

    def remote_close(self, code: int = 1001, reason: str = "going away") -> None:
        self._closed(code, reason)

    def fail(self, exc: BaseException) -> None:
        self._frames.put_nowait(exc)

    def _closed(self, code: int, reason: str) -> None:
        if self.state is State.CLOSED:
            return
        self.state = State.CLOSED
        self.close_code = code
        self.close_reason = reason
        self._frames.put_nowait(_CLOSED)

    async def send(self, message: str) -> None:
        if self.state is not State.OPEN:
            raise ConnectionClosedOK(None, None)
        self.sent.append(message)

    async def close(self) -> None:
        self.close_calls += 1
        self._closed(1000, "")

    def __aiter__(self):
        return self

    async def __anext__(self):
        item = await self._frames.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        if isinstance(item, BaseException):
            self.state = State.CLOSED
            self.close_code = 1006
            raise item
        return item


class FakeConnector:
    """Connect factory handing out FakeTransports or raising queued errors."""

    def __init__(self) -> None:
        self.outcomes: list[FakeTransport | BaseException] = []
        self.urls: list[str] = []
        self.transports: list[FakeTransport] = []
        self.gate: asyncio.Event | None = None

    def fail_next(self, count: int = 1) -> None:
        for _ in range(count):
            self.outcomes.append(ConnectionRefusedError("connection refused"))

    @property
    def last(self) -> FakeTransport:
        return self.transports[-1]

    async def __call__(self, url: str) -> FakeTransport:
        self.urls.append(url)
        if self.gate is not None:
            await self.gate.wait()
        outcome = self.outcomes.pop(0) if self.outcomes else FakeTransport()
        if isinstance(outcome, BaseException):
            raise outcome
        self.transports.append(outcome)
        return outcome


@pytest.fixture
def connector():
    return FakeConnector()


@pytest.fixture
def agent_config():
    return AgentConfig(
        backend_url="ws://backend.test/agent",
        token="tok",
        hostname="host-1",
        server_id="srv-1",
        heartbeat_interval=1000,
        reconnect_delay=10,
        reconnect_max_delay=40,
        control=ControlConfig(enabled=False),
    )


@pytest.fixture
def wait_until():
    async def _wait_until(predicate, timeout: float = 2.0) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                raise AssertionError("condition not met in time")
            await asyncio.sleep(0.005)

    return _wait_until
