"""Asyncio Unix socket client for the agent control socket."""

from __future__ import annotations

import asyncio
import itertools
import logging
from typing import Any

from devoupsagent.infra.control.protocol import (
    ControlRequest,
    ControlResponse,
    decode_line,
    encode_line,
)

logger = logging.getLogger(__name__)


class ControlClient:
    def __init__(self, socket_path: str, timeout: float = 5.0) -> None:
        self._socket_path = socket_path
        self._timeout = timeout
        self._reader: asyncio.StreamReader | None = None
        self._writer: asyncio.StreamWriter | None = None
        self._ids = itertools.count(1)

    async def connect(self) -> None:
        self._reader, self._writer = await asyncio.wait_for(
            asyncio.open_unix_connection(self._socket_path), timeout=self._timeout
        )
        logger.debug("Connected to control socket %s", self._socket_path)

    async def close(self) -> None:
        writer, self._writer = self._writer, None
        self._reader = None
        if writer is not None:
            writer.close()
            try:
                await writer.wait_closed()
            except (ConnectionResetError, BrokenPipeError):
                pass

    async def call(self, method: str, **params: Any) -> Any:
        """Send one request and return its result.

        Raises RuntimeError on a JSON-RPC error and ConnectionError if the
        agent hangs up.
        """
        if self._writer is None or self._reader is None:
            await self.connect()
        assert self._reader is not None
        assert self._writer is not None

        request = ControlRequest(method=method, params=params, id=next(self._ids))
        self._writer.write(encode_line(request))
        await self._writer.drain()

        line = await asyncio.wait_for(self._reader.readline(), timeout=self._timeout)
        if not line:
            raise ConnectionError("Agent closed the control connection")

        msg = decode_line(line)
        if not isinstance(msg, ControlResponse):
            raise RuntimeError(f"Expected response, got {type(msg).__name__}")
        if msg.is_error:
            error = msg.error or {}
            raise RuntimeError(
                f"Control error {error.get('code', '?')}: {error.get('message', 'Unknown error')}"
            )
        return msg.result
