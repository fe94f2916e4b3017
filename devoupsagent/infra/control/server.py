"""Asyncio Unix socket server for local agent control."""

from __future__ import annotations

import asyncio
import logging
import os
from typing import TYPE_CHECKING

from devoupsagent.infra.control.methods import ControlMethods
from devoupsagent.infra.control.protocol import (
    INTERNAL_ERROR,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    ControlProtocolError,
    ControlRequest,
    ControlResponse,
    decode_line,
    encode_line,
)

if TYPE_CHECKING:
    from devoupsagent.context import AgentContext

logger = logging.getLogger(__name__)


class ControlServer:
    """Newline-delimited JSON-RPC 2.0 over a user-only Unix socket."""

    def __init__(self, ctx: AgentContext, socket_path: str) -> None:
        self._methods = ControlMethods(ctx)
        self._socket_path = socket_path
        self._server: asyncio.Server | None = None
        self._clients: set[asyncio.StreamWriter] = set()

    @property
    def socket_path(self) -> str:
        return self._socket_path

    @property
    def is_serving(self) -> bool:
        return self._server is not None

    async def start(self) -> None:
        if self._server is not None:
            return

        # Stale socket from a previous run
        try:
            os.unlink(self._socket_path)
        except FileNotFoundError:
            pass

        self._server = await asyncio.start_unix_server(
            self._handle_client,
            path=self._socket_path,
        )
        os.chmod(self._socket_path, 0o600)
        logger.info("Control socket listening on %s", self._socket_path)

    async def stop(self) -> None:
        """Stop accepting clients and remove the socket file. Idempotent."""
        server, self._server = self._server, None
        if server is None:
            return

        server.close()
        for writer in list(self._clients):
            writer.close()
        await server.wait_closed()
        try:
            os.unlink(self._socket_path)
        except FileNotFoundError:
            pass
        logger.info("Control socket closed")

    async def _respond(self, request: ControlRequest) -> ControlResponse:
        if not self._methods.has_method(request.method):
            return ControlResponse.failure(
                request.id, METHOD_NOT_FOUND, f"Method not found: {request.method}"
            )
        try:
            result = await self._methods.dispatch(request.method, request.params)
        except TypeError as e:
            return ControlResponse.failure(request.id, INVALID_REQUEST, str(e))
        except Exception as e:
            logger.exception("Error handling control method %s", request.method)
            return ControlResponse.failure(request.id, INTERNAL_ERROR, str(e))
        return ControlResponse(id=request.id, result=result)

    async def _handle_client(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> None:
        logger.debug("Control client connected")
        self._clients.add(writer)
        try:
            while line := await reader.readline():
                try:
                    msg = decode_line(line)
                except ControlProtocolError as e:
                    resp = ControlResponse.failure(None, PARSE_ERROR, str(e))
                else:
                    if not isinstance(msg, ControlRequest):
                        resp = ControlResponse.failure(msg.id, INVALID_REQUEST, "Invalid request")
                    elif msg.is_notification:
                        continue
                    else:
                        resp = await self._respond(msg)

                writer.write(encode_line(resp))
                await writer.drain()
        except ConnectionResetError:
            logger.debug("Control client reset the connection")
        except Exception:
            logger.exception("Error handling control client")
        finally:
            self._clients.discard(writer)
            writer.close()
            try:
                await writer.wait_closed()
            except (ConnectionResetError, BrokenPipeError):
                pass
            logger.debug("Control client disconnected")
