"""Control method table: JSON-RPC method names -> agent queries."""

from __future__ import annotations

import os
import time
from typing import TYPE_CHECKING, Any

from devoupsagent import __version__

if TYPE_CHECKING:
    from devoupsagent.context import AgentContext


class ControlMethods:
    """Read-only views of the running agent for local clients."""

    def __init__(self, ctx: AgentContext) -> None:
        self._ctx = ctx
        self._started_at = time.monotonic()
        self._methods: dict[str, Any] = {
            "agent.ping": self._ping,
            "agent.status": self._status,
        }

    def has_method(self, method: str) -> bool:
        return method in self._methods

    async def dispatch(self, method: str, params: dict) -> Any:
        return await self._methods[method](**params)

    async def _ping(self) -> dict:
        return {"pong": True}

    async def _status(self) -> dict:
        return {
            "version": __version__,
            "pid": os.getpid(),
            "uptime": round(time.monotonic() - self._started_at, 1),
            "connection": self._ctx.connection.status(),
            "handlers": self._ctx.handlers.message_types,
        }
