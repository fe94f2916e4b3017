"""Periodic liveness messages while the backend link is up."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from devoupsagent.models.message import Message

logger = logging.getLogger(__name__)


class HeartbeatScheduler:
    """Sends ``build()`` through ``send`` every ``interval`` seconds.

    Holds at most one timer task: ``start`` replaces a running one and
    ``stop`` cancels it synchronously.
    """

    def __init__(
        self,
        interval: float,
        build: Callable[[], Message],
        send: Callable[[Message], Awaitable[bool]],
    ) -> None:
        self.interval = interval
        self._build = build
        self._send = send
        self._task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        self.stop()
        self._task = asyncio.get_running_loop().create_task(self._heartbeat_loop())
        logger.debug("Heartbeat started (interval: %gs)", self.interval)

    def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        logger.debug("Heartbeat stopped")

    async def _heartbeat_loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self._send(self._build())
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Heartbeat send failed")
