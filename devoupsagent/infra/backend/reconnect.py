"""Exponential backoff reconnection scheduling."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


def next_delay(current: float, max_delay: float) -> float:
    """Delay to use after ``current`` has been spent: doubled, capped."""
    return min(current * 2, max_delay)


class ReconnectionScheduler:
    """Owns the backoff delay and a single one-shot retry timer.

    ``reconnect`` is started as a task when the timer fires, but only if
    ``should_reconnect()`` still holds at that moment.
    """

    def __init__(
        self,
        initial_delay: float,
        max_delay: float,
        reconnect: Callable[[], Awaitable[None]],
        should_reconnect: Callable[[], bool],
    ) -> None:
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self._reconnect = reconnect
        self._should_reconnect = should_reconnect
        self._delay = initial_delay
        self._handle: asyncio.TimerHandle | None = None
        self._task: asyncio.Task | None = None

    @property
    def current_delay(self) -> float:
        """Delay the next scheduled retry will use."""
        return self._delay

    @property
    def is_pending(self) -> bool:
        return self._handle is not None

    def schedule(self) -> float:
        """Arm the retry timer and return the delay it was armed with."""
        if self._handle is not None:
            self._handle.cancel()

        delay = self._delay
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(delay, self._fire)
        self._delay = next_delay(delay, self.max_delay)
        return delay

    def reset(self) -> None:
        self._delay = self.initial_delay

    def cancel(self) -> None:
        """Drop the pending timer and any retry it already started."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        task, self._task = self._task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    def _fire(self) -> None:
        self._handle = None
        if not self._should_reconnect():
            logger.debug("Reconnect timer fired after shutdown, ignoring")
            return
        self._task = asyncio.get_running_loop().create_task(self._reconnect())
