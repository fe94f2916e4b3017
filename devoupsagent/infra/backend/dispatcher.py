"""Routes decoded backend messages to the injected handler."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from devoupsagent.models.message import Message

logger = logging.getLogger(__name__)

# Reply callback bound to the connection a message arrived on
Respond = Callable[[Message], Awaitable[bool]]
MessageHandler = Callable[[Message, Respond], Awaitable[None]]


class MessageDispatcher:
    """Seam between the connection manager and the handler set.

    Performs no business logic. The handler runs at most once per message
    and may call ``respond`` any number of times; its failures are logged
    and never reach the connection.
    """

    def __init__(self, handler: MessageHandler) -> None:
        self._handler = handler

    async def dispatch(self, message: Message, respond: Respond) -> None:
        try:
            await self._handler(message, respond)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Handler failed for %s message", message.type)
