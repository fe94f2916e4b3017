"""Handler registry: maps backend message types to async handler functions."""

from __future__ import annotations

import logging
from collections.abc import Callable, Coroutine
from typing import Any

from devoupsagent.handlers.context import HandlerContext
from devoupsagent.infra.backend.dispatcher import Respond
from devoupsagent.models.message import Message

logger = logging.getLogger(__name__)

Handler = Callable[[HandlerContext, Message, Respond], Coroutine[Any, Any, None]]


class HandlerRegistry:
    """Dispatch table from message type to handler."""

    def __init__(self, ctx: HandlerContext) -> None:
        self._ctx = ctx
        self._handlers: dict[str, Handler] = {}

    def register(self, msg_type: str, handler: Handler) -> None:
        self._handlers[msg_type] = handler

    @property
    def message_types(self) -> list[str]:
        return sorted(self._handlers)

    async def handle(self, message: Message, respond: Respond) -> None:
        handler = self._handlers.get(message.type)
        if handler is None:
            logger.warning("Unknown message type: %s", message.type)
            await respond(
                Message(
                    type="error",
                    payload={
                        "requestId": message.get("requestId"),
                        "error": f"Unknown message type: {message.type}",
                    },
                )
            )
            return
        await handler(self._ctx, message, respond)


def build_default_registry(ctx: HandlerContext) -> HandlerRegistry:
    """Registry with the built-in ping and command handlers."""
    from devoupsagent.handlers import command_handlers

    registry = HandlerRegistry(ctx)
    registry.register("ping", command_handlers.handle_ping)
    registry.register("command", command_handlers.handle_command)
    return registry
