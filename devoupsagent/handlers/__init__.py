"""Backend message handlers.

Each handler is an async function with signature:

    async def handle(ctx: HandlerContext, message: Message, respond: Respond) -> None

The registry maps message types to handler functions and is the single
handler injected into the MessageDispatcher.
"""

from __future__ import annotations

from devoupsagent.handlers.registry import HandlerRegistry, build_default_registry

__all__ = ["HandlerRegistry", "build_default_registry"]
