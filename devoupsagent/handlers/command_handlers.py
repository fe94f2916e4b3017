"""Handlers for command execution and liveness probes from the backend."""

from __future__ import annotations

import logging

from devoupsagent.handlers.context import HandlerContext
from devoupsagent.infra.backend.dispatcher import Respond
from devoupsagent.models.message import Message, now_ms

logger = logging.getLogger(__name__)


async def handle_ping(ctx: HandlerContext, message: Message, respond: Respond) -> None:
    payload = {"hostname": ctx.hostname, "timestamp": now_ms()}
    if request_id := message.get("requestId"):
        payload["requestId"] = request_id
    await respond(Message(type="pong", payload=payload))


async def handle_command(ctx: HandlerContext, message: Message, respond: Respond) -> None:
    """Run ``message.command`` on the host and reply with a command_result.

    Optional ``timeout`` is in milliseconds, like the rest of the wire format.
    """
    request_id = message.get("requestId")
    command = message.get("command")

    if not isinstance(command, str) or not command.strip():
        await respond(
            Message(
                type="error",
                payload={"requestId": request_id, "error": "No command provided"},
            )
        )
        return

    timeout_ms = message.get("timeout")
    timeout = None
    if (
        isinstance(timeout_ms, (int, float))
        and not isinstance(timeout_ms, bool)
        and timeout_ms > 0
    ):
        timeout = timeout_ms / 1000

    logger.info("Executing command for request %s: %s", request_id, command[:200])
    result = await ctx.executor.execute(command, timeout=timeout)
    if result.error:
        logger.warning("Command for request %s failed: %s", request_id, result.stderr[:200])

    await respond(
        Message(
            type="command_result",
            payload={"requestId": request_id, **result.to_dict()},
        )
    )
