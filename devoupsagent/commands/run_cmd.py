"""CLI handler for running the agent in the foreground."""

from __future__ import annotations

import asyncio
import logging
import signal
import sys

import click

from devoupsagent.commands._helpers import apply_log_level, get_config
from devoupsagent.config import AgentConfig, ConfigError
from devoupsagent.context import AgentContext
from devoupsagent.infra.backend.connection import ConnectFactory

logger = logging.getLogger(__name__)

_STOP_SIGNALS = (signal.SIGTERM, signal.SIGINT)


def _log_loop_exception(loop: asyncio.AbstractEventLoop, context: dict) -> None:
    """Unhandled errors in background tasks are logged, never fatal."""
    logger.error(
        "Unhandled error in background task: %s",
        context.get("message", "unknown"),
        exc_info=context.get("exception"),
    )


async def run_agent(config: AgentConfig, connect_factory: ConnectFactory | None = None) -> int:
    """Run until SIGTERM/SIGINT, then shut down. Returns the process exit code."""
    loop = asyncio.get_running_loop()
    loop.set_exception_handler(_log_loop_exception)

    ctx = AgentContext(config, connect_factory=connect_factory)
    stop_event = asyncio.Event()
    received: list[str] = []

    def _handle_signal(sig: signal.Signals) -> None:
        logger.info("Received %s, shutting down...", sig.name)
        received.append(sig.name)
        stop_event.set()

    for sig in _STOP_SIGNALS:
        loop.add_signal_handler(sig, _handle_signal, sig)

    exit_code = 0
    reason = "stop requested"
    # A signal must win over a backend handshake that is still in flight
    start_task = loop.create_task(ctx.start())
    stop_task = loop.create_task(stop_event.wait())
    try:
        done, _ = await asyncio.wait(
            {start_task, stop_task}, return_when=asyncio.FIRST_COMPLETED
        )
        if start_task in done:
            start_task.result()
            await stop_task
        else:
            logger.info("Stop requested before startup finished")
            start_task.cancel()
            await asyncio.gather(start_task, return_exceptions=True)
        if received:
            reason = received[0]
    except Exception:
        logger.exception("Fatal error, shutting down")
        exit_code = 1
        reason = "fatal error"
    finally:
        for task in (start_task, stop_task):
            if not task.done():
                task.cancel()
        for sig in _STOP_SIGNALS:
            loop.remove_signal_handler(sig)
        if not await ctx.shutdown(reason):
            exit_code = 1

    return exit_code


@click.command("run")
@click.pass_context
def run_command(ctx):
    """Connect to the backend and serve commands until SIGTERM/SIGINT."""
    config = get_config(ctx)
    try:
        config.validate()
    except ConfigError as e:
        raise click.ClickException(str(e)) from e

    apply_log_level(ctx, config)
    sys.exit(asyncio.run(run_agent(config)))
