"""CLI handler for running one command through the agent's executor."""

from __future__ import annotations

import asyncio
import json
import sys

import click

from devoupsagent.commands._helpers import get_config
from devoupsagent.infra.executor import CommandExecutor


@click.command("exec")
@click.argument("command")
@click.option("--timeout", "-t", type=int, default=None, help="Timeout in ms (default: from config)")
@click.pass_context
def exec_command(ctx, command: str, timeout: int | None):
    """Run COMMAND with the agent's limits and print the JSON result."""
    config = get_config(ctx)
    executor = CommandExecutor(
        timeout=config.executor.timeout,
        max_output_bytes=config.executor.max_output_bytes,
    )
    result = asyncio.run(
        executor.execute(command, timeout=timeout / 1000 if timeout else None)
    )
    click.echo(json.dumps(result.to_dict(), indent=2))
    if result.error:
        sys.exit(1)
