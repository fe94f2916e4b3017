"""CLI handler for querying a running agent over its control socket."""

from __future__ import annotations

import asyncio
import json
import sys

import click

from devoupsagent.commands._helpers import get_config
from devoupsagent.infra.control.client import ControlClient


def _run(coro):
    return asyncio.run(coro)


@click.command("status")
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON")
@click.pass_context
def status_command(ctx, as_json: bool):
    """Show the running agent's connection status."""
    config = get_config(ctx)
    socket_path = config.control.resolved_socket_path

    async def _status():
        client = ControlClient(socket_path)
        try:
            return await client.call("agent.status")
        finally:
            await client.close()

    try:
        info = _run(_status())
    except (OSError, asyncio.TimeoutError):
        click.echo(f"Agent not running (no control socket at {socket_path})", err=True)
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(info, indent=2))
        return

    conn = info.get("connection", {})
    click.echo(f"Agent: running (pid={info.get('pid')}, version={info.get('version')})")
    click.echo(f"  Uptime: {info.get('uptime')}s")
    click.echo(f"  Hostname: {conn.get('hostname')}")
    click.echo(f"  Backend: {conn.get('backend_url')}")
    click.echo(f"  State: {conn.get('state')}")
    click.echo(f"  Next reconnect delay: {conn.get('reconnect_delay')}s")
    click.echo(f"  Consecutive failures: {conn.get('consecutive_failures')}")
    click.echo(f"  In-flight messages: {conn.get('inflight')}")
    click.echo(f"  Handlers: {', '.join(info.get('handlers', []))}")
