"""CLI handlers for config commands."""

from __future__ import annotations

import json
import tomllib

import click
import tomli_w

from devoupsagent.commands._helpers import get_config
from devoupsagent.config import init_config, resolve_config_path


@click.group("config")
def config_group():
    """Manage configuration."""
    pass


@config_group.command("init")
@click.option("--force", is_flag=True, help="Overwrite an existing config file")
@click.pass_context
def config_init(ctx, force: bool):
    """Create default configuration file."""
    path = resolve_config_path(ctx.find_root().obj.get("config_path"))
    if path.exists() and not force:
        click.echo(f"Config already exists at {path} (use --force to overwrite)", err=True)
        return
    path = init_config(path)
    click.echo(f"Configuration created at: {path}")


@config_group.command("show")
@click.pass_context
def config_show(ctx):
    """Show current configuration (environment overlay applied)."""
    config = get_config(ctx)
    token = "configured" if config.token else "not set"
    click.echo(f"Config file: {config.config_path}")
    click.echo(f"  Backend URL: {config.redacted_backend_url or '(not set)'}")
    click.echo(f"  Token: {token}")
    click.echo(f"  Hostname: {config.hostname or '(not set)'}")
    click.echo(f"  Server id: {config.server_id or '(none)'}")
    click.echo(f"  Heartbeat interval: {config.heartbeat_interval}ms")
    click.echo(
        f"  Reconnect delay: {config.reconnect_delay}ms (max {config.reconnect_max_delay}ms)"
    )
    click.echo(
        f"  Command limits: {config.executor.timeout_ms}ms, "
        f"{config.executor.max_output_bytes} bytes"
    )
    control = "enabled" if config.control.enabled else "disabled"
    click.echo(f"  Control socket: {control} ({config.control.resolved_socket_path})")
    click.echo(f"  Log level: {config.log_level}")


@config_group.command("set")
@click.argument("key")
@click.argument("value")
@click.pass_context
def config_set(ctx, key: str, value: str):
    """Set a configuration value.

    Modifies the TOML config file. Key uses dot notation, e.g.:
    backend.url, timing.heartbeat_interval, control.enabled
    """
    path = resolve_config_path(ctx.find_root().obj.get("config_path"))
    if not path.exists():
        click.echo("No config file found. Run 'devoupsagent config init' first.", err=True)
        return

    with open(path, "rb") as f:
        data = tomllib.load(f)

    parts = key.split(".")
    target = data
    for part in parts[:-1]:
        target = target.setdefault(part, {})

    final_key = parts[-1]
    if value.lower() in ("true", "false"):
        target[final_key] = value.lower() == "true"
    elif value.isdigit():
        target[final_key] = int(value)
    elif value.startswith("[") or value.startswith("{"):
        try:
            target[final_key] = json.loads(value)
        except json.JSONDecodeError:
            target[final_key] = value
    else:
        target[final_key] = value

    with open(path, "wb") as f:
        tomli_w.dump(data, f)

    shown = "***" if final_key == "token" else value
    click.echo(f"Set {key} = {shown}")
