"""Click CLI definitions - main entry point."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click

from devoupsagent.commands.config_cmd import config_group
from devoupsagent.commands.exec_cmd import exec_command
from devoupsagent.commands.run_cmd import run_command
from devoupsagent.commands.status_cmd import status_command


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Config file (default: $AGENT_CONFIG or ~/.config/devoupsagent/config.toml)",
)
@click.pass_context
def cli(ctx, debug: bool, config_path: Path | None) -> None:
    """devoupsagent - on-host agent for the DevOUPS backend."""
    level = logging.DEBUG if debug else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = config_path


cli.add_command(run_command, "run")
cli.add_command(status_command, "status")
cli.add_command(exec_command, "exec")
cli.add_command(config_group, "config")


if __name__ == "__main__":
    cli()
