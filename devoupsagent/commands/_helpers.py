"""CLI helpers shared by command groups."""

from __future__ import annotations

import logging

import click

from devoupsagent.config import AgentConfig, ConfigError, load_config


def get_config(ctx: click.Context) -> AgentConfig:
    """Load config from the path given to the top-level --config option.

    Config errors become ClickException (reported once, exit status 1).
    """
    obj = ctx.find_root().obj or {}
    try:
        return load_config(obj.get("config_path"))
    except ConfigError as e:
        raise click.ClickException(str(e)) from e


def apply_log_level(ctx: click.Context, config: AgentConfig) -> None:
    """Use the configured level unless --debug already forced DEBUG."""
    obj = ctx.find_root().obj or {}
    if obj.get("debug"):
        return
    level = logging.getLevelName(config.log_level.upper())
    if not isinstance(level, int):
        click.echo(f"Unknown log level {config.log_level!r}, using INFO", err=True)
        level = logging.INFO
    logging.getLogger().setLevel(level)
