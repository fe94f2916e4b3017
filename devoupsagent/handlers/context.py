"""Shared dependencies handed to every message handler."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from devoupsagent.infra.executor import CommandExecutor


@dataclass
class HandlerContext:
    executor: CommandExecutor
    hostname: str = ""
