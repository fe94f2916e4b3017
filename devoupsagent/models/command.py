"""Command execution result model."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class CommandResult:
    """Outcome of running a host command.

    ``error`` is the tag: False for a clean zero exit, True for anything
    else (non-zero exit, timeout, output overflow, spawn failure).
    """

    stdout: str = ""
    stderr: str = ""
    error: bool = False
    exit_code: int | None = None

    @property
    def ok(self) -> bool:
        return not self.error

    @classmethod
    def failure(
        cls,
        reason: str,
        stdout: str = "",
        stderr: str = "",
        exit_code: int | None = None,
    ) -> CommandResult:
        """Build a failed result, folding ``reason`` into stderr if it is empty."""
        return cls(
            stdout=stdout,
            stderr=stderr or reason,
            error=True,
            exit_code=exit_code,
        )

    def to_dict(self) -> dict:
        return {
            "stdout": self.stdout,
            "stderr": self.stderr,
            "error": self.error,
            "exitCode": self.exit_code,
        }
