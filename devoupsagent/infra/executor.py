"""Bounded shell command execution that never raises to the caller."""

from __future__ import annotations

import asyncio
import logging
import os
import signal

from devoupsagent.config import DEFAULT_COMMAND_TIMEOUT_MS, DEFAULT_MAX_OUTPUT_BYTES
from devoupsagent.models.command import CommandResult

logger = logging.getLogger(__name__)

_READ_CHUNK = 64 * 1024


class OutputLimitExceeded(Exception):
    """Combined stdout/stderr grew past the configured limit."""


class _OutputCapture:
    """Accumulates stdout/stderr and enforces a combined byte limit.

    Buffers survive cancellation of the reader so partial output can be
    reported after a timeout.
    """

    def __init__(self, limit: int) -> None:
        self.limit = limit
        self.stdout = bytearray()
        self.stderr = bytearray()

    @property
    def total(self) -> int:
        return len(self.stdout) + len(self.stderr)

    async def _pump(self, stream: asyncio.StreamReader, buf: bytearray) -> None:
        while True:
            chunk = await stream.read(_READ_CHUNK)
            if not chunk:
                return
            room = self.limit - self.total
            buf.extend(chunk[: max(room, 0)])
            if len(chunk) > room:
                raise OutputLimitExceeded()

    async def run(self, proc: asyncio.subprocess.Process) -> None:
        """Drain both pipes, then wait for the process to exit."""
        assert proc.stdout is not None
        assert proc.stderr is not None
        pumps = [
            asyncio.ensure_future(self._pump(proc.stdout, self.stdout)),
            asyncio.ensure_future(self._pump(proc.stderr, self.stderr)),
        ]
        try:
            await asyncio.gather(*pumps)
        finally:
            for pump in pumps:
                pump.cancel()
        await proc.wait()

    def decoded(self) -> tuple[str, str]:
        return (
            self.stdout.decode(errors="replace"),
            self.stderr.decode(errors="replace"),
        )


def _kill_group(proc: asyncio.subprocess.Process) -> None:
    """SIGKILL the command's process group (the shell and its children)."""
    if proc.returncode is not None:
        return
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except (ProcessLookupError, PermissionError):
        try:
            proc.kill()
        except ProcessLookupError:
            pass


class CommandExecutor:
    """Runs shell commands with a timeout and an output cap."""

    def __init__(
        self,
        timeout: float = DEFAULT_COMMAND_TIMEOUT_MS / 1000,
        max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES,
    ) -> None:
        self.timeout = timeout
        self.max_output_bytes = max_output_bytes

    async def execute(
        self,
        command: str,
        *,
        timeout: float | None = None,
        max_output_bytes: int | None = None,
        cwd: str | None = None,
    ) -> CommandResult:
        """Run ``command`` through the shell and return its CommandResult.

        Failures (non-zero exit, timeout, output overflow, spawn error) come
        back as ``CommandResult(error=True)``. Cancelling the awaiting task
        kills the process and re-raises CancelledError.
        """
        timeout = self.timeout if timeout is None else timeout
        limit = self.max_output_bytes if max_output_bytes is None else max_output_bytes

        try:
            proc = await asyncio.create_subprocess_shell(
                command,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=cwd,
                start_new_session=True,
            )
        except Exception as e:
            logger.error("Failed to start command %r: %s", command, e)
            return CommandResult.failure(f"Failed to start command: {e}")

        logger.debug("Started command %r (pid=%d)", command, proc.pid)
        capture = _OutputCapture(limit)
        reason = ""

        try:
            await asyncio.wait_for(capture.run(proc), timeout=timeout)
        except asyncio.TimeoutError:
            reason = f"Command timed out after {timeout:g}s"
        except OutputLimitExceeded:
            reason = f"Command output exceeded {limit} bytes"
        except asyncio.CancelledError:
            _kill_group(proc)
            raise
        except Exception as e:
            logger.exception("Unexpected error while running command %r", command)
            reason = f"Command execution failed: {e}"

        if reason:
            _kill_group(proc)
            await proc.wait()
            logger.warning("%s: %r", reason, command)

        stdout, stderr = capture.decoded()
        if reason:
            return CommandResult.failure(reason, stdout, stderr, exit_code=proc.returncode)

        if proc.returncode != 0:
            return CommandResult.failure(
                f"Command exited with status {proc.returncode}",
                stdout,
                stderr,
                exit_code=proc.returncode,
            )

        return CommandResult(stdout=stdout, stderr=stderr, error=False, exit_code=0)
