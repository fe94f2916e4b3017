"""AgentContext: wires config, executor, handlers, backend link and control socket."""

from __future__ import annotations

import logging

from devoupsagent.config import AgentConfig
from devoupsagent.handlers.context import HandlerContext
from devoupsagent.handlers.registry import HandlerRegistry, build_default_registry
from devoupsagent.infra.backend.connection import ConnectFactory, ConnectionManager
from devoupsagent.infra.backend.dispatcher import MessageDispatcher
from devoupsagent.infra.control.server import ControlServer
from devoupsagent.infra.executor import CommandExecutor

logger = logging.getLogger(__name__)


class AgentContext:
    """Central wiring for one agent process.

    ``start()`` brings up the control socket and the backend connection;
    ``shutdown()`` tears both down exactly once and reports whether every
    collaborator closed cleanly.
    """

    def __init__(
        self,
        config: AgentConfig,
        connect_factory: ConnectFactory | None = None,
        handlers: HandlerRegistry | None = None,
    ) -> None:
        self.config = config
        self.executor = CommandExecutor(
            timeout=config.executor.timeout,
            max_output_bytes=config.executor.max_output_bytes,
        )
        self.handlers = handlers or build_default_registry(
            HandlerContext(executor=self.executor, hostname=config.hostname)
        )
        self.dispatcher = MessageDispatcher(self.handlers.handle)
        self.connection = ConnectionManager(
            config, self.dispatcher, connect_factory=connect_factory
        )
        self.control_server: ControlServer | None = None
        if config.control.enabled:
            self.control_server = ControlServer(self, config.control.resolved_socket_path)
        self._shutdown_started = False

    @property
    def is_shutting_down(self) -> bool:
        return self._shutdown_started

    async def start(self) -> None:
        logger.info(
            "Starting agent %s (backend: %s)",
            self.config.hostname,
            self.config.redacted_backend_url,
        )
        if self.control_server is not None:
            await self.control_server.start()
        await self.connection.connect()

    async def shutdown(self, reason: str = "shutdown") -> bool:
        """Close the backend link and the control socket. Idempotent.

        A failing step is logged and the remaining steps still run.
        Returns False if any step failed.
        """
        if self._shutdown_started:
            return True
        self._shutdown_started = True
        logger.info("Shutting down agent (%s)", reason)

        ok = True
        try:
            await self.connection.disconnect()
        except Exception:
            logger.exception("Error disconnecting from backend")
            ok = False

        if self.control_server is not None:
            try:
                await self.control_server.stop()
            except Exception:
                logger.exception("Error closing control socket")
                ok = False

        logger.info("Agent stopped")
        return ok
