"""
Main MCP server implementation.

Coordinates the capability registry, session manager, telemetry, request
dispatcher and HTTP transport behind one object.
"""

import asyncio
import signal
import sys
from typing import Any, List, Optional, Union

import structlog

from .capabilities import CapabilityRegistry
from .config.settings import Config
from .protocol.handlers import ConnFactory, DispatchResult, RequestDispatcher
from .protocol.session import SessionManager
from .protocol.telemetry import Telemetry
from .protocol.transport import HttpTransport

logger = structlog.get_logger(__name__)


class MCPServer:
    """
    MCP server for one capability registry.

    Each instance owns its own session table, so several servers can run
    side by side in one process.
    """

    def __init__(
        self,
        registry: CapabilityRegistry,
        config: Optional[Config] = None,
        telemetry: Optional[Telemetry] = None,
        conn_factory: Optional[ConnFactory] = None,
    ):
        """
        Initialize the MCP server.

        Args:
            registry: Capabilities to serve
            config: Server configuration, defaults to ``Config()``
            telemetry: Event bus for lifecycle events
            conn_factory: ``conn_factory(session_id, raw_request) -> Conn``
                hook used to populate per-request connection data
        """
        self.config = config or Config()
        self.registry = registry
        self.telemetry = telemetry or Telemetry()
        self.sessions = SessionManager()
        self._running = False
        self._shutdown_event: Optional[asyncio.Event] = None
        self._signals: List[int] = []

        self.dispatcher = RequestDispatcher(
            registry=registry,
            sessions=self.sessions,
            telemetry=self.telemetry,
            server_info=self.config.server_info.model_dump(),
            protocol_version=self.config.server.protocol_version,
            conn_factory=conn_factory,
        )
        self.transport = HttpTransport(
            self.dispatcher,
            host=self.config.http.host,
            port=self.config.http.port,
            path=self.config.http.path,
            max_body_bytes=self.config.http.max_body_bytes,
        )

    async def handle(
        self, body: Union[bytes, str], session_id: Optional[str] = None, raw: Any = None
    ) -> DispatchResult:
        """Dispatch one request body without going through HTTP."""
        return await self.dispatcher.handle(body, session_id=session_id, raw=raw)

    async def start(self) -> None:
        """Start the MCP server."""
        if self._running:
            return

        logger.info(
            "Starting MCP server",
            name=self.config.server_info.name,
            tools=len(self.registry.tools),
            prompts=len(self.registry.prompts),
            resources=len(self.registry.resources),
        )
        await self.transport.start()
        self._running = True
        self._shutdown_event = asyncio.Event()

    async def stop(self) -> None:
        """Stop the MCP server."""
        if not self._running:
            return

        logger.info("Stopping MCP server")
        self._running = False
        if self._shutdown_event is not None:
            self._shutdown_event.set()
        await self.transport.stop()
        logger.info("MCP server stopped")

    async def run_http(self) -> None:
        """
        Serve over HTTP until stopped, signalled or cancelled.
        """
        try:
            await self.start()
            self._setup_signal_handlers()

            try:
                await self._shutdown_event.wait()
            except asyncio.CancelledError:
                logger.info("Server operation cancelled")
                raise

        except Exception as e:
            logger.error("Server error", error=str(e), exc_info=True)
            raise
        finally:
            self._remove_signal_handlers()
            await self.stop()

    def _setup_signal_handlers(self) -> None:
        """Set up signal handlers for graceful shutdown."""
        if sys.platform == "win32":
            return

        loop = asyncio.get_running_loop()

        def signal_handler(signum: int) -> None:
            logger.info("Received signal, initiating shutdown", signal=signum)
            self.request_shutdown()

        for signum in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(signum, signal_handler, signum)
            self._signals.append(signum)

    def _remove_signal_handlers(self) -> None:
        if not self._signals:
            return
        loop = asyncio.get_running_loop()
        for signum in self._signals:
            loop.remove_signal_handler(signum)
        self._signals.clear()

    def request_shutdown(self) -> None:
        """Ask a running ``run_http`` to stop; it awaits the shutdown itself."""
        if self._shutdown_event is not None:
            self._shutdown_event.set()

    @property
    def running(self) -> bool:
        """Check if server is running."""
        return self._running
