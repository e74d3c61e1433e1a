"""
Transport layer for MCP protocol communication.

Implements the HTTP transport: JSON-RPC bodies are POSTed to a single
endpoint and answered synchronously. Streaming (SSE) is not offered, so
GET on the endpoint is refused.
"""

import asyncio
from typing import Dict, Optional

import structlog
from aiohttp import web

from .handlers import SESSION_HEADER, RequestDispatcher

logger = structlog.get_logger(__name__)

MAX_BODY_BYTES = 1_000_000

RESPONSE_HEADERS = {
    "cache-control": "no-cache",
    "connection": "keep-alive",
    "content-type": "application/json; charset=utf-8",
}


class TransportError(Exception):
    """Base exception for transport errors."""

    pass


class HttpTransport:
    """
    HTTP transport for MCP communication.

    Wraps a ``RequestDispatcher`` in an ``aiohttp`` application. The
    ``app`` attribute can be served by any aiohttp runner, including the
    test client.
    """

    def __init__(
        self,
        dispatcher: RequestDispatcher,
        host: str = "127.0.0.1",
        port: int = 4000,
        path: str = "/",
        max_body_bytes: int = MAX_BODY_BYTES,
    ):
        self.dispatcher = dispatcher
        self.host = host
        self.port = port
        self.path = path
        self.max_body_bytes = max_body_bytes

        self.app = web.Application(client_max_size=max_body_bytes)
        self.app.router.add_post(path, self._handle_post)
        self.app.router.add_get(path, self._handle_get)

        self._runner: Optional[web.AppRunner] = None

    @property
    def running(self) -> bool:
        return self._runner is not None

    async def start(self) -> None:
        """Bind the listening socket and start serving."""
        if self._runner is not None:
            raise TransportError("Transport is already running")

        runner = web.AppRunner(self.app, access_log=None)
        await runner.setup()
        site = web.TCPSite(runner, self.host, self.port)
        try:
            await site.start()
        except OSError as e:
            await runner.cleanup()
            raise TransportError(f"Cannot listen on {self.host}:{self.port}: {e}") from e

        self._runner = runner
        logger.info("HTTP transport started", host=self.host, port=self.port, path=self.path)

    async def stop(self) -> None:
        """Stop serving and release the socket."""
        if self._runner is None:
            return
        await self._runner.cleanup()
        self._runner = None
        logger.info("HTTP transport stopped")

    async def serve_forever(self) -> None:
        """Serve until the surrounding task is cancelled."""
        await self.start()
        try:
            await asyncio.Event().wait()
        finally:
            await self.stop()

    async def _handle_post(self, request: web.Request) -> web.Response:
        if request.content_length is not None and request.content_length > self.max_body_bytes:
            logger.warning("Request body too large", content_length=request.content_length)
            raise web.HTTPRequestEntityTooLarge(
                max_size=self.max_body_bytes, actual_size=request.content_length
            )

        try:
            body = await request.read()
        except web.HTTPRequestEntityTooLarge:
            logger.warning("Request body too large", limit=self.max_body_bytes)
            raise

        session_id = request.headers.get(SESSION_HEADER)
        result = await self.dispatcher.handle(body, session_id=session_id, raw=request)

        headers: Dict[str, str] = dict(RESPONSE_HEADERS)
        headers.update(result.headers)
        return web.Response(status=result.status, body=result.encode(), headers=headers)

    async def _handle_get(self, request: web.Request) -> web.Response:
        return web.Response(status=405, text="SSE not supported. Use POST.")
