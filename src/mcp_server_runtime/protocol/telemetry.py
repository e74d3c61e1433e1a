"""
Lifecycle telemetry.

Events are dotted names under ``mcp_server`` (for example
``mcp_server.tool.call_stop``) emitted with a measurements dict and a
metadata dict. Listeners run inline. A listener that raises is logged and
skipped; it never changes a response.
"""

import time
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Tuple

import structlog

logger = structlog.get_logger(__name__)

PREFIX = "mcp_server"

Listener = Callable[[str, Dict[str, Any], Dict[str, Any]], Any]

EVENTS = (
    "mcp_server.request.start",
    "mcp_server.request.stop",
    "mcp_server.request.exception",
    "mcp_server.tool.call_start",
    "mcp_server.tool.call_stop",
    "mcp_server.tool.call_exception",
    "mcp_server.tool.list",
    "mcp_server.prompt.get_start",
    "mcp_server.prompt.get_stop",
    "mcp_server.prompt.get_exception",
    "mcp_server.prompt.list",
    "mcp_server.resource.read_start",
    "mcp_server.resource.read_stop",
    "mcp_server.resource.read_exception",
    "mcp_server.resource.list",
    "mcp_server.resource.templates_list",
    "mcp_server.completion.start",
    "mcp_server.completion.stop",
    "mcp_server.completion.exception",
    "mcp_server.session.init",
    "mcp_server.session.initialized",
    "mcp_server.logging.set_level",
    "mcp_server.validation.error",
    "mcp_server.json_rpc.decode_error",
)


def event_name(*parts: str) -> str:
    """Join parts into a full event name, e.g. ``event_name("tool", "list")``."""
    return ".".join((PREFIX,) + parts)


def monotonic() -> int:
    return time.monotonic_ns()


def system_time() -> int:
    return time.time_ns()


class Span:
    """Start/stop bracket around one operation."""

    def __init__(self, telemetry: "Telemetry", prefix: str, metadata: Dict[str, Any]):
        self._telemetry = telemetry
        self._prefix = prefix
        self.metadata = dict(metadata)
        self.started_at = monotonic()

    def start(self, suffix: str = "start") -> None:
        self._telemetry.execute(
            f"{self._prefix}{suffix}", {"system_time": system_time()}, self.metadata
        )

    def stop(self, suffix: str = "stop", **extra: Any) -> None:
        self._emit_duration(suffix, extra)

    def exception(self, suffix: str = "exception", **extra: Any) -> None:
        extra.setdefault("kind", "error")
        self._emit_duration(suffix, extra)

    def _emit_duration(self, suffix: str, extra: Dict[str, Any]) -> None:
        self._telemetry.execute(
            f"{self._prefix}{suffix}",
            {"duration": monotonic() - self.started_at},
            {**self.metadata, **extra},
        )


class Telemetry:
    """
    In-process event bus.

    Example:
        >>> telemetry = Telemetry()
        >>> telemetry.attach("audit", ["mcp_server.tool.call_stop"], on_event)
        >>> telemetry.execute("mcp_server.tool.call_stop", {"duration": 10}, {"tool_name": "echo"})
    """

    def __init__(self):
        self._listeners: Dict[str, Tuple[Tuple[str, ...], Listener]] = {}

    def attach(self, handler_id: str, events: Iterable[str], handler: Listener) -> None:
        """
        Register a listener for a set of event names.

        Raises:
            ValueError: If ``handler_id`` is already attached
        """
        if handler_id in self._listeners:
            raise ValueError(f"Telemetry handler '{handler_id}' is already attached")
        self._listeners[handler_id] = (tuple(events), handler)

    def detach(self, handler_id: str) -> bool:
        return self._listeners.pop(handler_id, None) is not None

    def listeners_for(self, event: str) -> List[str]:
        return [hid for hid, (events, _) in self._listeners.items() if event in events]

    def execute(
        self,
        event: str,
        measurements: Optional[Dict[str, Any]] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Deliver an event to every listener attached to it."""
        measurements = measurements or {}
        metadata = metadata or {}

        for handler_id, (events, handler) in list(self._listeners.items()):
            if event not in events:
                continue
            try:
                handler(event, measurements, metadata)
            except Exception as e:
                logger.error(
                    "Telemetry handler failed",
                    handler_id=handler_id,
                    telemetry_event=event,
                    error=str(e),
                    exc_info=True,
                )

    def start_span(
        self, prefix: str, metadata: Optional[Dict[str, Any]] = None, suffix: str = "start"
    ) -> Span:
        """Open a span whose events are named ``<prefix><suffix>``."""
        span = Span(self, prefix, metadata or {})
        span.start(suffix)
        return span

    @contextmanager
    def span(self, prefix: str, metadata: Optional[Dict[str, Any]] = None) -> Iterator[Span]:
        """
        Emit ``<prefix>.start`` on entry and ``<prefix>.stop`` or
        ``<prefix>.exception`` on exit.

        Metadata set on the yielded span is merged into the closing event.
        """
        span = self.start_span(f"{prefix}.", metadata)
        try:
            yield span
        except Exception as e:
            span.exception(error=str(e))
            raise
        span.stop()
