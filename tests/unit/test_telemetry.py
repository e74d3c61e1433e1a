"""
Unit tests for the telemetry event bus.
"""

import pytest

from mcp_server_runtime.protocol.telemetry import EVENTS, Telemetry, event_name


class TestTelemetry:
    """Test listener registration and delivery."""

    def test_event_names(self):
        assert event_name("tool", "call_stop") == "mcp_server.tool.call_stop"
        assert event_name("tool", "call_stop") in EVENTS

    def test_delivers_to_subscribed_listeners_only(self, recorder):
        telemetry = Telemetry()
        telemetry.attach("recorder", ["mcp_server.tool.list"], recorder)

        telemetry.execute("mcp_server.tool.list", {"count": 2}, {})
        telemetry.execute("mcp_server.prompt.list", {"count": 1}, {})

        assert recorder.events == [("mcp_server.tool.list", {"count": 2}, {})]

    def test_duplicate_handler_id(self, recorder):
        telemetry = Telemetry()
        telemetry.attach("recorder", EVENTS, recorder)

        with pytest.raises(ValueError, match="already attached"):
            telemetry.attach("recorder", EVENTS, recorder)

    def test_detach(self, recorder):
        telemetry = Telemetry()
        telemetry.attach("recorder", EVENTS, recorder)

        assert telemetry.detach("recorder")
        assert not telemetry.detach("recorder")

        telemetry.execute("mcp_server.tool.list", {"count": 0}, {})
        assert recorder.events == []

    def test_listeners_for(self, recorder):
        telemetry = Telemetry()
        telemetry.attach("a", ["mcp_server.tool.list"], recorder)
        telemetry.attach("b", EVENTS, recorder)

        assert telemetry.listeners_for("mcp_server.tool.list") == ["a", "b"]
        assert telemetry.listeners_for("mcp_server.prompt.list") == ["b"]

    def test_failing_listener_is_isolated(self, recorder):
        def explode(event, measurements, metadata):
            raise RuntimeError("listener bug")

        telemetry = Telemetry()
        telemetry.attach("broken", EVENTS, explode)
        telemetry.attach("recorder", EVENTS, recorder)

        telemetry.execute("mcp_server.session.init", {"system_time": 1}, {"session_id": "s"})

        assert recorder.names() == ["mcp_server.session.init"]


class TestSpans:
    """Test start/stop brackets."""

    def test_manual_span(self, telemetry, recorder):
        span = telemetry.start_span("mcp_server.tool.", {"tool_name": "echo"}, "call_start")
        span.stop("call_stop", result_count=1)

        assert recorder.names() == ["mcp_server.tool.call_start", "mcp_server.tool.call_stop"]
        start_measurements, _ = recorder.last("mcp_server.tool.call_start")
        assert "system_time" in start_measurements
        measurements, metadata = recorder.last("mcp_server.tool.call_stop")
        assert measurements["duration"] >= 0
        assert metadata == {"tool_name": "echo", "result_count": 1}

    def test_span_exception_defaults_kind(self, telemetry, recorder):
        span = telemetry.start_span("mcp_server.tool.", {"tool_name": "t"}, "call_start")
        span.exception("call_exception", error="bad")

        _, metadata = recorder.last("mcp_server.tool.call_exception")
        assert metadata == {"tool_name": "t", "kind": "error", "error": "bad"}

    def test_context_manager_success(self, telemetry, recorder):
        with telemetry.span("mcp_server.completion", {"ref_type": "ref/prompt"}):
            pass

        assert recorder.names() == ["mcp_server.completion.start", "mcp_server.completion.stop"]

    def test_context_manager_reraises(self, telemetry, recorder):
        with pytest.raises(KeyError):
            with telemetry.span("mcp_server.completion"):
                raise KeyError("x")

        assert recorder.names() == [
            "mcp_server.completion.start",
            "mcp_server.completion.exception",
        ]
        _, metadata = recorder.last("mcp_server.completion.exception")
        assert metadata["kind"] == "error"
