"""
Unit tests for content items and result helpers.
"""

import pytest

from mcp_server_runtime.capabilities import (
    CallResult,
    Completion,
    completion,
    embedded_resource,
    image,
    message,
    resource_content,
    text,
)
from mcp_server_runtime.capabilities.content import check_content


class TestContentItems:
    def test_text(self):
        assert text("hi").to_dict() == {"type": "text", "text": "hi"}

    def test_image_is_base64(self):
        assert image(b"\x89PNG", "image/png").to_dict() == {
            "type": "image",
            "data": "iVBORw==",
            "mimeType": "image/png",
        }

    def test_embedded_resource(self):
        item = embedded_resource("file:///a.txt", text="a", mime_type="text/plain")

        assert item.to_dict() == {
            "type": "resource",
            "resource": {"uri": "file:///a.txt", "mimeType": "text/plain", "text": "a"},
        }

    def test_message(self):
        assert message("assistant", "text", "ok") == {
            "role": "assistant",
            "content": {"type": "text", "text": "ok"},
        }


class TestResourceContent:
    def test_text_body(self):
        assert resource_content("a", "file:///a", title="A", text="body") == {
            "name": "a",
            "uri": "file:///a",
            "text": "body",
            "title": "A",
        }

    def test_blob_body(self):
        assert resource_content("a", "file:///a", blob=b"hi")["blob"] == "aGk="

    def test_text_and_blob_are_exclusive(self):
        with pytest.raises(ValueError):
            resource_content("a", "file:///a", text="x", blob=b"x")


class TestResults:
    def test_call_result_defaults(self):
        assert CallResult([text("a")]).to_dict(is_error=True) == {
            "content": [{"type": "text", "text": "a"}],
            "isError": True,
        }

    def test_completion_helper_defaults_has_more(self):
        assert completion(["a"]).to_dict() == {"values": ["a"], "hasMore": False}

    def test_completion_omits_unset_fields(self):
        assert Completion(["a"]).to_dict() == {"values": ["a"]}

    def test_check_content_reports_unknown_items(self):
        unknown = check_content([text("a"), {"type": "text", "text": "b"}, 3], "echo")

        assert unknown == [3]
