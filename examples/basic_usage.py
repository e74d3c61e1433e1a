#!/usr/bin/env python3
"""
Basic usage example for MCP Server Runtime.

Declares a small notes server (one tool, one prompt, a static and a
templated resource) and drives it through the dispatcher without HTTP,
which is handy for development and debugging. Serve the same registry
over HTTP with:

    PYTHONPATH=examples mcp-server-runtime serve --app basic_usage:registry
"""

import asyncio
import json
import sys
from pathlib import Path

# Add the src directory to the path for development
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from mcp_server_runtime import MCPServer, RegistryBuilder, ToolError, argument, field
from mcp_server_runtime.capabilities import completion, message, resource_content, text
from mcp_server_runtime.config.settings import Config

NOTES = {
    "shopping": "eggs, flour, milk",
    "ideas": "write a better example",
}


def add_note(conn, arguments):
    name = arguments["name"]
    if name in NOTES:
        raise ToolError(f"note '{name}' already exists", code="conflict")
    NOTES[name] = arguments.get("body", "")
    return [text(f"Saved note '{name}'")]


def summarize(conn, arguments):
    body = NOTES.get(arguments["name"], "")
    return [message("user", "text", f"Summarize this note in one line:\n\n{body}")]


def complete_note_name(conn, argument_name, prefix):
    matches = sorted(name for name in NOTES if name.startswith(prefix))
    return completion(matches, total=len(matches))


def read_index(conn, variables):
    return [
        resource_content(
            "index", "notes://index", mime_type="application/json", text=json.dumps(sorted(NOTES))
        )
    ]


def read_note(conn, variables):
    name = variables["name"]
    return [resource_content(name, f"notes://notes/{name}", mime_type="text/plain", text=NOTES[name])]


registry = (
    RegistryBuilder()
    .tool(
        "add_note",
        "Store a new note",
        add_note,
        fields=[
            field("name", "Note name", "string", required=True),
            field("body", "Note text", "string"),
        ],
        hints=["non_destructive"],
    )
    .prompt(
        "summarize",
        "Summarize a note",
        arguments=[argument("name", "Note to summarize", required=True)],
        get=summarize,
        complete=complete_note_name,
    )
    .resource("index", "notes://index", read=read_index, mime_type="application/json")
    .resource(
        "note",
        "notes://notes/{name}",
        read=read_note,
        complete=complete_note_name,
        description="A single note",
    )
    .build()
)


def rpc(method, params=None, request_id=1):
    payload = {"jsonrpc": "2.0", "id": request_id, "method": method}
    if params is not None:
        payload["params"] = params
    return json.dumps(payload)


async def main():
    """Run a short session against the notes server."""
    print("🚀 Starting MCP Server Runtime example")

    config = Config(server={"log_level": "DEBUG", "json_logs": False})
    server = MCPServer(registry, config)

    # Test 1: Initialize protocol
    print("\n📋 Test 1: Initialize Protocol")
    result = await server.handle(rpc("initialize", {"protocolVersion": "2025-06-18"}))
    session_id = result.headers["mcp-session-id"]
    info = result.body["result"]["serverInfo"]
    print(f"   Server: {info['name']} v{info['version']}, session {session_id}")

    # Test 2: List available tools
    print("\n🔧 Test 2: List Available Tools")
    result = await server.handle(rpc("tools/list"), session_id=session_id)
    for tool in result.body["result"]["tools"]:
        print(f"   • {tool['name']}: {tool['description']}")

    # Test 3: Call a tool, twice, to show a tool-level error
    print("\n💾 Test 3: Call add_note")
    for _ in range(2):
        result = await server.handle(
            rpc("tools/call", {"name": "add_note", "arguments": {"name": "todo", "body": "ship it"}}),
            session_id=session_id,
        )
        outcome = result.body["result"]
        marker = "⚠️ " if outcome["isError"] else "✅"
        print(f"   {marker} {outcome['content'][0]['text']}")

    # Test 4: Read a templated resource
    print("\n📄 Test 4: Read notes://notes/todo")
    result = await server.handle(
        rpc("resources/read", {"uri": "notes://notes/todo"}), session_id=session_id
    )
    print(f"   Content: {result.body['result']['contents'][0]['text']}")

    # Test 5: Complete a prompt argument
    print("\n🔎 Test 5: Complete prompt argument")
    result = await server.handle(
        rpc(
            "completion/complete",
            {
                "ref": {"type": "ref/prompt", "name": "summarize"},
                "argument": {"name": "name", "value": "s"},
            },
        ),
        session_id=session_id,
    )
    print(f"   Suggestions: {result.body['result']['completion']['values']}")

    print("\n🎉 All steps completed!")


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\n🛑 Example interrupted by user")
