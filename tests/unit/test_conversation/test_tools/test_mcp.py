"""Unit tests for agentai.conversation.tools.mcp."""

from __future__ import annotations

import json
from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from agentai.conversation.errors import (
    ToolArgumentError,
    ToolExecutionError,
    ToolMessageError,
    ToolNotFoundError,
)
from agentai.conversation.tools.mcp import (
    HttpServer,
    McpError,
    McpHttpSession,
    McpSession,
    McpStdioSession,
    McpTool,
    McpToolBox,
    StdioServer,
    _find_sse_response,
)
from agentai.conversation.tools.base import FunctionToolBox
from agentai.conversation.tools.registry import ToolBoxSet


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class FakeSession:
    """In-memory MCP session returning canned tool results."""

    def __init__(self, transport: str, tools: list[str], label: str = "") -> None:
        self.transport = transport
        self.label = label
        self._tools = tools
        self.calls: list[tuple[str, dict]] = []
        self.result: dict[str, Any] | None = None
        self.error: Exception | None = None
        self.closed = False

    async def list_tools(self) -> list[McpTool]:
        return [
            McpTool(name=t, description=f"{t} tool", input_schema={"type": "object"})
            for t in self._tools
        ]

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> dict[str, Any]:
        self.calls.append((name, arguments))
        if self.error is not None:
            raise self.error
        if self.result is not None:
            return self.result
        return {"content": [{"type": "text", "text": f"{self.label}:{name}"}]}

    async def aclose(self) -> None:
        self.closed = True


def _text_of(payload: str) -> str:
    return json.loads(payload)[0]["text"]


# ---------------------------------------------------------------------------
# McpToolBox — naming
# ---------------------------------------------------------------------------


def test_fake_session_satisfies_protocol() -> None:
    assert isinstance(FakeSession("stdio", []), McpSession)


@pytest.mark.anyio
async def test_tools_are_prefixed_per_transport_index() -> None:
    sessions = [
        FakeSession("stdio", ["get_time"]),
        FakeSession("http", ["search"]),
        FakeSession("stdio", ["get_time", "convert_time"]),
    ]

    box = await McpToolBox.connect(sessions)

    assert [d.name for d in box.tools_definitions()] == [
        "stdio_0_get_time",
        "http_0_search",
        "stdio_1_get_time",
        "stdio_1_convert_time",
    ]
    first = box.tools_definitions()[0]
    assert first.description == "get_time tool"
    assert first.parameters == {"type": "object"}


@pytest.mark.anyio
async def test_invalid_transport_label_rejected() -> None:
    with pytest.raises(ValueError, match="transport"):
        await McpToolBox.connect([FakeSession("my_stdio", ["x"])])


# ---------------------------------------------------------------------------
# McpToolBox — dispatch
# ---------------------------------------------------------------------------


@pytest.mark.anyio
async def test_call_routes_to_indexed_session() -> None:
    first = FakeSession("stdio", ["get_time"], label="first")
    second = FakeSession("stdio", ["get_time"], label="second")
    box = await McpToolBox.connect([first, second])

    payload = await box.call_tool("stdio_1_get_time", {"timezone": "UTC"})

    assert _text_of(payload) == "second:get_time"
    assert second.calls == [("get_time", {"timezone": "UTC"})]
    assert first.calls == []


@pytest.mark.anyio
async def test_underscores_in_remote_tool_name_are_preserved() -> None:
    session = FakeSession("http", ["convert_time"], label="h")
    box = await McpToolBox.connect([session])

    await box.call_tool("http_0_convert_time", None)

    assert session.calls == [("convert_time", {})]


@pytest.mark.anyio
@pytest.mark.parametrize(
    "name",
    [
        "stdio_5_get_time",
        "sse_0_get_time",
        "stdio_x_get_time",
        "stdio_0_",
        "get_time",
        "stdio_0",
        "stdio_²_get_time",
        "stdio_٠_get_time",
        "stdio_00_get_time",
        "stdio_01_get_time",
        "stdio_-0_get_time",
    ],
)
async def test_unresolvable_names_raise_not_found(name: str) -> None:
    box = await McpToolBox.connect([FakeSession("stdio", ["get_time"])])

    with pytest.raises(ToolNotFoundError):
        await box.call_tool(name, {})


@pytest.mark.anyio
async def test_unresolvable_name_falls_through_to_next_box() -> None:
    mcp_box = await McpToolBox.connect([FakeSession("stdio", ["get_time"])])
    other = FunctionToolBox()
    other.add_tool(lambda args: "other", name="stdio_²_get_time")

    result = await ToolBoxSet([mcp_box, other]).call_tool("stdio_²_get_time", {})

    assert result == "other"


@pytest.mark.anyio
async def test_non_object_arguments_raise() -> None:
    box = await McpToolBox.connect([FakeSession("stdio", ["get_time"])])

    with pytest.raises(ToolArgumentError):
        await box.call_tool("stdio_0_get_time", "{broken")


@pytest.mark.anyio
async def test_server_error_result_raises_tool_message_error() -> None:
    session = FakeSession("stdio", ["get_time"])
    session.result = {"content": [{"type": "text", "text": "Invalid timezone"}], "isError": True}
    box = await McpToolBox.connect([session])

    with pytest.raises(ToolMessageError) as exc_info:
        await box.call_tool("stdio_0_get_time", {"timezone": "Mars"})
    assert _text_of(str(exc_info.value)) == "Invalid timezone"


@pytest.mark.anyio
async def test_transport_failure_raises_execution_error() -> None:
    session = FakeSession("http", ["search"])
    session.error = McpError("HTTP 500: boom")
    box = await McpToolBox.connect([session])

    with pytest.raises(ToolExecutionError, match="HTTP 500"):
        await box.call_tool("http_0_search", {})


@pytest.mark.anyio
async def test_missing_content_serializes_as_empty_list() -> None:
    session = FakeSession("stdio", ["noop"])
    session.result = {}
    box = await McpToolBox.connect([session])

    assert await box.call_tool("stdio_0_noop", {}) == "[]"


@pytest.mark.anyio
async def test_context_manager_closes_sessions() -> None:
    sessions = [FakeSession("stdio", []), FakeSession("http", [])]

    async with await McpToolBox.connect(sessions):
        pass

    assert all(s.closed for s in sessions)


# ---------------------------------------------------------------------------
# McpToolBox.from_servers
# ---------------------------------------------------------------------------


@pytest.mark.anyio
async def test_from_servers_opens_each_transport() -> None:
    stdio = FakeSession("stdio", ["get_time"])
    http = FakeSession("http", ["search"])

    with (
        patch.object(McpStdioSession, "start", AsyncMock(return_value=stdio)) as start,
        patch.object(McpHttpSession, "connect", AsyncMock(return_value=http)) as connect,
    ):
        box = await McpToolBox.from_servers(
            [
                StdioServer("uvx", ["mcp-server-time"]),
                HttpServer("http://localhost:8000/mcp", headers={"X-Key": "k"}),
            ]
        )

    start.assert_awaited_once_with("uvx", ["mcp-server-time"], None)
    connect.assert_awaited_once_with("http://localhost:8000/mcp", headers={"X-Key": "k"})
    assert [d.name for d in box.tools_definitions()] == ["stdio_0_get_time", "http_0_search"]


@pytest.mark.anyio
async def test_from_servers_closes_opened_sessions_on_failure() -> None:
    stdio = FakeSession("stdio", ["get_time"])

    with (
        patch.object(McpStdioSession, "start", AsyncMock(return_value=stdio)),
        patch.object(McpHttpSession, "connect", AsyncMock(side_effect=McpError("refused"))),
    ):
        with pytest.raises(McpError):
            await McpToolBox.from_servers(
                [StdioServer("uvx"), HttpServer("http://localhost:8000/mcp")]
            )

    assert stdio.closed


# ---------------------------------------------------------------------------
# SSE parsing
# ---------------------------------------------------------------------------


def test_find_sse_response_picks_matching_id() -> None:
    body = (
        "event: message\n"
        'data: {"jsonrpc": "2.0", "method": "notifications/progress"}\n'
        "\n"
        "event: message\n"
        'data: {"jsonrpc": "2.0", "id": "abc", "result": {"ok": true}}\n'
    )

    assert _find_sse_response(body, "abc")["result"] == {"ok": True}


def test_find_sse_response_joins_multiline_data() -> None:
    body = 'data: {"jsonrpc": "2.0",\ndata:  "id": "abc", "result": 1}\n\n'

    assert _find_sse_response(body, "abc")["result"] == 1


def test_find_sse_response_without_match_raises() -> None:
    with pytest.raises(McpError):
        _find_sse_response('data: {"id": "other"}\n\n', "abc")


# ---------------------------------------------------------------------------
# McpHttpSession
# ---------------------------------------------------------------------------


def _mcp_server(sse: bool = False, fail_with: int | None = None):
    """Build an httpx.MockTransport handler emulating a Streamable HTTP server."""
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        body = json.loads(request.content)
        if fail_with is not None:
            return httpx.Response(fail_with, text="server exploded")
        if "id" not in body:
            return httpx.Response(202)
        method = body["method"]
        if method == "initialize":
            result: Any = {"protocolVersion": "2025-03-26", "serverInfo": {"name": "fake"}}
        elif method == "tools/list":
            if body["params"].get("cursor") == "page2":
                result = {"tools": [{"name": "b"}]}
            else:
                result = {"tools": [{"name": "a", "description": "A"}], "nextCursor": "page2"}
        elif method == "tools/call":
            if body["params"]["name"] == "broken":
                return httpx.Response(
                    200,
                    json={"jsonrpc": "2.0", "id": body["id"], "error": {"code": -32601, "message": "nope"}},
                )
            result = {"content": [{"type": "text", "text": json.dumps(body["params"]["arguments"])}]}
        else:
            result = None
        message = {"jsonrpc": "2.0", "id": body["id"], "result": result}
        if sse:
            return httpx.Response(
                200,
                headers={"content-type": "text/event-stream", "mcp-session-id": "sess-1"},
                text=f"event: message\ndata: {json.dumps(message)}\n\n",
            )
        return httpx.Response(200, headers={"mcp-session-id": "sess-1"}, json=message)

    return handler, seen


@pytest.mark.anyio
@pytest.mark.parametrize("sse", [False, True])
async def test_http_session_handshake_and_tools(sse: bool) -> None:
    handler, seen = _mcp_server(sse=sse)
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        session = await McpHttpSession.connect("http://mcp.test/mcp", client=client)
        tools = await session.list_tools()
        result = await session.call_tool("a", {"x": 1})
        await session.aclose()
        assert not client.is_closed

    assert [t.name for t in tools] == ["a", "b"]
    assert tools[0].description == "A"
    assert json.loads(result["content"][0]["text"]) == {"x": 1}

    methods = [json.loads(r.content)["method"] for r in seen]
    assert methods[:2] == ["initialize", "notifications/initialized"]
    assert "mcp-session-id" not in seen[0].headers
    assert all(r.headers["mcp-session-id"] == "sess-1" for r in seen[1:])
    assert "text/event-stream" in seen[0].headers["accept"]


@pytest.mark.anyio
async def test_http_session_json_rpc_error() -> None:
    handler, _ = _mcp_server()
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        session = McpHttpSession("http://mcp.test/mcp", client=client)
        with pytest.raises(McpError, match="-32601"):
            await session.call_tool("broken", {})


@pytest.mark.anyio
async def test_http_session_status_error() -> None:
    handler, _ = _mcp_server(fail_with=500)
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(McpError, match="HTTP 500"):
            await McpHttpSession.connect("http://mcp.test/mcp", client=client)


@pytest.mark.anyio
async def test_http_session_sends_custom_headers() -> None:
    handler, seen = _mcp_server()
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        await McpHttpSession.connect(
            "http://mcp.test/mcp", client=client, headers={"Authorization": "Bearer t"}
        )

    assert seen[0].headers["authorization"] == "Bearer t"


# ---------------------------------------------------------------------------
# McpStdioSession
# ---------------------------------------------------------------------------


def _fake_process(*lines: bytes) -> MagicMock:
    process = MagicMock()
    process.returncode = None
    process.stdin = MagicMock()
    process.stdin.drain = AsyncMock()
    process.stdout = MagicMock()
    process.stdout.readline = AsyncMock(side_effect=list(lines) + [b""])
    process.wait = AsyncMock(return_value=0)
    return process


@pytest.mark.anyio
async def test_stdio_session_skips_unrelated_lines() -> None:
    process = _fake_process(
        b"starting server...\n",
        b'{"jsonrpc": "2.0", "method": "notifications/message"}\n',
        b'{"jsonrpc": "2.0", "id": "req1", "result": {"content": []}}\n',
    )
    session = McpStdioSession(process)

    with patch("agentai.conversation.tools.mcp.uuid4", return_value=SimpleNamespace(hex="req1")):
        result = await session.call_tool("get_time", {"timezone": "UTC"})

    assert result == {"content": []}
    sent = json.loads(process.stdin.write.call_args[0][0])
    assert sent == {
        "jsonrpc": "2.0",
        "method": "tools/call",
        "id": "req1",
        "params": {"name": "get_time", "arguments": {"timezone": "UTC"}},
    }


@pytest.mark.anyio
async def test_stdio_session_closed_stdout_raises() -> None:
    session = McpStdioSession(_fake_process())

    with pytest.raises(McpError, match="closed the connection"):
        await session.list_tools()


@pytest.mark.anyio
async def test_stdio_session_exited_process_raises() -> None:
    process = _fake_process()
    process.returncode = 1
    session = McpStdioSession(process)

    with pytest.raises(McpError, match="not running"):
        await session.call_tool("x", {})


@pytest.mark.anyio
async def test_stdio_session_without_stdout_raises() -> None:
    process = _fake_process()
    process.stdout = None
    session = McpStdioSession(process)

    with pytest.raises(McpError, match="no stdout"):
        await session.list_tools()


@pytest.mark.anyio
async def test_stdio_session_aclose_closes_stdin() -> None:
    process = _fake_process()
    session = McpStdioSession(process)

    await session.aclose()

    process.stdin.close.assert_called_once()
    process.wait.assert_awaited()
    process.kill.assert_not_called()
