"""
MCP (Model Context Protocol) tool box.

``McpToolBox`` exposes the tools of several MCP servers as one ``ToolBox``.
Every remote tool is renamed ``<transport>_<index>_<tool name>``, where
*index* counts the sessions of that transport in connection order, so two
servers both offering ``get_time`` become ``stdio_0_get_time`` and
``stdio_1_get_time``.

Two session types are provided:

- ``McpStdioSession`` runs the server as a subprocess and exchanges
  newline-delimited JSON-RPC messages over its stdin/stdout.
- ``McpHttpSession`` talks to a Streamable HTTP endpoint with httpx.

Typical usage::

    from agentai.conversation.tools.mcp import HttpServer, McpToolBox, StdioServer

    async with await McpToolBox.from_servers(
        [
            StdioServer("uvx", ["mcp-server-time", "--local-timezone", "UTC"]),
            HttpServer("http://localhost:8000/mcp"),
        ]
    ) as mcp_tools:
        answer = await agent.run("gpt-4o-mini", "What time is it in Warsaw?", mcp_tools)
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Protocol, Sequence, runtime_checkable
from uuid import uuid4

import httpx

from agentai.conversation.errors import (
    ToolArgumentError,
    ToolExecutionError,
    ToolMessageError,
    ToolNotFoundError,
)
from agentai.conversation.providers import ToolDefinition

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "2025-03-26"
CLIENT_INFO = {"name": "agentai", "version": "0.1.0"}

# stdout line limit for stdio servers; tool results can be large.
_STDIO_LINE_LIMIT = 16 * 1024 * 1024

# Session index in exposed tool names: ASCII digits, no leading zeros.
_INDEX_RE = re.compile(r"0|[1-9][0-9]*")


class McpError(RuntimeError):
    """Raised for MCP transport or JSON-RPC protocol failures."""


@dataclass
class McpTool:
    """A tool as listed by an MCP server."""

    name: str
    description: str | None = None
    input_schema: dict[str, Any] | None = None


@runtime_checkable
class McpSession(Protocol):
    """An established connection to one MCP server.

    Attributes:
        transport: Short transport label used in exposed tool names
            (``"stdio"``, ``"http"``).  Must not contain underscores.
    """

    transport: str

    async def list_tools(self) -> list[McpTool]: ...

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> dict[str, Any]: ...

    async def aclose(self) -> None: ...


# ---------------------------------------------------------------------------
# JSON-RPC sessions
# ---------------------------------------------------------------------------


class _JsonRpcSession:
    """MCP client methods shared by the stdio and HTTP sessions."""

    transport = ""

    async def _request(self, method: str, params: dict[str, Any] | None = None) -> Any:
        raise NotImplementedError

    async def _notify(self, method: str, params: dict[str, Any] | None = None) -> None:
        raise NotImplementedError

    @staticmethod
    def _message(method: str, params: dict[str, Any] | None, req_id: str | None) -> dict[str, Any]:
        body: dict[str, Any] = {"jsonrpc": "2.0", "method": method}
        if req_id is not None:
            body["id"] = req_id
        if params is not None:
            body["params"] = params
        return body

    @staticmethod
    def _result(data: Any) -> Any:
        if not isinstance(data, dict):
            raise McpError("Invalid JSON-RPC response")
        if data.get("error"):
            error = data["error"]
            if isinstance(error, dict):
                raise McpError(f"JSON-RPC error {error.get('code')}: {error.get('message')}")
            raise McpError(str(error))
        return data.get("result")

    async def initialize(self) -> dict[str, Any]:
        """Perform the MCP handshake and return the server's initialize result."""
        result = await self._request(
            "initialize",
            {
                "protocolVersion": PROTOCOL_VERSION,
                "capabilities": {},
                "clientInfo": CLIENT_INFO,
            },
        )
        await self._notify("notifications/initialized")
        info = result.get("serverInfo") if isinstance(result, dict) else None
        logger.info("Connected to %s MCP server: %s", self.transport, info)
        return result or {}

    async def list_tools(self) -> list[McpTool]:
        tools: list[McpTool] = []
        cursor: str | None = None
        while True:
            result = await self._request("tools/list", {"cursor": cursor} if cursor else {})
            if not isinstance(result, dict):
                raise McpError("Invalid tools/list result")
            for t in result.get("tools") or []:
                if not isinstance(t, dict) or not t.get("name"):
                    continue
                tools.append(
                    McpTool(
                        name=str(t["name"]),
                        description=t.get("description"),
                        input_schema=t.get("inputSchema"),
                    )
                )
            cursor = result.get("nextCursor")
            if not cursor:
                return tools

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> dict[str, Any]:
        result = await self._request("tools/call", {"name": name, "arguments": arguments})
        if not isinstance(result, dict):
            raise McpError("Invalid tools/call result")
        return result


class McpStdioSession(_JsonRpcSession):
    """MCP session over a child process's stdin/stdout."""

    transport = "stdio"

    def __init__(self, process: asyncio.subprocess.Process) -> None:
        self._process = process
        self._lock = asyncio.Lock()

    @classmethod
    async def start(
        cls,
        command: str,
        args: Sequence[str] = (),
        env: dict[str, str] | None = None,
    ) -> McpStdioSession:
        """Spawn ``command args...`` and complete the MCP handshake."""
        logger.debug("Starting MCP stdio server: %s %s", command, " ".join(args))
        process = await asyncio.create_subprocess_exec(
            command,
            *args,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            env={**os.environ, **env} if env else None,
            limit=_STDIO_LINE_LIMIT,
        )
        session = cls(process)
        try:
            await session.initialize()
        except BaseException:
            await session.aclose()
            raise
        return session

    async def _send(self, message: dict[str, Any]) -> None:
        if self._process.stdin is None or self._process.returncode is not None:
            raise McpError("MCP stdio server is not running")
        self._process.stdin.write(json.dumps(message).encode() + b"\n")
        await self._process.stdin.drain()

    async def _request(self, method: str, params: dict[str, Any] | None = None) -> Any:
        req_id = uuid4().hex
        async with self._lock:
            await self._send(self._message(method, params, req_id))
            if self._process.stdout is None:
                raise McpError("MCP stdio server has no stdout pipe")
            while True:
                line = await self._process.stdout.readline()
                if not line:
                    raise McpError(f"MCP stdio server closed the connection during {method!r}")
                try:
                    data = json.loads(line)
                except json.JSONDecodeError:
                    logger.debug("Ignoring non-JSON line from MCP server: %r", line[:200])
                    continue
                # Server notifications and requests carry no matching id.
                if isinstance(data, dict) and data.get("id") == req_id:
                    return self._result(data)

    async def _notify(self, method: str, params: dict[str, Any] | None = None) -> None:
        async with self._lock:
            await self._send(self._message(method, params, None))

    async def aclose(self) -> None:
        if self._process.returncode is not None:
            return
        if self._process.stdin is not None:
            self._process.stdin.close()
        try:
            await asyncio.wait_for(self._process.wait(), timeout=5.0)
        except asyncio.TimeoutError:
            self._process.kill()
            await self._process.wait()


class McpHttpSession(_JsonRpcSession):
    """MCP session over Streamable HTTP."""

    transport = "http"

    def __init__(
        self,
        url: str,
        *,
        timeout: float = 30.0,
        headers: dict[str, str] | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.url = url
        self._headers = dict(headers or {})
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._session_id: str | None = None

    @classmethod
    async def connect(cls, url: str, **kwargs: Any) -> McpHttpSession:
        """Open a session to *url* and complete the MCP handshake."""
        session = cls(url, **kwargs)
        try:
            await session.initialize()
        except BaseException:
            await session.aclose()
            raise
        return session

    def _request_headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json, text/event-stream",
            **self._headers,
        }
        if self._session_id:
            headers["Mcp-Session-Id"] = self._session_id
        return headers

    async def _post(self, body: dict[str, Any]) -> httpx.Response:
        resp = await self._client.post(self.url, headers=self._request_headers(), json=body)
        if resp.status_code >= 400:
            raise McpError(f"HTTP {resp.status_code}: {resp.text[:300]}")
        sid = resp.headers.get("mcp-session-id")
        if sid:
            self._session_id = sid
        return resp

    async def _request(self, method: str, params: dict[str, Any] | None = None) -> Any:
        req_id = uuid4().hex
        resp = await self._post(self._message(method, params, req_id))
        if resp.headers.get("content-type", "").startswith("text/event-stream"):
            return self._result(_find_sse_response(resp.text, req_id))
        return self._result(resp.json())

    async def _notify(self, method: str, params: dict[str, Any] | None = None) -> None:
        await self._post(self._message(method, params, None))

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


def _find_sse_response(text: str, req_id: str) -> dict[str, Any]:
    """Return the JSON-RPC response with *req_id* from an SSE body."""
    data_lines: list[str] = []
    for line in text.splitlines() + [""]:
        if line.startswith("data:"):
            data_lines.append(line[5:].lstrip())
            continue
        if line or not data_lines:
            continue
        # Blank line: end of one event.
        try:
            message = json.loads("\n".join(data_lines))
        except json.JSONDecodeError:
            message = None
        data_lines = []
        if isinstance(message, dict) and message.get("id") == req_id:
            return message
    raise McpError("No JSON-RPC response found in event stream")


# ---------------------------------------------------------------------------
# Server configuration
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StdioServer:
    """An MCP server started as a subprocess."""

    command: str
    args: list[str] = field(default_factory=list)
    env: dict[str, str] | None = None


@dataclass(frozen=True)
class HttpServer:
    """An MCP server reachable over Streamable HTTP."""

    url: str
    headers: dict[str, str] | None = None


# ---------------------------------------------------------------------------
# Tool box
# ---------------------------------------------------------------------------


class McpToolBox:
    """A ``ToolBox`` multiplexing the tools of several MCP sessions.

    Build it with ``connect()`` (already-open sessions) or ``from_servers()``.
    """

    def __init__(
        self,
        sessions: dict[str, list[McpSession]],
        definitions: list[ToolDefinition],
    ) -> None:
        self._sessions = sessions
        self._definitions = definitions

    @classmethod
    async def connect(cls, sessions: Iterable[McpSession]) -> McpToolBox:
        """List the tools of every session and build the tool box."""
        by_transport: dict[str, list[McpSession]] = {}
        definitions: list[ToolDefinition] = []

        for session in sessions:
            transport = session.transport
            if not transport or "_" in transport:
                raise ValueError(f"Invalid MCP transport label: {transport!r}")
            group = by_transport.setdefault(transport, [])
            index = len(group)
            group.append(session)

            for tool in await session.list_tools():
                name = f"{transport}_{index}_{tool.name}"
                logger.debug("Added %s tool %s", transport, name)
                definitions.append(
                    ToolDefinition(
                        name=name,
                        description=tool.description,
                        parameters=tool.input_schema,
                    )
                )

        return cls(by_transport, definitions)

    @classmethod
    async def from_servers(cls, servers: Iterable[StdioServer | HttpServer]) -> McpToolBox:
        """Open a session for each server configuration, then ``connect()``."""
        sessions: list[McpSession] = []
        try:
            for server in servers:
                if isinstance(server, StdioServer):
                    sessions.append(
                        await McpStdioSession.start(server.command, server.args, server.env)
                    )
                else:
                    sessions.append(await McpHttpSession.connect(server.url, headers=server.headers))
            return await cls.connect(sessions)
        except BaseException:
            for session in sessions:
                await session.aclose()
            raise

    def tools_definitions(self) -> list[ToolDefinition]:
        return list(self._definitions)

    def _resolve(self, name: str) -> tuple[McpSession, str] | None:
        parts = name.split("_", 2)
        if len(parts) != 3:
            return None
        transport, index, tool_name = parts
        if not _INDEX_RE.fullmatch(index) or not tool_name:
            return None
        group = self._sessions.get(transport, [])
        position = int(index)
        if position >= len(group):
            return None
        return group[position], tool_name

    async def call_tool(self, name: str, arguments: Any) -> str:
        resolved = self._resolve(name)
        if resolved is None:
            raise ToolNotFoundError(name)
        session, tool_name = resolved

        if arguments is None:
            arguments = {}
        if not isinstance(arguments, dict):
            raise ToolArgumentError(f"Arguments for {name!r} must be a JSON object")

        try:
            result = await session.call_tool(tool_name, arguments)
        except (McpError, httpx.HTTPError, OSError) as exc:
            logger.warning("MCP tool %r failed: %s", name, exc)
            raise ToolExecutionError(f"MCP tool {name!r} failed: {exc}") from exc

        try:
            payload = json.dumps(result.get("content", []))
        except (TypeError, ValueError):
            payload = "Unable to serialize response"
        if result.get("isError"):
            raise ToolMessageError(payload)
        return payload

    async def aclose(self) -> None:
        """Close every session."""
        for group in self._sessions.values():
            for session in group:
                await session.aclose()

    async def __aenter__(self) -> McpToolBox:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
