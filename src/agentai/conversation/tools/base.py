"""
The ``ToolBox`` protocol and ``FunctionToolBox``, its explicit-registration
implementation.

A tool box groups related tools: it describes them to the model
(``tools_definitions``) and runs them by name (``call_tool``).  This is the
boundary third-party tool packages build against.

Typical usage::

    from pydantic import BaseModel

    from agentai.conversation.tools import FunctionToolBox

    class AddArgs(BaseModel):
        a: int
        b: int

    async def add(args: AddArgs) -> str:
        \"\"\"Add two integers.\"\"\"
        return str(args.a + args.b)

    toolbox = FunctionToolBox(timeout=10.0)
    toolbox.add_tool(add, arguments=AddArgs)

    answer = await agent.run("gpt-4o-mini", "What is 2 + 3?", toolbox)
"""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Protocol, Union, runtime_checkable

from pydantic import BaseModel, ValidationError

from agentai.conversation.errors import (
    ToolArgumentError,
    ToolError,
    ToolExecutionError,
    ToolNotFoundError,
)
from agentai.conversation.providers import ToolDefinition
from agentai.conversation.schema import json_schema_of

logger = logging.getLogger(__name__)

# A tool handler receives the validated arguments model (or the raw dict when
# no model is registered) and returns the tool output, sync or async.
ToolHandler = Callable[[Any], Union[Any, Awaitable[Any]]]


@runtime_checkable
class ToolBox(Protocol):
    """A set of named tools the model can call."""

    def tools_definitions(self) -> list[ToolDefinition]:
        """Return the definitions of every tool in this box.

        Raises:
            DescriptorUnavailableError: If the definitions cannot be computed yet.
        """
        ...

    async def call_tool(self, name: str, arguments: Any) -> str:
        """Run tool *name* with *arguments* and return its output.

        Raises:
            ToolNotFoundError: If *name* is not a tool of this box.
            ToolArgumentError: If *arguments* do not match the tool's schema.
            ToolExecutionError: If the tool itself fails.
        """
        ...


@dataclass(frozen=True)
class _RegisteredTool:
    definition: ToolDefinition
    handler: ToolHandler
    arguments: type[BaseModel] | None


def _to_payload(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, BaseModel):
        return value.model_dump_json()
    return json.dumps(value, default=str)


class FunctionToolBox:
    """A ``ToolBox`` built from plain functions registered one by one.

    Each invocation is wrapped with:

    - **Timeout**: ``asyncio.wait_for(...)`` when *timeout* is set.  Sync
      handlers run in a worker thread, so a blocking handler times out too
      (the thread itself finishes in the background).
    - **Retry**: up to *max_retries* additional attempts when the exception is
      an instance of *retry_exceptions*.

    Args:
        timeout: Maximum seconds per tool call.  ``None`` disables the timeout.
        max_retries: Number of *additional* attempts on retryable failures.
        retry_exceptions: Exception types that trigger a retry.
    """

    def __init__(
        self,
        timeout: float | None = None,
        max_retries: int = 0,
        retry_exceptions: tuple[type[BaseException], ...] = (asyncio.TimeoutError,),
    ) -> None:
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0.")
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_exceptions = retry_exceptions
        self._tools: dict[str, _RegisteredTool] = {}

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def add_tool(
        self,
        handler: ToolHandler,
        *,
        name: str | None = None,
        description: str | None = None,
        arguments: type[BaseModel] | None = None,
    ) -> ToolDefinition:
        """Register *handler* as a tool and return its definition.

        Args:
            handler: Callable receiving the validated *arguments* model (or the
                raw argument dict) and returning the tool output.
            name: Tool name; defaults to ``handler.__name__``.
            description: Tool description; defaults to the handler's docstring.
            arguments: Pydantic model describing the tool's parameters.

        Raises:
            ValueError: If a tool with the same name is already registered.
        """
        tool_name = name or handler.__name__
        if tool_name in self._tools:
            raise ValueError(f"Tool {tool_name!r} is already registered.")

        definition = ToolDefinition(
            name=tool_name,
            description=description or inspect.getdoc(handler),
            parameters=json_schema_of(arguments) if arguments is not None else None,
        )
        self._tools[tool_name] = _RegisteredTool(definition, handler, arguments)
        logger.debug("Registered tool: %r", tool_name)
        return definition

    # ------------------------------------------------------------------
    # ToolBox protocol
    # ------------------------------------------------------------------

    def tools_definitions(self) -> list[ToolDefinition]:
        """Return all registered definitions (insertion order)."""
        return [tool.definition for tool in self._tools.values()]

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    async def call_tool(self, name: str, arguments: Any) -> str:
        tool = self._tools.get(name)
        if tool is None:
            raise ToolNotFoundError(name)

        args = self._validate(tool, arguments)
        total_attempts = self.max_retries + 1

        for attempt in range(1, total_attempts + 1):
            try:
                result = await self._invoke(tool.handler, args)
                return _to_payload(result)
            except ToolError:
                raise
            except Exception as exc:
                if isinstance(exc, self.retry_exceptions) and attempt < total_attempts:
                    logger.warning(
                        "Tool %r attempt %d/%d failed (%s: %s); retrying",
                        name,
                        attempt,
                        total_attempts,
                        type(exc).__name__,
                        exc,
                    )
                    continue
                if isinstance(exc, asyncio.TimeoutError):
                    raise ToolExecutionError(
                        f"Tool {name!r} timed out after {self.timeout}s"
                    ) from exc
                logger.error("Tool %r failed: %s", name, exc, exc_info=True)
                raise ToolExecutionError(f"Tool {name!r} failed: {exc}") from exc

        raise RuntimeError("call_tool: retry loop exited unexpectedly")  # pragma: no cover

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _validate(tool: _RegisteredTool, arguments: Any) -> Any:
        if arguments is None:
            arguments = {}
        if not isinstance(arguments, dict):
            raise ToolArgumentError(
                f"Arguments for {tool.definition.name!r} must be a JSON object, "
                f"got {arguments!r}"
            )
        if tool.arguments is None:
            return arguments
        try:
            return tool.arguments.model_validate(arguments)
        except ValidationError as exc:
            raise ToolArgumentError(
                f"Invalid arguments for {tool.definition.name!r}: {exc}"
            ) from exc

    async def _invoke(self, handler: ToolHandler, args: Any) -> Any:
        async def _run() -> Any:
            if inspect.iscoroutinefunction(handler):
                return await handler(args)
            # Sync handlers run in a worker thread so they cannot block the loop.
            result = await asyncio.to_thread(handler, args)
            if inspect.isawaitable(result):
                result = await result
            return result

        if self.timeout is not None:
            return await asyncio.wait_for(_run(), timeout=self.timeout)
        return await _run()
