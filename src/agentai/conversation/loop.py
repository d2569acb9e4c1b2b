"""
Agent: the tool-calling conversation loop.

This module implements the core "agentic" behaviour: calling the LLM,
dispatching the tool calls it requests, feeding results back, and repeating
until the LLM produces a final answer, which is then validated against the
caller's answer type.

State machine per ``run()``::

    AWAITING_MODEL -> MODEL_RESPONDED -> DISPATCHING_TOOLS -> AWAITING_MODEL ...
                                      -> TERMINAL

The history lives on the ``Agent`` and is never cleared, so calling ``run()``
again continues the same conversation.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import time
from typing import TYPE_CHECKING, Any, Sequence, TypeVar, overload

from agentai.conversation.errors import (
    AgentError,
    MalformedAnswerError,
    MaxTurnsExceededError,
    ToolError,
    ToolExecutionError,
    UpstreamError,
)
from agentai.conversation.providers import (
    ChatClient,
    ChatMessage,
    ChatOptions,
    ChatResponse,
    ToolCall,
    ToolResult,
)
from agentai.conversation.schema import parse_answer, response_schema
from agentai.conversation.tools.base import ToolBox
from agentai.conversation.tools.registry import ToolBoxSet

if TYPE_CHECKING:
    from agentai.config import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AgentState(enum.Enum):
    AWAITING_MODEL = "awaiting_model"
    MODEL_RESPONDED = "model_responded"
    DISPATCHING_TOOLS = "dispatching_tools"
    TERMINAL = "terminal"


class Agent:
    """Runs a conversation with an LLM that may call tools.

    Typical usage::

        client = OpenAICompatibleClient(api_key="sk-...")
        agent = Agent(client, system="You are a helpful assistant.")
        answer = await agent.run("gpt-4o-mini", "What time is it in Tokyo?", toolbox)

    Attributes:
        client: The chat backend (any ``ChatClient`` implementation).
        temperature: Sampling temperature sent with every request.
        max_turns: Maximum number of chat calls per ``run()``; a model still
            requesting tools after that raises ``MaxTurnsExceededError``.
            ``None`` disables the guard and the loop runs until the model
            stops calling tools.
        concurrent_tools: Dispatch the tool calls of one turn concurrently.
            Results are recorded in request order either way.
        state: Current ``AgentState``.
    """

    def __init__(
        self,
        client: ChatClient,
        system: str,
        *,
        temperature: float = 0.2,
        max_turns: int | None = None,
        concurrent_tools: bool = True,
    ) -> None:
        if max_turns is not None and max_turns <= 0:
            raise ValueError("max_turns must be a positive integer or None.")
        self.client = client
        self.temperature = temperature
        self.max_turns = max_turns
        self.concurrent_tools = concurrent_tools
        self.state = AgentState.AWAITING_MODEL
        self._history: list[ChatMessage] = [ChatMessage.system(system.strip())]
        self._running = False

    @classmethod
    def from_settings(cls, client: ChatClient, system: str, settings: Settings) -> Agent:
        return cls(
            client,
            system,
            temperature=settings.temperature,
            max_turns=settings.max_turns,
        )

    @property
    def history(self) -> list[ChatMessage]:
        """A copy of the conversation history, oldest message first."""
        return list(self._history)

    @overload
    async def run(
        self, model: str, prompt: str, toolbox: ToolBox | None = ...
    ) -> str: ...

    @overload
    async def run(
        self, model: str, prompt: str, toolbox: ToolBox | None = ..., *, answer_type: type[T]
    ) -> T: ...

    async def run(
        self,
        model: str,
        prompt: str,
        toolbox: ToolBox | None = None,
        *,
        answer_type: Any = str,
    ) -> Any:
        """Send *prompt* and loop until the model produces a final answer.

        Args:
            model: Model identifier passed to the chat client.
            prompt: The user message.
            toolbox: Tools the model may call.  ``None`` means no tools.
            answer_type: Type of the final answer.  ``str`` returns the text
                as-is; any other type is requested as structured JSON output
                and validated with pydantic.

        Returns:
            The final answer, an instance of *answer_type*.

        Raises:
            MalformedAnswerError: If the final reply does not validate.
            MaxTurnsExceededError: If ``max_turns`` chat calls pass without a final answer.
            UpstreamError: If the chat client or schema generation fails.
        """
        if self._running:
            raise RuntimeError(
                "Agent.run() is already in progress; use a separate Agent per conversation."
            )
        if toolbox is None:
            toolbox = ToolBoxSet()
        self._running = True
        try:
            return await self._run(model, prompt, toolbox, answer_type)
        finally:
            self._running = False

    async def _run(self, model: str, prompt: str, toolbox: ToolBox, answer_type: Any) -> Any:
        logger.debug("Agent question: %s", prompt)
        self.state = AgentState.AWAITING_MODEL
        self._history.append(ChatMessage.user(prompt))

        options = ChatOptions(
            temperature=self.temperature,
            response_format=response_schema(answer_type),
        )

        run_start = time.monotonic()
        turn = 0
        while True:
            turn += 1
            if self.max_turns is not None and turn > self.max_turns:
                raise MaxTurnsExceededError(
                    f"Agent exceeded max_turns={self.max_turns} without reaching "
                    "a final answer. Check for tool call loops."
                )

            # Re-read on every turn: tool boxes may change what they offer.
            options.tools = toolbox.tools_definitions() or None

            self.state = AgentState.AWAITING_MODEL
            response = await self._complete(model, options, turn)
            self.state = AgentState.MODEL_RESPONDED

            if response.tool_calls:
                self.state = AgentState.DISPATCHING_TOOLS
                self._history.append(ChatMessage.assistant_tool_calls(response.tool_calls))
                results = await self._dispatch_tool_calls(toolbox, response.tool_calls)
                self._history.extend(ChatMessage.tool_result(r) for r in results)
                continue

            if response.text is None:
                raise MalformedAnswerError("Model response contained neither text nor tool calls")

            logger.debug("Agent answer: %s", response.text)
            self._history.append(ChatMessage.assistant(response.text))
            answer = parse_answer(response.text, answer_type)
            self.state = AgentState.TERMINAL
            logger.info(
                "Agent finished after %d turn(s) in %.3fs",
                turn,
                time.monotonic() - run_start,
            )
            return answer

    async def _complete(self, model: str, options: ChatOptions, turn: int) -> ChatResponse:
        llm_t0 = time.monotonic()
        try:
            response = await self.client.complete(model, self.history, options)
        except AgentError:
            raise
        except Exception as exc:
            raise UpstreamError(f"Chat client failed: {exc}") from exc
        logger.debug(
            "LLM call %d took %.3fs (tool_calls=%d)",
            turn,
            time.monotonic() - llm_t0,
            len(response.tool_calls),
        )
        return response

    async def _dispatch_tool_calls(
        self, toolbox: ToolBox, tool_calls: Sequence[ToolCall]
    ) -> list[ToolResult]:
        """Run every tool call of one turn; results come back in request order."""

        async def _run_one(tc: ToolCall) -> ToolResult:
            logger.debug("Tool request: %s with params: %s", tc.name, tc.arguments)
            try:
                content = await toolbox.call_tool(tc.name, tc.arguments)
            except ToolError as exc:
                logger.debug("Tool %r returned error: %s", tc.name, exc)
                return ToolResult(call_id=tc.id, content=str(exc), is_error=True)
            except Exception as exc:
                logger.error("Tool %r failed: %s", tc.name, exc, exc_info=True)
                error = ToolExecutionError(f"Tool {tc.name!r} failed: {exc}")
                return ToolResult(call_id=tc.id, content=str(error), is_error=True)
            logger.debug("Tool result: %s", content)
            return ToolResult(call_id=tc.id, content=content)

        tools_t0 = time.monotonic()
        if self.concurrent_tools:
            results = list(await asyncio.gather(*[_run_one(tc) for tc in tool_calls]))
        else:
            results = [await _run_one(tc) for tc in tool_calls]
        logger.debug(
            "Dispatched %d tool(s) in %.3fs",
            len(tool_calls),
            time.monotonic() - tools_t0,
        )
        return results
