"""
Chat client abstractions for the agentai conversation package.

Defines the ``ChatClient`` Protocol so the ``Agent`` can work with any
OpenAI-compatible backend (OpenAI, Ollama, Claude via LiteLLM proxy, etc.)
without being tied to a specific vendor or SDK.

The concrete implementation, ``OpenAICompatibleClient``, uses
``openai.AsyncOpenAI`` which supports any OpenAI-compatible base URL.

Also provides:
- The message and tool data types shared by the loop and the tool boxes.
- ``UsageStats`` for token usage reporting.
- ``RateLimiter`` for client-side call-rate throttling.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, Sequence, runtime_checkable

from openai import APIConnectionError, APIStatusError, AsyncOpenAI, RateLimitError

from agentai.conversation.errors import LLMAPIError, LLMConnectionError, LLMRateLimitError

if TYPE_CHECKING:
    from agentai.config import Settings

logger = logging.getLogger(__name__)

# Name under which structured-output schemas are sent to the backend.
RESPONSE_FORMAT_NAME = "ResponseFormat"


# ---------------------------------------------------------------------------
# Tool data types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ToolDefinition:
    """Describes a callable tool available to the LLM.

    Attributes:
        name: The tool's unique name (used by the LLM to invoke it).
        description: Human-readable description shown in the LLM's tool prompt.
        parameters: JSON Schema dict describing the tool's input parameters,
            or ``None`` for a tool without arguments.
    """

    name: str
    description: str | None = None
    parameters: dict[str, Any] | None = None

    def to_openai_format(self) -> dict[str, Any]:
        """Serialise to OpenAI tool definition format."""
        function: dict[str, Any] = {
            "name": self.name,
            "parameters": self.parameters or {"type": "object", "properties": {}},
        }
        if self.description:
            function["description"] = self.description
        return {"type": "function", "function": function}


@dataclass
class ToolCall:
    """A tool invocation requested by the LLM.

    Attributes:
        id: Unique call ID returned by the LLM (used to correlate the result).
        name: Name of the tool to invoke.
        arguments: Decoded JSON arguments.  Holds the raw string when the
            backend sent arguments that are not valid JSON.
    """

    id: str
    name: str
    arguments: Any


@dataclass
class ToolResult:
    """Outcome of one ``ToolCall``, fed back to the LLM.

    Attributes:
        call_id: ID of the originating ``ToolCall``.
        content: Tool output, or the error's display text.
        is_error: ``True`` when *content* describes a failure.
    """

    call_id: str
    content: str
    is_error: bool = False


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------


@dataclass
class ChatMessage:
    """One turn in the conversation history.

    Attributes:
        role: ``"system"``, ``"user"``, ``"assistant"`` or ``"tool"``.
        content: Message text (``None`` for an assistant tool-call message).
        tool_calls: Tool invocations requested by the assistant.
        tool_call_id: For ``"tool"`` messages, the call being answered.
        is_error: For ``"tool"`` messages, whether the result is an error.
    """

    role: str
    content: str | None = None
    tool_calls: list[ToolCall] = field(default_factory=list)
    tool_call_id: str | None = None
    is_error: bool = False

    @classmethod
    def system(cls, content: str) -> ChatMessage:
        return cls(role="system", content=content)

    @classmethod
    def user(cls, content: str) -> ChatMessage:
        return cls(role="user", content=content)

    @classmethod
    def assistant(cls, content: str) -> ChatMessage:
        return cls(role="assistant", content=content)

    @classmethod
    def assistant_tool_calls(cls, tool_calls: Sequence[ToolCall]) -> ChatMessage:
        return cls(role="assistant", tool_calls=list(tool_calls))

    @classmethod
    def tool_result(cls, result: ToolResult) -> ChatMessage:
        return cls(
            role="tool",
            content=result.content,
            tool_call_id=result.call_id,
            is_error=result.is_error,
        )

    def to_openai_format(self) -> dict[str, Any]:
        """Serialise to an OpenAI chat-completions message dict."""
        message: dict[str, Any] = {"role": self.role}
        if self.content is not None:
            message["content"] = self.content
        if self.tool_calls:
            message["tool_calls"] = [
                {
                    "id": tc.id,
                    "type": "function",
                    "function": {
                        "name": tc.name,
                        "arguments": (
                            tc.arguments
                            if isinstance(tc.arguments, str)
                            else json.dumps(tc.arguments)
                        ),
                    },
                }
                for tc in self.tool_calls
            ]
        if self.tool_call_id is not None:
            message["tool_call_id"] = self.tool_call_id
        return message


# ---------------------------------------------------------------------------
# Requests and responses
# ---------------------------------------------------------------------------


@dataclass
class ChatOptions:
    """Per-request options sent alongside the message history.

    Attributes:
        temperature: Sampling temperature.
        response_format: JSON schema the final answer must follow, or ``None``
            for free text.
        tools: Tool definitions offered to the model.  ``None`` means no tools
            are sent at all (some backends reject an empty list).
    """

    temperature: float = 0.2
    response_format: dict[str, Any] | None = None
    tools: list[ToolDefinition] | None = None


@dataclass
class UsageStats:
    """Token usage recorded for a single LLM completion call."""

    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


@dataclass
class ChatResponse:
    """Result of a single chat completion call.

    A response carrying ``tool_calls`` asks the loop to dispatch tools;
    otherwise ``text`` is the model's final answer.

    Attributes:
        text: Text content of the reply, if any.
        tool_calls: Requested tool invocations, in the order the model emitted them.
        finish_reason: Backend finish reason (informational).
        usage: Token usage for this call, or ``None`` if unavailable.
    """

    text: str | None = None
    tool_calls: list[ToolCall] = field(default_factory=list)
    finish_reason: str | None = None
    usage: UsageStats | None = None


# ---------------------------------------------------------------------------
# Rate limiter
# ---------------------------------------------------------------------------


class RateLimiter:
    """Async client-side rate limiter using a sliding window.

    Enforces a maximum number of calls per minute. Callers ``await
    acquire()`` before making an LLM request; the method sleeps until
    the window allows another call.

    Attributes:
        calls_per_minute: Maximum calls allowed in any 60-second window.
    """

    def __init__(self, calls_per_minute: int) -> None:
        if calls_per_minute <= 0:
            raise ValueError("calls_per_minute must be a positive integer.")
        self.calls_per_minute = calls_per_minute
        self._window_seconds = 60.0
        self._timestamps: deque[float] = deque()
        self._lock = asyncio.Lock()

    def _prune(self) -> None:
        cutoff = time.monotonic() - self._window_seconds
        while self._timestamps and self._timestamps[0] < cutoff:
            self._timestamps.popleft()

    async def acquire(self) -> None:
        """Wait until a call slot is available within the current window."""
        async with self._lock:
            self._prune()
            if len(self._timestamps) >= self.calls_per_minute:
                sleep_secs = self._timestamps[0] + self._window_seconds - time.monotonic()
                if sleep_secs > 0:
                    logger.debug(
                        "RateLimiter: at capacity (%d/%d), sleeping %.2fs",
                        len(self._timestamps),
                        self.calls_per_minute,
                        sleep_secs,
                    )
                    await asyncio.sleep(sleep_secs)
                self._prune()
            self._timestamps.append(time.monotonic())


# ---------------------------------------------------------------------------
# ChatClient Protocol
# ---------------------------------------------------------------------------


@runtime_checkable
class ChatClient(Protocol):
    """Protocol for chat backends used by ``Agent``.

    Implementations must return tool calls in the order the model emitted them.
    """

    async def complete(
        self,
        model: str,
        messages: Sequence[ChatMessage],
        options: ChatOptions,
    ) -> ChatResponse:
        """Send a chat request to the LLM.

        Raises:
            LLMRateLimitError: If the API returns a 429 rate-limit response.
            LLMConnectionError: If the API endpoint cannot be reached.
            LLMAPIError: For other API-level failures.
        """
        ...


# ---------------------------------------------------------------------------
# Concrete client implementation
# ---------------------------------------------------------------------------


class OpenAICompatibleClient:
    """Chat client backed by any OpenAI-compatible endpoint.

    Attributes:
        base_url: The API base URL.
        rate_limiter: Optional ``RateLimiter`` for client-side call throttling.
    """

    def __init__(
        self,
        base_url: str = "https://api.openai.com/v1",
        api_key: str = "",
        timeout: float | None = 60.0,
        rate_limiter: RateLimiter | None = None,
    ) -> None:
        self.base_url = base_url
        self.rate_limiter = rate_limiter
        # The SDK refuses an empty key; local backends (Ollama) accept any value.
        self._client = AsyncOpenAI(base_url=base_url, api_key=api_key or "unused", timeout=timeout)

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> OpenAICompatibleClient:
        return cls(
            base_url=settings.base_url,
            api_key=settings.api_key,
            timeout=settings.request_timeout,
            **kwargs,
        )

    async def complete(
        self,
        model: str,
        messages: Sequence[ChatMessage],
        options: ChatOptions,
    ) -> ChatResponse:
        """Call the LLM and return a structured ``ChatResponse``.

        Raises:
            LLMRateLimitError: If the API returns a 429 response.
            LLMConnectionError: If the API endpoint cannot be reached.
            LLMAPIError: For other API-level failures (e.g. 4xx/5xx).
        """
        if self.rate_limiter is not None:
            await self.rate_limiter.acquire()

        kwargs: dict[str, Any] = {
            "model": model,
            "messages": [m.to_openai_format() for m in messages],
            "temperature": options.temperature,
        }
        if options.tools:
            kwargs["tools"] = [t.to_openai_format() for t in options.tools]
        if options.response_format is not None:
            kwargs["response_format"] = {
                "type": "json_schema",
                "json_schema": {
                    "name": RESPONSE_FORMAT_NAME,
                    "schema": options.response_format,
                },
            }

        logger.debug(
            "LLM request: model=%s, messages=%d, tools=%d, structured=%s",
            model,
            len(kwargs["messages"]),
            len(kwargs.get("tools", [])),
            options.response_format is not None,
        )

        try:
            response = await self._client.chat.completions.create(**kwargs)
        except RateLimitError as exc:
            logger.warning("LLM rate limit exceeded: %s", exc)
            raise LLMRateLimitError(f"Rate limit exceeded: {exc}") from exc
        except APIConnectionError as exc:
            logger.error("LLM connection failed: %s", exc)
            raise LLMConnectionError(f"Could not connect to LLM endpoint: {exc}") from exc
        except APIStatusError as exc:
            logger.error("LLM API error %d: %s", exc.status_code, exc)
            raise LLMAPIError(
                f"LLM API returned status {exc.status_code}: {exc}",
                status_code=exc.status_code,
            ) from exc

        choice = response.choices[0]
        message = choice.message

        tool_calls: list[ToolCall] = []
        for tc in message.tool_calls or []:
            try:
                args: Any = json.loads(tc.function.arguments or "{}")
            except json.JSONDecodeError:
                logger.warning(
                    "Tool call %s(%s) has undecodable arguments: %r",
                    tc.function.name,
                    tc.id,
                    tc.function.arguments,
                )
                args = tc.function.arguments
            tool_calls.append(ToolCall(id=tc.id, name=tc.function.name, arguments=args))

        usage: UsageStats | None = None
        if response.usage is not None:
            usage = UsageStats(
                prompt_tokens=response.usage.prompt_tokens,
                completion_tokens=response.usage.completion_tokens,
                total_tokens=response.usage.total_tokens,
            )

        logger.debug(
            "LLM response: finish_reason=%s, tool_calls=%d, tokens=%s",
            choice.finish_reason,
            len(tool_calls),
            usage.total_tokens if usage else "n/a",
        )

        return ChatResponse(
            text=message.content,
            tool_calls=tool_calls,
            finish_reason=choice.finish_reason,
            usage=usage,
        )
