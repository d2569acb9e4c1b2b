"""
agentai Conversation Package.

Implements the tool-calling conversation loop (``Agent``), the chat client
abstraction it talks to, and the error taxonomy shared with tool boxes.
"""

from agentai.conversation.errors import (
    AgentError,
    DescriptorUnavailableError,
    LLMAPIError,
    LLMConnectionError,
    LLMError,
    LLMRateLimitError,
    MalformedAnswerError,
    MaxTurnsExceededError,
    SchemaGenerationError,
    ToolArgumentError,
    ToolError,
    ToolExecutionError,
    ToolMessageError,
    ToolNotFoundError,
    UpstreamError,
)
from agentai.conversation.loop import Agent, AgentState
from agentai.conversation.providers import (
    ChatClient,
    ChatMessage,
    ChatOptions,
    ChatResponse,
    OpenAICompatibleClient,
    RateLimiter,
    ToolCall,
    ToolDefinition,
    ToolResult,
    UsageStats,
)

__all__ = [
    "Agent",
    "AgentError",
    "AgentState",
    "ChatClient",
    "ChatMessage",
    "ChatOptions",
    "ChatResponse",
    "DescriptorUnavailableError",
    "LLMAPIError",
    "LLMConnectionError",
    "LLMError",
    "LLMRateLimitError",
    "MalformedAnswerError",
    "MaxTurnsExceededError",
    "OpenAICompatibleClient",
    "RateLimiter",
    "SchemaGenerationError",
    "ToolArgumentError",
    "ToolCall",
    "ToolDefinition",
    "ToolError",
    "ToolExecutionError",
    "ToolMessageError",
    "ToolNotFoundError",
    "ToolResult",
    "UpstreamError",
    "UsageStats",
]
