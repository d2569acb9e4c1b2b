"""
Exception hierarchy for the agentai conversation package.

Two families matter to callers:

- ``ToolError`` subclasses are raised by tool boxes.  The ``Agent`` never lets
  them escape ``run()``; their display text becomes the tool result the model
  sees, so the model can retry with different arguments or explain the problem.
- Everything else (``MalformedAnswerError``, ``MaxTurnsExceededError`` and the
  ``UpstreamError`` family) is fatal to the current ``Agent.run()`` call.
"""

from __future__ import annotations


class AgentError(Exception):
    """Base exception for all agentai errors."""


# ---------------------------------------------------------------------------
# Tool errors (recovered into tool results)
# ---------------------------------------------------------------------------


class ToolError(AgentError):
    """Base exception for errors raised by a ``ToolBox``."""


class DescriptorUnavailableError(ToolError):
    """Raised when a tool box cannot currently produce its tool definitions."""

    def __init__(self, message: str = "Tool definitions are not ready") -> None:
        super().__init__(message)


class ToolNotFoundError(ToolError):
    """Raised when no tool with the requested name exists.

    Attributes:
        name: The unresolved tool name.
    """

    def __init__(self, name: str) -> None:
        super().__init__(f"Tool named {name!r} not found")
        self.name = name


class ToolArgumentError(ToolError):
    """Raised when tool arguments do not match the tool's parameter schema."""


class ToolExecutionError(ToolError):
    """Raised when the underlying tool operation fails."""

    def __init__(self, message: str = "Tool execution failed") -> None:
        super().__init__(message)


class ToolMessageError(ToolExecutionError):
    """A tool failure whose message is meant for the model.

    Tools raise this when the error text is actionable (a missing parameter,
    malformed data, an unknown timezone) and safe to show to the LLM.
    """


# ---------------------------------------------------------------------------
# Fatal errors
# ---------------------------------------------------------------------------


class MalformedAnswerError(AgentError):
    """Raised when the final model text does not parse as the requested type.

    Attributes:
        text: The raw text that failed to parse.
    """

    def __init__(self, message: str, text: str | None = None) -> None:
        super().__init__(message)
        self.text = text


class MaxTurnsExceededError(AgentError):
    """Raised when the model keeps requesting tools past the turn guard."""


class UpstreamError(AgentError):
    """Base exception for failures of collaborators (chat backend, schema generation)."""


class SchemaGenerationError(UpstreamError):
    """Raised when no JSON schema can be produced for an answer type."""


class LLMError(UpstreamError):
    """Base exception for all LLM provider errors."""


class LLMRateLimitError(LLMError):
    """Raised when the LLM API returns a rate-limit (429) response."""


class LLMConnectionError(LLMError):
    """Raised when the LLM API endpoint cannot be reached."""


class LLMAPIError(LLMError):
    """Raised for other LLM API errors (e.g., 5xx, authentication failures).

    Attributes:
        status_code: HTTP status code from the API, or ``None`` if unavailable.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
