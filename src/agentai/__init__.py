"""
agentai - LLM agents that call tools and answer with typed results.

This library drives a conversation with any OpenAI-compatible chat backend.
It includes:

- ``Agent``, the tool-calling loop with structured (pydantic-validated) answers
- Tool boxes: function tools, MCP servers, date/time, location and web tools
- Settings loaded from ``AGENTAI_*`` environment variables

Quick Start:
    >>> from agentai import Agent, OpenAICompatibleClient
    >>> from agentai.conversation.tools import CurrentDateAndTimeToolBox
    >>> agent = Agent(OpenAICompatibleClient(api_key="sk-..."), system="Be brief.")
    >>> answer = await agent.run("gpt-4o-mini", "What day is it?", CurrentDateAndTimeToolBox())
"""

from agentai.config import Settings, configure_logging, get_settings
from agentai.conversation import Agent, OpenAICompatibleClient

__version__ = "0.1.0"
__all__ = ["Agent", "OpenAICompatibleClient", "Settings", "configure_logging", "get_settings"]
