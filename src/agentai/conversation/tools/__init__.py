"""
Tool boxes for the agentai loop.

A ``ToolBox`` describes a group of tools to the model and runs them by name.
``ToolBoxSet`` combines several boxes into one; the first box added wins
when names collide.

Quick-start example::

    from agentai.conversation.tools import (
        CurrentDateAndTimeToolBox,
        ToolBoxSet,
        WebFetchToolBox,
    )

    tools = ToolBoxSet([CurrentDateAndTimeToolBox(), WebFetchToolBox()])
    answer = await agent.run("gpt-4o-mini", "What day of the week is it?", tools)
"""

from agentai.conversation.tools.base import FunctionToolBox, ToolBox, ToolHandler
from agentai.conversation.tools.datetime_tool import CurrentDateAndTimeToolBox
from agentai.conversation.tools.location import LocationToolBox
from agentai.conversation.tools.mcp import (
    HttpServer,
    McpHttpSession,
    McpSession,
    McpStdioSession,
    McpToolBox,
    StdioServer,
)
from agentai.conversation.tools.registry import ToolBoxSet
from agentai.conversation.tools.web import WebFetchToolBox, WebSearchToolBox

__all__ = [
    "CurrentDateAndTimeToolBox",
    "FunctionToolBox",
    "HttpServer",
    "LocationToolBox",
    "McpHttpSession",
    "McpSession",
    "McpStdioSession",
    "McpToolBox",
    "StdioServer",
    "ToolBox",
    "ToolBoxSet",
    "ToolHandler",
    "WebFetchToolBox",
    "WebSearchToolBox",
]
