"""
``ToolBoxSet``: many tool boxes presented as one.

The set is itself a ``ToolBox``, so it can be passed straight to
``Agent.run()`` or nested inside another set.

Typical usage::

    from agentai.conversation.tools import CurrentDateAndTimeToolBox, ToolBoxSet

    tools = ToolBoxSet()
    tools.add(CurrentDateAndTimeToolBox())
    tools.add(mcp_toolbox)

    answer = await agent.run("gpt-4o-mini", "What time is it in Tokyo?", tools)

Dispatch order is insertion order: when two boxes expose the same tool name,
the box added first handles every call to it.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Iterator

from agentai.conversation.errors import ToolNotFoundError
from agentai.conversation.providers import ToolDefinition
from agentai.conversation.tools.base import ToolBox

logger = logging.getLogger(__name__)


class ToolBoxSet:
    """Ordered collection of ``ToolBox`` instances, dispatching first-match-wins."""

    def __init__(self, toolboxes: Iterable[ToolBox] = ()) -> None:
        self._toolboxes: list[ToolBox] = list(toolboxes)

    def add(self, toolbox: ToolBox) -> None:
        """Append *toolbox*; it is consulted after every box added before it."""
        self._toolboxes.append(toolbox)
        logger.debug("Added tool box %s (position %d)", type(toolbox).__name__, len(self._toolboxes))

    def __len__(self) -> int:
        return len(self._toolboxes)

    def __iter__(self) -> Iterator[ToolBox]:
        return iter(self._toolboxes)

    def tools_definitions(self) -> list[ToolDefinition]:
        """Return the definitions of every box, in insertion order.

        Duplicates are kept (and logged); only the first box claiming a name
        will ever receive calls for it.
        """
        definitions: list[ToolDefinition] = []
        for toolbox in self._toolboxes:
            definitions.extend(toolbox.tools_definitions())

        seen: set[str] = set()
        for definition in definitions:
            if definition.name in seen:
                logger.warning(
                    "Tool %r is exposed by more than one tool box; "
                    "calls go to the first one registered",
                    definition.name,
                )
            seen.add(definition.name)
        return definitions

    async def call_tool(self, name: str, arguments: Any) -> str:
        for toolbox in self._toolboxes:
            try:
                return await toolbox.call_tool(name, arguments)
            except ToolNotFoundError:
                continue
        raise ToolNotFoundError(name)
