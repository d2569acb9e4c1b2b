#!/usr/bin/env python3
"""
Example: Custom Tool

Registers a plain async function as a tool.  The tool name comes from the
function name, the description from its docstring and the parameter schema
from the pydantic model it receives.

Prerequisites:
    - AGENTAI_API_KEY set (and AGENTAI_BASE_URL for non-OpenAI backends)

Usage:
    python examples/tools_custom.py
    python examples/tools_custom.py "Summarise https://example.com" --debug
"""

import argparse
import asyncio
import logging

import httpx
from pydantic import BaseModel, Field

from agentai import Agent, OpenAICompatibleClient, configure_logging, get_settings
from agentai.conversation.errors import ToolMessageError
from agentai.conversation.tools import FunctionToolBox

SYSTEM = (
    "You are helpful assistant. You goal is to provide summary for provided site. "
    "Limit you answer to 3 sentences."
)

DEFAULT_QUESTION = (
    "For what I can use this library? "
    "https://raw.githubusercontent.com/AdamStrojek/rust-agentai/refs/heads/master/README.md"
)

logger = logging.getLogger(__name__)


class FetchArgs(BaseModel):
    url: str = Field(description="Use this field to provide URL of file to download")


async def web_fetch(args: FetchArgs) -> str:
    """Download the file at the given URL and return its text."""
    async with httpx.AsyncClient(follow_redirects=True) as client:
        response = await client.get(args.url)
    if not response.is_success:
        raise ToolMessageError(f"Download failed with status: {response.status_code}")
    return response.text


async def run(question: str, model: str) -> None:
    settings = get_settings()
    client = OpenAICompatibleClient.from_settings(settings)
    agent = Agent.from_settings(client, SYSTEM, settings)

    toolbox = FunctionToolBox(timeout=settings.tool_timeout)
    toolbox.add_tool(web_fetch, arguments=FetchArgs)

    logger.info("Question: %s", question)
    answer = await agent.run(model, question, toolbox)
    logger.info("Answer: %s", answer)


def main():
    """Run the custom tool example."""
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Summarise a web page with a custom tool")
    parser.add_argument("question", nargs="?", default=DEFAULT_QUESTION, help="Question to ask")
    parser.add_argument("--model", default=settings.model, help="Model identifier")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    if args.debug:
        settings.log_level = "DEBUG"
    configure_logging(settings)
    asyncio.run(run(args.question, args.model))


if __name__ == "__main__":
    main()
