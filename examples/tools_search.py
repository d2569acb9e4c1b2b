#!/usr/bin/env python3
"""
Example: Web Search

Combines the Brave web search tool with the built-in date/time tools in one
ToolBoxSet.

Prerequisites:
    - AGENTAI_API_KEY set (and AGENTAI_BASE_URL for non-OpenAI backends)
    - AGENTAI_BRAVE_API_KEY set (https://api.search.brave.com/app/keys)

Usage:
    python examples/tools_search.py
    python examples/tools_search.py "Latest Python release"
"""

import argparse
import asyncio
import logging
import sys

from pydantic import BaseModel, Field

from agentai import Agent, OpenAICompatibleClient, configure_logging, get_settings
from agentai.conversation.tools import (
    CurrentDateAndTimeToolBox,
    ToolBoxSet,
    WebSearchToolBox,
)

SYSTEM = (
    "You are helpful assistant. You goal is to search for information requested by user, "
    "in result you will receive 5 sites, provide summary based on titles and descriptions."
)

logger = logging.getLogger(__name__)


class Answer(BaseModel):
    thinking: str = Field(alias="_thinking", description="In this field provide your thinking steps")
    answer: str = Field(description="In this field provide answer")


async def run(question: str, model: str, brave_api_key: str) -> None:
    settings = get_settings()
    client = OpenAICompatibleClient.from_settings(settings)
    agent = Agent.from_settings(client, SYSTEM, settings)

    tools = ToolBoxSet(
        [
            WebSearchToolBox(brave_api_key, tool_timeout=settings.tool_timeout),
            CurrentDateAndTimeToolBox(tool_timeout=settings.tool_timeout),
        ]
    )

    logger.info("Question: %s", question)
    answer = await agent.run(model, question, tools, answer_type=Answer)
    logger.info("Thinking: %s", answer.thinking)
    logger.info("Answer: %s", answer.answer)


def main():
    """Run the web search example."""
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Search the web with an LLM agent")
    parser.add_argument(
        "question",
        nargs="?",
        default="Search me for tools that can be used with terminal and Python",
        help="Question to ask",
    )
    parser.add_argument("--model", default=settings.model, help="Model identifier")
    args = parser.parse_args()

    configure_logging(settings)
    if not settings.brave_api_key:
        logger.error("AGENTAI_BRAVE_API_KEY is not set")
        sys.exit(1)

    asyncio.run(run(args.question, args.model, settings.brave_api_key))


if __name__ == "__main__":
    main()
