#!/usr/bin/env python3
"""
Example: MCP Tools

Starts the reference time MCP server as a subprocess, exposes its tools to
the agent and asks a question that needs them.  Optionally also connects to
a Streamable HTTP MCP server.

Prerequisites:
    - AGENTAI_API_KEY set (and AGENTAI_BASE_URL for non-OpenAI backends)
    - uv installed (``uvx mcp-server-time`` must work)

Usage:
    python examples/tools_mcp.py
    python examples/tools_mcp.py "What time is it in Tokyo?" --http http://localhost:8000/mcp
"""

import argparse
import asyncio
import logging

from pydantic import BaseModel, Field

from agentai import Agent, OpenAICompatibleClient, configure_logging, get_settings
from agentai.conversation.tools.mcp import HttpServer, McpToolBox, StdioServer

SYSTEM = "You are helpful assistant."

logger = logging.getLogger(__name__)


class Answer(BaseModel):
    thinking: str = Field(alias="_thinking", description="In this field provide your thinking steps")
    answer: str = Field(description="In this field provide answer")


async def run(question: str, model: str, http_urls: list[str]) -> None:
    settings = get_settings()
    client = OpenAICompatibleClient.from_settings(settings)
    agent = Agent.from_settings(client, SYSTEM, settings)

    servers = [StdioServer("uvx", ["mcp-server-time", "--local-timezone", "UTC"])]
    servers.extend(HttpServer(url) for url in http_urls)

    async with await McpToolBox.from_servers(servers) as mcp_tools:
        for definition in mcp_tools.tools_definitions():
            logger.info("MCP tool available: %s", definition.name)

        logger.info("Question: %s", question)
        answer = await agent.run(model, question, mcp_tools, answer_type=Answer)

    logger.info("Thinking: %s", answer.thinking)
    logger.info("Answer: %s", answer.answer)


def main():
    """Run the MCP tools example."""
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Answer questions with MCP server tools")
    parser.add_argument(
        "question", nargs="?", default="What is current time in Poland?", help="Question to ask"
    )
    parser.add_argument("--model", default=settings.model, help="Model identifier")
    parser.add_argument(
        "--http", action="append", default=[], metavar="URL", help="Streamable HTTP MCP server URL"
    )
    args = parser.parse_args()

    configure_logging(settings)
    asyncio.run(run(args.question, args.model, args.http))


if __name__ == "__main__":
    main()
