#!/usr/bin/env python3
"""
Example: Structured Output

Asks a question without any tools and receives the answer as a validated
pydantic model instead of free text.

Prerequisites:
    - AGENTAI_API_KEY set (and AGENTAI_BASE_URL for non-OpenAI backends)

Usage:
    python examples/struct_output.py
    python examples/struct_output.py "Why is grass green?" --model gpt-4o
"""

import argparse
import asyncio
import logging

from pydantic import BaseModel, Field

from agentai import Agent, OpenAICompatibleClient, configure_logging, get_settings

SYSTEM = "You are helpful assistant"

logger = logging.getLogger(__name__)


class Answer(BaseModel):
    # A thinking field makes the model's reasoning visible when debugging.
    thinking: str = Field(alias="_thinking", description="In this field provide your thinking steps")
    answer: str = Field(description="In this field provide answer")


async def run(question: str, model: str) -> None:
    settings = get_settings()
    client = OpenAICompatibleClient.from_settings(settings)
    agent = Agent.from_settings(client, SYSTEM, settings)

    logger.info("Question: %s", question)
    answer = await agent.run(model, question, answer_type=Answer)
    logger.info("Thinking: %s", answer.thinking)
    logger.info("Answer: %s", answer.answer)


def main():
    """Run the structured output example."""
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Get a typed answer from an LLM")
    parser.add_argument("question", nargs="?", default="Why sky is blue?", help="Question to ask")
    parser.add_argument("--model", default=settings.model, help="Model identifier")
    args = parser.parse_args()

    configure_logging(settings)
    asyncio.run(run(args.question, args.model))


if __name__ == "__main__":
    main()
