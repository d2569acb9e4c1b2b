"""
Web tools for the agentai loop.

- ``WebSearchToolBox`` searches the web with the Brave Search API.  It needs
  an API key; the free plan is enough (https://api.search.brave.com/app/keys).
- ``WebFetchToolBox`` downloads a page and returns its body as text.
"""

from __future__ import annotations

import logging

import httpx
from pydantic import BaseModel, Field

from agentai.conversation.errors import ToolExecutionError, ToolMessageError
from agentai.conversation.tools.base import FunctionToolBox

logger = logging.getLogger(__name__)

BRAVE_API_URL = "https://api.search.brave.com/res/v1/web/search"


class WebSearchArgs(BaseModel):
    query: str = Field(
        description=(
            "The search terms or keywords to be used by the search engine "
            "for retrieving relevant results."
        )
    )


class WebFetchArgs(BaseModel):
    url: str = Field(
        description="The full URL of the web page to fetch, including the protocol (e.g., https://)."
    )


class WebSearchToolBox(FunctionToolBox):
    """Brave web search.

    Args:
        api_key: Brave Search subscription token.
        count: Number of results to return.
        timeout: HTTP request timeout in seconds.
        tool_timeout: Maximum seconds per tool call (see ``FunctionToolBox``).
        max_retries: Additional attempts on retryable failures.
    """

    def __init__(
        self,
        api_key: str,
        count: int = 5,
        timeout: float = 15.0,
        *,
        tool_timeout: float | None = None,
        max_retries: int = 0,
    ) -> None:
        super().__init__(timeout=tool_timeout, max_retries=max_retries)
        self.api_key = api_key
        self.count = count
        self.http_timeout = timeout
        self.add_tool(
            self.web_search,
            arguments=WebSearchArgs,
            description=(
                "A tool that performs web searches using a specified query parameter to "
                "retrieve relevant results from a search engine. As the result you will "
                "receive a list of websites with descriptions."
            ),
        )

    async def web_search(self, args: WebSearchArgs) -> str:
        logger.debug("Web search: %r", args.query)
        try:
            async with httpx.AsyncClient(timeout=self.http_timeout) as client:
                response = await client.get(
                    BRAVE_API_URL,
                    params={"q": args.query, "count": str(self.count), "result_filter": "web"},
                    headers={
                        "Accept": "application/json",
                        "X-Subscription-Token": self.api_key,
                    },
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as exc:
            logger.error("Brave search failed: %s", exc)
            raise ToolExecutionError(f"Web search failed: {exc}") from exc

        items = (data.get("web") or {}).get("results")
        if not isinstance(items, list):
            raise ToolExecutionError("Web search returned no result list")

        results: list[str] = []
        for item in items:
            results.append(
                f"Title: {item.get('title', '')}\n"
                f"Description: {item.get('description', '')}\n"
                f"URL: {item.get('url', '')}"
            )
        return "\n\n".join(results)


class WebFetchToolBox(FunctionToolBox):
    """Fetches the raw text content of a web page.

    Request failures are reported to the model (bad URL, 404, ...) so it can
    try another page.

    Args:
        timeout: HTTP request timeout in seconds.
        tool_timeout: Maximum seconds per tool call (see ``FunctionToolBox``).
        max_retries: Additional attempts on retryable failures.
    """

    def __init__(
        self,
        timeout: float = 15.0,
        *,
        tool_timeout: float | None = None,
        max_retries: int = 0,
    ) -> None:
        super().__init__(timeout=tool_timeout, max_retries=max_retries)
        self.http_timeout = timeout
        self.add_tool(
            self.web_fetch,
            arguments=WebFetchArgs,
            description=(
                "Fetches the content of a web page given its URL. This tool is useful for "
                "accessing the raw text content of a webpage. The content is returned as "
                "a single string."
            ),
        )

    async def web_fetch(self, args: WebFetchArgs) -> str:
        logger.debug("Fetching %s", args.url)
        try:
            async with httpx.AsyncClient(timeout=self.http_timeout, follow_redirects=True) as client:
                response = await client.get(args.url)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise ToolMessageError(f"Request to {args.url} failed: {exc}") from exc

        if not response.is_success:
            raise ToolMessageError(
                f"Request to {args.url} failed with status: {response.status_code}"
            )
        return response.text
