"""Web search tool backed by the Tavily Search API.

The Tavily call goes through httpx. Any other provider can be plugged in by
passing an async ``search`` function in :class:`WebSearchToolConfig`.

Example::

    web_search = create_web_search_tool(WebSearchToolConfig(api_key="tvly-xxx"))
    registry.register(web_search)
"""

from __future__ import annotations

import os
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Literal

import httpx
from pydantic import BaseModel, Field

from .capability import CallContext, ToolOutput
from .tool import Tool

# -- Result types -------------------------------------------------------------


class WebSearchResultItem(BaseModel):
    title: str
    url: str
    content: str
    """Snippet or summary of the page content."""
    score: float | None = None
    published_date: str | None = None


class WebSearchResult(BaseModel):
    query: str
    results: list[WebSearchResultItem]
    answer: str | None = None
    """Provider-generated short answer, when available."""


class WebSearchOptions(BaseModel):
    max_results: int
    topic: Literal["general", "news"]


WebSearchFunction = Callable[[str, WebSearchOptions], Awaitable[WebSearchResult]]


@dataclass
class WebSearchToolConfig:
    """Configuration for :func:`create_web_search_tool`."""

    api_key: str | None = None
    """Tavily API key. Falls back to the ``TAVILY_API_KEY`` environment variable."""
    search_depth: Literal["basic", "advanced"] = "basic"
    include_answer: bool = True
    base_url: str = "https://api.tavily.com"
    max_results: int = 5
    topic: Literal["general", "news"] = "general"
    search: WebSearchFunction | None = None
    """Custom search provider; replaces the Tavily call."""
    timeout: float = 30.0


class WebSearchInput(BaseModel):
    """Input schema for the web_search tool."""

    query: str = Field(description="The search query")
    max_results: int | None = Field(
        default=None,
        alias="maxResults",
        description="Maximum number of results to return",
    )
    topic: Literal["general", "news"] | None = Field(
        default=None, description="Topic filter: general web search or news"
    )

    model_config = {"populate_by_name": True}


# -- Tavily -------------------------------------------------------------------


def _create_tavily_search_fn(config: WebSearchToolConfig) -> WebSearchFunction:
    async def _tavily_search(query: str, options: WebSearchOptions) -> WebSearchResult:
        api_key = config.api_key or os.environ.get("TAVILY_API_KEY")
        if not api_key:
            raise RuntimeError(
                "Tavily API key is required. Set web_search.api_key in settings "
                "or the TAVILY_API_KEY environment variable."
            )

        body = {
            "query": query,
            "max_results": options.max_results,
            "search_depth": config.search_depth,
            "include_answer": config.include_answer,
            "topic": options.topic,
        }

        async with httpx.AsyncClient(timeout=config.timeout) as client:
            response = await client.post(
                f"{config.base_url.rstrip('/')}/search",
                json=body,
                headers={"Authorization": f"Bearer {api_key}"},
            )

        if response.status_code != 200:
            try:
                detail = response.json().get("detail")
            except ValueError:
                detail = None
            message = detail if isinstance(detail, str) else response.text
            raise RuntimeError(f"Tavily API error ({response.status_code}): {message}")

        data = response.json()
        return WebSearchResult(
            query=data.get("query", query),
            answer=data.get("answer"),
            results=[
                WebSearchResultItem(
                    title=r.get("title", ""),
                    url=r.get("url", ""),
                    content=r.get("content", ""),
                    score=r.get("score"),
                    published_date=r.get("published_date"),
                )
                for r in data.get("results", [])
            ],
        )

    return _tavily_search


def format_results(result: WebSearchResult) -> str:
    """Render search results as text for the model."""
    if not result.results and not result.answer:
        return f'No results found for "{result.query}".'

    lines = [f'Search results for "{result.query}":']
    if result.answer:
        lines.append(f"\nAnswer: {result.answer}")
    for i, item in enumerate(result.results, start=1):
        lines.append(f"\n{i}. {item.title}\n   {item.url}\n   {item.content}")
    return "\n".join(lines)


def create_web_search_tool(config: WebSearchToolConfig | None = None) -> Tool:
    """Create the ``web_search`` tool.

    The result text goes back to the model; the structured results are attached
    as ``ToolOutput.data``.
    """
    config = config or WebSearchToolConfig()
    search_fn = config.search or _create_tavily_search_fn(config)

    async def web_search(ctx: CallContext, input: WebSearchInput) -> ToolOutput:
        options = WebSearchOptions(
            max_results=input.max_results if input.max_results is not None else config.max_results,
            topic=input.topic or config.topic,
        )
        result = await search_fn(input.query, options)
        return ToolOutput(text=format_results(result), data=result.model_dump(mode="json"))

    return Tool(
        name="web_search",
        description=(
            "Search the web for current information. "
            "Returns a list of relevant results with titles, URLs, and content snippets."
        ),
        handler=web_search,
        input_schema=WebSearchInput,
    )
