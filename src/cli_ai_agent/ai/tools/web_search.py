"""Web search tool backed by DuckDuckGo."""

from __future__ import annotations

import asyncio
import json
from typing import Any

from ddgs import DDGS

from cli_ai_agent.ai.tools.base import Tool
from cli_ai_agent.config import WebSearchConfig
from cli_ai_agent.log import get_logger

logger = get_logger(__name__)


class WebSearchTool(Tool):
    """Searches the web and returns titles, URLs and snippets."""

    def __init__(self, config: WebSearchConfig | None = None):
        self._config = config or WebSearchConfig()

    @property
    def name(self) -> str:
        return "web_search"

    @property
    def description(self) -> str:
        return (
            "Search the web for current information. Returns a list of results "
            "with title, url and snippet. Use it for recent events or facts "
            "you are not sure about."
        )

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": "The search query",
                },
                "max_results": {
                    "type": "integer",
                    "description": f"Number of results (default: {self._config.max_results})",
                },
            },
            "required": ["query"],
        }

    async def execute(self, **kwargs: Any) -> str:
        query = kwargs.get("query", "")
        max_results = kwargs.get("max_results") or self._config.max_results

        if not query:
            return "Error: query is required"

        logger.debug("web_search", query=query, max_results=max_results)
        results = await asyncio.to_thread(self._search, query, max_results)
        if not results:
            return f"No results found for '{query}'."

        formatted = [
            {
                "title": r.get("title", ""),
                "url": r.get("href", r.get("link", "")),
                "snippet": r.get("body", r.get("snippet", "")),
            }
            for r in results
        ]
        return json.dumps({"query": query, "results": formatted}, ensure_ascii=False)

    def _search(self, query: str, max_results: int) -> list[dict[str, Any]]:
        with DDGS() as ddgs:
            return list(
                ddgs.text(
                    query,
                    region=self._config.region,
                    safesearch=self._config.safesearch,
                    max_results=max_results,
                )
            )
