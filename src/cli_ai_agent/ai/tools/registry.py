"""Tool catalog and the per-session selection of enabled tools."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable

from cli_ai_agent.ai.tools.base import Tool
from cli_ai_agent.config import ToolsConfig
from cli_ai_agent.log import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class ToolInfo:
    id: str
    name: str
    description: str


AVAILABLE_TOOLS: tuple[ToolInfo, ...] = (
    ToolInfo(
        id="web_search",
        name="Web Search",
        description="Search the web for current information (DuckDuckGo)",
    ),
    ToolInfo(
        id="code_execution",
        name="Code Execution",
        description="Run Python code and read its output",
    ),
)

_CATALOG: dict[str, ToolInfo] = {t.id: t for t in AVAILABLE_TOOLS}


def _build_web_search(config: ToolsConfig) -> Tool:
    from cli_ai_agent.ai.tools.web_search import WebSearchTool

    return WebSearchTool(config.web_search)


def _build_code_execution(config: ToolsConfig) -> Tool:
    from cli_ai_agent.ai.tools.code_execution import CodeExecutionTool

    return CodeExecutionTool(config.code_execution)


_FACTORIES: dict[str, Callable[[ToolsConfig], Tool]] = {
    "web_search": _build_web_search,
    "code_execution": _build_code_execution,
}


def get_tool_info(tool_id: str) -> ToolInfo:
    try:
        return _CATALOG[tool_id]
    except KeyError:
        raise ValueError(f"Unknown tool: {tool_id!r}") from None


class ToolSelection:
    """Enabled tools for one chat session.

    The enabled set is always a subset of the catalog. Owners must call
    :meth:`reset_tools` on every exit path.
    """

    def __init__(self, config: ToolsConfig | None = None, catalog: Iterable[ToolInfo] = AVAILABLE_TOOLS):
        self._config = config or ToolsConfig()
        self._catalog = tuple(catalog)
        self._enabled: set[str] = set()
        self._instances: dict[str, Tool] = {}

    @property
    def available_tools(self) -> tuple[ToolInfo, ...]:
        return self._catalog

    def enable_tools(self, tool_ids: Iterable[str]) -> None:
        """Replace the enabled set."""
        ids = set(tool_ids)
        known = {t.id for t in self._catalog}
        unknown = ids - known
        if unknown:
            raise ValueError(f"Unknown tools: {', '.join(sorted(unknown))}")
        self._enabled = ids
        logger.info("tools_enabled", tools=sorted(ids))

    def toggle_tool(self, tool_id: str) -> bool:
        """Flip membership of *tool_id*. Returns True when it is now enabled."""
        if tool_id not in {t.id for t in self._catalog}:
            raise ValueError(f"Unknown tool: {tool_id!r}")
        if tool_id in self._enabled:
            self._enabled.discard(tool_id)
            return False
        self._enabled.add(tool_id)
        return True

    def is_enabled(self, tool_id: str) -> bool:
        return tool_id in self._enabled

    def get_enabled_tool_ids(self) -> list[str]:
        return [t.id for t in self._catalog if t.id in self._enabled]

    def get_enabled_tools_names(self) -> list[str]:
        """Display names of enabled tools, in catalog order."""
        return [t.name for t in self._catalog if t.id in self._enabled]

    def get_enabled_tools(self) -> list[Tool]:
        """Executable tool instances for the enabled ids."""
        tools = []
        for tool_id in self.get_enabled_tool_ids():
            if tool_id not in self._instances:
                self._instances[tool_id] = _FACTORIES[tool_id](self._config)
            tools.append(self._instances[tool_id])
        return tools

    def reset_tools(self) -> None:
        self._enabled.clear()
        self._instances.clear()
        logger.debug("tools_reset")
