"""Interface shared by the tools a tool-mode session can enable."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class Tool(ABC):
    """A catalog tool the model may call during a tool-mode turn.

    Results are plain text; failures are reported by the gateway as error
    tool results rather than ending the turn.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Tool name the model calls it by; matches the catalog id."""
        ...

    @property
    @abstractmethod
    def description(self) -> str:
        ...

    @property
    @abstractmethod
    def input_schema(self) -> dict[str, Any]:
        """JSON Schema of the call arguments."""
        ...

    @abstractmethod
    async def execute(self, **kwargs: Any) -> str:
        """Run one call with the model-supplied arguments."""
        ...

    def to_api_dict(self) -> dict[str, Any]:
        """Tool definition for the Messages API ``tools`` parameter."""
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema,
        }
