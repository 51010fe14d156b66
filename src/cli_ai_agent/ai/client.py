"""Model gateway: streams responses from the hosted model and runs tool-use steps."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Callable, TypeVar

import anthropic
import httpx
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from cli_ai_agent.ai.tools.base import Tool
from cli_ai_agent.config import AIConfig, AnthropicConfig
from cli_ai_agent.errors import ConfigError, GatewayError
from cli_ai_agent.log import get_logger

logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


@dataclass
class Usage:
    input_tokens: int = 0
    output_tokens: int = 0

    def __add__(self, other: Usage) -> Usage:
        return Usage(
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
        )


@dataclass(frozen=True, slots=True)
class TextDelta:
    text: str


@dataclass(frozen=True, slots=True)
class ToolCall:
    id: str
    name: str
    input: dict[str, Any]


@dataclass(frozen=True, slots=True)
class ToolResult:
    tool_call_id: str
    name: str
    content: str
    is_error: bool = False


@dataclass(frozen=True, slots=True)
class StepFinish:
    finish_reason: str | None
    usage: Usage


StreamEvent = TextDelta | ToolCall | ToolResult | StepFinish


@dataclass
class StreamedResponse:
    """Aggregate of one model invocation, across all of its tool-use steps."""

    content: str = ""
    finish_reason: str | None = None
    usage: Usage = field(default_factory=Usage)
    tool_calls: list[ToolCall] = field(default_factory=list)
    tool_results: list[ToolResult] = field(default_factory=list)
    steps: int = 0


class ModelGateway(ABC):
    """Sends a transcript to a model and streams the answer back."""

    @property
    @abstractmethod
    def model_name(self) -> str:
        ...

    @abstractmethod
    def stream(
        self,
        messages: list[dict[str, Any]],
        tools: list[Tool] | None = None,
    ) -> AsyncIterator[StreamEvent]:
        """Yield text fragments and tool activity in arrival order.

        The sequence is forward-only and cannot be restarted.
        """
        ...

    @abstractmethod
    async def generate_structured(
        self, schema: type[ModelT], prompt: str, max_tokens: int | None = None
    ) -> ModelT:
        """Ask the model for an object matching *schema*."""
        ...

    async def send_message(
        self,
        messages: list[dict[str, Any]],
        on_chunk: Callable[[str], None] | None = None,
        tools: list[Tool] | None = None,
        on_tool_call: Callable[[ToolCall], None] | None = None,
    ) -> StreamedResponse:
        """Stream a response, reporting chunks and tool calls as they arrive."""
        result = StreamedResponse()
        parts: list[str] = []

        async for event in self.stream(messages, tools):
            if isinstance(event, TextDelta):
                parts.append(event.text)
                if on_chunk:
                    on_chunk(event.text)
            elif isinstance(event, ToolCall):
                result.tool_calls.append(event)
                if on_tool_call:
                    on_tool_call(event)
            elif isinstance(event, ToolResult):
                result.tool_results.append(event)
            elif isinstance(event, StepFinish):
                result.steps += 1
                result.finish_reason = event.finish_reason
                result.usage = result.usage + event.usage

        result.content = "".join(parts)
        return result

    async def get_message(
        self, messages: list[dict[str, Any]], tools: list[Tool] | None = None
    ) -> str:
        """Non-incremental convenience: only the final text."""
        result = await self.send_message(messages, tools=tools)
        return result.content


class AnthropicGateway(ModelGateway):
    """Anthropic Messages API backend using the official SDK."""

    def __init__(
        self,
        config: AnthropicConfig,
        ai_config: AIConfig,
        client: Any = None,
    ):
        if client is None:
            if not config.api_key:
                raise ConfigError(
                    "Anthropic API key is not configured. "
                    "Set ANTHROPIC_API_KEY or 'anthropic.api_key' in config.yaml."
                )
            client = anthropic.AsyncAnthropic(
                api_key=config.api_key,
                base_url=config.base_url,
                max_retries=config.max_retries,
                timeout=config.timeout,
            )
        self._client = client
        self._ai = ai_config

    @property
    def model_name(self) -> str:
        return self._ai.model

    @property
    def max_tool_steps(self) -> int:
        return self._ai.max_tool_steps

    def _request_kwargs(
        self,
        messages: list[dict[str, Any]],
        tool_defs: list[dict[str, Any]],
        force_final: bool,
    ) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": self._ai.model,
            "max_tokens": self._ai.max_tokens,
            "messages": messages,
            "temperature": self._ai.temperature,
        }
        if self._ai.system_prompt:
            kwargs["system"] = self._ai.system_prompt
        if tool_defs:
            kwargs["tools"] = tool_defs
            if force_final:
                kwargs["tool_choice"] = {"type": "none"}
        return kwargs

    async def stream(
        self,
        messages: list[dict[str, Any]],
        tools: list[Tool] | None = None,
    ) -> AsyncIterator[StreamEvent]:
        # Tool rounds are appended to a private copy, never to the caller's transcript.
        messages = list(messages)
        tool_map = {t.name: t for t in tools or []}
        tool_defs = [t.to_api_dict() for t in tools or []]
        if tool_defs:
            logger.debug("tools_enabled", tools=list(tool_map))

        steps = 0
        while True:
            force_final = bool(tool_defs) and steps >= self.max_tool_steps
            kwargs = self._request_kwargs(messages, tool_defs, force_final)

            logger.debug(
                "api_request",
                model=self._ai.model,
                message_count=len(messages),
                step=steps,
                force_final=force_final,
            )
            try:
                async with self._client.messages.stream(**kwargs) as response_stream:
                    async for text in response_stream.text_stream:
                        yield TextDelta(text)
                    final = await response_stream.get_final_message()
            except (anthropic.APIError, httpx.HTTPError) as e:
                # Errors while reading the streamed body reach us unwrapped by the SDK
                logger.error("api_error", model=self._ai.model, error=str(e))
                raise GatewayError(f"Model request failed: {e}") from e

            usage = Usage(
                input_tokens=final.usage.input_tokens,
                output_tokens=final.usage.output_tokens,
            )
            logger.debug(
                "api_response",
                model=self._ai.model,
                input_tokens=usage.input_tokens,
                output_tokens=usage.output_tokens,
                stop_reason=final.stop_reason,
            )
            yield StepFinish(final.stop_reason, usage)

            tool_use_blocks = [b for b in final.content if b.type == "tool_use"]
            if not tool_use_blocks or force_final:
                return

            steps += 1

            assistant_content: list[dict[str, Any]] = []
            for block in final.content:
                if block.type == "text":
                    assistant_content.append({"type": "text", "text": block.text})
                elif block.type == "tool_use":
                    assistant_content.append(
                        {
                            "type": "tool_use",
                            "id": block.id,
                            "name": block.name,
                            "input": block.input,
                        }
                    )
            messages.append({"role": "assistant", "content": assistant_content})

            tool_result_content: list[dict[str, Any]] = []
            for block in tool_use_blocks:
                call = ToolCall(id=block.id, name=block.name, input=dict(block.input or {}))
                yield call
                result = await self._execute_tool(tool_map, call)
                yield result
                tool_result_content.append(
                    {
                        "type": "tool_result",
                        "tool_use_id": result.tool_call_id,
                        "content": result.content,
                        "is_error": result.is_error,
                    }
                )

            messages.append({"role": "user", "content": tool_result_content})
            logger.info("tool_step", step=steps, tools=[b.name for b in tool_use_blocks])

    @staticmethod
    async def _execute_tool(tool_map: dict[str, Tool], call: ToolCall) -> ToolResult:
        tool = tool_map.get(call.name)
        if tool is None:
            return ToolResult(call.id, call.name, f"Error: unknown tool '{call.name}'", is_error=True)
        try:
            content = await tool.execute(**call.input)
        except Exception as e:
            logger.error("tool_execution_error", tool=call.name, error=str(e))
            return ToolResult(call.id, call.name, f"Error executing {call.name}: {e}", is_error=True)
        return ToolResult(call.id, call.name, content)

    async def generate_structured(
        self, schema: type[ModelT], prompt: str, max_tokens: int | None = None
    ) -> ModelT:
        """Force a single tool call whose input schema is *schema*'s JSON schema."""
        tool_name = "submit_" + schema.__name__.lower()
        kwargs: dict[str, Any] = {
            "model": self._ai.model,
            "max_tokens": max_tokens or self._ai.max_tokens,
            "messages": [{"role": "user", "content": prompt}],
            "tools": [
                {
                    "name": tool_name,
                    "description": schema.__doc__ or f"Submit a {schema.__name__}",
                    "input_schema": schema.model_json_schema(),
                }
            ],
            "tool_choice": {"type": "tool", "name": tool_name},
        }
        if self._ai.system_prompt:
            kwargs["system"] = self._ai.system_prompt

        logger.debug("structured_request", model=self._ai.model, schema=schema.__name__)
        # Streamed so large plans are not cut off by the client read timeout
        try:
            async with self._client.messages.stream(**kwargs) as response_stream:
                response = await response_stream.get_final_message()
        except (anthropic.APIError, httpx.HTTPError) as e:
            logger.error("structured_api_error", model=self._ai.model, error=str(e))
            raise GatewayError(f"Structured generation failed: {e}") from e

        block = next((b for b in response.content if b.type == "tool_use"), None)
        if block is None:
            raise GatewayError(f"Model did not return a {schema.__name__}")
        try:
            return schema.model_validate(block.input)
        except PydanticValidationError as e:
            logger.error("structured_invalid", schema=schema.__name__, error=str(e))
            raise GatewayError(f"Model returned an invalid {schema.__name__}: {e}") from e
