"""Python code execution tool."""

from __future__ import annotations

import asyncio
import tempfile
from typing import Any

from cli_ai_agent.ai.tools.base import Tool
from cli_ai_agent.config import CodeExecutionConfig


class CodeExecutionTool(Tool):
    """Runs a Python snippet in a separate interpreter and returns its output."""

    def __init__(self, config: CodeExecutionConfig | None = None):
        self._config = config or CodeExecutionConfig()

    @property
    def name(self) -> str:
        return "code_execution"

    @property
    def description(self) -> str:
        return (
            "Execute a Python 3 program and return stdout, stderr and the exit code. "
            "Use print() to produce output. Each call runs in a fresh process."
        )

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "code": {
                    "type": "string",
                    "description": "Python source code to run",
                },
                "timeout": {
                    "type": "integer",
                    "description": f"Timeout in seconds (default: {self._config.timeout}, max: 120)",
                },
            },
            "required": ["code"],
        }

    async def execute(self, **kwargs: Any) -> str:
        code = kwargs.get("code", "")
        timeout = min(kwargs.get("timeout") or self._config.timeout, 120)

        if not code:
            return "Error: code is required"

        with tempfile.TemporaryDirectory(prefix="cli-ai-agent-") as workdir:
            process = await asyncio.create_subprocess_exec(
                self._config.python,
                "-c",
                code,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=workdir,
            )

            try:
                stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
            except asyncio.TimeoutError:
                process.kill()
                await process.wait()
                return f"Error: execution timed out after {timeout} seconds"

        output_parts = []
        if stdout:
            stdout_text = stdout.decode("utf-8", errors="replace")[:20000]
            output_parts.append(f"STDOUT:\n{stdout_text}")
        if stderr:
            stderr_text = stderr.decode("utf-8", errors="replace")[:5000]
            output_parts.append(f"STDERR:\n{stderr_text}")
        output_parts.append(f"Exit code: {process.returncode}")

        return "\n\n".join(output_parts)
