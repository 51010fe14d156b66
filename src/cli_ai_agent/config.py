"""Configuration loader with YAML parsing, env-var interpolation, and Pydantic validation."""

from __future__ import annotations

import os
import re
from datetime import timedelta
from pathlib import Path
from typing import Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field

DEFAULT_HOME = Path.home() / ".cli-ai-agent"
DEFAULT_CONFIG_PATH = DEFAULT_HOME / "config.yaml"


class AIConfig(BaseModel):
    model: str = "claude-sonnet-4-20250514"
    max_tokens: int = 4096
    system_prompt: str = ""
    temperature: float = 0.7
    max_tool_steps: int = 5


class AnthropicConfig(BaseModel):
    api_key: str = Field(default_factory=lambda: os.environ.get("ANTHROPIC_API_KEY", ""))
    base_url: Optional[str] = None
    max_retries: int = 2
    timeout: int = 120


class WebSearchConfig(BaseModel):
    max_results: int = 5
    region: str = "wt-wt"
    safesearch: str = "moderate"


class CodeExecutionConfig(BaseModel):
    python: str = "python3"
    timeout: int = 30


class ToolsConfig(BaseModel):
    web_search: WebSearchConfig = Field(default_factory=WebSearchConfig)
    code_execution: CodeExecutionConfig = Field(default_factory=CodeExecutionConfig)


class AuthConfig(BaseModel):
    token_file: str = str(DEFAULT_HOME / "token.json")
    expiry_margin_seconds: int = 300

    @property
    def expiry_margin(self) -> timedelta:
        return timedelta(seconds=self.expiry_margin_seconds)


class StorageConfig(BaseModel):
    db_path: str = str(DEFAULT_HOME / "cli_ai_agent.db")


class AgentConfig(BaseModel):
    max_files: int = 100
    max_tokens: int = 16000
    min_prompt_length: int = 10


class AppConfig(BaseModel):
    log_level: str = "INFO"
    data_dir: str = str(DEFAULT_HOME)
    log_file: Optional[str] = str(DEFAULT_HOME / "cli-ai-agent.log")
    ai: AIConfig = Field(default_factory=AIConfig)
    anthropic: AnthropicConfig = Field(default_factory=AnthropicConfig)
    tools: ToolsConfig = Field(default_factory=ToolsConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    agent: AgentConfig = Field(default_factory=AgentConfig)


_ENV_VAR_PATTERN = re.compile(r"\$\{(\w+)\}")


def _interpolate_env_vars(text: str, extra: dict[str, str] | None = None) -> str:
    """Replace ${VAR_NAME} patterns with environment variable values."""

    def _replace(match: re.Match) -> str:
        var_name = match.group(1)
        if extra and var_name in extra:
            return extra[var_name]
        value = os.environ.get(var_name)
        if value is None:
            return match.group(0)
        return value

    return _ENV_VAR_PATTERN.sub(_replace, text)


def load_config(
    config_path: str | Path = DEFAULT_CONFIG_PATH, env_path: str | Path = ".env"
) -> AppConfig:
    """Load and validate configuration.

    A missing config file is not an error: the CLI runs on defaults plus
    environment variables.
    """
    env_file = Path(env_path)
    if env_file.exists():
        load_dotenv(env_file)

    config_file = Path(config_path).expanduser()
    if not config_file.exists():
        return AppConfig()

    raw_text = config_file.read_text(encoding="utf-8")

    # First pass: extract data_dir for self-referencing
    raw_data = yaml.safe_load(raw_text) or {}
    data_dir = str(raw_data.get("data_dir", DEFAULT_HOME))
    data_dir = _interpolate_env_vars(data_dir)

    # Second pass: interpolate all env vars
    interpolated = _interpolate_env_vars(raw_text, extra={"data_dir": data_dir})
    data = yaml.safe_load(interpolated) or {}

    return AppConfig(**data)
