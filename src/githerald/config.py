"""Configuration loading for GitHerald.

The configuration is a JSON document validated with pydantic. String values of
the form ``env:NAME`` are resolved from the environment, so secrets never have
to live in the file itself.
"""

import json
import os
from pathlib import Path
from typing import Dict, List, Optional, Union

from loguru import logger
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

ENV_PREFIX = "env:"
DEFAULT_CONFIG_FILE = "config.json"
DEFAULT_MCP_IMAGE = "ghcr.io/github/github-mcp-server"


class ConfigError(Exception):
    """Raised when the configuration is missing, invalid or references an unset secret."""


class _Section(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class GitHubConfig(_Section):
    organization: str
    timeframe_days: int = Field(..., alias="timeframeDays", ge=1)
    token: str


class TeamConfig(_Section):
    repos: List[str] = Field(default_factory=list)
    prefixes: List[str] = Field(default_factory=list)


class LLMConfig(_Section):
    provider: str = "openai"
    api_key: str = Field(..., alias="apiKey")
    model: str = "gpt-4-turbo"


class MCPConfig(_Section):
    binary_path: Optional[str] = Field(None, alias="binaryPath")
    docker_image: str = Field(DEFAULT_MCP_IMAGE, alias="dockerImage")


class AgentLimits(_Section):
    max_iterations: int = Field(20, alias="maxIterations", ge=1)
    max_tool_result_tokens: int = Field(5000, alias="maxToolResultTokens", ge=1)
    max_conversation_tokens: int = Field(20000, alias="maxConversationTokens", ge=1)
    keep_recent_messages: int = Field(5, alias="keepRecentMessages", ge=1)
    repo_delay_seconds: float = Field(1.0, alias="repoDelaySeconds", ge=0)
    request_delay_seconds: float = Field(0.5, alias="requestDelaySeconds", ge=0)
    page_size: int = Field(100, alias="pageSize", ge=1, le=100)


class AppConfig(_Section):
    github: GitHubConfig
    teams: Dict[str, TeamConfig] = Field(default_factory=dict)
    llm: LLMConfig = Field(..., validation_alias=AliasChoices("llm", "openai"))
    mcp: MCPConfig = Field(default_factory=MCPConfig)
    agent: AgentLimits = Field(default_factory=AgentLimits)


def resolve_env_var(value: str) -> str:
    """Resolve an ``env:NAME`` reference; other values are returned unchanged."""
    if not value.startswith(ENV_PREFIX):
        return value
    name = value[len(ENV_PREFIX) :]
    resolved = os.environ.get(name)
    if not resolved:
        raise ConfigError(f"Environment variable {name} is not set")
    return resolved


def parse_config(raw: dict) -> AppConfig:
    """Validate a raw configuration mapping and resolve its secrets."""
    try:
        config = AppConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"Invalid config: {e}") from e

    config.github.token = resolve_env_var(config.github.token)
    config.llm.api_key = resolve_env_var(config.llm.api_key)
    if config.mcp.binary_path:
        config.mcp.binary_path = resolve_env_var(config.mcp.binary_path)

    if not config.github.token:
        raise ConfigError("GitHub token is required but not set")
    if not config.llm.api_key:
        raise ConfigError("LLM API key is required but not set")

    binary_override = os.environ.get("GITHUB_MCP_BINARY_PATH")
    if binary_override:
        config.mcp.binary_path = binary_override

    return config


def load_config(config_path: Optional[Union[str, Path]] = None) -> AppConfig:
    """Load, validate and resolve the configuration file."""
    path = Path(config_path) if config_path else Path.cwd() / DEFAULT_CONFIG_FILE
    logger.debug(f"Loading configuration from {path}")
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise ConfigError(f"Configuration file not found: {path}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"Configuration file {path} is not valid JSON: {e}") from e

    return parse_config(raw)
