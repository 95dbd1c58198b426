"""Shared fakes for the reasoning service and the tool host."""

import json
from typing import Any, Callable, Dict, List, Optional, Union

import pytest
from langchain_core.messages import AIMessage

from githerald.config import parse_config
from githerald.tools.catalog import default_catalog
from githerald.types.conversation import ContentSegment, ToolResult


class ScriptedChatModel:
    """Stands in for a LangChain chat model.

    ``responses`` is either a list of replies consumed in order, or a callable
    taking the zero-based call index. Every conversation sent is recorded.
    """

    def __init__(self, responses: Union[List[Optional[AIMessage]], Callable[[int], Optional[AIMessage]]]):
        self.responses = responses
        self.calls: List[List[Any]] = []
        self.bound_tools = None
        self.bind_kwargs: Dict[str, Any] = {}

    def bind_tools(self, tools, **kwargs):
        self.bound_tools = tools
        self.bind_kwargs = kwargs
        return self

    async def ainvoke(self, messages, *args, **kwargs):
        index = len(self.calls)
        self.calls.append(list(messages))
        if callable(self.responses):
            return self.responses(index)
        return self.responses[index]


class FakeToolHost:
    """Tool host returning canned results per abstract tool name."""

    def __init__(self, results: Optional[Dict[str, Any]] = None):
        self.catalog = default_catalog()
        self.results = results or {}
        self.invocations: List[tuple] = []

    async def invoke(self, name: str, arguments: Dict[str, Any]) -> ToolResult:
        self.invocations.append((name, dict(arguments)))
        result = self.results.get(name)
        if callable(result):
            result = result(arguments)
        if result is None:
            return ToolResult.error(f"Error calling tool {name}: not available")
        if isinstance(result, ToolResult):
            return result
        return text_result(result)


def text_result(payload: Any) -> ToolResult:
    text = payload if isinstance(payload, str) else json.dumps(payload)
    return ToolResult(segments=[ContentSegment(kind="text", text=text)])


def tool_call_message(*calls: Dict[str, Any], content: str = "") -> AIMessage:
    """AIMessage requesting the given ``{"name", "args", "id"}`` tool calls."""
    return AIMessage(content=content, tool_calls=[{**call, "type": "tool_call"} for call in calls])


@pytest.fixture
def raw_config():
    return {
        "github": {"organization": "acme", "timeframeDays": 7, "token": "env:TEST_GITHUB_TOKEN"},
        "teams": {"Platform": {"repos": ["gateway"], "prefixes": ["platform-"]}},
        "llm": {"provider": "openai", "apiKey": "env:TEST_LLM_KEY", "model": "gpt-4-turbo"},
        "agent": {"repoDelaySeconds": 0, "requestDelaySeconds": 0},
    }


@pytest.fixture
def app_config(raw_config, monkeypatch):
    monkeypatch.setenv("TEST_GITHUB_TOKEN", "ghp_test")
    monkeypatch.setenv("TEST_LLM_KEY", "sk-test")
    monkeypatch.delenv("GITHUB_MCP_BINARY_PATH", raising=False)
    return parse_config(raw_config)
