"""Tool-calling loop that summarizes one repository.

The loop:
1. Prune the conversation if it exceeds the token ceiling
2. Send it, with the tool declarations, to the reasoning service
3. If the reply carries no tool calls, extract the summary and stop
4. Otherwise dispatch every call through the tool host, answer each one with
   exactly one tool message, and go back to 1
5. Give up with ToolLoopExhaustedError after ``max_iterations`` rounds
"""

import json
from dataclasses import asdict, dataclass
from datetime import datetime
from enum import Enum
from typing import Any, List, Optional, Sequence

from langchain_core.messages import AIMessage, BaseMessage, ToolMessage
from loguru import logger

from githerald.agents.budget import budget_conversation, truncate_content
from githerald.agents.extractor import parse_summary
from githerald.agents.prompts import TOOL_DECLARATIONS, build_messages
from githerald.types.conversation import ToolCallRequest, ToolResult
from githerald.types.summary import RepoSummary

BULK_NAME_HINTS = ("diff", "files")


class ReasoningServiceError(Exception):
    """Raised when the reasoning service returns no message."""


class ToolLoopExhaustedError(Exception):
    """Raised when the round cap is reached without a final answer."""


class LoopPhase(str, Enum):
    INIT = "init"
    AWAITING_MODEL = "awaiting_model"
    DISPATCHING_TOOLS = "dispatching_tools"
    DONE = "done"


@dataclass
class LoopLimits:
    """Resource bounds for one repository conversation."""

    max_iterations: int = 20
    max_tool_result_tokens: int = 5000  # bulk results; others get twice this
    max_conversation_tokens: int = 20000
    keep_recent_messages: int = 5

    @classmethod
    def from_config(cls, agent_config: Any) -> "LoopLimits":
        return cls(
            max_iterations=agent_config.max_iterations,
            max_tool_result_tokens=agent_config.max_tool_result_tokens,
            max_conversation_tokens=agent_config.max_conversation_tokens,
            keep_recent_messages=agent_config.keep_recent_messages,
        )


def pending_tool_calls(message: AIMessage) -> List[ToolCallRequest]:
    """Tool calls carried by an assistant message, malformed ones included, in the order returned."""
    calls = [
        ToolCallRequest(id=call.get("id") or "", name=call["name"], arguments=dict(call.get("args") or {}))
        for call in message.tool_calls
    ]
    for invalid in message.invalid_tool_calls:
        calls.append(
            ToolCallRequest(
                id=invalid.get("id") or "",
                name=invalid.get("name") or "unknown",
                parse_error=invalid.get("error") or f"could not parse arguments {invalid.get('args')!r}",
            )
        )

    # langchain splits parsed and malformed calls; the raw provider list keeps the original order
    raw_calls = message.additional_kwargs.get("tool_calls") or []
    raw_order = {raw.get("id"): index for index, raw in enumerate(raw_calls) if isinstance(raw, dict)}
    if raw_order:
        calls.sort(key=lambda call: raw_order.get(call.id, len(raw_order)))
    return calls


def _content_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = [part if isinstance(part, str) else part.get("text", "") for part in content]
        return "".join(part for part in parts if isinstance(part, str))
    return "" if content is None else str(content)


def _segments_json(result: ToolResult) -> str:
    return json.dumps([asdict(segment) for segment in result.segments])


class RepoSummarizer:
    """Drives the reasoning service against the tool host for one repository at a time."""

    def __init__(
        self,
        chat_model: Any,
        tool_host: Any,
        limits: Optional[LoopLimits] = None,
        tools: Sequence[dict] = TOOL_DECLARATIONS,
    ):
        self.tool_host = tool_host
        self.limits = limits or LoopLimits()
        self.model = chat_model.bind_tools(list(tools), tool_choice="auto")
        self.phase = LoopPhase.INIT
        self.rounds = 0

    async def summarize_repo(self, owner: str, repo: str, start_date: datetime, end_date: datetime) -> RepoSummary:
        """Run the conversation for ``owner/repo`` and return its summary."""
        messages: List[BaseMessage] = build_messages(owner, repo, start_date, end_date)
        self.phase = LoopPhase.INIT
        self.rounds = 0

        while self.rounds < self.limits.max_iterations:
            messages = budget_conversation(
                messages, self.limits.max_conversation_tokens, self.limits.keep_recent_messages
            )

            self.phase = LoopPhase.AWAITING_MODEL
            logger.debug(f"{owner}/{repo}: round {self.rounds + 1}, sending {len(messages)} messages")
            response = await self.model.ainvoke(messages)
            if not isinstance(response, AIMessage):
                raise ReasoningServiceError(f"No response from reasoning service for {owner}/{repo}")

            messages.append(response)

            calls = pending_tool_calls(response)
            if not calls:
                self.phase = LoopPhase.DONE
                return parse_summary(_content_text(response.content), owner, repo)

            self.phase = LoopPhase.DISPATCHING_TOOLS
            for call in calls:
                messages.append(await self._answer(call))

            self.rounds += 1

        raise ToolLoopExhaustedError(
            f"Max iterations ({self.limits.max_iterations}) reached while processing {owner}/{repo}"
        )

    def _is_bulk(self, name: str) -> bool:
        catalog = getattr(self.tool_host, "catalog", None)
        if catalog is not None and catalog.is_bulk(name):
            return True
        return any(hint in name for hint in BULK_NAME_HINTS)

    async def _answer(self, call: ToolCallRequest) -> ToolMessage:
        """Produce the single tool message that answers ``call``."""
        if call.parse_error is not None:
            logger.warning(f"Tool {call.name} called with malformed arguments: {call.parse_error}")
            return ToolMessage(
                content=f"Error: invalid arguments for {call.name}: {call.parse_error}",
                tool_call_id=call.id,
                status="error",
            )

        logger.info(f"  Calling tool: {call.name} with args: {json.dumps(call.arguments, default=str)}")
        try:
            result = await self.tool_host.invoke(call.name, call.arguments)
        except Exception as e:
            logger.error(f"  Error calling tool {call.name}: {e}")
            return ToolMessage(content=f"Error: {e}", tool_call_id=call.id, status="error")

        text = result.joined_text() or _segments_json(result)
        if result.is_error:
            logger.warning(f"  Tool {call.name} returned error: {text[:500]}")
            return ToolMessage(
                content=truncate_content(text, self.limits.max_tool_result_tokens * 2),
                tool_call_id=call.id,
                status="error",
            )

        ceiling = self.limits.max_tool_result_tokens
        if not self._is_bulk(call.name):
            ceiling *= 2
        truncated = truncate_content(text, ceiling)
        if len(truncated) < len(text):
            logger.debug(f"  Truncated {call.name} result to ~{ceiling} tokens")
        return ToolMessage(content=truncated, tool_call_id=call.id)


def load_repo_summarizer(chat_model: Any, tool_host: Any, agent_config: Any = None) -> RepoSummarizer:
    """Factory function to create a configured RepoSummarizer."""
    limits = LoopLimits.from_config(agent_config) if agent_config is not None else LoopLimits()
    return RepoSummarizer(chat_model, tool_host, limits)
