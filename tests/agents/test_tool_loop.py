"""Tests for the repository summarizer's tool-calling loop.

The chat model is a scripted stub and the tool host returns canned results,
so these tests cover message accumulation, dispatch, truncation and
termination without any network access.
"""

from datetime import datetime, timedelta, timezone

import pytest
from conftest import FakeToolHost, ScriptedChatModel, text_result, tool_call_message
from langchain_core.messages import AIMessage, SystemMessage, ToolMessage

from githerald.agents.budget import TRUNCATION_MARKER, estimate_tokens
from githerald.agents.tool_loop import (
    LoopLimits,
    LoopPhase,
    ReasoningServiceError,
    RepoSummarizer,
    ToolLoopExhaustedError,
    pending_tool_calls,
)
from githerald.types.conversation import ToolResult

END = datetime(2024, 1, 20, tzinfo=timezone.utc)
START = END - timedelta(days=7)
FINAL = AIMessage(content='{"overallSummary": "quiet week", "pullRequests": [], "breakingChanges": []}')


def _call(name, call_id, **args):
    return {"name": name, "args": args, "id": call_id}


@pytest.mark.asyncio
async def test_finishes_on_first_round_without_tool_calls():
    model = ScriptedChatModel([FINAL])
    summarizer = RepoSummarizer(model, FakeToolHost())

    summary = await summarizer.summarize_repo("acme", "gateway", START, END)

    assert summary.overall_summary == "quiet week"
    assert len(model.calls) == 1
    assert summarizer.phase is LoopPhase.DONE
    assert model.bind_kwargs == {"tool_choice": "auto"}
    assert [tool["function"]["name"] for tool in model.bound_tools][0] == "list_pull_requests"


@pytest.mark.asyncio
async def test_opening_messages_name_repo_and_window():
    model = ScriptedChatModel([FINAL])
    await RepoSummarizer(model, FakeToolHost()).summarize_repo("acme", "gateway", START, END)

    system, user = model.calls[0]
    assert isinstance(system, SystemMessage)
    assert "acme/gateway" in system.content
    assert "2024-01-13" in user.content and "2024-01-20" in user.content


@pytest.mark.asyncio
async def test_exhausts_when_model_always_calls_tools():
    model = ScriptedChatModel(lambda i: tool_call_message(_call("list_commits", f"c{i}", owner="acme", repo="g")))
    host = FakeToolHost({"list_commits": "[]"})
    summarizer = RepoSummarizer(model, host, LoopLimits(max_iterations=3))

    with pytest.raises(ToolLoopExhaustedError):
        await summarizer.summarize_repo("acme", "gateway", START, END)

    assert len(model.calls) == 3
    assert len(host.invocations) == 3


@pytest.mark.asyncio
async def test_no_message_is_terminal():
    summarizer = RepoSummarizer(ScriptedChatModel([None]), FakeToolHost())

    with pytest.raises(ReasoningServiceError):
        await summarizer.summarize_repo("acme", "gateway", START, END)


@pytest.mark.asyncio
async def test_every_tool_call_is_answered_before_next_round():
    request = tool_call_message(
        _call("list_pull_requests", "ok_1", owner="acme", repo="gateway", state="closed"),
        _call("get_pull_request", "err_1", owner="acme", repo="gateway", pullNumber=9),
        _call("no_such_tool", "unknown_1"),
    )
    request.invalid_tool_calls.append(
        {"name": "list_commits", "args": "{not json", "id": "bad_1", "error": "bad json", "type": "invalid_tool_call"}
    )
    model = ScriptedChatModel([request, FINAL])
    host = FakeToolHost(
        {
            "list_pull_requests": "[]",
            "get_pull_request": ToolResult.error("404 Not Found"),
        }
    )

    await RepoSummarizer(model, host).summarize_repo("acme", "gateway", START, END)

    second_round = model.calls[1]
    assistant_index = second_round.index(request)
    answers = second_round[assistant_index + 1 :]
    assert all(isinstance(m, ToolMessage) for m in answers)
    assert [m.tool_call_id for m in answers] == ["ok_1", "err_1", "unknown_1", "bad_1"]

    by_id = {m.tool_call_id: m for m in answers}
    assert by_id["ok_1"].content == "[]"
    assert by_id["err_1"].status == "error"
    assert "404" in by_id["err_1"].content
    assert by_id["unknown_1"].status == "error"
    assert by_id["bad_1"].status == "error"
    # malformed arguments never reach the host
    assert [name for name, _ in host.invocations] == ["list_pull_requests", "get_pull_request", "no_such_tool"]


@pytest.mark.asyncio
async def test_bulk_results_get_tighter_ceiling():
    big = "d" * 100_000
    model = ScriptedChatModel(
        [
            tool_call_message(
                _call("get_pull_request_diff", "diff_1", owner="acme", repo="g", pullNumber=1),
                _call("get_pull_request", "pr_1", owner="acme", repo="g", pullNumber=1),
            ),
            FINAL,
        ]
    )
    host = FakeToolHost({"get_pull_request_diff": big, "get_pull_request": big})
    limits = LoopLimits(max_tool_result_tokens=100, max_conversation_tokens=1_000_000)

    await RepoSummarizer(model, host, limits).summarize_repo("acme", "gateway", START, END)

    answers = {m.tool_call_id: m.content for m in model.calls[1] if isinstance(m, ToolMessage)}
    assert answers["diff_1"].endswith(TRUNCATION_MARKER)
    assert estimate_tokens(answers["diff_1"]) <= 100
    assert 100 < estimate_tokens(answers["pr_1"]) <= 200


@pytest.mark.asyncio
async def test_prunes_history_but_keeps_system_prompt():
    model = ScriptedChatModel(
        lambda i: FINAL if i == 6 else tool_call_message(_call("list_commits", f"c{i}", owner="acme", repo="g"))
    )
    host = FakeToolHost({"list_commits": text_result("x" * 4000)})
    limits = LoopLimits(max_conversation_tokens=2500, keep_recent_messages=5)

    summary = await RepoSummarizer(model, host, limits).summarize_repo("acme", "gateway", START, END)

    assert summary.overall_summary == "quiet week"
    last_sent = model.calls[-1]
    assert isinstance(last_sent[0], SystemMessage)
    assert len(last_sent) < 2 + 2 * 6
    assert not isinstance(last_sent[1], ToolMessage)


@pytest.mark.asyncio
async def test_host_exception_becomes_error_result():
    class ExplodingHost(FakeToolHost):
        async def invoke(self, name, arguments):
            raise RuntimeError("connection lost")

    model = ScriptedChatModel([tool_call_message(_call("list_commits", "c1", owner="a", repo="b")), FINAL])

    await RepoSummarizer(model, ExplodingHost()).summarize_repo("acme", "gateway", START, END)

    answer = model.calls[1][-1]
    assert isinstance(answer, ToolMessage)
    assert answer.status == "error"
    assert "connection lost" in answer.content


def test_pending_tool_calls_keeps_order_and_marks_malformed():
    message = tool_call_message(_call("list_commits", "a", owner="x"), _call("get_pull_request", "b"))
    message.invalid_tool_calls.append(
        {"name": "list_commits", "args": "{", "id": "c", "error": None, "type": "invalid_tool_call"}
    )

    calls = pending_tool_calls(message)

    assert [c.id for c in calls] == ["a", "b", "c"]
    assert calls[0].arguments == {"owner": "x"}
    assert calls[2].parse_error


def test_pending_tool_calls_follow_provider_order_when_interleaved():
    message = AIMessage(
        content="",
        tool_calls=[{"name": "list_commits", "args": {"owner": "x"}, "id": "good", "type": "tool_call"}],
        invalid_tool_calls=[
            {"name": "get_pull_request", "args": "{", "id": "broken", "error": "bad json", "type": "invalid_tool_call"}
        ],
        additional_kwargs={
            "tool_calls": [
                {"id": "broken", "type": "function", "function": {"name": "get_pull_request", "arguments": "{"}},
                {"id": "good", "type": "function", "function": {"name": "list_commits", "arguments": '{"owner": "x"}'}},
            ]
        },
    )

    assert [c.id for c in pending_tool_calls(message)] == ["broken", "good"]


@pytest.mark.asyncio
async def test_error_results_are_truncated():
    model = ScriptedChatModel([tool_call_message(_call("get_pull_request", "e1", owner="a", repo="b")), FINAL])
    host = FakeToolHost({"get_pull_request": ToolResult.error("<html>" + "x" * 100_000)})
    limits = LoopLimits(max_tool_result_tokens=100, max_conversation_tokens=1_000_000)

    await RepoSummarizer(model, host, limits).summarize_repo("acme", "gateway", START, END)

    answer = model.calls[1][-1]
    assert answer.status == "error"
    assert answer.content.endswith(TRUNCATION_MARKER)
    assert estimate_tokens(answer.content) <= 200
