"""Summarization node: runs the tool-calling loop for every active repository, one at a time."""

import asyncio
from datetime import datetime
from typing import List

from loguru import logger

from githerald.agents.tool_loop import load_repo_summarizer
from githerald.types.state import AgentState
from githerald.types.summary import RepoSummary


async def summarization_node(state: AgentState) -> AgentState:
    """Summarize each repository in ``active_repos``; failures skip the repository only."""
    logger.info("Executing Summarization Node")
    config = state["config"]
    summarizer = load_repo_summarizer(state["chat_model"], state["tool_host"], config.agent)
    summaries: List[RepoSummary] = []
    state.setdefault("warnings", [])

    for index, activity in enumerate(state.get("active_repos", [])):
        if index:
            await asyncio.sleep(config.agent.repo_delay_seconds)

        full_name = f"{activity.owner}/{activity.repo}"
        try:
            logger.info(f"  Processing {full_name}...")
            summary = await summarizer.summarize_repo(
                activity.owner, activity.repo, state["start_date"], state["end_date"]
            )
            summaries.append(summary)
            logger.info(f"  ✓ Completed {full_name}")
        except Exception as e:
            logger.error(f"  ✗ Error processing {full_name}: {e}")
            state["warnings"].append(
                {"node": "summarization_node", "repo": full_name, "error": str(e), "timestamp": datetime.now()}
            )

    state["repo_summaries"] = summaries
    return state
