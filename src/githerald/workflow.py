"""GitHerald workflow integration using LangGraph for orchestration."""

import argparse
import asyncio
import os
import sys
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from dotenv import load_dotenv
from langgraph.graph import END, StateGraph
from loguru import logger

from githerald.agents.llm import create_chat_model
from githerald.config import AppConfig, load_config
from githerald.nodes.discovery_node import discovery_node
from githerald.nodes.newsletter_renderer_node import newsletter_filename, newsletter_renderer_node
from githerald.nodes.summarization_node import summarization_node
from githerald.tools.host import ToolHostAdapter, build_server_parameters
from githerald.types.state import AgentState


def _after_discovery(state: AgentState) -> str:
    return "summarize" if state.get("active_repos") else "end"


def _after_summarization(state: AgentState) -> str:
    return "render" if state.get("repo_summaries") else "end"


def create_workflow() -> StateGraph:
    """Create the GitHerald workflow graph."""
    workflow = StateGraph(AgentState)

    # Add nodes
    workflow.add_node("discovery_node", discovery_node)
    workflow.add_node("summarization_node", summarization_node)
    workflow.add_node("newsletter_renderer_node", newsletter_renderer_node)

    workflow.set_entry_point("discovery_node")

    # Define edges
    workflow.add_conditional_edges(
        "discovery_node", _after_discovery, {"summarize": "summarization_node", "end": END}
    )
    workflow.add_conditional_edges(
        "summarization_node", _after_summarization, {"render": "newsletter_renderer_node", "end": END}
    )
    workflow.add_edge("newsletter_renderer_node", END)

    return workflow.compile()


def date_window(timeframe_days: int, now: Optional[datetime] = None) -> tuple[datetime, datetime]:
    """``(start, end)`` of the reporting window, ending now (UTC)."""
    end_date = now or datetime.now(timezone.utc)
    return end_date - timedelta(days=timeframe_days), end_date


async def run_workflow_async(
    config: AppConfig,
    tool_host: ToolHostAdapter,
    chat_model,
    explicit_repos: Optional[List[str]] = None,
    now: Optional[datetime] = None,
) -> AgentState:
    """Run the GitHerald workflow against a connected tool host and return the final state."""
    start_date, end_date = date_window(config.github.timeframe_days, now)
    logger.info(f"Date range: {start_date:%Y-%m-%d} to {end_date:%Y-%m-%d}")

    initial_state: AgentState = {
        "config": config,
        "tool_host": tool_host,
        "chat_model": chat_model,
        "start_date": start_date,
        "end_date": end_date,
        "explicit_repos": explicit_repos or None,
        "active_repos": [],
        "repo_summaries": [],
        "errors": [],
        "warnings": [],
    }

    app = create_workflow()
    final_state = initial_state
    async for state in app.astream(initial_state, stream_mode="values"):
        final_state = state

    return final_state


async def generate_newsletter(config: AppConfig, explicit_repos: Optional[List[str]] = None) -> AgentState:
    """Connect to the tool host, run the workflow, and always disconnect."""
    chat_model = create_chat_model(config.llm)
    server = build_server_parameters(config.github.token, config.mcp.binary_path, config.mcp.docker_image)

    logger.info("Connecting to GitHub MCP...")
    async with ToolHostAdapter(server) as tool_host:
        return await run_workflow_async(config, tool_host, chat_model, explicit_repos)


def write_newsletter(state: AgentState, output_dir: str) -> str:
    os.makedirs(output_dir, exist_ok=True)
    filepath = os.path.join(output_dir, newsletter_filename())
    with open(filepath, "w", encoding="utf-8") as f:
        f.write(state["newsletter_markdown"])
    return filepath


def main():
    parser = argparse.ArgumentParser(description="Generate a pull request newsletter for a GitHub organization")
    parser.add_argument("--config", type=str, help="Path to the configuration file", default="config.json")
    parser.add_argument("--output-dir", type=str, help="Output directory for the newsletter", default=".")
    parser.add_argument("--model", type=str, help="Override the configured LLM model")
    parser.add_argument(
        "--repo",
        action="append",
        dest="repos",
        help="Summarize this repository of the organization instead of running discovery (repeatable)",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable verbose logging")
    args = parser.parse_args()

    load_dotenv()

    if not args.verbose:
        logger.remove()
        logger.add(sys.stderr, level="INFO")

    try:
        config = load_config(args.config)
        if args.model:
            config.llm.model = args.model
        logger.info(f"Configuration loaded for organization: {config.github.organization}")
        logger.info(f"Timeframe: {config.github.timeframe_days} days, model: {config.llm.model}")

        final_state = asyncio.run(generate_newsletter(config, args.repos))

        if not final_state.get("active_repos"):
            logger.info("No repositories with closed or merged pull requests in the timeframe. Nothing to do.")
            sys.exit(0)

        if not final_state.get("repo_summaries"):
            logger.info("No repositories could be summarized. See the errors above for details.")
            sys.exit(0)

        filepath = write_newsletter(final_state, args.output_dir)
        logger.info(f"Newsletter written to: {filepath}")

        summaries = final_state["repo_summaries"]
        logger.info("Statistics:")
        logger.info(f"  - Repositories processed: {len(summaries)}")
        logger.info(f"  - Teams with activity: {len(final_state.get('grouped_summaries', {}))}")
        logger.info(f"  - Total PRs included: {sum(len(s.pull_requests) for s in summaries)}")

        for warning in final_state.get("warnings", []):
            logger.warning(f"- skipped {warning['repo']}: {warning['error']}")

    except Exception as e:
        logger.opt(exception=e).error(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
