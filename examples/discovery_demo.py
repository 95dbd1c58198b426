#!/usr/bin/env python3
"""
examples/discovery_demo.py

Demonstrates the GitHerald discovery node on its own: connects to the GitHub MCP
server, expands the configured teams into candidate repositories and prints the
ones with pull requests closed or merged inside the timeframe. No LLM calls are
made.
"""

import argparse
import asyncio
import sys

from dotenv import load_dotenv

from githerald.config import load_config
from githerald.nodes.discovery_node import discovery_node
from githerald.tools.host import ToolHostAdapter, build_server_parameters
from githerald.types.state import AgentState
from githerald.workflow import date_window


def parse_args():
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Demonstrate GitHerald's repository discovery")
    parser.add_argument("--config", type=str, default="config.json", help="Path to the configuration file")
    parser.add_argument("--days", type=int, help="Override the configured timeframe in days")
    return parser.parse_args()


async def run_discovery(config) -> AgentState:
    start_date, end_date = date_window(config.github.timeframe_days)
    server = build_server_parameters(config.github.token, config.mcp.binary_path, config.mcp.docker_image)

    async with ToolHostAdapter(server) as tool_host:
        state: AgentState = {
            "config": config,
            "tool_host": tool_host,
            "start_date": start_date,
            "end_date": end_date,
        }
        return await discovery_node(state)


def main():
    """Run the discovery node demo."""
    args = parse_args()
    load_dotenv()

    try:
        config = load_config(args.config)
        if args.days:
            config.github.timeframe_days = args.days

        print(f"Running GitHerald discovery for organization: {config.github.organization}")
        print(f"Teams: {', '.join(config.teams) or 'none configured'}")

        state = asyncio.run(run_discovery(config))

        print(f"\nFound {len(state['active_repos'])} active repositories")
        print(f"Window: {state['start_date']:%Y-%m-%d} to {state['end_date']:%Y-%m-%d}")
        for activity in state["active_repos"]:
            print(f"  - {activity.owner}/{activity.repo}: {activity.pr_count} pull requests")
        print("=" * 80)

    except Exception as e:
        print(f"Error running discovery node: {str(e)}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
