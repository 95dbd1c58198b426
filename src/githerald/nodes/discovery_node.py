"""
GitHerald repository discovery node.

Expands the configured teams into candidate repositories (explicit names plus
name-prefix searches), then keeps only the repositories with at least one pull
request closed or merged inside the time window.
"""

import asyncio
import json
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from loguru import logger

from githerald.types.state import AgentState
from githerald.types.summary import RepoActivity


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse a GitHub ISO-8601 timestamp into an aware UTC datetime."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def is_within_timeframe(value: Optional[str], start_date: datetime, end_date: datetime) -> bool:
    """True when the timestamp falls inside ``[start_date, end_date]``."""
    moment = parse_timestamp(value)
    if moment is None:
        return False
    return start_date <= moment <= end_date


def _load_json(text: str) -> Any:
    try:
        return json.loads(text)
    except (TypeError, ValueError):
        return None


def _items(payload: Any) -> List[Dict[str, Any]]:
    """Rows of a listing or search response; search results wrap them in ``items``."""
    if isinstance(payload, dict):
        payload = payload.get("items", [])
    if not isinstance(payload, list):
        return []
    return [item for item in payload if isinstance(item, dict)]


class RepoDiscovery:
    """Finds active repositories through the tool host."""

    def __init__(
        self,
        tool_host: Any,
        organization: str,
        page_size: int = 100,
        request_delay: float = 0.5,
        repo_delay: float = 0.5,
    ):
        self.tool_host = tool_host
        self.organization = organization
        self.page_size = page_size
        self.request_delay = request_delay
        self.repo_delay = repo_delay

    async def search_prefix(self, prefix: str) -> List[str]:
        """Names of the organization's repositories starting with ``prefix``."""
        names: List[str] = []
        page = 1
        while True:
            result = await self.tool_host.invoke(
                "search_repositories",
                {"query": f"org:{self.organization} {prefix} in:name", "perPage": self.page_size, "page": page},
            )
            if result.is_error:
                logger.warning(f"Repository search for prefix '{prefix}' failed: {result.joined_text()}")
                break

            items = _items(_load_json(result.joined_text()))
            for item in items:
                name = item.get("name") or str(item.get("full_name", "")).split("/")[-1]
                if name and name.lower().startswith(prefix.lower()):
                    names.append(name)

            if len(items) < self.page_size:
                break
            page += 1
            await asyncio.sleep(self.request_delay)

        return names

    async def collect_candidates(self, teams: Dict[str, Any]) -> List[Tuple[str, str]]:
        """Explicit and prefix-matched repositories of every team, deduplicated."""
        seen = set()
        candidates: List[Tuple[str, str]] = []

        def add(names: Iterable[str]) -> None:
            for name in names:
                key = (self.organization.lower(), name.lower())
                if key not in seen:
                    seen.add(key)
                    candidates.append((self.organization, name))

        for team_name, team in teams.items():
            add(team.repos)
            for prefix in team.prefixes:
                try:
                    matches = await self.search_prefix(prefix)
                except Exception as e:
                    logger.warning(f"Error searching prefix '{prefix}' for team {team_name}: {e}")
                    matches = []
                logger.debug(f"Prefix '{prefix}' matched {len(matches)} repositories")
                add(matches)
                await asyncio.sleep(self.request_delay)

        return candidates

    async def count_activity(self, owner: str, repo: str, start_date: datetime, end_date: datetime) -> int:
        """Closed pull requests of ``owner/repo`` merged or closed inside the window (first page only)."""
        result = await self.tool_host.invoke(
            "list_pull_requests",
            {"owner": owner, "repo": repo, "state": "closed", "perPage": self.page_size, "page": 1},
        )
        if result.is_error:
            logger.warning(f"Could not list pull requests for {owner}/{repo}: {result.joined_text()}")
            return 0

        count = 0
        for pull in _items(_load_json(result.joined_text())):
            if is_within_timeframe(pull.get("merged_at") or pull.get("closed_at"), start_date, end_date):
                count += 1
        return count

    async def discover(self, teams: Dict[str, Any], start_date: datetime, end_date: datetime) -> List[RepoActivity]:
        """Active repositories with their pull request counts, in candidate order."""
        candidates = await self.collect_candidates(teams)
        logger.info(f"Checking {len(candidates)} candidate repositories for activity")

        active: List[RepoActivity] = []
        for index, (owner, repo) in enumerate(candidates):
            if index:
                await asyncio.sleep(self.repo_delay)
            try:
                count = await self.count_activity(owner, repo, start_date, end_date)
            except Exception as e:
                logger.warning(f"Error checking {owner}/{repo}: {e}")
                count = 0
            if count > 0:
                logger.debug(f"{owner}/{repo}: {count} pull requests in window")
                active.append(RepoActivity(owner=owner, repo=repo, pr_count=count))

        return active


def load_repo_discovery(tool_host: Any, config: Any) -> RepoDiscovery:
    """Factory function to create a configured RepoDiscovery."""
    return RepoDiscovery(
        tool_host,
        config.github.organization,
        page_size=config.agent.page_size,
        request_delay=config.agent.request_delay_seconds,
        repo_delay=config.agent.repo_delay_seconds,
    )


async def discovery_node(state: AgentState) -> AgentState:
    """Populate ``active_repos`` from the configured teams, or from explicit ``--repo`` names."""
    logger.info("Executing Discovery Node")
    config = state["config"]

    if state.get("explicit_repos"):
        state["active_repos"] = [
            RepoActivity(owner=config.github.organization, repo=name, pr_count=0) for name in state["explicit_repos"]
        ]
        logger.info(f"Using {len(state['active_repos'])} repositories given on the command line")
        return state

    discovery = load_repo_discovery(state["tool_host"], config)
    state["active_repos"] = await discovery.discover(config.teams, state["start_date"], state["end_date"])
    logger.info(f"Found {len(state['active_repos'])} repositories with activity")
    return state
