"""Assignment of repository summaries to the configured teams."""

from typing import Any, Dict, List, Optional

from githerald.types.summary import RepoSummary

UNASSIGNED_TEAM = "Unassigned"


def match_team(repo_name: str, teams: Dict[str, Any]) -> Optional[str]:
    """First team, in configuration order, that lists ``repo_name`` or one of whose prefixes it starts with."""
    for team_name, team in teams.items():
        if repo_name in team.repos:
            return team_name
        if any(repo_name.startswith(prefix) for prefix in team.prefixes):
            return team_name
    return None


def group_repos_by_team(summaries: List[RepoSummary], teams: Dict[str, Any]) -> Dict[str, List[RepoSummary]]:
    grouped: Dict[str, List[RepoSummary]] = {}
    for summary in summaries:
        team_name = match_team(summary.repo_name, teams) or UNASSIGNED_TEAM
        grouped.setdefault(team_name, []).append(summary)
    return grouped


def team_order(teams: Dict[str, Any]) -> List[str]:
    """Team names in configuration order, with the unassigned bucket last."""
    return [*teams.keys(), UNASSIGNED_TEAM]
