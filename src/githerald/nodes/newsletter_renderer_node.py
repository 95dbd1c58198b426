"""Newsletter Renderer Node for converting repository summaries into a Markdown newsletter."""

from datetime import datetime
from typing import Dict, List

from loguru import logger

from githerald.nodes.team_grouping import group_repos_by_team, team_order
from githerald.types.state import AgentState
from githerald.types.summary import RepoSummary


def _format_date(date: datetime) -> str:
    return f"{date:%b} {date.day}, {date.year}"


def _format_pull_requests(summary: RepoSummary) -> List[str]:
    """Format the pull request list of one repository."""
    if not summary.pull_requests:
        return []

    lines = ["**Pull Requests:**"]
    for pr in summary.pull_requests:
        lines.append(f"- PR #{pr.number}: {pr.title} ({pr.author}) - Merged: {pr.merged_date} - [Link]({pr.url})")
        if pr.summary:
            lines.append(f"  Summary: {pr.summary}")
    lines.append("")
    return lines


def _format_breaking_changes(summary: RepoSummary) -> List[str]:
    """Format breaking changes section."""
    if not summary.breaking_changes:
        return []

    lines = ["**High-Risk/Breaking Changes:**"]
    for change in summary.breaking_changes:
        lines.append(f"- PR #{change.pr_number}: {change.description}")
    lines.append("")
    return lines


def _format_repo(summary: RepoSummary) -> List[str]:
    return [
        f"### {summary.repo_name}",
        "",
        summary.overall_summary,
        "",
        *_format_pull_requests(summary),
        *_format_breaking_changes(summary),
        "---",
        "",
    ]


def render_newsletter(
    grouped: Dict[str, List[RepoSummary]], start_date: datetime, end_date: datetime, order: List[str]
) -> str:
    """Render grouped summaries as a Markdown document, teams in ``order``."""
    total_repos = sum(len(repos) for repos in grouped.values())
    total_prs = sum(len(repo.pull_requests) for repos in grouped.values() for repo in repos)

    lines = [
        f"# Weekly Newsletter - {_format_date(start_date)} to {_format_date(end_date)}",
        "",
        f"**Summary:** {total_repos} repositories with {total_prs} pull requests",
        "",
    ]

    for team_name in order:
        repos = grouped.get(team_name)
        if not repos:
            continue
        lines.extend([f"## {team_name}", ""])
        for summary in repos:
            lines.extend(_format_repo(summary))

    return "\n".join(lines)


def newsletter_filename(now: datetime = None) -> str:
    now = now or datetime.now()
    return f"newsletter-{now:%Y%m%d-%H%M%S}.md"


async def newsletter_renderer_node(state: AgentState) -> AgentState:
    """Group summaries by team and render the newsletter."""
    logger.info("Executing Newsletter Renderer Node")
    teams = state["config"].teams

    grouped = group_repos_by_team(state.get("repo_summaries", []), teams)
    logger.info(f"Grouped into {len(grouped)} teams")

    state["grouped_summaries"] = grouped
    state["newsletter_markdown"] = render_newsletter(
        grouped, state["start_date"], state["end_date"], team_order(teams)
    )
    return state
