"""State management types for the GitHerald workflow."""

from datetime import datetime
from typing import Any, Dict, List, Optional, TypedDict

from .summary import RepoActivity, RepoSummary


class AgentState(TypedDict, total=False):
    """
    Shared state passed between nodes.
    Each node adds or modifies specific fields.
    """

    # Run inputs
    config: Any  # githerald.config.AppConfig
    tool_host: Any  # githerald.tools.host.ToolHostAdapter
    chat_model: Any  # LangChain chat model supporting bind_tools
    start_date: datetime
    end_date: datetime
    explicit_repos: Optional[List[str]]

    # Discovery Node Output
    active_repos: List[RepoActivity]

    # Summarization Node Output
    repo_summaries: List[RepoSummary]

    # Newsletter Renderer Node Output
    grouped_summaries: Dict[str, List[RepoSummary]]
    newsletter_markdown: str

    # Global State
    errors: List[Dict[str, Any]]
    warnings: List[Dict[str, Any]]
