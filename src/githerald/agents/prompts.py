"""Prompt templates and tool declarations for the repository summarizer."""

from datetime import datetime
from typing import Any, Dict, List

from langchain_core.messages import BaseMessage
from langchain_core.prompts import ChatPromptTemplate

SYSTEM_TEMPLATE = """You are an AI assistant helping to generate a newsletter summary for GitHub repository {owner}/{repo}.

You have access to GitHub tools that allow you to:
- List pull requests
- Get pull request details
- Get pull request diffs
- Get files changed in pull requests
- List commits

Your task is to summarize all pull requests that were closed/merged between {start_date} and {end_date}.

Use the GitHub tools to gather information about the pull requests, then provide a comprehensive summary."""

USER_TEMPLATE = """Summarize all pull requests that were closed/merged in {owner}/{repo} between {start_date} and {end_date}.

Use the GitHub tools to:
1. Fetch all pull requests that were closed/merged in the timeframe
2. For each PR, get details (number, title, author, merged date, description)
3. For large PRs, focus on file names and summary rather than full diffs
4. Generate a 1-2 sentence summary for each PR
5. Identify any high-risk or breaking changes

IMPORTANT: If PR diffs are very large, focus on:
- File names changed
- High-level summary of changes
- Key functionality affected
- Avoid including full diff content unless necessary

Provide your response in this JSON format:
{{
  "overallSummary": "2-3 sentence summary of the week's activity",
  "pullRequests": [
    {{
      "number": 123,
      "title": "PR title",
      "author": "username",
      "mergedDate": "2024-01-15",
      "url": "https://github.com/owner/repo/pull/123",
      "summary": "1-2 sentence summary of what this PR does"
    }}
  ],
  "breakingChanges": [
    {{
      "prNumber": 125,
      "description": "Description of breaking change"
    }}
  ]
}}"""

SUMMARY_PROMPT = ChatPromptTemplate.from_messages([("system", SYSTEM_TEMPLATE), ("human", USER_TEMPLATE)])


def build_messages(owner: str, repo: str, start_date: datetime, end_date: datetime) -> List[BaseMessage]:
    """Opening system and user messages for one repository."""
    return SUMMARY_PROMPT.format_messages(
        owner=owner,
        repo=repo,
        start_date=start_date.strftime("%Y-%m-%d"),
        end_date=end_date.strftime("%Y-%m-%d"),
    )


def _function(name: str, description: str, properties: Dict[str, Any], required: List[str]) -> Dict[str, Any]:
    return {
        "type": "function",
        "function": {
            "name": name,
            "description": description,
            "parameters": {"type": "object", "properties": properties, "required": required},
        },
    }


_REPO = {"owner": {"type": "string"}, "repo": {"type": "string"}}
_PULL = {**_REPO, "pullNumber": {"type": "number"}}
_PAGING = {"perPage": {"type": "number"}, "page": {"type": "number"}}

TOOL_DECLARATIONS: List[Dict[str, Any]] = [
    _function(
        "list_pull_requests",
        "List pull requests for a repository",
        {**_REPO, "state": {"type": "string", "enum": ["open", "closed", "all"]}, "base": {"type": "string"}, **_PAGING},
        ["owner", "repo"],
    ),
    _function("get_pull_request", "Get details of a specific pull request", _PULL, ["owner", "repo", "pullNumber"]),
    _function("get_pull_request_diff", "Get the diff of a pull request", _PULL, ["owner", "repo", "pullNumber"]),
    _function(
        "get_pull_request_files",
        "Get files changed in a pull request",
        {**_PULL, **_PAGING},
        ["owner", "repo", "pullNumber"],
    ),
    _function(
        "list_commits",
        "List commits for a repository or pull request",
        {**_REPO, "sha": {"type": "string"}, "author": {"type": "string"}, **_PAGING},
        ["owner", "repo"],
    ),
]
