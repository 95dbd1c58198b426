"""Extraction of a RepoSummary from the reasoning service's final message."""

import json
from typing import Any, Dict, Iterator, Optional

from loguru import logger

from githerald.types.summary import NO_SUMMARY_PROVIDED, RepoSummary

SUMMARY_KEYS = ("overallSummary", "pullRequests", "breakingChanges")

_decoder = json.JSONDecoder()


def _json_objects(text: str) -> Iterator[Dict[str, Any]]:
    """Yield every well-formed JSON object embedded in ``text``, in order of appearance."""
    index = text.find("{")
    while index != -1:
        try:
            value, end = _decoder.raw_decode(text, index)
        except ValueError:
            index = text.find("{", index + 1)
            continue
        if isinstance(value, dict):
            yield value
        index = text.find("{", end)


def find_summary_payload(text: str) -> Optional[Dict[str, Any]]:
    """Return the first embedded JSON object carrying at least one summary field."""
    for candidate in _json_objects(text):
        if any(key in candidate for key in SUMMARY_KEYS):
            return candidate
    return None


def fallback_summary(content: str, owner: str, repo: str) -> RepoSummary:
    return RepoSummary(
        repo_name=repo,
        owner=owner,
        overall_summary=content if content.strip() else NO_SUMMARY_PROVIDED,
        pull_requests=[],
        breaking_changes=[],
    )


def parse_summary(content: Optional[str], owner: str, repo: str) -> RepoSummary:
    """Build a RepoSummary from free text. Never raises.

    Falls back to the raw text as the overall summary, with no pull requests,
    when no usable JSON payload is present.
    """
    if not isinstance(content, str):
        content = "" if content is None else str(content)

    try:
        payload = find_summary_payload(content)
        if payload is not None:
            return RepoSummary(
                repo_name=repo,
                owner=owner,
                overall_summary=payload.get("overallSummary"),
                pull_requests=payload.get("pullRequests"),
                breaking_changes=payload.get("breakingChanges"),
            )
        logger.warning(f"No JSON summary found in response for {owner}/{repo}")
    except Exception as e:
        logger.warning(f"Failed to parse JSON summary for {owner}/{repo}: {e}")

    return fallback_summary(content, owner, repo)
