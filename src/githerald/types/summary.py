"""Summary records produced for each repository."""

from dataclasses import dataclass
from typing import List

from pydantic import BaseModel, ConfigDict, Field, field_validator

NO_SUMMARY_PROVIDED = "No summary provided"


class PullRequestSummary(BaseModel):
    """One pull request as reported by the reasoning service."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    number: int = Field(..., description="Pull request number")
    title: str = Field("", description="Pull request title")
    author: str = Field("", description="Login of the pull request author")
    merged_date: str = Field("", alias="mergedDate", description="Merge date as reported, usually YYYY-MM-DD")
    url: str = Field("", description="Link to the pull request")
    summary: str = Field("", description="One or two sentence summary")

    @field_validator("title", "author", "merged_date", "url", "summary", mode="before")
    @classmethod
    def _none_as_empty(cls, value):
        return "" if value is None else value


class BreakingChange(BaseModel):
    """A high-risk or breaking change flagged for a pull request."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    pr_number: int = Field(..., alias="prNumber")
    description: str = ""


class RepoSummary(BaseModel):
    """Structured activity summary of one repository. Never mutated once built."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    repo_name: str = Field(..., alias="repoName")
    owner: str
    overall_summary: str = Field(NO_SUMMARY_PROVIDED, alias="overallSummary")
    pull_requests: List[PullRequestSummary] = Field(default_factory=list, alias="pullRequests")
    breaking_changes: List[BreakingChange] = Field(default_factory=list, alias="breakingChanges")

    @field_validator("overall_summary", mode="before")
    @classmethod
    def _default_summary(cls, value):
        return value or NO_SUMMARY_PROVIDED

    @field_validator("pull_requests", "breaking_changes", mode="before")
    @classmethod
    def _default_list(cls, value):
        return value or []


@dataclass(frozen=True)
class RepoActivity:
    """A repository with closed or merged pull requests inside the time window."""

    owner: str
    repo: str
    pr_count: int
