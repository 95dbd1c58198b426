"""Tests for grouping repository summaries by team."""

from githerald.config import TeamConfig
from githerald.nodes.team_grouping import UNASSIGNED_TEAM, group_repos_by_team, team_order
from githerald.types.summary import RepoSummary

TEAMS = {
    "Payments": TeamConfig(repos=["ledger"], prefixes=["pay-"]),
    "Platform": TeamConfig(repos=["pay-legacy"], prefixes=["infra-", "pay-"]),
}


def _summary(name: str) -> RepoSummary:
    return RepoSummary(repo_name=name, owner="acme")


def test_first_matching_team_wins():
    grouped = group_repos_by_team([_summary("pay-api"), _summary("pay-legacy")], TEAMS)

    assert [s.repo_name for s in grouped["Payments"]] == ["pay-api", "pay-legacy"]
    assert "Platform" not in grouped


def test_unmatched_repos_are_unassigned():
    grouped = group_repos_by_team([_summary("infra-dns"), _summary("website"), _summary("ledger")], TEAMS)

    assert [s.repo_name for s in grouped["Platform"]] == ["infra-dns"]
    assert [s.repo_name for s in grouped["Payments"]] == ["ledger"]
    assert [s.repo_name for s in grouped[UNASSIGNED_TEAM]] == ["website"]


def test_team_order_follows_config_with_unassigned_last():
    assert team_order(TEAMS) == ["Payments", "Platform", UNASSIGNED_TEAM]
