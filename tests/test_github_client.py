"""Tests for the GitHub client."""

from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest
from github import GithubException

from conftest import FakePaginatedList
from pm_bridge.api.github_client import GitHubClient, parse_repo
from pm_bridge.core.errors import ScopeViolationError, UpstreamError
from pm_bridge.models.common import CacheTTL


def make_user(login):
    user = MagicMock()
    user.login = login
    return user


def make_review(login, state, body=""):
    review = MagicMock()
    review.user = make_user(login)
    review.state = state
    review.body = body
    review.submitted_at = datetime(2024, 5, 2, 12, 0, tzinfo=timezone.utc)
    return review


def make_label(name):
    label = MagicMock()
    label.name = name
    return label


def make_merged_pr(author, additions, deletions, hours, reviewers):
    pr = MagicMock()
    pr.user = make_user(author)
    pr.additions = additions
    pr.deletions = deletions
    pr.created_at = datetime(2024, 5, 1, 0, 0, tzinfo=timezone.utc)
    pr.merged_at = datetime(2024, 5, 1, hours, 0, tzinfo=timezone.utc)
    pr.get_reviews.return_value = [make_review(login, "APPROVED") for login in reviewers]
    issue = MagicMock()
    issue.as_pull_request.return_value = pr
    return issue


class TestParseRepo:
    """Test cases for parse_repo."""

    def test_valid(self):
        assert parse_repo(" acme/widget ") == ("acme", "widget")

    @pytest.mark.parametrize("value", ["acme", "acme/", "/widget", "a/b/c"])
    def test_invalid(self, value):
        with pytest.raises(ValueError):
            parse_repo(value)


class TestGitHubClient:
    """Test cases for GitHubClient."""

    @pytest.fixture
    def github(self):
        """Create a mock PyGithub instance."""
        return MagicMock()

    @pytest.fixture
    def client(self, github, cache, limiter, guard):
        """Create a GitHub client around the mock."""
        return GitHubClient("ghp_test", cache, limiter, guard, github=github)

    @pytest.fixture
    def pull(self, github):
        """Configure a pull request on the mock repository."""
        repository = github.get_repo.return_value
        pr = repository.get_pull.return_value
        pr.title = "Add widget cache"
        pr.user = make_user("alice")
        pr.html_url = "https://github.com/acme/widget/pull/7"
        pr.state = "closed"
        pr.merged = True
        pr.created_at = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)
        pr.updated_at = datetime(2024, 5, 2, 9, 0, tzinfo=timezone.utc)
        pr.additions = 120
        pr.deletions = 30
        pr.changed_files = 2
        pr.commits = 3
        pr.labels = [make_label("enhancement")]

        changed = MagicMock()
        changed.filename = "widget/cache.py"
        changed.additions = 100
        changed.deletions = 20
        changed.status = "modified"
        pr.get_files.return_value = [changed]

        run = MagicMock()
        run.name = "tests"
        run.status = "completed"
        run.conclusion = "success"
        status = MagicMock()
        status.context = "ci/lint"
        status.state = "success"
        status.description = "Lint passed"
        commit = repository.get_commit.return_value
        commit.get_check_runs.return_value = [run]
        commit.get_combined_status.return_value.statuses = [status]

        pr.get_reviews.return_value = [
            make_review("bob", "APPROVED", "LGTM"),
            make_review("carol", "COMMENTED", ""),
            make_review("dave", "CHANGES_REQUESTED", "Please add tests")
        ]
        return pr

    def test_get_pull_request_normalizes(self, client, github, pull):
        result = client.get_pull_request("acme", "widget", 7)

        github.get_repo.assert_called_once_with("acme/widget")
        assert result.source == "github"
        assert result.state == "merged"
        assert result.author == "alice"
        assert result.additions == 120
        assert result.files[0].path == "widget/cache.py"
        assert [c.name for c in result.checks] == ["tests", "ci/lint"]
        assert [r.author for r in result.reviews] == ["bob", "dave"]
        assert result.labels == ["enhancement"]
        assert result.created_at == "2024-05-01T09:00:00+00:00"

    def test_get_pull_request_is_cached(self, client, github, pull, limiter):
        client.get_pull_request("acme", "widget", 7)
        client.get_pull_request("ACME", "widget", 7)

        assert github.get_repo.call_count == 1
        assert limiter.available_tokens == 9

    def test_refresh_bypasses_cache(self, client, github, pull):
        client.get_pull_request("acme", "widget", 7)
        client.get_pull_request("acme", "widget", 7, refresh=True)

        assert github.get_repo.call_count == 2

    def test_out_of_scope_repo_is_never_fetched(self, client, github, limiter):
        with pytest.raises(ScopeViolationError):
            client.get_pull_request("acme", "secret", 1)

        github.get_repo.assert_not_called()
        assert limiter.available_tokens == 10

    def test_github_exception_becomes_upstream_error(self, client, github):
        github.get_repo.side_effect = GithubException(404, {"message": "Not Found"}, None)

        with pytest.raises(UpstreamError) as exc_info:
            client.get_pull_request("acme", "widget", 99)

        assert exc_info.value.status == 404
        assert "Not Found" in exc_info.value.message

    def test_team_stats(self, client, github, cache):
        github.search_issues.return_value = FakePaginatedList([
            make_merged_pr("alice", 10, 5, 4, ["bob", "bob", "alice"]),
            make_merged_pr("alice", 20, 0, 2, []),
            make_merged_pr("bob", 1, 1, 10, ["alice"])
        ])

        stats = client.get_team_stats("acme", "widget", "2024-05-01", "2024-05-31")

        github.search_issues.assert_called_once_with(
            "repo:acme/widget is:pr is:merged merged:2024-05-01..2024-05-31"
        )
        assert stats.period == "2024-05-01..2024-05-31"
        assert stats.total_prs == 3
        assert stats.total_reviewers == 2
        assert stats.total_additions == 31
        assert stats.avg_merge_time_hours == 5.3

        by_login = {c.login: c for c in stats.contributors}
        assert stats.contributors[0].login == "alice"
        assert by_login["alice"].prs_authored == 2
        assert by_login["alice"].prs_reviewed == 1
        assert by_login["alice"].avg_merge_time_hours == 3.0
        assert by_login["bob"].prs_reviewed == 1

    def test_team_stats_uses_stats_ttl(self, client, github, clock):
        github.search_issues.return_value = FakePaginatedList([])

        client.get_team_stats("acme", "widget", "2024-05-01", "2024-05-31")
        clock.advance(CacheTTL.STATS - 1)
        client.get_team_stats("acme", "widget", "2024-05-01", "2024-05-31")

        assert github.search_issues.call_count == 1

    def test_merged_pr_velocity(self, client, github):
        github.search_issues.return_value = FakePaginatedList(
            [make_merged_pr("alice", 100, 50, 1, []), make_merged_pr("bob", 30, 20, 1, [])],
            total=12
        )

        velocity = client.get_merged_pr_velocity("acme", "widget", "2024-05-01")

        assert velocity.count == 12
        assert velocity.avg_lines == 100

    def test_validate_token_scope_flags_extra_repos(self, client, github):
        repos = []
        for name in ("acme/widget", "acme/secret"):
            repo = MagicMock()
            repo.full_name = name
            repos.append(repo)
        github.get_user.return_value.get_repos.return_value = repos

        result = client.validate_token_scope()

        assert result["ok"] is False
        assert "acme/secret" in result["message"]
        assert result["visible_repos"] == ["acme/widget", "acme/secret"]

    def test_validate_token_scope_ok(self, client, github):
        repo = MagicMock()
        repo.full_name = "acme/widget"
        github.get_user.return_value.get_repos.return_value = [repo]

        assert client.validate_token_scope()["ok"] is True

    def test_validate_token_scope_failure_is_not_fatal(self, client, github):
        github.get_user.side_effect = GithubException(401, {"message": "Bad credentials"}, None)

        result = client.validate_token_scope()

        assert result["ok"] is False
        assert result["visible_repos"] == []

    def test_status_responses_are_not_retried(self, cache, limiter, guard):
        with patch("pm_bridge.api.github_client.Github") as github_cls:
            GitHubClient("ghp_test", cache, limiter, guard)

        retry = github_cls.call_args.kwargs["retry"]
        assert retry.status == 0
        assert retry.read == 0
        assert retry.connect == 2
