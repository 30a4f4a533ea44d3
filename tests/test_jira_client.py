"""Tests for the Jira client and sprint metrics."""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from jira import JIRAError

from pm_bridge.api.jira_client import JiraClient, parse_jira_datetime
from pm_bridge.core.errors import ScopeViolationError, UpstreamError
from pm_bridge.core.scope_guard import ScopeGuard


NOW = datetime(2024, 5, 10, 0, 0, tzinfo=timezone.utc)


def make_issue(key, status, points=None, updated="2024-05-09T00:00:00.000+0000", assignee="Alice"):
    return {
        "key": key,
        "fields": {
            "summary": f"Summary of {key}",
            "status": {"name": status},
            "assignee": {"displayName": assignee} if assignee else None,
            "priority": {"name": "High"},
            "issuetype": {"name": "Story"},
            "customfield_10016": points,
            "created": "2024-04-30T00:00:00.000+0000",
            "updated": updated,
            "labels": ["backend"]
        }
    }


def make_sprint(sprint_id=100, board_id=42):
    sprint = MagicMock()
    sprint.raw = {
        "id": sprint_id,
        "name": "Sprint 12",
        "startDate": "2024-05-01T00:00:00.000Z",
        "endDate": "2024-05-14T00:00:00.000Z",
        "goal": "Ship the cache",
        "originBoardId": board_id
    }
    return sprint


class TestParseJiraDatetime:
    """Test cases for timestamp parsing."""

    def test_offset_without_colon(self):
        assert parse_jira_datetime("2024-05-01T10:00:00.000+0000") == datetime(
            2024, 5, 1, 10, 0, tzinfo=timezone.utc
        )

    def test_zulu_suffix(self):
        assert parse_jira_datetime("2024-05-14T00:00:00.000Z") == datetime(2024, 5, 14, tzinfo=timezone.utc)

    @pytest.mark.parametrize("value", [None, "", "not a date"])
    def test_unparseable(self, value):
        assert parse_jira_datetime(value) is None


class TestJiraClient:
    """Test cases for JiraClient."""

    @pytest.fixture
    def jira(self):
        """Create a mock JIRA instance."""
        return MagicMock()

    @pytest.fixture
    def client(self, jira, cache, limiter, guard):
        """Create a Jira client around the mock."""
        return JiraClient(
            "https://acme.atlassian.net/", "bot@acme.io", "token",
            cache, limiter, guard, jira=jira
        )

    def test_search_scopes_jql(self, client, jira):
        jira.search_issues.return_value = {"total": 7, "issues": [make_issue("SHIP-1", "To Do", 3)]}

        result = client.search("status = Open", max_results=10)

        args, kwargs = jira.search_issues.call_args
        assert args[0] == '(status = Open) AND project IN ("SHIP", "OPS")'
        assert kwargs["maxResults"] == 10
        assert kwargs["json_result"] is True
        assert "customfield_10016" in kwargs["fields"]
        assert result.total == 7
        issue = result.issues[0]
        assert issue.key == "SHIP-1"
        assert issue.story_points == 3
        assert issue.assignee == "Alice"

    def test_search_is_cached(self, client, jira, limiter):
        jira.search_issues.return_value = {"total": 0, "issues": []}

        client.search("status = Open")
        client.search("status = Open")
        client.search("status = Done")

        assert jira.search_issues.call_count == 2
        assert limiter.available_tokens == 8

    def test_search_defaults_for_missing_fields(self, client, jira):
        jira.search_issues.return_value = {"issues": [{"key": "OPS-2", "fields": {}}]}

        result = client.search("")

        issue = result.issues[0]
        assert result.total == 1
        assert issue.status == "Unknown"
        assert issue.priority == "Medium"
        assert issue.issue_type == "Task"
        assert issue.assignee is None

    def test_jira_error_becomes_upstream_error(self, client, jira):
        jira.search_issues.side_effect = JIRAError(text="Error in the JQL Query", status_code=400)

        with pytest.raises(UpstreamError) as exc_info:
            client.search("status = = Open")

        assert exc_info.value.status == 400
        assert "JQL" in exc_info.value.message

    def test_active_sprint(self, client, jira):
        jira.sprints.return_value = [make_sprint()]

        sprint = client.get_active_sprint(42)

        jira.sprints.assert_called_once_with(42, state="active", maxResults=1)
        assert sprint.id == 100
        assert sprint.goal == "Ship the cache"
        assert sprint.board_id == 42

    def test_no_active_sprint(self, client, jira):
        jira.sprints.return_value = []

        assert client.get_active_sprint(42) is None
        assert client.get_active_sprint(42) is None
        assert jira.sprints.call_count == 1

    def test_board_outside_allowlist(self, client, jira, limiter):
        with pytest.raises(ScopeViolationError):
            client.get_active_sprint(7)

        jira.sprints.assert_not_called()
        assert limiter.available_tokens == 10

    def test_sprint_without_board_is_denied_before_fetch(self, client, jira, cache, limiter):
        jira.sprint.return_value = make_sprint(sprint_id=9, board_id=7)

        with pytest.raises(ScopeViolationError):
            client.get_sprint(9)

        jira.sprint.assert_not_called()
        assert limiter.available_tokens == 10
        assert cache.size == 0

    def test_sprint_read_through_unlisted_board_is_denied(self, client, jira, cache, limiter):
        with pytest.raises(ScopeViolationError):
            client.get_sprint(9, board_id=7)

        jira.sprint.assert_not_called()
        assert limiter.available_tokens == 10
        assert cache.size == 0

    def test_sprint_from_other_board_is_not_cached(self, client, jira, cache):
        jira.sprint.return_value = make_sprint(sprint_id=5, board_id=99)

        with pytest.raises(ScopeViolationError):
            client.get_sprint(5, board_id=42)

        assert cache.size == 0

    def test_sprint_without_board_when_no_boards_configured(self, jira, cache, limiter):
        guard = ScopeGuard(jira_projects="SHIP")
        client = JiraClient("https://acme.atlassian.net", "bot@acme.io", "token",
                            cache, limiter, guard, jira=jira)
        jira.sprint.return_value = make_sprint(sprint_id=9, board_id=7)

        assert client.get_sprint(9).board_id == 7

    def test_sprint_issues_use_scoped_jql(self, client, jira):
        jira.search_issues.return_value = {"total": 0, "issues": []}

        client.get_sprint_issues(100)

        assert jira.search_issues.call_args.args[0] == '(sprint = 100) AND project IN ("SHIP", "OPS")'

    def test_sprint_metrics(self, client, jira):
        jira.sprints.return_value = [make_sprint()]
        jira.search_issues.return_value = {"total": 4, "issues": [
            make_issue("SHIP-1", "Done", 3),
            make_issue("SHIP-2", "In Progress", 5),
            make_issue("SHIP-3", "Blocked", 2, updated="2024-05-01T00:00:00.000+0000", assignee=None),
            make_issue("SHIP-4", "To Do", None, updated="2024-05-03T12:00:00.000+0000")
        ]}

        metrics = client.get_sprint_metrics(42, now=NOW)

        assert metrics.sprint.name == "Sprint 12"
        assert metrics.days_remaining == 4
        assert metrics.progress.total_issues == 4
        assert metrics.progress.completed == 1
        assert metrics.progress.in_progress == 1
        assert metrics.progress.blocked == 1
        assert metrics.progress.todo == 1
        assert metrics.progress.completion_percent == 25.0
        assert metrics.story_points.total == 10
        assert metrics.story_points.completed == 3
        assert metrics.story_points.remaining == 7

        assert len(metrics.blockers) == 1
        blocker = metrics.blockers[0]
        assert blocker.key == "SHIP-3"
        assert blocker.stuck_days == 9
        assert blocker.reason == "Status: Blocked"
        assert blocker.assignee is None

        assert len(metrics.risks) == 2
        assert metrics.risks[0].startswith("SHIP-3")
        assert "6 days" in metrics.risks[1]

    def test_sprint_metrics_for_specific_sprint(self, client, jira):
        jira.sprint.return_value = make_sprint(sprint_id=55)
        jira.search_issues.return_value = {"total": 0, "issues": []}

        metrics = client.get_sprint_metrics(42, sprint_id=55, now=NOW)

        jira.sprint.assert_called_once_with(55)
        jira.sprints.assert_not_called()
        assert metrics.sprint.id == 55
        assert metrics.progress.completion_percent == 0.0
        assert metrics.story_points is None

    def test_sprint_metrics_days_remaining_never_negative(self, client, jira):
        jira.sprints.return_value = [make_sprint()]
        jira.search_issues.return_value = {"total": 0, "issues": []}

        metrics = client.get_sprint_metrics(42, now=datetime(2024, 6, 1, tzinfo=timezone.utc))

        assert metrics.days_remaining == 0

    def test_sprint_metrics_without_active_sprint(self, client, jira):
        jira.sprints.return_value = []

        assert client.get_sprint_metrics(42, now=NOW) is None
        jira.search_issues.assert_not_called()

    def test_sprint_metrics_checks_board_first(self, client, jira):
        with pytest.raises(ScopeViolationError):
            client.get_sprint_metrics(7, sprint_id=55)

        jira.sprint.assert_not_called()
