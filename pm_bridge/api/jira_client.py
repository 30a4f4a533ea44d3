"""Jira API client for issue search and sprint metrics."""

import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from jira import JIRA, JIRAError

from ..core.cache import ExpiringCache, cache_key, hash_params
from ..core.errors import ScopeViolationError, UpstreamError
from ..core.rate_limiter import RateLimiter
from ..core.scope_guard import ScopeGuard
from ..models.common import (
    BlockerItem,
    CacheTTL,
    JiraIssue,
    JiraSearchResult,
    SprintInfo,
    SprintMetrics,
    SprintProgress,
    StoryPoints,
)
from .base import GuardedClient


STORY_POINTS_FIELD = "customfield_10016"

DEFAULT_FIELDS = [
    "summary", "status", "assignee", "priority", "issuetype",
    STORY_POINTS_FIELD, "created", "updated", "labels"
]

MAX_SPRINT_ISSUES = 100

DONE_STATUSES = frozenset(["Done", "Closed", "Resolved", "Released"])
IN_PROGRESS_STATUSES = frozenset(["In Progress", "In Review", "In Testing", "Code Review"])
BLOCKED_STATUSES = frozenset(["Blocked", "On Hold", "Impediment"])

# Open issues without an update for longer than this are reported as risks
STALE_AFTER_DAYS = 5

SECONDS_PER_DAY = 24 * 60 * 60


def parse_jira_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse a Jira timestamp such as ``2024-05-01T10:00:00.000+0000``."""
    if not value:
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    # Jira omits the colon in UTC offsets
    if len(text) > 5 and text[-5] in "+-" and text[-4:].isdigit():
        text = f"{text[:-2]}:{text[-2:]}"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _days_since(timestamp: Optional[str], now: datetime) -> int:
    parsed = parse_jira_datetime(timestamp)
    if parsed is None:
        return 0
    return max(0, math.floor((now - parsed).total_seconds() / SECONDS_PER_DAY))


def _normalize_issue(issue: Dict[str, Any]) -> JiraIssue:
    fields = issue.get("fields") or {}
    return JiraIssue(
        key=issue["key"],
        summary=fields.get("summary") or "",
        status=(fields.get("status") or {}).get("name", "Unknown"),
        assignee=(fields.get("assignee") or {}).get("displayName"),
        priority=(fields.get("priority") or {}).get("name", "Medium"),
        issue_type=(fields.get("issuetype") or {}).get("name", "Task"),
        story_points=fields.get(STORY_POINTS_FIELD),
        created=fields.get("created") or "",
        updated=fields.get("updated") or "",
        labels=list(fields.get("labels") or [])
    )


def _normalize_sprint(raw: Dict[str, Any]) -> SprintInfo:
    return SprintInfo(
        id=raw["id"],
        name=raw.get("name", ""),
        start_date=raw.get("startDate") or "",
        end_date=raw.get("endDate") or "",
        goal=raw.get("goal") or None,
        board_id=raw.get("originBoardId")
    )


class JiraClient(GuardedClient):
    """Jira client with project-scoped JQL, board checks, caching and rate limiting."""

    provider = "jira"
    upstream_exceptions = GuardedClient.upstream_exceptions + (JIRAError,)

    def __init__(
        self,
        server_url: str,
        username: str,
        api_token: str,
        cache: ExpiringCache,
        limiter: RateLimiter,
        guard: ScopeGuard,
        timeout: int = 30,
        jira: Optional[JIRA] = None
    ):
        """Initialize Jira client.

        Args:
            server_url: Jira server URL (e.g., https://company.atlassian.net)
            username: Jira username/email
            api_token: Jira API token
            timeout: Request timeout in seconds
            jira: Preconfigured JIRA instance (tests)
        """
        super().__init__(cache, limiter, guard)
        self.server_url = server_url.rstrip('/')
        # The limiter owns the call budget; the library must not replay requests
        self.jira = jira or JIRA(
            server=self.server_url,
            basic_auth=(username, api_token),
            get_server_info=False,
            max_retries=0,
            timeout=timeout
        )

    def _to_upstream_error(self, error: BaseException) -> UpstreamError:
        if isinstance(error, JIRAError):
            message = error.text or str(error)
            return UpstreamError(self.provider, str(message)[:200], error.status_code)
        return super()._to_upstream_error(error)

    def search(
        self,
        jql: str,
        fields: Optional[List[str]] = None,
        max_results: int = 50,
        refresh: bool = False
    ) -> JiraSearchResult:
        """Search issues with a JQL query restricted to the allowed projects.

        Args:
            jql: Caller JQL; it is wrapped with the project clause before use
            fields: Fields to return (defaults to the summary set)
            max_results: Maximum issues to return
            refresh: Bypass cached data
        """
        scoped = self.guard.scope_jql(jql)
        key = cache_key("jira", "search", hash_params({
            "jql": scoped,
            "fields": fields,
            "max_results": max_results
        }))
        return self._guarded_call(
            key,
            CacheTTL.ISSUE_LIST,
            lambda: self._fetch_search(scoped, fields, max_results),
            refresh=refresh,
            description=f"JQL {scoped[:80]}"
        )

    def _fetch_search(self, jql: str, fields: Optional[List[str]], max_results: int) -> JiraSearchResult:
        data = self.jira.search_issues(
            jql,
            maxResults=max_results,
            fields=",".join(fields or DEFAULT_FIELDS),
            json_result=True
        )
        issues = [_normalize_issue(issue) for issue in data.get("issues", [])]
        return JiraSearchResult(total=data.get("total", len(issues)), issues=issues)

    def get_active_sprint(self, board_id: int) -> Optional[SprintInfo]:
        """Return the active sprint of a board, or None when it has none."""
        key = cache_key("jira", "active-sprint", board_id)
        return self._guarded_call(
            key,
            CacheTTL.SPRINT,
            lambda: self._fetch_active_sprint(board_id),
            authorize=lambda: self.guard.check_jira_board(board_id),
            description=f"active sprint of board {board_id}"
        )

    def _fetch_active_sprint(self, board_id: int) -> Optional[SprintInfo]:
        sprints = self.jira.sprints(board_id, state="active", maxResults=1)
        if not sprints:
            return None
        sprint = _normalize_sprint(sprints[0].raw)
        if sprint.board_id is None:
            sprint.board_id = board_id
        return sprint

    def get_sprint(self, sprint_id: int, board_id: Optional[int] = None) -> SprintInfo:
        """Return sprint metadata by id.

        Args:
            sprint_id: Jira sprint id
            board_id: Board the sprint is read through; required once boards
                are configured, and the sprint must originate from it
        """
        key = cache_key("jira", "sprint-info", sprint_id, board_id)
        return self._guarded_call(
            key,
            CacheTTL.SPRINT,
            lambda: self._fetch_sprint(sprint_id, board_id),
            authorize=lambda: self.guard.check_jira_sprint(sprint_id, board_id),
            description=f"sprint {sprint_id}"
        )

    def _fetch_sprint(self, sprint_id: int, board_id: Optional[int]) -> SprintInfo:
        sprint = _normalize_sprint(self.jira.sprint(sprint_id).raw)
        if board_id is None:
            return sprint
        if sprint.board_id is None:
            sprint.board_id = board_id
        elif sprint.board_id != board_id:
            # Not stored: the sprint belongs to another board
            raise ScopeViolationError(
                "jira-board",
                str(sprint.board_id),
                [str(board) for board in self.guard.jira_boards] or [str(board_id)]
            )
        return sprint

    def get_sprint_issues(self, sprint_id: int) -> List[JiraIssue]:
        """Return the issues of a sprint that belong to the allowed projects."""
        jql = self.guard.scope_jql(f"sprint = {int(sprint_id)}")
        key = cache_key("jira", "sprint-issues", sprint_id, hash_params({"jql": jql}))
        return self._guarded_call(
            key,
            CacheTTL.SPRINT,
            lambda: self._fetch_search(jql, None, MAX_SPRINT_ISSUES).issues,
            description=f"issues of sprint {sprint_id}"
        )

    def get_sprint_metrics(
        self,
        board_id: int,
        sprint_id: Optional[int] = None,
        now: Optional[datetime] = None
    ) -> Optional[SprintMetrics]:
        """Build progress, story point, blocker and risk metrics for a sprint.

        Args:
            board_id: Jira board the sprint belongs to
            sprint_id: Specific sprint; the board's active sprint when omitted
            now: Reference time for day computations (defaults to current UTC time)

        Returns:
            SprintMetrics, or None when the board has no active sprint
        """
        self.guard.check_jira_board(board_id)

        if sprint_id is not None:
            sprint = self.get_sprint(sprint_id, board_id)
        else:
            sprint = self.get_active_sprint(board_id)

        if sprint is None:
            return None

        now = now or datetime.now(timezone.utc)
        issues = self.get_sprint_issues(sprint.id)

        progress = SprintProgress(total_issues=len(issues))
        blockers: List[BlockerItem] = []
        risks: List[str] = []
        total_points = 0.0
        completed_points = 0.0

        for issue in issues:
            points = issue.story_points or 0
            total_points += points

            if issue.status in DONE_STATUSES:
                progress.completed += 1
                completed_points += points
                continue

            idle_days = _days_since(issue.updated, now)

            if issue.status in BLOCKED_STATUSES:
                progress.blocked += 1
                blockers.append(BlockerItem(
                    key=issue.key,
                    title=issue.summary,
                    assignee=issue.assignee,
                    stuck_days=idle_days,
                    reason=f"Status: {issue.status}"
                ))
            elif issue.status in IN_PROGRESS_STATUSES:
                progress.in_progress += 1
            else:
                progress.todo += 1

            if idle_days > STALE_AFTER_DAYS:
                risks.append(f'{issue.key} "{issue.summary}": no activity for {idle_days} days')

        if progress.total_issues:
            progress.completion_percent = round(progress.completed / progress.total_issues * 100, 1)

        end = parse_jira_datetime(sprint.end_date)
        days_remaining = 0
        if end is not None:
            days_remaining = max(0, math.ceil((end - now).total_seconds() / SECONDS_PER_DAY))

        story_points = None
        if total_points > 0:
            story_points = StoryPoints(
                total=total_points,
                completed=completed_points,
                remaining=total_points - completed_points
            )

        self.logger.info(
            f"Sprint {sprint.name}: {progress.completed}/{progress.total_issues} done, "
            f"{len(blockers)} blockers"
        )

        return SprintMetrics(
            sprint=sprint,
            days_remaining=days_remaining,
            progress=progress,
            story_points=story_points,
            blockers=blockers,
            risks=risks
        )
