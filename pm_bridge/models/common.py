"""Canonical result records returned by provider clients."""

from dataclasses import dataclass, field
from typing import List, Dict, Optional, Any


class CacheTTL:
    """TTL presets per data-volatility class (seconds)."""
    # PR/MR metadata, changes rarely during review
    METADATA = 5 * 60
    ISSUE_LIST = 5 * 60
    # Diffs are immutable until new commits
    DIFF = 15 * 60
    # Contributor stats are expensive and change slowly
    STATS = 30 * 60
    SPRINT = 5 * 60
    # Alerts and errors change frequently
    ALERTS = 2 * 60


@dataclass
class FileChange:
    """File touched by a pull/merge request."""
    path: str
    additions: int
    deletions: int
    status: str


@dataclass
class CheckResult:
    """CI check or pipeline job outcome."""
    name: str
    status: str
    conclusion: Optional[str]


@dataclass
class ReviewComment:
    """Review or discussion entry."""
    author: str
    state: str
    body: str
    submitted_at: str


@dataclass
class ReviewResult:
    """Review context shared between GitHub PRs and GitLab MRs."""
    source: str  # github, gitlab
    id: int
    title: str
    author: str
    url: str
    state: str
    created_at: str
    updated_at: str
    additions: int
    deletions: int
    files_changed: int
    files: List[FileChange]
    commits_count: int
    checks: List[CheckResult]
    reviews: List[ReviewComment]
    labels: List[str]


@dataclass
class ContributorStats:
    """Per-contributor activity in a period."""
    login: str
    prs_authored: int = 0
    prs_reviewed: int = 0
    additions: int = 0
    deletions: int = 0
    avg_merge_time_hours: float = 0.0


@dataclass
class TeamStats:
    """Team contribution summary for a repository and period."""
    period: str
    repo: str
    contributors: List[ContributorStats]
    total_prs: int
    total_reviewers: int
    avg_merge_time_hours: float
    total_additions: int
    total_deletions: int


@dataclass
class MergeVelocity:
    """Merged PR/MR count and average size since a date."""
    count: int
    avg_lines: int


@dataclass
class JiraIssue:
    """Jira issue summary."""
    key: str
    summary: str
    status: str
    assignee: Optional[str]
    priority: str
    issue_type: str
    story_points: Optional[float]
    created: str
    updated: str
    labels: List[str]


@dataclass
class JiraSearchResult:
    """JQL search result."""
    total: int
    issues: List[JiraIssue]


@dataclass
class SprintInfo:
    """Jira sprint metadata."""
    id: Optional[int]
    name: str
    start_date: str
    end_date: str
    goal: Optional[str] = None
    board_id: Optional[int] = None


@dataclass
class SprintProgress:
    """Issue counts by status bucket."""
    total_issues: int = 0
    completed: int = 0
    in_progress: int = 0
    todo: int = 0
    blocked: int = 0
    completion_percent: float = 0.0


@dataclass
class StoryPoints:
    total: float
    completed: float
    remaining: float


@dataclass
class Velocity:
    """Code velocity, filled from GitHub/GitLab."""
    prs_merged: int = 0
    avg_lines_per_pr: int = 0
    commits: int = 0
    contributors_active: int = 0


@dataclass
class BlockerItem:
    """Issue stuck in a blocked status."""
    key: str
    title: str
    assignee: Optional[str]
    stuck_days: int
    reason: str


@dataclass
class SprintMetrics:
    """Aggregated sprint metrics."""
    sprint: SprintInfo
    days_remaining: int
    progress: SprintProgress
    story_points: Optional[StoryPoints]
    velocity: Velocity = field(default_factory=Velocity)
    blockers: List[BlockerItem] = field(default_factory=list)
    risks: List[str] = field(default_factory=list)


@dataclass
class SentryIssue:
    """Grouped Sentry error."""
    id: str
    title: str
    culprit: str
    level: str
    status: str
    count: str
    first_seen: str
    last_seen: str
    short_id: str
    permalink: str
    metadata: Dict[str, Any]
    tags: List[Dict[str, str]]


@dataclass
class SentryFrame:
    """Stack frame of a Sentry event."""
    filename: str
    function: str
    lineno: Optional[int]
    context_line: Optional[str]


@dataclass
class SentryEvent:
    """Single occurrence of a Sentry issue."""
    event_id: str
    title: str
    message: str
    timestamp: str
    tags: List[Dict[str, str]]
    context: Dict[str, Any]
    frames: List[SentryFrame]


@dataclass
class SentryIssuesResult:
    """Unresolved issues for the configured project."""
    org: str
    project: str
    total: int
    issues: List[SentryIssue]


@dataclass
class GrafanaAlert:
    """Active alert instance."""
    labels: Dict[str, str]
    annotations: Dict[str, str]
    state: str
    active_at: str
    value: str
    silenced_by: List[str]
    inhibited_by: List[str]


@dataclass
class GrafanaAlertRule:
    """Configured alert rule."""
    uid: str
    title: str
    condition: str
    folder_title: str
    state: str
    health: str
    last_evaluation: str
    evaluation_duration: str


@dataclass
class GrafanaAnnotation:
    """Dashboard annotation (incident marker)."""
    id: int
    dashboard_uid: str
    panel_id: int
    text: str
    tags: List[str]
    time: int
    time_end: int


@dataclass
class GrafanaAlertsResult:
    source: str
    total: int
    alerts: List[GrafanaAlert]
