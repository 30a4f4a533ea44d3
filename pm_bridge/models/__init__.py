"""Result records and tool parameter models."""

# Common data classes
from .common import (
    CacheTTL,
    FileChange,
    CheckResult,
    ReviewComment,
    ReviewResult,
    ContributorStats,
    TeamStats,
    MergeVelocity,
    JiraIssue,
    JiraSearchResult,
    SprintInfo,
    SprintProgress,
    StoryPoints,
    Velocity,
    BlockerItem,
    SprintMetrics,
    SentryIssue,
    SentryFrame,
    SentryEvent,
    SentryIssuesResult,
    GrafanaAlert,
    GrafanaAlertRule,
    GrafanaAnnotation,
    GrafanaAlertsResult
)

# Validation classes
from .validation import (
    ValidationError,
    ToolParams,
    GitHubPRReviewParams,
    GitHubTeamStatsParams,
    GitLabMRReviewParams,
    JiraSearchParams,
    SprintMetricsParams,
    SentryIssuesParams,
    GrafanaAlertsParams,
    validate_params
)

__all__ = [
    # Common data classes
    'CacheTTL',
    'FileChange',
    'CheckResult',
    'ReviewComment',
    'ReviewResult',
    'ContributorStats',
    'TeamStats',
    'MergeVelocity',
    'JiraIssue',
    'JiraSearchResult',
    'SprintInfo',
    'SprintProgress',
    'StoryPoints',
    'Velocity',
    'BlockerItem',
    'SprintMetrics',
    'SentryIssue',
    'SentryFrame',
    'SentryEvent',
    'SentryIssuesResult',
    'GrafanaAlert',
    'GrafanaAlertRule',
    'GrafanaAnnotation',
    'GrafanaAlertsResult',

    # Validation
    'ValidationError',
    'ToolParams',
    'GitHubPRReviewParams',
    'GitHubTeamStatsParams',
    'GitLabMRReviewParams',
    'JiraSearchParams',
    'SprintMetricsParams',
    'SentryIssuesParams',
    'GrafanaAlertsParams',
    'validate_params'
]
