"""API integration layer for external services."""

from .base import GuardedClient, BaseAPIClient
from .github_client import GitHubClient, parse_repo
from .gitlab_client import GitLabClient
from .jira_client import JiraClient
from .sentry_client import SentryClient
from .grafana_client import GrafanaClient
from .factory import APIClientFactory

__all__ = [
    'GuardedClient',
    'BaseAPIClient',
    'GitHubClient',
    'parse_repo',
    'GitLabClient',
    'JiraClient',
    'SentryClient',
    'GrafanaClient',
    'APIClientFactory'
]
