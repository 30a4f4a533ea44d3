"""API client factory for creating configured, scope-gated clients."""

import logging
from typing import Dict, List, Optional

from ..config.settings import SystemConfig
from ..core.cache import ExpiringCache
from ..core.rate_limiter import RateLimiter
from ..core.scope_guard import ScopeGuard
from ..utils.logging import StructuredLogger
from .github_client import GitHubClient
from .gitlab_client import GitLabClient
from .grafana_client import GrafanaClient
from .jira_client import JiraClient
from .sentry_client import SentryClient


class APIClientFactory:
    """Factory for creating API clients that share one cache, limiter and guard.

    A client is created only when its credentials are present AND its scope
    domain is non-empty; every skip is logged with its reason.
    """

    def __init__(
        self,
        config: SystemConfig,
        cache: ExpiringCache,
        limiter: RateLimiter,
        guard: ScopeGuard
    ):
        """Initialize factory with system configuration and the shared substrate."""
        self.config = config
        self.cache = cache
        self.limiter = limiter
        self.guard = guard
        self.logger = logging.getLogger(__name__)
        self.audit = StructuredLogger(__name__)

    def _skip(self, provider: str, missing: List[str], scope_empty: bool = False) -> None:
        reasons = []
        if missing:
            reasons.append(f"missing {', '.join(missing)}")
        if scope_empty:
            reasons.append("empty scope")
        self.audit.log_audit("client_skipped", provider=provider, reason="; ".join(reasons))

    def create_github_client(self) -> Optional[GitHubClient]:
        """Create GitHub API client."""
        missing = [] if self.config.api.github_token else ["GITHUB_TOKEN"]
        scope_empty = not self.guard.has_github_scope
        if missing or scope_empty:
            self._skip("github", missing, scope_empty)
            return None

        client = GitHubClient(
            token=self.config.api.github_token,
            cache=self.cache,
            limiter=self.limiter,
            guard=self.guard,
            timeout=self.config.api.request_timeout
        )
        self.logger.info(f"GitHub client created for {len(self.guard.github_repos)} repos")
        return client

    def create_gitlab_client(self) -> Optional[GitLabClient]:
        """Create GitLab API client."""
        missing = [] if self.config.api.gitlab_token else ["GITLAB_TOKEN"]
        scope_empty = not self.guard.has_gitlab_scope
        if missing or scope_empty:
            self._skip("gitlab", missing, scope_empty)
            return None

        client = GitLabClient(
            host=self.config.api.gitlab_host,
            token=self.config.api.gitlab_token,
            cache=self.cache,
            limiter=self.limiter,
            guard=self.guard,
            timeout=self.config.api.request_timeout
        )
        self.logger.info(f"GitLab client created for {len(self.guard.gitlab_projects)} projects")
        return client

    def create_jira_client(self) -> Optional[JiraClient]:
        """Create Jira API client."""
        api = self.config.api
        missing = [
            name for name, value in (
                ("JIRA_URL", api.jira_url),
                ("JIRA_USERNAME", api.jira_username),
                ("JIRA_TOKEN", api.jira_token)
            )
            if not value
        ]
        scope_empty = not self.guard.has_jira_scope
        if missing or scope_empty:
            self._skip("jira", missing, scope_empty)
            return None

        client = JiraClient(
            server_url=api.jira_url,
            username=api.jira_username,
            api_token=api.jira_token,
            cache=self.cache,
            limiter=self.limiter,
            guard=self.guard,
            timeout=api.request_timeout
        )
        self.logger.info(f"Jira client created for projects {', '.join(self.guard.jira_projects)}")
        return client

    def create_sentry_client(self) -> Optional[SentryClient]:
        """Create Sentry API client."""
        missing = [] if self.config.api.sentry_token else ["SENTRY_AUTH_TOKEN"]
        scope_empty = not self.guard.has_sentry_scope
        if missing or scope_empty:
            self._skip("sentry", missing, scope_empty)
            return None

        client = SentryClient(
            base_url=self.config.api.sentry_url,
            token=self.config.api.sentry_token,
            org=self.guard.sentry_org,
            project=self.guard.sentry_project,
            cache=self.cache,
            limiter=self.limiter,
            guard=self.guard,
            timeout=self.config.api.request_timeout
        )
        self.logger.info(f"Sentry client created for {self.guard.sentry_org}/{self.guard.sentry_project}")
        return client

    def create_grafana_client(self) -> Optional[GrafanaClient]:
        """Create Grafana API client (credential-gated only)."""
        api = self.config.api
        missing = [
            name for name, value in (("GRAFANA_URL", api.grafana_url), ("GRAFANA_TOKEN", api.grafana_token))
            if not value
        ]
        if missing:
            self._skip("grafana", missing)
            return None

        client = GrafanaClient(
            base_url=api.grafana_url,
            token=api.grafana_token,
            cache=self.cache,
            limiter=self.limiter,
            guard=self.guard,
            timeout=api.request_timeout
        )
        self.logger.info("Grafana client created")
        return client

    def create_all_clients(self) -> Dict[str, object]:
        """Create all available API clients."""
        clients = {}

        for name, create in (
            ("github", self.create_github_client),
            ("gitlab", self.create_gitlab_client),
            ("jira", self.create_jira_client),
            ("sentry", self.create_sentry_client),
            ("grafana", self.create_grafana_client)
        ):
            client = create()
            if client:
                clients[name] = client

        self.logger.info(f"Created {len(clients)} API clients: {list(clients.keys())}")
        return clients
