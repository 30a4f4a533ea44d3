"""Configuration settings and environment management."""

import os
import re
import json
import logging
from typing import Optional
from dataclasses import dataclass, field


GITHUB_REPO_PATTERN = re.compile(r'^[\w.\-]+/[\w.\-]+$')


@dataclass
class ScopeConfig:
    """Operator-declared allowlists (comma-separated lists)."""
    github_repos: str = ""
    gitlab_projects: str = ""
    jira_projects: str = ""
    jira_boards: str = ""
    sentry_org: str = ""
    sentry_project: str = ""


@dataclass
class APIConfig:
    """External API credentials and endpoints."""
    github_token: str = ""
    gitlab_token: str = ""
    gitlab_host: str = "https://gitlab.com"
    jira_url: str = ""
    jira_username: str = ""
    jira_token: str = ""
    sentry_url: str = "https://sentry.io"
    sentry_token: str = ""
    grafana_url: str = ""
    grafana_token: str = ""
    request_timeout: int = 30  # seconds
    validate_token_scope: bool = True


@dataclass
class RateLimitConfig:
    """Token bucket configuration."""
    burst_capacity: int = 10
    refill_per_minute: float = 30


@dataclass
class CacheConfig:
    """Cache configuration."""
    cleanup_interval: float = 60  # seconds


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file_path: Optional[str] = None
    max_file_size: int = 10485760  # 10MB
    backup_count: int = 5


@dataclass
class SystemConfig:
    """Main system configuration."""
    scope: ScopeConfig = field(default_factory=ScopeConfig)
    api: APIConfig = field(default_factory=APIConfig)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_env(cls) -> 'SystemConfig':
        """Create configuration from environment variables."""
        config = cls()

        # Scope configuration
        config.scope.github_repos = os.getenv('SCOPE_GITHUB_REPOS', config.scope.github_repos)
        config.scope.gitlab_projects = os.getenv('SCOPE_GITLAB_PROJECTS', config.scope.gitlab_projects)
        config.scope.jira_projects = os.getenv('SCOPE_JIRA_PROJECTS', config.scope.jira_projects)
        config.scope.jira_boards = os.getenv('SCOPE_JIRA_BOARDS', config.scope.jira_boards)
        config.scope.sentry_org = os.getenv('SENTRY_ORG', config.scope.sentry_org)
        config.scope.sentry_project = os.getenv('SENTRY_PROJECT', config.scope.sentry_project)

        # API configuration
        config.api.github_token = os.getenv('GITHUB_TOKEN', config.api.github_token)
        config.api.gitlab_token = os.getenv('GITLAB_TOKEN', config.api.gitlab_token)
        config.api.gitlab_host = os.getenv('GITLAB_HOST', config.api.gitlab_host)
        config.api.jira_url = os.getenv('JIRA_URL', config.api.jira_url)
        config.api.jira_username = os.getenv('JIRA_USERNAME', config.api.jira_username)
        config.api.jira_token = os.getenv('JIRA_TOKEN', config.api.jira_token)
        config.api.sentry_url = os.getenv('SENTRY_URL', config.api.sentry_url)
        config.api.sentry_token = os.getenv('SENTRY_AUTH_TOKEN', config.api.sentry_token)
        config.api.grafana_url = os.getenv('GRAFANA_URL', config.api.grafana_url)
        config.api.grafana_token = os.getenv('GRAFANA_TOKEN', config.api.grafana_token)
        config.api.request_timeout = int(os.getenv('REQUEST_TIMEOUT', str(config.api.request_timeout)))
        config.api.validate_token_scope = os.getenv('VALIDATE_TOKEN_SCOPE', 'true').lower() == 'true'

        # Rate limit configuration
        config.rate_limit.burst_capacity = int(os.getenv('RATE_LIMIT_BURST', str(config.rate_limit.burst_capacity)))
        config.rate_limit.refill_per_minute = float(os.getenv('RATE_LIMIT_PER_MINUTE', str(config.rate_limit.refill_per_minute)))

        # Cache configuration
        config.cache.cleanup_interval = float(os.getenv('CACHE_CLEANUP_INTERVAL', str(config.cache.cleanup_interval)))

        # Logging configuration
        config.logging.level = os.getenv('LOG_LEVEL', config.logging.level)
        config.logging.file_path = os.getenv('LOG_FILE_PATH', config.logging.file_path)

        return config

    @classmethod
    def from_file(cls, config_path: str) -> 'SystemConfig':
        """Load configuration from JSON file."""
        try:
            with open(config_path, 'r') as f:
                config_data = json.load(f)

            config = cls()

            # Update configuration with file data
            for section in ('scope', 'api', 'rate_limit', 'cache', 'logging'):
                if section not in config_data:
                    continue
                target = getattr(config, section)
                for key, value in config_data[section].items():
                    if hasattr(target, key):
                        if isinstance(value, list):
                            value = ",".join(str(item) for item in value)
                        setattr(target, key, value)
                    else:
                        logging.warning(f"Unknown configuration key {section}.{key} ignored")

            return config

        except FileNotFoundError:
            logging.warning(f"Configuration file {config_path} not found, using defaults")
            return cls.from_env()
        except json.JSONDecodeError as e:
            logging.error(f"Invalid JSON in configuration file {config_path}: {e}")
            return cls.from_env()

    def validate(self) -> bool:
        """Validate configuration settings.

        Empty scope is not an error: it denies the domain and the matching
        tools are simply not registered.
        """
        errors = []

        # Validate scope entries
        for repo in _split(self.scope.github_repos):
            if not GITHUB_REPO_PATTERN.match(repo):
                errors.append(
                    f'Invalid GitHub repo "{repo}". Expected "owner/repo"; wildcards are rejected'
                )

        for project in _split(self.scope.gitlab_projects):
            if '*' in project:
                errors.append(f'Invalid GitLab project "{project}". Wildcards are rejected')

        for board in _split(self.scope.jira_boards):
            if not board.isdigit():
                errors.append(f'Invalid Jira board id "{board}". Expected an integer')

        if bool(self.scope.sentry_org.strip()) != bool(self.scope.sentry_project.strip()):
            errors.append("SENTRY_ORG and SENTRY_PROJECT must be set together")

        # Validate substrate settings
        if self.rate_limit.burst_capacity < 1:
            errors.append("Rate limit burst capacity must be at least 1")

        if self.rate_limit.refill_per_minute <= 0:
            errors.append("Rate limit refill per minute must be positive")

        if self.cache.cleanup_interval < 0:
            errors.append("Cache cleanup interval must not be negative")

        if errors:
            for error in errors:
                logging.error(f"Configuration validation error: {error}")
            return False

        return True


def _split(value: str):
    """Split a comma-separated setting into trimmed, non-empty entries."""
    return [item.strip() for item in (value or "").split(',') if item.strip()]
