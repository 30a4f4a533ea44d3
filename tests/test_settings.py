"""Tests for configuration loading and validation."""

import json

import pytest

from pm_bridge.config.settings import SystemConfig


class TestFromEnv:
    """Test cases for environment configuration."""

    def test_reads_scope_and_credentials(self, monkeypatch):
        monkeypatch.setenv("SCOPE_GITHUB_REPOS", "acme/widget,acme/api")
        monkeypatch.setenv("SCOPE_JIRA_BOARDS", "42")
        monkeypatch.setenv("SENTRY_ORG", "acme")
        monkeypatch.setenv("SENTRY_PROJECT", "backend")
        monkeypatch.setenv("GITHUB_TOKEN", "ghp_test")
        monkeypatch.setenv("SENTRY_AUTH_TOKEN", "sntrys_test")
        monkeypatch.setenv("RATE_LIMIT_BURST", "5")
        monkeypatch.setenv("RATE_LIMIT_PER_MINUTE", "12")
        monkeypatch.setenv("VALIDATE_TOKEN_SCOPE", "false")

        config = SystemConfig.from_env()

        assert config.scope.github_repos == "acme/widget,acme/api"
        assert config.scope.jira_boards == "42"
        assert config.scope.sentry_project == "backend"
        assert config.api.github_token == "ghp_test"
        assert config.api.sentry_token == "sntrys_test"
        assert config.rate_limit.burst_capacity == 5
        assert config.rate_limit.refill_per_minute == 12.0
        assert config.api.validate_token_scope is False

    def test_defaults(self, monkeypatch):
        for name in ("GITLAB_HOST", "SENTRY_URL", "RATE_LIMIT_BURST", "RATE_LIMIT_PER_MINUTE",
                     "CACHE_CLEANUP_INTERVAL", "REQUEST_TIMEOUT"):
            monkeypatch.delenv(name, raising=False)

        config = SystemConfig.from_env()

        assert config.api.gitlab_host == "https://gitlab.com"
        assert config.api.sentry_url == "https://sentry.io"
        assert config.api.request_timeout == 30
        assert config.rate_limit.burst_capacity == 10
        assert config.rate_limit.refill_per_minute == 30
        assert config.cache.cleanup_interval == 60


class TestFromFile:
    """Test cases for JSON configuration files."""

    def test_loads_sections_and_joins_lists(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({
            "scope": {"github_repos": ["acme/widget", "acme/api"], "jira_boards": [42, 7]},
            "api": {"github_token": "ghp_file", "request_timeout": 10},
            "rate_limit": {"burst_capacity": 3},
            "logging": {"level": "DEBUG"}
        }))

        config = SystemConfig.from_file(str(path))

        assert config.scope.github_repos == "acme/widget,acme/api"
        assert config.scope.jira_boards == "42,7"
        assert config.api.github_token == "ghp_file"
        assert config.api.request_timeout == 10
        assert config.rate_limit.burst_capacity == 3
        assert config.logging.level == "DEBUG"

    def test_unknown_keys_are_ignored(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"scope": {"bitbucket_repos": "x/y"}}))

        config = SystemConfig.from_file(str(path))

        assert not hasattr(config.scope, "bitbucket_repos")

    def test_missing_file_falls_back_to_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("SCOPE_GITHUB_REPOS", "acme/env")

        config = SystemConfig.from_file(str(tmp_path / "missing.json"))

        assert config.scope.github_repos == "acme/env"

    def test_invalid_json_falls_back_to_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("SCOPE_GITHUB_REPOS", "acme/env")
        path = tmp_path / "config.json"
        path.write_text("{not json")

        config = SystemConfig.from_file(str(path))

        assert config.scope.github_repos == "acme/env"


class TestValidate:
    """Test cases for SystemConfig.validate."""

    def test_empty_configuration_is_valid(self):
        assert SystemConfig().validate() is True

    def test_valid_scope(self):
        config = SystemConfig()
        config.scope.github_repos = "acme/widget, acme/api.v2"
        config.scope.gitlab_projects = "acme/platform/backend"
        config.scope.jira_boards = "42, 7"
        config.scope.sentry_org = "acme"
        config.scope.sentry_project = "backend"

        assert config.validate() is True

    @pytest.mark.parametrize("repos", ["*", "acme/*", "acme", "acme/widget/extra"])
    def test_rejects_malformed_github_repos(self, repos):
        config = SystemConfig()
        config.scope.github_repos = repos

        assert config.validate() is False

    def test_rejects_gitlab_wildcards(self):
        config = SystemConfig()
        config.scope.gitlab_projects = "acme/*"

        assert config.validate() is False

    def test_rejects_non_numeric_boards(self):
        config = SystemConfig()
        config.scope.jira_boards = "42,abc"

        assert config.validate() is False

    def test_sentry_pair_must_be_complete(self):
        config = SystemConfig()
        config.scope.sentry_org = "acme"

        assert config.validate() is False

    @pytest.mark.parametrize("section,field,value", [
        ("rate_limit", "burst_capacity", 0),
        ("rate_limit", "refill_per_minute", 0),
        ("cache", "cleanup_interval", -1)
    ])
    def test_rejects_invalid_substrate_settings(self, section, field, value):
        config = SystemConfig()
        setattr(getattr(config, section), field, value)

        assert config.validate() is False
