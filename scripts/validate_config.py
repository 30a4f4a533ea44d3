#!/usr/bin/env python
"""Configuration validation script for the project management bridge."""

import os
import sys
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# Load environment variables from .env file
env_file = project_root / '.env'
if env_file.exists():
    with open(env_file) as f:
        for line in f:
            line = line.strip()
            if line and not line.startswith('#') and '=' in line:
                key, value = line.split('=', 1)
                # Remove quotes if present
                value = value.strip('"\'')
                os.environ[key.strip()] = value

from pm_bridge.api.factory import APIClientFactory
from pm_bridge.config.settings import SystemConfig
from pm_bridge.core.cache import ExpiringCache
from pm_bridge.core.rate_limiter import RateLimiter
from pm_bridge.core.scope_guard import ScopeGuard
from pm_bridge.tools.code_review import register_code_review_tools
from pm_bridge.tools.observability import register_observability_tools
from pm_bridge.tools.project_tracking import register_project_tracking_tools
from pm_bridge.tools.registry import ToolRegistry


ALL_TOOLS = [
    "github_pr_review",
    "github_team_stats",
    "gitlab_mr_review",
    "jira_search",
    "sprint_metrics",
    "sentry_issues",
    "grafana_alerts"
]


def print_scope(guard: ScopeGuard) -> None:
    """Print the configured allowlists per domain."""
    print("🔍 Configured scope:")

    def show(label, values):
        if values:
            print(f"✅ {label}: {', '.join(str(v) for v in values)}")
        else:
            print(f"ℹ️  {label}: none (access denied)")

    show("GitHub repos", guard.github_repos)
    show("GitLab projects", guard.gitlab_projects)
    show("Jira projects", guard.jira_projects)
    if guard.jira_boards:
        print(f"✅ Jira boards: {', '.join(str(b) for b in guard.jira_boards)}")
    else:
        print("ℹ️  Jira boards: not restricted")
    if guard.has_sentry_scope:
        print(f"✅ Sentry project: {guard.sentry_org}/{guard.sentry_project}")
    else:
        print("ℹ️  Sentry project: none (access denied)")


def provider_status(config: SystemConfig, guard: ScopeGuard) -> dict:
    """Explain for each provider what is missing, if anything."""
    api = config.api
    checks = {
        "github": ([("GITHUB_TOKEN", api.github_token)], guard.has_github_scope),
        "gitlab": ([("GITLAB_TOKEN", api.gitlab_token)], guard.has_gitlab_scope),
        "jira": (
            [("JIRA_URL", api.jira_url), ("JIRA_USERNAME", api.jira_username), ("JIRA_TOKEN", api.jira_token)],
            guard.has_jira_scope
        ),
        "sentry": ([("SENTRY_AUTH_TOKEN", api.sentry_token)], guard.has_sentry_scope),
        "grafana": ([("GRAFANA_URL", api.grafana_url), ("GRAFANA_TOKEN", api.grafana_token)], True)
    }

    status = {}
    for provider, (credentials, has_scope) in checks.items():
        reasons = [f"missing {name}" for name, value in credentials if not value]
        if not has_scope:
            reasons.append("empty scope")
        status[provider] = reasons
    return status


def main():
    """Run configuration validation."""
    print("🚀 Project Bridge Configuration Validation")
    print("=" * 50)

    config = SystemConfig.from_env()

    if not config.validate():
        print("❌ Configuration is invalid (see errors above)")
        sys.exit(1)
    print("✅ Configuration values are valid\n")

    guard = ScopeGuard.from_config(config.scope)
    print_scope(guard)

    print("\n🔍 Provider clients:")
    for provider, reasons in provider_status(config, guard).items():
        if reasons:
            print(f"⚠️  {provider}: skipped ({'; '.join(reasons)})")
        else:
            print(f"✅ {provider}: enabled")

    # Build the same registry the bridge would, without a sweep thread
    cache = ExpiringCache(cleanup_interval=0)
    limiter = RateLimiter(config.rate_limit.burst_capacity, config.rate_limit.refill_per_minute)
    clients = APIClientFactory(config, cache, limiter, guard).create_all_clients()

    registry = ToolRegistry()
    register_code_review_tools(registry, clients.get("github"), clients.get("gitlab"))
    register_project_tracking_tools(registry, clients.get("jira"), clients.get("github"), clients.get("gitlab"))
    register_observability_tools(registry, clients.get("sentry"), clients.get("grafana"))

    print("\n📊 Tools:")
    for name in ALL_TOOLS:
        marker = "✅" if name in registry else "❌"
        print(f"{marker} {name}")

    cache.destroy()

    print("\n" + "=" * 50)
    if len(registry) == 0:
        print("⚠️  No tools would be registered. Configure credentials and scope.")
    else:
        print(f"🎉 {len(registry)} of {len(ALL_TOOLS)} tools would be registered.")
    sys.exit(0)


if __name__ == "__main__":
    main()
