"""Main entry point for the project management bridge."""

import json
import sys
from typing import Any, Dict, Optional

from pm_bridge.api.factory import APIClientFactory
from pm_bridge.config.settings import SystemConfig
from pm_bridge.core.cache import ExpiringCache
from pm_bridge.core.rate_limiter import RateLimiter
from pm_bridge.core.scope_guard import ScopeGuard
from pm_bridge.tools.code_review import register_code_review_tools
from pm_bridge.tools.observability import register_observability_tools
from pm_bridge.tools.project_tracking import register_project_tracking_tools
from pm_bridge.tools.registry import ToolRegistry
from pm_bridge.utils.logging import setup_logging, get_logger


class ProjectBridge:
    """Wires configuration, the shared substrate, provider clients and tools."""

    def __init__(self, config: Optional[SystemConfig] = None, config_path: Optional[str] = None):
        # Load configuration
        if config is not None:
            self.config = config
        elif config_path:
            self.config = SystemConfig.from_file(config_path)
        else:
            self.config = SystemConfig.from_env()

        # Validate configuration
        if not self.config.validate():
            raise ValueError("Invalid configuration")

        # Setup logging
        api = self.config.api
        setup_logging(self.config.logging, secrets=[
            api.github_token, api.gitlab_token, api.jira_token, api.sentry_token, api.grafana_token
        ])
        self.logger = get_logger(__name__)

        # One cache, limiter and guard shared by every client
        self.cache = ExpiringCache(cleanup_interval=self.config.cache.cleanup_interval)
        self.limiter = RateLimiter(
            capacity=self.config.rate_limit.burst_capacity,
            refill_per_minute=self.config.rate_limit.refill_per_minute
        )
        self.guard = ScopeGuard.from_config(self.config.scope)

        factory = APIClientFactory(self.config, self.cache, self.limiter, self.guard)
        self.clients = factory.create_all_clients()

        github = self.clients.get("github")
        if github is not None and self.config.api.validate_token_scope:
            github.validate_token_scope()

        self.registry = ToolRegistry()
        register_code_review_tools(self.registry, github, self.clients.get("gitlab"))
        register_project_tracking_tools(
            self.registry,
            self.clients.get("jira"),
            github,
            self.clients.get("gitlab")
        )
        register_observability_tools(self.registry, self.clients.get("sentry"), self.clients.get("grafana"))

        self.logger.info(f"Registered {len(self.registry)} tools: {', '.join(self.registry.names())}")

    def call(self, tool: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Invoke a registered tool."""
        return self.registry.invoke(tool, params)

    def stop(self) -> None:
        """Release the cache and its sweep thread. Safe to call more than once."""
        self.cache.destroy()
        self.logger.info("Project bridge stopped")

    def get_status(self) -> Dict[str, Any]:
        """Get current bridge status."""
        return {
            "tools": self.registry.names(),
            "clients": list(self.clients),
            "available_tokens": self.limiter.available_tokens,
            "cache_size": self.cache.size,
            "scope": {
                "github": list(self.guard.github_repos),
                "gitlab": list(self.guard.gitlab_projects),
                "jira_projects": list(self.guard.jira_projects),
                "jira_boards": list(self.guard.jira_boards),
                "sentry": (
                    f"{self.guard.sentry_org}/{self.guard.sentry_project}"
                    if self.guard.has_sentry_scope else None
                )
            }
        }


def main():
    """Main entry point."""
    import argparse

    parser = argparse.ArgumentParser(description="Project management bridge")
    parser.add_argument("--config", help="Path to configuration file")
    parser.add_argument("--list-tools", action="store_true", help="List registered tools and exit")
    parser.add_argument("--call", metavar="TOOL", help="Invoke a tool and print its result")
    parser.add_argument("--params", default="{}", help="Tool parameters as a JSON object")
    args = parser.parse_args()

    try:
        bridge = ProjectBridge(config_path=args.config)
    except ValueError as e:
        print(f"Startup error: {e}")
        sys.exit(1)

    try:
        if args.list_tools:
            tools = [bridge.registry.get(name).schema() for name in bridge.registry.names()]
            print(json.dumps(tools, indent=2))
        elif args.call:
            try:
                params = json.loads(args.params)
            except json.JSONDecodeError as e:
                print(f"Invalid --params JSON: {e}")
                sys.exit(1)
            result = bridge.call(args.call, params)
            print(json.dumps(result, indent=2, default=str))
        else:
            print(json.dumps(bridge.get_status(), indent=2))
    except KeyboardInterrupt:
        print("\nShutdown requested by user")
    finally:
        bridge.stop()


if __name__ == "__main__":
    main()
