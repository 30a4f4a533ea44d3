"""Project tracking tools: jira_search and sprint_metrics."""

import dataclasses
import logging
from datetime import date, timedelta
from typing import Callable, List, Optional

from ..api.github_client import GitHubClient, parse_repo
from ..api.gitlab_client import GitLabClient
from ..api.jira_client import JiraClient
from ..core.errors import UpstreamError
from ..models.common import MergeVelocity, SprintInfo, SprintMetrics, SprintProgress
from ..models.validation import JiraSearchParams, SprintMetricsParams
from .registry import ToolDefinition, ToolRegistry


logger = logging.getLogger(__name__)

FALLBACK_PERIOD_DAYS = 14


def sprint_health(metrics: SprintMetrics) -> str:
    """Classify sprint health from completion and open blockers."""
    progress = metrics.progress
    if progress.total_issues == 0:
        return "unknown"
    if progress.completion_percent >= 80 and not metrics.blockers:
        return "on_track"
    if progress.completion_percent >= 50 or len(metrics.blockers) <= 1:
        return "at_risk"
    return "off_track"


def current_period_metrics(today: Optional[date] = None) -> SprintMetrics:
    """Empty metrics covering the last two weeks, used when Jira is not queried."""
    today = today or date.today()
    start = today - timedelta(days=FALLBACK_PERIOD_DAYS)
    return SprintMetrics(
        sprint=SprintInfo(
            id=None,
            name="Current Period",
            start_date=start.isoformat(),
            end_date=today.isoformat()
        ),
        days_remaining=0,
        progress=SprintProgress(),
        story_points=None
    )


def jira_search_tool(client: JiraClient) -> ToolDefinition:
    def handler(params: JiraSearchParams):
        result = client.search(params.jql, params.fields, params.max_results, refresh=params.refresh)
        preview = params.jql[:60] + ("..." if len(params.jql) > 60 else "")
        logger.info(f'jira_search "{preview}": {result.total} total, {len(result.issues)} returned')
        return result

    return ToolDefinition(
        name="jira_search",
        description=(
            "Search Jira issues using JQL. Results are limited to the configured projects. "
            "Returns summary, status, assignee, priority, story points and labels."
        ),
        parameters=JiraSearchParams,
        handler=handler
    )


def _add_velocity(metrics: SprintMetrics, provider: str, fetch: Callable[[], MergeVelocity]) -> None:
    """Merge code velocity into metrics; upstream failures become risks."""
    try:
        velocity = fetch()
    except (UpstreamError, ValueError) as e:
        logger.warning(f"{provider} velocity unavailable: {e}")
        metrics.risks.append(f"{provider} data unavailable: {e}")
        return

    metrics.velocity.prs_merged += velocity.count
    metrics.velocity.avg_lines_per_pr = max(metrics.velocity.avg_lines_per_pr, velocity.avg_lines)


def sprint_metrics_tool(
    jira: Optional[JiraClient],
    github: Optional[GitHubClient],
    gitlab: Optional[GitLabClient]
) -> ToolDefinition:
    def handler(params: SprintMetricsParams):
        source = params.source
        metrics = None

        use_jira = jira is not None and source in ("all", "jira")
        if use_jira and params.board_id is not None:
            metrics = jira.get_sprint_metrics(params.board_id, params.sprint_id)
            if metrics is None:
                return {
                    "error": "No active sprint found on the specified board.",
                    "code": "NO_ACTIVE_SPRINT",
                    "hint": "Provide sprint_id to select a specific sprint."
                }

        if metrics is None:
            metrics = current_period_metrics()

        since = metrics.sprint.start_date[:10]
        data_sources = ["jira"] if use_jira else []

        if github is not None and params.github_repo and source in ("all", "github"):
            owner, repo = parse_repo(params.github_repo)
            _add_velocity(metrics, "GitHub", lambda: github.get_merged_pr_velocity(owner, repo, since))
            data_sources.append("github")

        if gitlab is not None and params.gitlab_project and source in ("all", "gitlab"):
            _add_velocity(
                metrics,
                "GitLab",
                lambda: gitlab.get_merged_mr_velocity(params.gitlab_project, since)
            )
            data_sources.append("gitlab")

        health = sprint_health(metrics)
        logger.info(
            f"sprint_metrics {metrics.sprint.name}: "
            f"{metrics.progress.completion_percent}% complete, {health}"
        )

        result = dataclasses.asdict(metrics)
        result["health"] = health
        result["data_sources"] = data_sources
        return result

    return ToolDefinition(
        name="sprint_metrics",
        description=(
            "Fetch aggregated sprint metrics: task progress from Jira and code velocity from "
            "GitHub/GitLab. Shows completion, velocity, blockers and risks."
        ),
        parameters=SprintMetricsParams,
        handler=handler
    )


def register_project_tracking_tools(
    registry: ToolRegistry,
    jira: Optional[JiraClient],
    github: Optional[GitHubClient],
    gitlab: Optional[GitLabClient]
) -> List[str]:
    """Register jira_search and sprint_metrics when their sources are available."""
    registered = []

    if jira is not None:
        tool = jira_search_tool(jira)
        registry.register(tool)
        registered.append(tool.name)
    else:
        registry.skip("jira_search", "Jira client unavailable")

    if jira is not None or github is not None or gitlab is not None:
        tool = sprint_metrics_tool(jira, github, gitlab)
        registry.register(tool)
        registered.append(tool.name)
    else:
        registry.skip("sprint_metrics", "no Jira, GitHub or GitLab client available")

    return registered
