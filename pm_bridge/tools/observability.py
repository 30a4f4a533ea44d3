"""Observability tools: sentry_issues and grafana_alerts."""

import logging
from typing import List, Optional

from ..api.grafana_client import GrafanaClient
from ..api.sentry_client import SentryClient
from ..models.validation import GrafanaAlertsParams, SentryIssuesParams
from .registry import ToolDefinition, ToolRegistry


logger = logging.getLogger(__name__)


def sentry_issues_tool(client: SentryClient) -> ToolDefinition:
    def handler(params: SentryIssuesParams):
        if params.issue_id:
            issue = client.get_issue_details(params.issue_id, refresh=params.refresh)
            event = client.get_latest_event(params.issue_id, refresh=params.refresh)
            logger.info(f"sentry_issues detail {params.issue_id}: {issue.title}")
            return {"issue": issue, "latest_event": event}

        result = client.get_unresolved_issues(
            level=params.level,
            time_range=params.time_range,
            limit=params.limit,
            refresh=params.refresh
        )
        logger.info(f"sentry_issues: {result.total} issues for {result.org}/{result.project}")
        return result

    return ToolDefinition(
        name="sentry_issues",
        description=(
            "Fetch unresolved Sentry issues for the configured project. "
            "Pass issue_id to get details with the latest stack trace."
        ),
        parameters=SentryIssuesParams,
        handler=handler
    )


def grafana_alerts_tool(client: GrafanaClient) -> ToolDefinition:
    def handler(params: GrafanaAlertsParams):
        if params.mode == "rules":
            rules = client.get_alert_rules(refresh=params.refresh)
            logger.info(f"grafana_alerts: {len(rules)} rules")
            return {"total": len(rules), "rules": rules}

        if params.mode == "annotations":
            annotations = client.get_annotations(
                dashboard_uid=params.dashboard_uid,
                time_range=params.time_range,
                limit=params.limit,
                refresh=params.refresh
            )
            logger.info(f"grafana_alerts: {len(annotations)} annotations")
            return {"total": len(annotations), "annotations": annotations}

        result = client.get_alerts(state=params.state, refresh=params.refresh)
        logger.info(f"grafana_alerts: {result.total} alerts")
        return result

    return ToolDefinition(
        name="grafana_alerts",
        description=(
            "Fetch active Grafana alerts, alert rules (mode=rules) or dashboard "
            "annotations (mode=annotations)."
        ),
        parameters=GrafanaAlertsParams,
        handler=handler
    )


def register_observability_tools(
    registry: ToolRegistry,
    sentry: Optional[SentryClient],
    grafana: Optional[GrafanaClient]
) -> List[str]:
    """Register the observability tools whose client is available."""
    registered = []

    if sentry is not None:
        tool = sentry_issues_tool(sentry)
        registry.register(tool)
        registered.append(tool.name)
    else:
        registry.skip("sentry_issues", "Sentry client unavailable")

    if grafana is not None:
        tool = grafana_alerts_tool(grafana)
        registry.register(tool)
        registered.append(tool.name)
    else:
        registry.skip("grafana_alerts", "Grafana client unavailable")

    return registered
