"""Grafana API client for unified alerting and annotations."""

import re
import time
from typing import Any, Dict, List, Optional

from ..core.cache import ExpiringCache, cache_key
from ..core.rate_limiter import RateLimiter
from ..core.scope_guard import ScopeGuard
from ..models.common import (
    CacheTTL,
    GrafanaAlert,
    GrafanaAlertRule,
    GrafanaAlertsResult,
    GrafanaAnnotation,
)
from .base import BaseAPIClient


MAX_ANNOTATIONS = 200

TIME_RANGE_PATTERN = re.compile(r'^(\d+)(h|d)$')


def time_range_to_ms(time_range: str) -> Optional[int]:
    """Convert a range like ``6h`` or ``7d`` to milliseconds; None when unparseable."""
    match = TIME_RANGE_PATTERN.match(time_range.strip())
    if not match:
        return None
    value = int(match.group(1))
    unit_ms = 3600 * 1000 if match.group(2) == "h" else 86400 * 1000
    return value * unit_ms


def _normalize_alert(raw: Dict[str, Any]) -> GrafanaAlert:
    status = raw.get("status") or {}
    annotations = raw.get("annotations") or {}
    return GrafanaAlert(
        labels=raw.get("labels") or {},
        annotations=annotations,
        state=status.get("state") or raw.get("state") or "unknown",
        active_at=raw.get("startsAt") or raw.get("activeAt") or "",
        value=annotations.get("value") or raw.get("value") or "",
        silenced_by=list(status.get("silencedBy") or []),
        inhibited_by=list(status.get("inhibitedBy") or [])
    )


class GrafanaClient(BaseAPIClient):
    """Grafana client; alerting has no scope domain and is gated by credentials only."""

    provider = "grafana"

    def __init__(
        self,
        base_url: str,
        token: str,
        cache: ExpiringCache,
        limiter: RateLimiter,
        guard: ScopeGuard,
        timeout: int = 30
    ):
        super().__init__(base_url, cache, limiter, guard, timeout=timeout)
        self.token = token

    def authenticate(self) -> Dict[str, str]:
        """Return Grafana authentication headers."""
        return {
            "Authorization": f"Bearer {self.token}",
            "Content-Type": "application/json"
        }

    def get_alerts(self, state: Optional[str] = None, refresh: bool = False) -> GrafanaAlertsResult:
        """Fetch alert instances from the Grafana Alertmanager.

        Args:
            state: Keep only alerts in this state (e.g., active, suppressed)
            refresh: Bypass cached data
        """
        state_filter = (state or "").strip()
        key = cache_key("grafana", "alerts", state_filter)
        return self._guarded_call(
            key,
            CacheTTL.ALERTS,
            lambda: self._fetch_alerts(state_filter),
            refresh=refresh,
            description=f"alerts ({state_filter or 'all states'})"
        )

    def _fetch_alerts(self, state_filter: str) -> GrafanaAlertsResult:
        raw = self.get(
            "/api/alertmanager/grafana/api/v2/alerts",
            params={"state": state_filter}
        )
        alerts = [_normalize_alert(item) for item in raw] if isinstance(raw, list) else []
        if state_filter:
            alerts = [a for a in alerts if a.state.lower() == state_filter.lower()]
        return GrafanaAlertsResult(source=self.base_url, total=len(alerts), alerts=alerts)

    def get_alert_rules(self, refresh: bool = False) -> List[GrafanaAlertRule]:
        """Fetch configured alert rules from the Grafana ruler."""
        return self._guarded_call(
            cache_key("grafana", "rules"),
            CacheTTL.ALERTS,
            self._fetch_alert_rules,
            refresh=refresh,
            description="alert rules"
        )

    def _fetch_alert_rules(self) -> List[GrafanaAlertRule]:
        raw = self.get("/api/ruler/grafana/api/v1/rules") or {}

        rules = []
        for folder, groups in raw.items():
            for group in groups:
                for rule in group.get("rules") or []:
                    alert = rule.get("grafana_alert") or {}
                    rules.append(GrafanaAlertRule(
                        uid=alert.get("uid", ""),
                        title=alert.get("title") or rule.get("alert", ""),
                        condition=alert.get("condition", ""),
                        folder_title=folder,
                        state=alert.get("state", ""),
                        health=alert.get("health", ""),
                        last_evaluation=alert.get("last_evaluation", ""),
                        evaluation_duration=alert.get("evaluation_duration", "")
                    ))
        return rules

    def get_annotations(
        self,
        dashboard_uid: Optional[str] = None,
        time_range: Optional[str] = None,
        limit: int = 50,
        refresh: bool = False
    ) -> List[GrafanaAnnotation]:
        """Fetch dashboard annotations (incident markers).

        Args:
            dashboard_uid: Restrict to one dashboard
            time_range: Look-back window such as ``6h`` or ``7d``
            limit: Maximum annotations (capped at 200)
            refresh: Bypass cached data
        """
        limit = min(limit, MAX_ANNOTATIONS)
        key = cache_key("grafana", "annotations", dashboard_uid or "", time_range or "", limit)
        return self._guarded_call(
            key,
            CacheTTL.ALERTS,
            lambda: self._fetch_annotations(dashboard_uid, time_range, limit),
            refresh=refresh,
            description=f"annotations ({dashboard_uid or 'all dashboards'})"
        )

    def _fetch_annotations(
        self,
        dashboard_uid: Optional[str],
        time_range: Optional[str],
        limit: int
    ) -> List[GrafanaAnnotation]:
        params = {"limit": str(limit), "dashboardUID": dashboard_uid}
        if time_range:
            now_ms = int(time.time() * 1000)
            window_ms = time_range_to_ms(time_range)
            if window_ms is not None:
                params["from"] = str(now_ms - window_ms)
            params["to"] = str(now_ms)

        raw = self.get("/api/annotations", params=params) or []
        return [
            GrafanaAnnotation(
                id=item.get("id", 0),
                dashboard_uid=item.get("dashboardUID") or item.get("dashboardUid") or "",
                panel_id=item.get("panelId") or 0,
                text=item.get("text", ""),
                tags=list(item.get("tags") or []),
                time=item.get("time", 0),
                time_end=item.get("timeEnd", 0)
            )
            for item in raw
        ]
