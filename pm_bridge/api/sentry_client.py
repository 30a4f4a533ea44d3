"""Sentry API client for unresolved issues and their latest events."""

from typing import Any, Dict, List, Optional

from ..core.cache import ExpiringCache, cache_key
from ..core.rate_limiter import RateLimiter
from ..core.scope_guard import ScopeGuard
from ..models.common import (
    CacheTTL,
    SentryEvent,
    SentryFrame,
    SentryIssue,
    SentryIssuesResult,
)
from .base import BaseAPIClient


MAX_ISSUES = 100
MAX_FRAMES = 10
MAX_TAGS = 10


def build_issue_query(level: Optional[str] = None, time_range: Optional[str] = None) -> str:
    """Build the Sentry search query for unresolved issues."""
    parts = ["is:unresolved"]
    if level:
        parts.append(f"level:{level}")
    if time_range:
        parts.append(f"age:-{time_range}")
    return " ".join(parts)


def _normalize_issue(raw: Dict[str, Any]) -> SentryIssue:
    metadata = raw.get("metadata") or {}
    tags = []
    for tag in (raw.get("tags") or [])[:MAX_TAGS]:
        top_values = tag.get("topValues") or [{}]
        tags.append({
            "key": tag.get("key") or tag.get("name") or "",
            "value": tag.get("value") or top_values[0].get("value", "")
        })

    return SentryIssue(
        id=str(raw.get("id", "")),
        title=raw.get("title", ""),
        culprit=raw.get("culprit") or "",
        level=raw.get("level", "error"),
        status=raw.get("status", "unresolved"),
        count=str(raw.get("count", "0")),
        first_seen=raw.get("firstSeen") or "",
        last_seen=raw.get("lastSeen") or "",
        short_id=raw.get("shortId") or "",
        permalink=raw.get("permalink") or "",
        metadata={
            "type": metadata.get("type"),
            "value": metadata.get("value"),
            "filename": metadata.get("filename"),
            "function": metadata.get("function")
        },
        tags=tags
    )


def _extract_frames(raw: Dict[str, Any]) -> List[SentryFrame]:
    """Return the innermost frames of the first exception that has a stacktrace."""
    for entry in raw.get("entries") or []:
        if entry.get("type") != "exception":
            continue
        for exception in (entry.get("data") or {}).get("values") or []:
            frames = (exception.get("stacktrace") or {}).get("frames") or []
            if frames:
                return [
                    SentryFrame(
                        filename=frame.get("filename") or frame.get("absPath") or "",
                        function=frame.get("function") or "<anonymous>",
                        lineno=frame.get("lineNo", frame.get("lineno")),
                        context_line=frame.get("contextLine", frame.get("context_line"))
                    )
                    for frame in frames[-MAX_FRAMES:]
                ]
    return []


class SentryClient(BaseAPIClient):
    """Sentry client bound to a single organization/project pair."""

    provider = "sentry"

    def __init__(
        self,
        base_url: str,
        token: str,
        org: str,
        project: str,
        cache: ExpiringCache,
        limiter: RateLimiter,
        guard: ScopeGuard,
        timeout: int = 30
    ):
        """Initialize Sentry client.

        Args:
            base_url: Sentry URL (e.g., https://sentry.io)
            token: Sentry auth token
            org: Organization slug
            project: Project slug
        """
        super().__init__(f"{base_url.rstrip('/')}/api/0", cache, limiter, guard, timeout=timeout)
        self.token = token
        self.org = org
        self.project = project

    def authenticate(self) -> Dict[str, str]:
        """Return Sentry authentication headers."""
        return {
            "Authorization": f"Bearer {self.token}",
            "Content-Type": "application/json"
        }

    def _authorize(self) -> None:
        self.guard.check_sentry_project(self.org, self.project)

    def get_unresolved_issues(
        self,
        level: Optional[str] = None,
        time_range: Optional[str] = None,
        limit: int = 25,
        refresh: bool = False
    ) -> SentryIssuesResult:
        """Fetch unresolved issues, newest first.

        Args:
            level: Filter by level (fatal, error, warning, info)
            time_range: Only issues first seen within this range (e.g., 24h, 7d)
            limit: Maximum issues to return (capped at 100)
            refresh: Bypass cached data
        """
        limit = min(limit, MAX_ISSUES)
        query = build_issue_query(level, time_range)
        key = cache_key("sentry", "issues", self.org, self.project, query, limit)
        return self._guarded_call(
            key,
            CacheTTL.ALERTS,
            lambda: self._fetch_issues(query, limit),
            authorize=self._authorize,
            refresh=refresh,
            description=f"issues {self.org}/{self.project} q={query}"
        )

    def _fetch_issues(self, query: str, limit: int) -> SentryIssuesResult:
        raw = self.get(
            f"/projects/{self.org}/{self.project}/issues/",
            params={"query": query, "limit": str(limit), "sort": "date"}
        )
        issues = [_normalize_issue(item) for item in raw or []]
        return SentryIssuesResult(org=self.org, project=self.project, total=len(issues), issues=issues)

    def get_issue_details(self, issue_id: str, refresh: bool = False) -> SentryIssue:
        """Fetch a single issue by id."""
        key = cache_key("sentry", "issue-detail", issue_id)
        return self._guarded_call(
            key,
            CacheTTL.ALERTS,
            lambda: _normalize_issue(self.get(f"/issues/{issue_id}/")),
            authorize=self._authorize,
            refresh=refresh,
            description=f"issue {issue_id}"
        )

    def get_latest_event(self, issue_id: str, refresh: bool = False) -> SentryEvent:
        """Fetch the latest event of an issue including its stack frames."""
        key = cache_key("sentry", "event-latest", issue_id)
        return self._guarded_call(
            key,
            CacheTTL.ALERTS,
            lambda: self._fetch_latest_event(issue_id),
            authorize=self._authorize,
            refresh=refresh,
            description=f"latest event of issue {issue_id}"
        )

    def _fetch_latest_event(self, issue_id: str) -> SentryEvent:
        raw = self.get(f"/issues/{issue_id}/events/latest/")
        return SentryEvent(
            event_id=raw.get("eventID") or raw.get("id") or "",
            title=raw.get("title", ""),
            message=raw.get("message") or (raw.get("metadata") or {}).get("value") or "",
            timestamp=raw.get("dateCreated") or raw.get("dateReceived") or "",
            tags=[{"key": t.get("key"), "value": t.get("value")} for t in raw.get("tags") or []],
            context=raw.get("contexts") or {},
            frames=_extract_frames(raw)
        )
