"""GitLab client using the GraphQL API for MR data and REST for listings."""

from typing import Any, Dict, List, Optional
from urllib.parse import quote

from ..core.cache import ExpiringCache, cache_key
from ..core.errors import UpstreamError
from ..core.rate_limiter import RateLimiter
from ..core.scope_guard import ScopeGuard
from ..models.common import (
    CacheTTL,
    CheckResult,
    FileChange,
    MergeVelocity,
    ReviewComment,
    ReviewResult,
)
from .base import BaseAPIClient


MERGE_REQUEST_QUERY = """
query MergeRequestReview($project: ID!, $iid: String!) {
  project(fullPath: $project) {
    mergeRequest(iid: $iid) {
      title
      state
      webUrl
      createdAt
      updatedAt
      author { username }
      diffStatsSummary { additions deletions fileCount }
      commitCount
      labels { nodes { title } }
      diffStats { path additions deletions }
      headPipeline {
        status
        stages {
          nodes {
            name
            status
            jobs { nodes { name status } }
          }
        }
      }
      notes(first: 50) {
        nodes {
          author { username }
          body
          createdAt
          system
          resolvable
          resolved
        }
      }
      approvedBy { nodes { username } }
    }
  }
}
"""


class GitLabClient(BaseAPIClient):
    """GitLab client with scope enforcement, caching and rate limiting."""

    provider = "gitlab"

    def __init__(
        self,
        host: str,
        token: str,
        cache: ExpiringCache,
        limiter: RateLimiter,
        guard: ScopeGuard,
        timeout: int = 30
    ):
        """Initialize GitLab client.

        Args:
            host: GitLab base URL (e.g., https://gitlab.com)
            token: Personal or project access token
        """
        super().__init__(host, cache, limiter, guard, timeout=timeout)
        self.token = token

    def authenticate(self) -> Dict[str, str]:
        """Return GitLab authentication headers."""
        return {
            "PRIVATE-TOKEN": self.token,
            "Content-Type": "application/json",
            "Accept": "application/json"
        }

    def graphql(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Execute a GraphQL query and return its ``data`` member."""
        payload = self.post("/api/graphql", json_data={"query": query, "variables": variables or {}})
        errors = payload.get("errors") if isinstance(payload, dict) else None
        if errors:
            raise UpstreamError(
                self.provider,
                "GraphQL: " + "; ".join(str(e.get("message", e)) for e in errors)
            )
        return payload.get("data") or {}

    def get_merge_request(self, project: str, iid: int, refresh: bool = False) -> ReviewResult:
        """Fetch full MR context.

        Args:
            project: Full project path like "group/subgroup/project"
            iid: Merge request IID
            refresh: Bypass cached data
        """
        key = cache_key("gitlab", "mr", project.lower(), iid)
        return self._guarded_call(
            key,
            CacheTTL.METADATA,
            lambda: self._fetch_merge_request(project, iid),
            authorize=lambda: self.guard.check_gitlab_project(project),
            refresh=refresh,
            description=f"MR {project}!{iid}"
        )

    def _fetch_merge_request(self, project: str, iid: int) -> ReviewResult:
        data = self.graphql(MERGE_REQUEST_QUERY, {"project": project, "iid": str(iid)})
        mr = (data.get("project") or {}).get("mergeRequest")
        if not mr:
            raise UpstreamError(self.provider, f"MR !{iid} not found in project {project}", 404)

        files = [
            FileChange(
                path=d["path"],
                additions=d.get("additions", 0),
                deletions=d.get("deletions", 0),
                status="modified"
            )
            for d in mr.get("diffStats") or []
        ]

        checks: List[CheckResult] = []
        pipeline = mr.get("headPipeline")
        if pipeline:
            checks.append(CheckResult(name="pipeline", status=pipeline["status"], conclusion=pipeline["status"]))
            for stage in (pipeline.get("stages") or {}).get("nodes", []):
                for job in (stage.get("jobs") or {}).get("nodes", []):
                    checks.append(CheckResult(
                        name=f"{stage['name']}/{job['name']}",
                        status=job["status"],
                        conclusion=job["status"]
                    ))

        reviews: List[ReviewComment] = []
        for note in (mr.get("notes") or {}).get("nodes", []):
            # System notes are GitLab's own activity log entries
            if note.get("system") or not note.get("body"):
                continue
            if note.get("resolvable"):
                state = "RESOLVED" if note.get("resolved") else "PENDING"
            else:
                state = "COMMENTED"
            reviews.append(ReviewComment(
                author=(note.get("author") or {}).get("username", "unknown"),
                state=state,
                body=note["body"],
                submitted_at=note.get("createdAt", "")
            ))

        for approver in (mr.get("approvedBy") or {}).get("nodes", []):
            reviews.append(ReviewComment(
                author=approver["username"],
                state="APPROVED",
                body="",
                submitted_at=mr.get("updatedAt", "")
            ))

        summary = mr.get("diffStatsSummary") or {}

        return ReviewResult(
            source="gitlab",
            id=iid,
            title=mr["title"],
            author=(mr.get("author") or {}).get("username", "unknown"),
            url=mr.get("webUrl", ""),
            state=mr.get("state", ""),
            created_at=mr.get("createdAt", ""),
            updated_at=mr.get("updatedAt", ""),
            additions=summary.get("additions", 0),
            deletions=summary.get("deletions", 0),
            files_changed=summary.get("fileCount", 0),
            files=files,
            commits_count=mr.get("commitCount") or 0,
            checks=checks,
            reviews=reviews,
            labels=[label["title"] for label in (mr.get("labels") or {}).get("nodes", [])]
        )

    def get_merged_mr_velocity(self, project: str, since: str) -> MergeVelocity:
        """Count MRs merged since a date and their average size."""
        key = cache_key("gitlab", "merged-count", project.lower(), since)
        return self._guarded_call(
            key,
            CacheTTL.SPRINT,
            lambda: self._fetch_merged_velocity(project, since),
            authorize=lambda: self.guard.check_gitlab_project(project),
            description=f"merged MRs {project} since {since}"
        )

    def _fetch_merged_velocity(self, project: str, since: str) -> MergeVelocity:
        mrs = self.get(
            f"/api/v4/projects/{quote(project, safe='')}/merge_requests",
            params={"state": "merged", "created_after": since, "per_page": "100"}
        )

        total_lines = 0
        for mr in mrs:
            # changes_count is a string in the REST API ("1000+" when truncated)
            changes = str(mr.get("changes_count") or "0").rstrip("+")
            total_lines += int(changes) if changes.isdigit() else 0

        return MergeVelocity(
            count=len(mrs),
            avg_lines=round(total_lines / len(mrs)) if mrs else 0
        )
