"""GitHub API client for pull request review and team metrics."""

from datetime import date
from typing import Dict, List, Optional, Any, Tuple

import requests
from github import Auth, Github, GithubException

from ..core.cache import ExpiringCache, cache_key
from ..core.errors import ScopeViolationError, UpstreamError
from ..core.rate_limiter import RateLimiter
from ..core.scope_guard import ScopeGuard
from ..models.common import (
    CacheTTL,
    CheckResult,
    ContributorStats,
    FileChange,
    MergeVelocity,
    ReviewComment,
    ReviewResult,
    TeamStats,
)
from .base import GuardedClient, connect_only_retry


MAX_FILES = 100
MAX_SEARCH_RESULTS = 100
VELOCITY_SAMPLE_SIZE = 50


def parse_repo(repo_str: str) -> Tuple[str, str]:
    """Parse an "owner/repo" string."""
    parts = repo_str.strip().split("/")
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise ValueError(f'Invalid repo format: "{repo_str}". Expected "owner/repo".')
    return parts[0], parts[1]


def _isoformat(value) -> str:
    return value.isoformat() if value else ""


class GitHubClient(GuardedClient):
    """GitHub client with scope enforcement, caching and rate limiting."""

    provider = "github"
    upstream_exceptions = GuardedClient.upstream_exceptions + (GithubException,)

    def __init__(
        self,
        token: str,
        cache: ExpiringCache,
        limiter: RateLimiter,
        guard: ScopeGuard,
        timeout: int = 30,
        github: Optional[Github] = None
    ):
        """Initialize GitHub client.

        Args:
            token: GitHub personal access token
            cache: Shared response cache
            limiter: Shared rate limiter
            guard: Shared scope guard
            timeout: Request timeout in seconds
            github: Preconfigured PyGithub instance (tests)
        """
        super().__init__(cache, limiter, guard)
        self.github = github or Github(
            auth=Auth.Token(token),
            timeout=timeout,
            retry=connect_only_retry()
        )

    def _to_upstream_error(self, error: BaseException) -> UpstreamError:
        if isinstance(error, GithubException):
            message = error.data.get("message") if isinstance(error.data, dict) else None
            return UpstreamError(self.provider, message or str(error), error.status)
        return super()._to_upstream_error(error)

    def get_pull_request(self, owner: str, repo: str, number: int, refresh: bool = False) -> ReviewResult:
        """Fetch PR metadata, changed files, CI checks and reviews.

        Args:
            owner: Repository owner
            repo: Repository name
            number: Pull request number
            refresh: Bypass cached data
        """
        key = cache_key("github", "pr", owner.lower(), repo.lower(), number)
        return self._guarded_call(
            key,
            CacheTTL.METADATA,
            lambda: self._fetch_pull_request(owner, repo, number),
            authorize=lambda: self.guard.check_github_repo(owner, repo),
            refresh=refresh,
            description=f"PR {owner}/{repo}#{number}"
        )

    def _fetch_pull_request(self, owner: str, repo: str, number: int) -> ReviewResult:
        repository = self.github.get_repo(f"{owner}/{repo}")
        pr = repository.get_pull(number)

        files = [
            FileChange(
                path=f.filename,
                additions=f.additions,
                deletions=f.deletions,
                status=f.status or "modified"
            )
            for f in pr.get_files()[:MAX_FILES]
        ]

        checks: List[CheckResult] = []
        head_commit = repository.get_commit(pr.head.sha)
        for run in head_commit.get_check_runs():
            checks.append(CheckResult(name=run.name, status=run.status, conclusion=run.conclusion))
        for status in head_commit.get_combined_status().statuses:
            checks.append(CheckResult(name=status.context, status=status.state, conclusion=status.description))

        reviews = [
            ReviewComment(
                author=review.user.login if review.user else "unknown",
                state=review.state,
                body=review.body or "",
                submitted_at=_isoformat(review.submitted_at)
            )
            for review in pr.get_reviews()
            # Bare "COMMENTED" reviews carry no information
            if review.body or review.state != "COMMENTED"
        ]

        state = "merged" if pr.merged else pr.state

        return ReviewResult(
            source="github",
            id=number,
            title=pr.title,
            author=pr.user.login if pr.user else "unknown",
            url=pr.html_url,
            state=state,
            created_at=_isoformat(pr.created_at),
            updated_at=_isoformat(pr.updated_at),
            additions=pr.additions,
            deletions=pr.deletions,
            files_changed=pr.changed_files,
            files=files,
            commits_count=pr.commits,
            checks=checks,
            reviews=reviews,
            labels=[label.name for label in pr.labels]
        )

    def get_team_stats(self, owner: str, repo: str, since: str, until: Optional[str] = None) -> TeamStats:
        """Fetch contribution stats for PRs merged in ``since..until`` (YYYY-MM-DD)."""
        until_date = until or date.today().isoformat()
        key = cache_key("github", "team-stats", owner.lower(), repo.lower(), since, until_date)
        return self._guarded_call(
            key,
            CacheTTL.STATS,
            lambda: self._fetch_team_stats(owner, repo, since, until_date),
            authorize=lambda: self.guard.check_github_repo(owner, repo),
            description=f"team stats {owner}/{repo} {since}..{until_date}"
        )

    def _fetch_team_stats(self, owner: str, repo: str, since: str, until: str) -> TeamStats:
        query = f"repo:{owner}/{repo} is:pr is:merged merged:{since}..{until}"
        results = self.github.search_issues(query)

        contributors: Dict[str, ContributorStats] = {}
        merge_hours: Dict[str, float] = {}
        reviewers = set()
        total_merge_hours = 0.0
        total_additions = 0
        total_deletions = 0
        total_prs = 0

        def get_or_create(login: str) -> ContributorStats:
            if login not in contributors:
                contributors[login] = ContributorStats(login=login)
                merge_hours[login] = 0.0
            return contributors[login]

        for issue in results[:MAX_SEARCH_RESULTS]:
            pr = issue.as_pull_request()
            total_prs += 1

            author_login = pr.user.login if pr.user else "unknown"
            author = get_or_create(author_login)
            author.prs_authored += 1
            author.additions += pr.additions or 0
            author.deletions += pr.deletions or 0
            total_additions += pr.additions or 0
            total_deletions += pr.deletions or 0

            if pr.created_at and pr.merged_at:
                hours = (pr.merged_at - pr.created_at).total_seconds() / 3600
                total_merge_hours += hours
                merge_hours[author_login] += hours

            counted = set()
            for review in pr.get_reviews():
                reviewer_login = review.user.login if review.user else None
                if not reviewer_login or reviewer_login == author_login or reviewer_login in counted:
                    continue
                counted.add(reviewer_login)
                get_or_create(reviewer_login).prs_reviewed += 1
                reviewers.add(reviewer_login)

        for login, stats in contributors.items():
            if stats.prs_authored > 0:
                stats.avg_merge_time_hours = round(merge_hours[login] / stats.prs_authored, 1)

        ranked = sorted(contributors.values(), key=lambda c: c.prs_authored, reverse=True)

        return TeamStats(
            period=f"{since}..{until}",
            repo=f"{owner}/{repo}",
            contributors=ranked,
            total_prs=total_prs,
            total_reviewers=len(reviewers),
            avg_merge_time_hours=round(total_merge_hours / total_prs, 1) if total_prs else 0.0,
            total_additions=total_additions,
            total_deletions=total_deletions
        )

    def get_merged_pr_velocity(self, owner: str, repo: str, since: str) -> MergeVelocity:
        """Count PRs merged since a date and their average size in changed lines."""
        key = cache_key("github", "merged-count", owner.lower(), repo.lower(), since)
        return self._guarded_call(
            key,
            CacheTTL.SPRINT,
            lambda: self._fetch_merged_velocity(owner, repo, since),
            authorize=lambda: self.guard.check_github_repo(owner, repo),
            description=f"merged PRs {owner}/{repo} since {since}"
        )

    def _fetch_merged_velocity(self, owner: str, repo: str, since: str) -> MergeVelocity:
        results = self.github.search_issues(f"repo:{owner}/{repo} is:pr is:merged merged:>={since}")
        count = results.totalCount

        total_lines = 0
        sampled = 0
        for issue in results[:VELOCITY_SAMPLE_SIZE]:
            pr = issue.as_pull_request()
            total_lines += (pr.additions or 0) + (pr.deletions or 0)
            sampled += 1

        return MergeVelocity(count=count, avg_lines=round(total_lines / sampled) if sampled else 0)

    def validate_token_scope(self) -> Dict[str, Any]:
        """Warn when the token can see repositories outside the allowlist.

        Runs once at startup; never cached and never fatal.
        """
        try:
            user = self.github.get_user()
            repos = [
                r.full_name.lower()
                for r in user.get_repos(affiliation="owner,collaborator,organization_member")[:100]
            ]
        except (GithubException, requests.RequestException) as e:
            return {"ok": False, "message": f"Failed to validate token scope: {e}", "visible_repos": []}

        extra_repos = []
        for full_name in repos:
            owner, _, name = full_name.partition("/")
            try:
                self.guard.check_github_repo(owner, name)
            except ScopeViolationError:
                extra_repos.append(full_name)

        if extra_repos:
            preview = ", ".join(extra_repos[:5]) + ("..." if len(extra_repos) > 5 else "")
            message = (
                f"Token has access to {len(repos)} repos but only "
                f"{len(repos) - len(extra_repos)} are in scope. Extra repos: {preview}. "
                f"Use a fine-grained token limited to the project repositories."
            )
            self.logger.warning(message)
            return {"ok": False, "message": message, "visible_repos": repos}

        return {"ok": True, "message": "Token scope matches configuration", "visible_repos": repos}
