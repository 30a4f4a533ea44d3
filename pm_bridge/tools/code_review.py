"""Code review tools: github_pr_review, github_team_stats, gitlab_mr_review."""

import logging
from typing import List, Optional

from ..api.github_client import GitHubClient, parse_repo
from ..api.gitlab_client import GitLabClient
from ..models.validation import GitHubPRReviewParams, GitHubTeamStatsParams, GitLabMRReviewParams
from .registry import ToolDefinition, ToolRegistry


logger = logging.getLogger(__name__)


def github_pr_review_tool(client: GitHubClient) -> ToolDefinition:
    def handler(params: GitHubPRReviewParams):
        owner, repo = parse_repo(params.repo)
        result = client.get_pull_request(owner, repo, params.pr_number, refresh=params.refresh)
        logger.info(
            f"github_pr_review {params.repo}#{params.pr_number}: {result.files_changed} files, "
            f"+{result.additions}/-{result.deletions}"
        )
        return result

    return ToolDefinition(
        name="github_pr_review",
        description=(
            "Fetch full GitHub PR context: metadata, files changed, CI checks and reviews. "
            "Results are cached; pass refresh to bypass the cache."
        ),
        parameters=GitHubPRReviewParams,
        handler=handler
    )


def github_team_stats_tool(client: GitHubClient) -> ToolDefinition:
    def handler(params: GitHubTeamStatsParams):
        owner, repo = parse_repo(params.repo)
        result = client.get_team_stats(owner, repo, params.period, params.until)
        logger.info(
            f"github_team_stats {params.repo} {result.period}: {result.total_prs} PRs, "
            f"{len(result.contributors)} contributors"
        )
        return result

    return ToolDefinition(
        name="github_team_stats",
        description=(
            "Fetch team contribution stats from GitHub: PRs authored/reviewed per contributor, "
            "average merge time and lines changed."
        ),
        parameters=GitHubTeamStatsParams,
        handler=handler
    )


def gitlab_mr_review_tool(client: GitLabClient) -> ToolDefinition:
    def handler(params: GitLabMRReviewParams):
        result = client.get_merge_request(params.project, params.mr_number, refresh=params.refresh)
        logger.info(
            f"gitlab_mr_review {params.project}!{params.mr_number}: {result.files_changed} files, "
            f"+{result.additions}/-{result.deletions}"
        )
        return result

    return ToolDefinition(
        name="gitlab_mr_review",
        description=(
            "Fetch full GitLab MR context: metadata, diff stats, pipeline status, "
            "discussions and approvals."
        ),
        parameters=GitLabMRReviewParams,
        handler=handler
    )


def register_code_review_tools(
    registry: ToolRegistry,
    github: Optional[GitHubClient],
    gitlab: Optional[GitLabClient]
) -> List[str]:
    """Register the code review tools whose client is available."""
    registered = []

    if github is not None:
        for tool in (github_pr_review_tool(github), github_team_stats_tool(github)):
            registry.register(tool)
            registered.append(tool.name)
    else:
        registry.skip("github_pr_review", "GitHub client unavailable")
        registry.skip("github_team_stats", "GitHub client unavailable")

    if gitlab is not None:
        tool = gitlab_mr_review_tool(gitlab)
        registry.register(tool)
        registered.append(tool.name)
    else:
        registry.skip("gitlab_mr_review", "GitLab client unavailable")

    return registered
