"""Allowlist enforcement for every provider call.

The guard is built once from operator configuration and never changes
afterwards. An empty allowlist denies the whole domain; providers whose
domain is empty are not registered at all. The one exception is the Jira
board list, which is an optional secondary filter on top of the project
list: with no boards configured, board checks pass.
"""

import logging
from typing import Iterable, Optional, Tuple, Union

from .errors import ScopeViolationError


logger = logging.getLogger(__name__)

ListSource = Optional[Union[str, Iterable[str]]]


def parse_string_list(value: ListSource, lowercase: bool = True) -> Tuple[str, ...]:
    """Parse a comma-separated list into unique, trimmed entries in input order."""
    if value is None:
        return ()

    items = value.split(",") if isinstance(value, str) else value

    result = []
    for item in items:
        item = str(item).strip()
        if not item:
            continue
        if lowercase:
            item = item.lower()
        if item not in result:
            result.append(item)
    return tuple(result)


def parse_number_list(value: Optional[Union[str, Iterable[Union[str, int]]]]) -> Tuple[int, ...]:
    """Parse a comma-separated list of integers, skipping entries that are not numbers."""
    if value is None:
        return ()

    items = value.split(",") if isinstance(value, str) else value

    result = []
    for item in items:
        text = str(item).strip()
        if not text:
            continue
        try:
            number = int(text)
        except ValueError:
            logger.warning(f"Ignoring non-numeric board id in scope configuration: {text!r}")
            continue
        if number not in result:
            result.append(number)
    return tuple(result)


class ScopeGuard:
    """Allowlist-based authorization over the code-hosting, issue-tracker and error-tracker domains."""

    def __init__(
        self,
        github_repos: ListSource = None,
        gitlab_projects: ListSource = None,
        jira_projects: ListSource = None,
        jira_boards: Optional[Union[str, Iterable[Union[str, int]]]] = None,
        sentry_org: Optional[str] = None,
        sentry_project: Optional[str] = None
    ):
        self._github_repos = parse_string_list(github_repos)
        self._gitlab_projects = parse_string_list(gitlab_projects)
        # Jira project keys are case-sensitive
        self._jira_projects = parse_string_list(jira_projects, lowercase=False)
        self._jira_boards = parse_number_list(jira_boards)
        self._sentry_org = (sentry_org or "").strip() or None
        self._sentry_project = (sentry_project or "").strip() or None

        self._github_set = frozenset(self._github_repos)
        self._gitlab_set = frozenset(self._gitlab_projects)
        self._board_set = frozenset(self._jira_boards)

        if self._github_repos:
            logger.info(f"Scope: GitHub repos {', '.join(self._github_repos)}")
        if self._gitlab_projects:
            logger.info(f"Scope: GitLab projects {', '.join(self._gitlab_projects)}")
        if self._jira_projects:
            logger.info(f"Scope: Jira projects {', '.join(self._jira_projects)}")
        if self._jira_boards:
            logger.info(f"Scope: Jira boards {', '.join(str(b) for b in self._jira_boards)}")
        if self.has_sentry_scope:
            logger.info(f"Scope: Sentry {self._sentry_org}/{self._sentry_project}")

    @classmethod
    def from_config(cls, scope_config) -> "ScopeGuard":
        """Create a guard from a ScopeConfig."""
        return cls(
            github_repos=scope_config.github_repos,
            gitlab_projects=scope_config.gitlab_projects,
            jira_projects=scope_config.jira_projects,
            jira_boards=scope_config.jira_boards,
            sentry_org=scope_config.sentry_org,
            sentry_project=scope_config.sentry_project
        )

    def check_github_repo(self, owner: str, repo: str) -> None:
        """Validate GitHub repository access. Raises ScopeViolationError."""
        full_name = f"{owner}/{repo}".lower()
        if full_name not in self._github_set:
            raise ScopeViolationError("github", full_name, list(self._github_repos))

    def check_gitlab_project(self, full_path: str) -> None:
        """Validate GitLab project access by full path (group/subgroup/project)."""
        if full_path.lower() not in self._gitlab_set:
            raise ScopeViolationError("gitlab", full_path, list(self._gitlab_projects))

    def check_jira_board(self, board_id: int) -> None:
        """Validate Jira board access.

        Passes when no boards are configured: the project filter is the
        primary Jira gate and boards only narrow it further.
        """
        if self._board_set and board_id not in self._board_set:
            raise ScopeViolationError(
                "jira-board",
                str(board_id),
                [str(board) for board in self._jira_boards]
            )

    def check_jira_sprint(self, sprint_id: int, board_id: Optional[int] = None) -> None:
        """Validate access to a sprint addressed by id.

        A sprint's board is only known upstream, so once boards are
        configured the caller must name the board the sprint is read through.
        """
        if board_id is not None:
            self.check_jira_board(board_id)
        elif self._board_set:
            raise ScopeViolationError(
                "jira-board",
                f"unknown (sprint {sprint_id})",
                [str(board) for board in self._jira_boards]
            )

    def check_sentry_project(self, org: str, project: str) -> None:
        """Validate Sentry organization/project access against the single configured pair."""
        requested = f"{org}/{project}"
        if not self.has_sentry_scope:
            raise ScopeViolationError("sentry", requested, [])
        if org != self._sentry_org or project != self._sentry_project:
            raise ScopeViolationError(
                "sentry",
                requested,
                [f"{self._sentry_org}/{self._sentry_project}"]
            )

    def scope_jql(self, jql: str) -> str:
        """Constrain a JQL query to the allowed Jira projects.

        The whole caller query is parenthesized and ANDed with the project
        clause, so nothing inside it can widen the result set. Returns the
        query unchanged when no Jira projects are configured.
        """
        if not self._jira_projects:
            return jql

        projects = ", ".join(f'"{_quote_jql(key)}"' for key in self._jira_projects)
        clause = f"project IN ({projects})"

        if not jql.strip():
            return clause
        return f"({jql}) AND {clause}"

    @property
    def has_github_scope(self) -> bool:
        return bool(self._github_repos)

    @property
    def has_gitlab_scope(self) -> bool:
        return bool(self._gitlab_projects)

    @property
    def has_jira_scope(self) -> bool:
        return bool(self._jira_projects)

    @property
    def has_sentry_scope(self) -> bool:
        return self._sentry_org is not None and self._sentry_project is not None

    @property
    def github_repos(self) -> Tuple[str, ...]:
        return self._github_repos

    @property
    def gitlab_projects(self) -> Tuple[str, ...]:
        return self._gitlab_projects

    @property
    def jira_projects(self) -> Tuple[str, ...]:
        return self._jira_projects

    @property
    def jira_boards(self) -> Tuple[int, ...]:
        return self._jira_boards

    @property
    def sentry_org(self) -> Optional[str]:
        return self._sentry_org

    @property
    def sentry_project(self) -> Optional[str]:
        return self._sentry_project


def _quote_jql(value: str) -> str:
    """Escape a value for use inside a double-quoted JQL string."""
    return value.replace("\\", "\\\\").replace('"', '\\"')
