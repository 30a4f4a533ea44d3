"""Parameter validation for tool invocations."""

import re
from typing import Any, Dict, List, Optional, Type, TypeVar

import pydantic
from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..core.errors import BridgeError


REPO_PATTERN = re.compile(r'^[\w.\-]+/[\w.\-]+$')
DATE_PATTERN = r'^\d{4}-\d{2}-\d{2}$'

MAX_JIRA_RESULTS = 100
MAX_SENTRY_ISSUES = 100
MAX_GRAFANA_ANNOTATIONS = 200


class ValidationError(BridgeError):
    """Tool parameters failed validation."""

    def __init__(self, message: str):
        super().__init__("INVALID_PARAMS", message)


class ToolParams(BaseModel):
    """Base model for tool parameters; unknown keys are rejected."""

    model_config = ConfigDict(extra='forbid')


def _check_repo(value: str) -> str:
    value = value.strip()
    if not REPO_PATTERN.match(value):
        raise ValueError('Repository must be in "owner/repo" format')
    return value


class GitHubPRReviewParams(ToolParams):
    pr_number: int = Field(..., ge=1)
    repo: str
    focus: Optional[List[str]] = None
    refresh: bool = False

    @field_validator('repo')
    @classmethod
    def validate_repo(cls, v):
        """Validate repository format."""
        return _check_repo(v)


class GitHubTeamStatsParams(ToolParams):
    repo: str
    period: str = Field(..., pattern=DATE_PATTERN)
    until: Optional[str] = Field(None, pattern=DATE_PATTERN)

    @field_validator('repo')
    @classmethod
    def validate_repo(cls, v):
        """Validate repository format."""
        return _check_repo(v)


class GitLabMRReviewParams(ToolParams):
    mr_number: int = Field(..., ge=1)
    project: str = Field(..., min_length=1)
    focus: Optional[List[str]] = None
    refresh: bool = False

    @field_validator('project')
    @classmethod
    def validate_project(cls, v):
        """Validate project path."""
        v = v.strip().strip('/')
        if not v:
            raise ValueError('Project path cannot be empty')
        return v


class JiraSearchParams(ToolParams):
    jql: str
    fields: Optional[List[str]] = None
    max_results: int = Field(50, ge=1)
    refresh: bool = False

    @field_validator('max_results')
    @classmethod
    def clamp_max_results(cls, v):
        """Clamp to the provider page size."""
        return min(v, MAX_JIRA_RESULTS)


class SprintMetricsParams(ToolParams):
    board_id: Optional[int] = Field(None, ge=1)
    sprint_id: Optional[int] = Field(None, ge=1)
    github_repo: Optional[str] = None
    gitlab_project: Optional[str] = None
    source: str = Field('all', pattern=r'^(jira|github|gitlab|all)$')

    @field_validator('github_repo')
    @classmethod
    def validate_github_repo(cls, v):
        """Validate repository format."""
        if v is None:
            return v
        return _check_repo(v)


class SentryIssuesParams(ToolParams):
    level: Optional[str] = Field(None, pattern=r'^(error|warning|info|fatal)$')
    time_range: Optional[str] = Field(None, pattern=r'^(1h|24h|7d|14d|30d)$')
    limit: int = Field(25, ge=1)
    issue_id: Optional[str] = Field(None, min_length=1, pattern=r'^[\w\-]+$')
    refresh: bool = False

    @field_validator('limit')
    @classmethod
    def clamp_limit(cls, v):
        """Clamp to the provider page size."""
        return min(v, MAX_SENTRY_ISSUES)


class GrafanaAlertsParams(ToolParams):
    mode: str = Field('alerts', pattern=r'^(alerts|rules|annotations)$')
    state: Optional[str] = Field(None, pattern=r'^(firing|pending|suppressed|active|unprocessed)$')
    time_range: str = Field('24h', pattern=r'^(1h|6h|24h|7d)$')
    dashboard_uid: Optional[str] = None
    limit: int = Field(50, ge=1)
    refresh: bool = False

    @field_validator('limit')
    @classmethod
    def clamp_limit(cls, v):
        """Clamp to the provider page size."""
        return min(v, MAX_GRAFANA_ANNOTATIONS)


ParamsModel = TypeVar('ParamsModel', bound=ToolParams)


def validate_params(model: Type[ParamsModel], data: Optional[Dict[str, Any]]) -> ParamsModel:
    """Validate tool parameters and return the validated model."""
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValidationError("Parameters must be an object")
    try:
        return model(**data)
    except pydantic.ValidationError as e:
        problems = []
        for error in e.errors():
            location = ".".join(str(part) for part in error.get("loc", ())) or "params"
            problems.append(f"{location}: {error.get('msg')}")
        raise ValidationError(f"Invalid parameters: {'; '.join(problems)}") from e
