"""Shared fixtures: a controllable clock and the cache/limiter/guard substrate."""

from unittest.mock import MagicMock

import pytest

from pm_bridge.core.cache import ExpiringCache
from pm_bridge.core.rate_limiter import RateLimiter
from pm_bridge.core.scope_guard import ScopeGuard


class FakeClock:
    """Monotonic clock driven by the test."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakePaginatedList(list):
    """List standing in for a PyGithub PaginatedList."""

    @property
    def totalCount(self):
        return len(self) if self._total is None else self._total

    def __init__(self, items, total=None):
        super().__init__(items)
        self._total = total


def make_response(payload=None, status=200, text=None, json_error=False):
    """Build a requests.Response stand-in."""
    response = MagicMock()
    response.status_code = status
    response.ok = 200 <= status < 300
    response.reason = "OK" if response.ok else "Error"
    response.text = text if text is not None else ""
    if json_error:
        response.json.side_effect = ValueError("No JSON object could be decoded")
    else:
        response.json.return_value = payload
    return response


@pytest.fixture
def clock():
    """Create a fake clock."""
    return FakeClock()


@pytest.fixture
def cache(clock):
    """Create a cache without a sweep thread."""
    cache = ExpiringCache(cleanup_interval=0, clock=clock)
    yield cache
    cache.destroy()


@pytest.fixture
def limiter(clock):
    """Create a limiter with the default budget."""
    return RateLimiter(capacity=10, refill_per_minute=30, clock=clock)


@pytest.fixture
def guard():
    """Create a guard covering every domain."""
    return ScopeGuard(
        github_repos="acme/widget, acme/api",
        gitlab_projects="acme/platform/backend",
        jira_projects="SHIP,OPS",
        jira_boards="42",
        sentry_org="acme",
        sentry_project="backend"
    )
