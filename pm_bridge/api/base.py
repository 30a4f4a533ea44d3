"""Base API clients: the guarded call protocol and the HTTP transport."""

import logging
from typing import Any, Callable, Dict, Optional, Tuple, Type

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..core.cache import ExpiringCache
from ..core.errors import BridgeError, UpstreamError
from ..core.rate_limiter import RateLimiter
from ..core.scope_guard import ScopeGuard


_MISSING = object()


def connect_only_retry() -> Retry:
    """Retry policy shared by every HTTP transport.

    Only connection establishment is retried; responses are never replayed,
    so each limiter token pays for exactly one upstream answer.
    """
    return Retry(
        total=2,
        connect=2,
        read=0,
        status=0,
        other=0,
        allowed_methods=["GET", "POST"],
        raise_on_status=False
    )


class GuardedClient:
    """Base class for provider clients sharing one cache, limiter and guard.

    Every public operation goes through ``_guarded_call``:

    1. authorize against the scope guard (nothing else happens on denial)
    2. cache lookup (hits never consume rate budget)
    3. limiter admission
    4. upstream fetch and normalization
    5. cache store

    No lock is held while the fetch runs.
    """

    provider = "provider"

    # Exceptions raised by the upstream library or by normalizing a
    # malformed payload; they surface as UpstreamError and are not cached.
    upstream_exceptions: Tuple[Type[BaseException], ...] = (
        requests.RequestException,
        ValueError,
        KeyError,
        TypeError,
        AttributeError
    )

    def __init__(self, cache: ExpiringCache, limiter: RateLimiter, guard: ScopeGuard):
        self.cache = cache
        self.limiter = limiter
        self.guard = guard
        self.logger = logging.getLogger(self.__class__.__name__)

    def _guarded_call(
        self,
        key: str,
        ttl: float,
        fetch: Callable[[], Any],
        authorize: Optional[Callable[[], None]] = None,
        refresh: bool = False,
        description: str = ""
    ) -> Any:
        """Run ``fetch`` behind the scope guard, the cache and the rate limiter.

        Args:
            key: Deterministic cache key for this operation and its parameters
            ttl: Cache lifetime in seconds for the normalized result
            fetch: Performs the upstream request and returns the normalized result
            authorize: Scope guard check for the operation's target
            refresh: Bypass the cache read (the result is still stored)
            description: Target identifier used in log messages
        """
        if authorize is not None:
            authorize()

        cached = self.cache.get(key, force_refresh=refresh, default=_MISSING)
        if cached is not _MISSING:
            self.logger.debug(f"Cache hit: {key}")
            return cached

        self.limiter.consume()
        self.logger.info(f"Fetching {description or key} from {self.provider}")

        try:
            result = fetch()
        except BridgeError:
            raise
        except self.upstream_exceptions as e:
            self.logger.error(f"{self.provider} request failed for {description or key}: {e}")
            raise self._to_upstream_error(e) from e

        self.cache.set(key, result, ttl)
        return result

    def _to_upstream_error(self, error: BaseException) -> UpstreamError:
        """Translate a library exception into an UpstreamError."""
        status = None
        response = getattr(error, "response", None)
        if response is not None:
            status = getattr(response, "status_code", None)
        return UpstreamError(self.provider, str(error) or error.__class__.__name__, status)


class BaseAPIClient(GuardedClient):
    """Guarded client with a requests session for REST/GraphQL providers."""

    def __init__(
        self,
        base_url: str,
        cache: ExpiringCache,
        limiter: RateLimiter,
        guard: ScopeGuard,
        timeout: int = 30
    ):
        super().__init__(cache, limiter, guard)
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout

        self.session = requests.Session()
        adapter = HTTPAdapter(max_retries=connect_only_retry())
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

    def authenticate(self) -> Dict[str, str]:
        """Return authentication headers."""
        raise NotImplementedError

    def _make_request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        json_data: Optional[Dict[str, Any]] = None
    ) -> Any:
        """Make an HTTP request and return the decoded JSON body.

        Raises:
            UpstreamError: non-2xx status, connection failure or non-JSON body
        """
        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        headers = self.authenticate()

        if params:
            params = {k: v for k, v in params.items() if v is not None and v != ""}

        try:
            response = self.session.request(
                method=method,
                url=url,
                params=params,
                json=json_data,
                headers=headers,
                timeout=self.timeout
            )
        except requests.RequestException as e:
            raise UpstreamError(self.provider, f"{method} {url} failed: {e}") from e

        self.logger.debug(f"{method} {url} -> {response.status_code}")

        if not response.ok:
            body = (response.text or "")[:200]
            raise UpstreamError(
                self.provider,
                f"{response.reason or 'request failed'} - {body}",
                response.status_code
            )

        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError(
                self.provider,
                f"malformed response body from {url}",
                response.status_code
            ) from e

    def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """Make GET request."""
        return self._make_request("GET", endpoint, params=params)

    def post(self, endpoint: str, json_data: Optional[Dict[str, Any]] = None) -> Any:
        """Make POST request."""
        return self._make_request("POST", endpoint, json_data=json_data)
