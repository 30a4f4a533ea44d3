"""Shared cache, rate limiter and scope guard used by every provider call."""

from .cache import ExpiringCache, cache_key, hash_params
from .errors import BridgeError, ScopeViolationError, RateLimitExceededError, UpstreamError
from .rate_limiter import RateLimiter
from .scope_guard import ScopeGuard

__all__ = [
    'ExpiringCache',
    'cache_key',
    'hash_params',
    'BridgeError',
    'ScopeViolationError',
    'RateLimitExceededError',
    'UpstreamError',
    'RateLimiter',
    'ScopeGuard'
]
