"""Failure kinds raised by the scope guard, the rate limiter and provider clients."""

import math
from typing import Any, Dict, List, Optional


class BridgeError(Exception):
    """Base exception for errors that are reported to the caller as results."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_result(self) -> Dict[str, Any]:
        """Convert to a structured error result."""
        result = {"error": self.message, "code": self.code}
        result.update(self.details)
        return result


class ScopeViolationError(BridgeError):
    """Requested resource is outside the configured allowlist."""

    def __init__(self, resource: str, requested: str, allowed: List[str]):
        self.resource = resource
        self.requested = requested
        self.allowed = list(allowed)
        message = (
            f'Scope violation: {resource} "{requested}" is not in the allowed list '
            f'[{", ".join(self.allowed)}]. Access to resources outside the configured '
            f'project scope is blocked.'
        )
        super().__init__(
            "SCOPE_VIOLATION",
            message,
            {"resource": resource, "requested": requested, "allowed": self.allowed}
        )


class RateLimitExceededError(BridgeError):
    """Outbound call budget is exhausted.

    ``retry_after_ms`` is the time for one full token to refill. It does not
    account for a partially refilled token, so it is an upper-bound hint
    rather than an exact ETA.
    """

    def __init__(self, retry_after_ms: int):
        self.retry_after_ms = retry_after_ms
        seconds = math.ceil(retry_after_ms / 1000)
        super().__init__(
            "RATE_LIMITED",
            f"Rate limit exceeded. Retry after {seconds}s.",
            {"retry_after_ms": retry_after_ms}
        )

    @property
    def retry_after(self) -> float:
        """Retry hint in seconds."""
        return self.retry_after_ms / 1000.0


class UpstreamError(BridgeError):
    """External API request failed (status, transport or malformed body)."""

    def __init__(self, provider: str, message: str, status: Optional[int] = None):
        self.provider = provider
        self.status = status
        prefix = f"{provider} API error {status}" if status is not None else f"{provider} API error"
        super().__init__(
            "UPSTREAM_ERROR",
            f"{prefix}: {message}",
            {"provider": provider, "status": status}
        )
