"""Tool registry: parameter validation, dispatch and structured error results."""

import dataclasses
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Type

from ..core.errors import BridgeError, RateLimitExceededError, ScopeViolationError
from ..models.validation import ToolParams, validate_params
from ..utils.logging import StructuredLogger


@dataclass
class ToolDefinition:
    """A callable tool exposed to the agent host."""
    name: str
    description: str
    parameters: Type[ToolParams]
    handler: Callable[[Any], Any]

    def schema(self) -> Dict[str, Any]:
        """Describe the tool and its JSON parameter schema."""
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters.model_json_schema()
        }


def to_result(value: Any) -> Any:
    """Convert result records into JSON-compatible structures."""
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    if isinstance(value, dict):
        return {key: to_result(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_result(item) for item in value]
    return value


class ToolRegistry:
    """Registered tools keyed by name."""

    def __init__(self):
        self._tools: Dict[str, ToolDefinition] = {}
        self.logger = logging.getLogger(__name__)
        self.structured = StructuredLogger(__name__)

    def register(self, tool: ToolDefinition) -> None:
        """Register a tool; names are unique."""
        if tool.name in self._tools:
            raise ValueError(f"Tool {tool.name} is already registered")
        self._tools[tool.name] = tool
        self.structured.log_audit("tool_registered", tool=tool.name)

    def skip(self, name: str, reason: str) -> None:
        """Record that a tool was not registered."""
        self.structured.log_audit("tool_skipped", tool=name, reason=reason)

    def get(self, name: str) -> Optional[ToolDefinition]:
        return self._tools.get(name)

    def names(self) -> List[str]:
        return list(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def invoke(self, name: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Validate parameters, run the tool and return its result or a structured error.

        Scope violations, rate limiting, upstream failures and invalid
        parameters are returned as results; only unexpected exceptions are
        logged with a traceback and reported as INTERNAL_ERROR.
        """
        tool = self._tools.get(name)
        if tool is None:
            return {"error": f"Unknown tool: {name}", "code": "UNKNOWN_TOOL"}

        started = time.monotonic()
        try:
            validated = validate_params(tool.parameters, params)
            result = tool.handler(validated)
        except ScopeViolationError as e:
            self.structured.log_scope_violation(name, e.resource, e.requested)
            return e.to_result()
        except RateLimitExceededError as e:
            self.structured.log_rate_limited(name, e.retry_after_ms)
            return e.to_result()
        except BridgeError as e:
            self.structured.log_tool_call(name, e.code)
            return e.to_result()
        except Exception as e:
            self.logger.exception(f"Tool {name} failed unexpectedly")
            return {"error": f"{name} failed: {e}", "code": "INTERNAL_ERROR"}

        duration_ms = round((time.monotonic() - started) * 1000)
        self.structured.log_tool_call(name, "ok", duration_ms=duration_ms)
        return to_result(result)
