"""Tools exposed to the agent host."""

from .registry import ToolDefinition, ToolRegistry, to_result
from .code_review import register_code_review_tools
from .project_tracking import register_project_tracking_tools, sprint_health
from .observability import register_observability_tools

__all__ = [
    'ToolDefinition',
    'ToolRegistry',
    'to_result',
    'register_code_review_tools',
    'register_project_tracking_tools',
    'sprint_health',
    'register_observability_tools'
]
