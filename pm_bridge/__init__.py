"""Scope-guarded bridge from agent tools to project-management APIs."""

__version__ = "0.1.0"
