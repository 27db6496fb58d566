"""Timesheet MCP: work activity tracking, reporting and shutdown monitors."""

__version__ = "0.1.0"

__all__ = ["__version__"]
