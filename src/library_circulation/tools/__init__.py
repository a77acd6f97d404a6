"""MCP tools: every state-changing loan and inventory operation."""

from .circulation import circulation_tools

__all__ = ["circulation_tools"]
