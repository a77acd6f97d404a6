"""FastMCP middleware for instrumentation."""

from typing import Any

import logfire
from fastmcp.server.middleware import Middleware, MiddlewareContext

from .config import ObservabilityConfig


class MCPInstrumentationMiddleware(Middleware):
    """Wrap every MCP message in a Logfire span."""

    def __init__(self, config: ObservabilityConfig | None = None):
        self.config = config or ObservabilityConfig()
        self.enabled = self.config.enabled

    async def on_message(self, context: MiddlewareContext, call_next) -> Any:
        if not self.enabled:
            return await call_next(context)

        method = context.method or "unknown"
        operation_type = self._get_operation_type(method)

        with logfire.span(
            f"mcp.{operation_type}.{method}",
            _span_name=f"MCP {method}",
            mcp_method=method,
            mcp_operation_type=operation_type,
        ) as span:
            message = getattr(context, "message", None)
            if hasattr(message, "name"):
                span.set_attribute("tool.name", message.name)
            elif hasattr(message, "uri"):
                span.set_attribute("resource.uri", str(message.uri))

            try:
                result = await call_next(context)
                span.set_attribute("mcp.status", "success")
                return result
            except Exception as e:
                span.set_attribute("mcp.status", "error")
                span.set_attribute("error.type", type(e).__name__)
                span.set_attribute("error.message", str(e))
                raise

    @staticmethod
    def _get_operation_type(method: str) -> str:
        if method.startswith("resources/"):
            return "resource"
        if method.startswith("tools/"):
            return "tool"
        return "system"
