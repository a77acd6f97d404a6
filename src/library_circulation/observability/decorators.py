"""Decorators for tracing MCP components."""

import functools
from collections.abc import Callable
from datetime import datetime
from typing import Any

import logfire


def trace_tool(tool_name: str):
    """Decorator to trace MCP tool execution.

    Tool handlers take a single ``arguments`` dict; its scalar values are
    recorded as span attributes.
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            with logfire.span(
                f"tool.execution.{tool_name}",
                tool_name=tool_name,
                tool_category=_categorize_tool(tool_name),
            ) as span:
                start_time = datetime.now()

                arguments = args[0] if args and isinstance(args[0], dict) else kwargs
                _add_attributes(span, "input", arguments)

                try:
                    result = await func(*args, **kwargs)

                    span.set_attribute("tool.duration_ms", _elapsed_ms(start_time))
                    _add_tool_result_metrics(span, result)

                    return result

                except Exception as e:
                    span.set_attribute("tool.success", False)
                    span.set_attribute("tool.error", str(e))
                    raise

        return wrapper

    return decorator


def trace_resource(resource_type: str):
    """Lightweight decorator for resource reads."""

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            with logfire.span(
                f"resource.read.{resource_type}",
                resource_type=resource_type,
            ) as span:
                _add_attributes(span, "params", kwargs)
                result = await func(*args, **kwargs)

                if isinstance(result, dict) and isinstance(result.get("loans"), list):
                    span.set_attribute("result.item_count", len(result["loans"]))

                return result

        return wrapper

    return decorator


def _categorize_tool(tool_name: str) -> str:
    if "return" in tool_name:
        return "returns"
    if "copies" in tool_name:
        return "inventory"
    return "loans"


def _elapsed_ms(start_time: datetime) -> float:
    return (datetime.now() - start_time).total_seconds() * 1000


def _add_attributes(span, prefix: str, data: dict):
    """Add scalar values as span attributes."""
    for key, value in data.items():
        if isinstance(value, str | int | float | bool):
            span.set_attribute(f"{prefix}.{key}", value)


def _add_tool_result_metrics(span, result: Any):
    """Tool handlers report failures in the payload rather than by raising."""
    if not isinstance(result, dict):
        return
    failed = bool(result.get("isError"))
    span.set_attribute("tool.success", not failed)
    if failed and "error" in result:
        span.set_attribute("tool.error_type", result["error"]["type"])
        span.set_attribute("tool.error_status", result["error"]["status"])
