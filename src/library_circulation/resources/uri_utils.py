"""URI helpers for MCP resources.

FastMCP hands URI template parameters to resource handlers as strings;
these helpers turn them into typed identifiers with readable errors.
"""

from urllib.parse import unquote

from fastmcp.exceptions import ResourceError


class URIParseError(ResourceError):
    """Raised when a URI parameter cannot be parsed."""


def parse_id(raw: str | int, kind: str) -> int:
    """Parse a positive integer identifier from a URI segment.

    Args:
        raw: Segment value, possibly percent-encoded
        kind: What the id refers to, used in the error message

    Raises:
        URIParseError: If the value is not a positive integer
    """
    if isinstance(raw, int):
        value = raw
    else:
        text = unquote(raw).strip()
        if not text.isdigit():
            raise URIParseError(f"Invalid {kind} id '{raw}': expected a positive integer")
        value = int(text)

    if value < 1:
        raise URIParseError(f"Invalid {kind} id '{raw}': expected a positive integer")
    return value
