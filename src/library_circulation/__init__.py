"""
Library Circulation MCP Server Package.

This package implements an MCP (Model Context Protocol) server for the loan
lifecycle of a library: students request loans and returns, administrators
approve, reject and validate them, and the number of available copies of
every book is kept consistent with the loans that are out.

Key Components:
- models: loan state machine and Pydantic response models
- database: SQLAlchemy schema, sessions, inventory ledger and repositories
- config: configuration management with pydantic-settings
- resources: MCP resources (read-only loan and availability views)
- tools: MCP tools (loan transitions and copy-count edits)
- observability: Logfire spans and metrics
"""

__version__ = "0.1.0"

# Make database module available at package level
from . import database

__all__ = [
    "__version__",
    "database",
]
