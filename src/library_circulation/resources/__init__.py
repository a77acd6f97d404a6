"""Library Circulation MCP Resources Package.

Resources are the read side of the server: loan listings for students and
administrators, and catalog availability. Every change goes through a tool.
"""

from .books import book_resources
from .loans import loan_resources

all_resources = loan_resources + book_resources

__all__ = [
    "all_resources",
    "book_resources",
    "loan_resources",
]
