"""
Library Circulation MCP Server Models.

Pydantic models returned by tools and resources, plus the loan lifecycle
state machine:
- Book: catalog entry with copy counts
- User: library member with a role
- Loan: one copy lent to one user
"""

from .book import Book
from .loan import (
    LIMIT_STATUSES,
    OPEN_STATUSES,
    IllegalTransitionError,
    Loan,
    LoanAction,
    LoanStatus,
    can_apply,
    next_status,
    source_statuses,
)
from .user import User, UserRole

__all__ = [
    "LIMIT_STATUSES",
    "OPEN_STATUSES",
    "Book",
    "IllegalTransitionError",
    "Loan",
    "LoanAction",
    "LoanStatus",
    "User",
    "UserRole",
    "can_apply",
    "next_status",
    "source_statuses",
]
