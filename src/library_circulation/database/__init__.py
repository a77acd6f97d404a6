"""
Database package for the Library Circulation MCP Server.

This package provides:
- SQLAlchemy schema definitions (schema.py)
- Session management and connection handling (session.py)
- The inventory ledger, the only writer of available copy counts
- Repositories for users, books and loans
"""

from .book_repository import BookCreateSchema, BookRepository
from .circulation_repository import CirculationRepository
from .exceptions import (
    BookUnavailableError,
    ConflictError,
    DuplicateError,
    DuplicateLoanError,
    ForbiddenError,
    InvalidInputError,
    InvalidStateError,
    LoanLimitExceededError,
    NotFoundError,
    OutOfStockError,
    RepositoryException,
)
from .inventory_ledger import InventoryLedger
from .repository import BaseRepository
from .schema import Base, Book, Loan, User
from .session import (
    DatabaseManager,
    get_db_manager,
    get_session,
    reset_db_manager,
    safe_commit,
    safe_query,
    session_scope,
)
from .user_repository import UserCreateSchema, UserRepository

__all__ = [
    "Base",
    "BaseRepository",
    "Book",
    "BookCreateSchema",
    "BookRepository",
    "BookUnavailableError",
    "CirculationRepository",
    "ConflictError",
    "DatabaseManager",
    "DuplicateError",
    "DuplicateLoanError",
    "ForbiddenError",
    "InvalidInputError",
    "InvalidStateError",
    "InventoryLedger",
    "Loan",
    "LoanLimitExceededError",
    "NotFoundError",
    "OutOfStockError",
    "RepositoryException",
    "User",
    "UserCreateSchema",
    "UserRepository",
    "get_db_manager",
    "get_session",
    "reset_db_manager",
    "safe_commit",
    "safe_query",
    "session_scope",
]
