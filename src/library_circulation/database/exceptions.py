"""
Repository exceptions for the Library Circulation MCP Server.

Every exception carries the HTTP-equivalent status class of the failure and a
short machine-readable ``error_type`` so tool handlers can build error
responses without a lookup table.
"""


class RepositoryException(Exception):
    """Base exception for repository operations."""

    status_code: int = 500
    error_type: str = "internal"


class NotFoundError(RepositoryException):
    """Raised when an entity is not found."""

    status_code = 404
    error_type = "not_found"


class InvalidStateError(NotFoundError):
    """Raised when a loan does not exist or is not in the status an action requires.

    Lookups are scoped by id and required status, so both cases look the same
    to the caller.
    """


class ConflictError(RepositoryException):
    """Raised when a business rule forbids the operation."""

    status_code = 409
    error_type = "conflict"


class DuplicateError(ConflictError):
    """Raised when attempting to create a duplicate entity."""


class DuplicateLoanError(ConflictError):
    """Raised when the user already has an open loan for the book."""


class BookUnavailableError(ConflictError):
    """Raised when a loan is requested for a book with no copy on the shelf."""


class OutOfStockError(ConflictError):
    """Raised when no copy is left at approval time."""


class LoanLimitExceededError(ConflictError):
    """Raised when the user already holds the maximum number of loans."""


class ForbiddenError(RepositoryException):
    """Raised when the caller's role or ownership does not allow the operation."""

    status_code = 403
    error_type = "forbidden"


class InvalidInputError(RepositoryException):
    """Raised when an argument is outside the accepted range."""

    status_code = 400
    error_type = "validation_error"
