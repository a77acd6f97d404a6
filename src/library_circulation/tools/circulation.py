"""
Circulation tools for the Library Circulation MCP Server.

Every state-changing operation of the loan lifecycle is an MCP tool:

Student tools:
1. request_loan: ask to borrow a book (creates a pending loan)
2. request_return: ask to give a borrowed book back

Administrator tools:
3. approve_loan / reject_loan: decide on a pending request
4. validate_return / reject_return: decide on a return request
5. mark_overdue: flag an active loan past its due date
6. update_book_copies: change how many copies of a book the library owns

Handlers validate their arguments with Pydantic, run one repository
operation in one session, and answer with either a success payload
(``content`` + structured ``data``) or an error payload (``isError`` plus an
``error`` object carrying the failure class and its HTTP-equivalent status).
"""

import logging
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from ..database.circulation_repository import CirculationRepository
from ..database.exceptions import RepositoryException
from ..database.session import get_session
from ..models.loan import Loan, LoanAction
from ..observability import record_loan_transition, trace_tool

logger = logging.getLogger(__name__)


# =============================================================================
# INPUT SCHEMAS
# =============================================================================


class RequestLoanInput(BaseModel):
    """Input schema for the request_loan tool."""

    actor_id: int = Field(..., description="ID of the user requesting the loan", ge=1, examples=[3])
    book_id: int = Field(..., description="ID of the book to borrow", ge=1, examples=[7])


class LoanActionInput(BaseModel):
    """
    Input schema for tools acting on an existing loan.

    ``actor_id`` is the caller: the borrower for request_return, an
    administrator for every other action.
    """

    actor_id: int = Field(..., description="ID of the user performing the action", ge=1, examples=[1])
    loan_id: int = Field(..., description="ID of the loan", ge=1, examples=[42])


class UpdateBookCopiesInput(BaseModel):
    """Input schema for the update_book_copies tool."""

    actor_id: int = Field(..., description="ID of the administrator", ge=1, examples=[1])
    book_id: int = Field(..., description="ID of the book", ge=1, examples=[7])
    total_copies: int = Field(
        ...,
        description="New number of copies owned; copies on loan stay on loan",
        ge=0,
        examples=[3, 5],
    )


# =============================================================================
# RESPONSE HELPERS
# =============================================================================


def _error_response(message: str, error_type: str, status: int) -> dict[str, Any]:
    return {
        "isError": True,
        "content": [{"type": "text", "text": message}],
        "error": {"type": error_type, "status": status},
    }


def _repository_error(e: RepositoryException) -> dict[str, Any]:
    return _error_response(str(e), e.error_type, e.status_code)


def _validation_error(e: ValidationError) -> dict[str, Any]:
    return _error_response(f"Invalid parameters: {e}", "validation_error", 400)


def _loan_response(message: str, loan: Loan) -> dict[str, Any]:
    return {
        "content": [{"type": "text", "text": message}],
        "data": {"loan": loan.model_dump(mode="json")},
    }


async def _run_loan_action(
    arguments: dict[str, Any],
    action: LoanAction,
    operation: Callable[[CirculationRepository, int, int], Loan],
    describe: Callable[[Loan], str],
) -> dict[str, Any]:
    """Validate, run one loan transition in its own session and shape the response."""
    try:
        params = LoanActionInput.model_validate(arguments)
    except ValidationError as e:
        logger.warning("Invalid %s parameters: %s", action.value, e)
        return _validation_error(e)

    try:
        with get_session() as session:
            repo = CirculationRepository(session)
            loan = operation(repo, params.loan_id, params.actor_id)
    except RepositoryException as e:
        if e.status_code >= 500:
            logger.exception("%s failed for loan %s", action.value, params.loan_id)
        else:
            logger.info("%s refused for loan %s: %s", action.value, params.loan_id, e)
        return _repository_error(e)
    except Exception as e:
        logger.exception("Unexpected error in %s tool", action.value)
        return _error_response(f"An unexpected error occurred: {e!s}", "internal", 500)

    status = None if action == LoanAction.REJECT else loan.status.value
    record_loan_transition(action.value, status)
    return _loan_response(describe(loan), loan)


# =============================================================================
# STUDENT TOOLS
# =============================================================================


@trace_tool("request_loan")
async def request_loan_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """
    Handler for the request_loan tool.

    Creates a pending loan. The copy stays on the shelf until an
    administrator approves the request.
    """
    try:
        params = RequestLoanInput.model_validate(arguments)
    except ValidationError as e:
        logger.warning("Invalid request_loan parameters: %s", e)
        return _validation_error(e)

    try:
        with get_session() as session:
            repo = CirculationRepository(session)
            loan = repo.request_loan(params.actor_id, params.book_id)
    except RepositoryException as e:
        if e.status_code >= 500:
            logger.exception("Loan request failed")
        else:
            logger.info("Loan request refused: %s", e)
        return _repository_error(e)
    except Exception as e:
        logger.exception("Unexpected error in request_loan tool")
        return _error_response(f"An unexpected error occurred: {e!s}", "internal", 500)

    record_loan_transition("request", loan.status.value)
    message = (
        f"Loan request {loan.id} for '{loan.book_title}' is pending approval. "
        f"Due date if approved: {loan.due_at.strftime('%B %d, %Y')}"
    )
    return _loan_response(message, loan)


@trace_tool("request_return")
async def request_return_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """Handler for the request_return tool. Only the borrower may call it."""
    return await _run_loan_action(
        arguments,
        LoanAction.REQUEST_RETURN,
        CirculationRepository.request_return,
        lambda loan: f"Return of '{loan.book_title}' requested; waiting for validation",
    )


# =============================================================================
# ADMINISTRATOR TOOLS
# =============================================================================


@trace_tool("approve_loan")
async def approve_loan_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """
    Handler for the approve_loan tool.

    The loan becomes active and one copy leaves the shelf in the same
    transaction; if either fails, neither happens.
    """
    return await _run_loan_action(
        arguments,
        LoanAction.APPROVE,
        CirculationRepository.approve_loan,
        lambda loan: (
            f"Loan {loan.id} approved: '{loan.book_title}' is due "
            f"{loan.due_at.strftime('%B %d, %Y')}"
        ),
    )


@trace_tool("reject_loan")
async def reject_loan_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """Handler for the reject_loan tool. The pending request is deleted."""
    return await _run_loan_action(
        arguments,
        LoanAction.REJECT,
        CirculationRepository.reject_loan,
        lambda loan: f"Loan request {loan.id} for '{loan.book_title}' rejected",
    )


@trace_tool("validate_return")
async def validate_return_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """Handler for the validate_return tool. The copy goes back on the shelf."""
    return await _run_loan_action(
        arguments,
        LoanAction.VALIDATE_RETURN,
        CirculationRepository.validate_return,
        lambda loan: f"Return of '{loan.book_title}' validated (loan {loan.id})",
    )


@trace_tool("reject_return")
async def reject_return_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """Handler for the reject_return tool. The loan stays active."""
    return await _run_loan_action(
        arguments,
        LoanAction.REJECT_RETURN,
        CirculationRepository.reject_return,
        lambda loan: f"Return of '{loan.book_title}' rejected; loan {loan.id} is active again",
    )


@trace_tool("mark_overdue")
async def mark_overdue_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """Handler for the mark_overdue tool."""
    return await _run_loan_action(
        arguments,
        LoanAction.MARK_OVERDUE,
        CirculationRepository.mark_overdue,
        lambda loan: f"Loan {loan.id} of '{loan.book_title}' marked overdue",
    )


@trace_tool("update_book_copies")
async def update_book_copies_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """
    Handler for the update_book_copies tool.

    Available copies move by the same amount as the total, never below zero,
    so loans already out are unaffected.
    """
    try:
        params = UpdateBookCopiesInput.model_validate(arguments)
    except ValidationError as e:
        logger.warning("Invalid update_book_copies parameters: %s", e)
        return _validation_error(e)

    try:
        with get_session() as session:
            repo = CirculationRepository(session)
            book = repo.update_book_copies(params.book_id, params.total_copies, params.actor_id)
    except RepositoryException as e:
        if e.status_code >= 500:
            logger.exception("Copy count update failed")
        else:
            logger.info("Copy count update refused: %s", e)
        return _repository_error(e)
    except Exception as e:
        logger.exception("Unexpected error in update_book_copies tool")
        return _error_response(f"An unexpected error occurred: {e!s}", "internal", 500)

    return {
        "content": [
            {
                "type": "text",
                "text": (
                    f"'{book.title}' now has {book.total_copies} copies, "
                    f"{book.available_copies} available"
                ),
            }
        ],
        "data": {"book": book.model_dump(mode="json")},
    }


# =============================================================================
# TOOL METADATA
# =============================================================================

request_loan_tool = {
    "name": "request_loan",
    "description": (
        "Request to borrow a book. Creates a pending loan; the due date is set from the loan period. "
        "Fails if no copy is available, the user already has an open loan for the book, "
        "or the user already holds the maximum number of loans."
    ),
    "inputSchema": RequestLoanInput.model_json_schema(),
    "handler": request_loan_handler,
}

request_return_tool = {
    "name": "request_return",
    "description": "Ask to return a borrowed book. Only the borrower can request the return.",
    "inputSchema": LoanActionInput.model_json_schema(),
    "handler": request_return_handler,
}

approve_loan_tool = {
    "name": "approve_loan",
    "description": "Approve a pending loan (administrators). Takes one copy off the shelf.",
    "inputSchema": LoanActionInput.model_json_schema(),
    "handler": approve_loan_handler,
}

reject_loan_tool = {
    "name": "reject_loan",
    "description": "Reject a pending loan (administrators). The request is deleted.",
    "inputSchema": LoanActionInput.model_json_schema(),
    "handler": reject_loan_handler,
}

validate_return_tool = {
    "name": "validate_return",
    "description": "Confirm a requested return (administrators). Puts the copy back on the shelf.",
    "inputSchema": LoanActionInput.model_json_schema(),
    "handler": validate_return_handler,
}

reject_return_tool = {
    "name": "reject_return",
    "description": "Refuse a requested return (administrators). The loan becomes active again.",
    "inputSchema": LoanActionInput.model_json_schema(),
    "handler": reject_return_handler,
}

mark_overdue_tool = {
    "name": "mark_overdue",
    "description": "Flag an active loan whose due date has passed (administrators).",
    "inputSchema": LoanActionInput.model_json_schema(),
    "handler": mark_overdue_handler,
}

update_book_copies_tool = {
    "name": "update_book_copies",
    "description": (
        "Change how many copies of a book the library owns (administrators). "
        "Copies currently on loan are kept out of the available count."
    ),
    "inputSchema": UpdateBookCopiesInput.model_json_schema(),
    "handler": update_book_copies_handler,
}

circulation_tools = [
    request_loan_tool,
    request_return_tool,
    approve_loan_tool,
    reject_loan_tool,
    validate_return_tool,
    reject_return_tool,
    mark_overdue_tool,
    update_book_copies_tool,
]
