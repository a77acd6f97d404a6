"""Loan Resources - read-only views of the loan lifecycle.

Resources:
- library://users/{user_id}/loans - every loan of a user, newest first
- library://admin/{admin_id}/loans - every loan in the library (administrators)
- library://admin/{admin_id}/loans/pending - requests awaiting approval
- library://admin/{admin_id}/loans/return-requests - returns awaiting validation

Authentication is outside this server: the caller's id is part of the URI and
administrator views check the role of that user.
"""

import logging
from collections.abc import Callable
from typing import Any

from fastmcp.exceptions import ResourceError
from pydantic import BaseModel, Field

from ..database.circulation_repository import CirculationRepository
from ..database.exceptions import RepositoryException
from ..database.session import session_scope
from ..models.loan import Loan
from ..observability import trace_resource
from .uri_utils import parse_id

logger = logging.getLogger(__name__)


class LoanListResponse(BaseModel):
    """Loans plus their count."""

    loans: list[Loan] = Field(..., description="Loans, newest first")
    total: int = Field(..., description="Number of loans returned")


def _read_loans(
    description: str, query: Callable[[CirculationRepository], list[Loan]]
) -> dict[str, Any]:
    try:
        with session_scope() as session:
            loans = query(CirculationRepository(session))
            return LoanListResponse(loans=loans, total=len(loans)).model_dump(mode="json")
    except RepositoryException as e:
        logger.info("Resource %s refused: %s", description, e)
        raise ResourceError(str(e)) from e
    except Exception as e:
        logger.exception("Error in %s resource", description)
        raise ResourceError(f"Failed to retrieve {description}: {e!s}") from e


@trace_resource("user_loans")
async def get_user_loans_handler(user_id: str) -> dict[str, Any]:
    """Returns all loans of a user in every status, newest first."""
    uid = parse_id(user_id, "user")
    logger.debug("MCP Resource Request - users/%s/loans", uid)
    return _read_loans("user loans", lambda repo: repo.list_user_loans(uid))


@trace_resource("all_loans")
async def get_all_loans_handler(admin_id: str) -> dict[str, Any]:
    """Returns every loan in the library, newest first."""
    aid = parse_id(admin_id, "admin")
    return _read_loans("all loans", lambda repo: repo.list_loans(aid))


@trace_resource("pending_loans")
async def get_pending_loans_handler(admin_id: str) -> dict[str, Any]:
    """Returns loan requests awaiting approval, newest first."""
    aid = parse_id(admin_id, "admin")
    return _read_loans("pending loans", lambda repo: repo.list_pending(aid))


@trace_resource("return_requests")
async def get_return_requests_handler(admin_id: str) -> dict[str, Any]:
    """Returns loans whose return awaits validation, most recent request first."""
    aid = parse_id(admin_id, "admin")
    return _read_loans("return requests", lambda repo: repo.list_return_requests(aid))


loan_resources: list[dict[str, Any]] = [
    {
        "uri": "library://users/{user_id}/loans",
        "name": "My Loans",
        "description": "All loans of a user in every status, newest first",
        "mime_type": "application/json",
        "handler": get_user_loans_handler,
    },
    {
        "uri": "library://admin/{admin_id}/loans",
        "name": "All Loans",
        "description": "Every loan in the library, newest first (administrators only)",
        "mime_type": "application/json",
        "handler": get_all_loans_handler,
    },
    {
        "uri": "library://admin/{admin_id}/loans/pending",
        "name": "Pending Loan Requests",
        "description": "Loan requests awaiting an administrator's decision, newest first",
        "mime_type": "application/json",
        "handler": get_pending_loans_handler,
    },
    {
        "uri": "library://admin/{admin_id}/loans/return-requests",
        "name": "Return Requests",
        "description": "Loans whose return awaits validation, most recent request first",
        "mime_type": "application/json",
        "handler": get_return_requests_handler,
    },
]
