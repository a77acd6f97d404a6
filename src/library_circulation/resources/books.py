"""Book Resources - catalog availability lookups.

Resources:
- library://books/{book_id} - a book with its total and available copies
"""

import logging
from typing import Any

from fastmcp.exceptions import ResourceError

from ..database.book_repository import BookRepository
from ..database.session import session_scope
from ..observability import trace_resource
from .uri_utils import parse_id

logger = logging.getLogger(__name__)


@trace_resource("book_details")
async def get_book_handler(book_id: str) -> dict[str, Any]:
    """Returns a book with its copy counts.

    Clients read library://books/{book_id} before requesting a loan to see
    whether a copy is on the shelf.
    """
    bid = parse_id(book_id, "book")
    try:
        logger.debug("MCP Resource Request - books/%s", bid)

        with session_scope() as session:
            book = BookRepository(session).get_by_id(bid)

            if book is None:
                raise ResourceError(f"Book not found: {bid}")

            return {
                **book.model_dump(mode="json"),
                "is_available": book.is_available,
                "copies_on_loan": book.copies_on_loan,
            }

    except ResourceError:
        raise
    except Exception as e:
        logger.exception("Error in books/{book_id} resource")
        raise ResourceError(f"Failed to retrieve book details: {e!s}") from e


book_resources: list[dict[str, Any]] = [
    {
        "uri": "library://books/{book_id}",
        "name": "Book Availability",
        "description": "A catalog book with its total and available copies",
        "mime_type": "application/json",
        "handler": get_book_handler,
    },
]
