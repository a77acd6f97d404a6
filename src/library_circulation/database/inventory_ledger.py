"""
Inventory ledger: the only writer of ``books.available_copies``.

Every change is a single conditional UPDATE whose WHERE clause carries the
guard, and the affected row count decides success. Two requests racing for
the last copy therefore cannot both succeed: the second one matches no row.

The ledger never commits. It runs inside the caller's transaction so the copy
count and the loan status change together or not at all.
"""

import logging

from sqlalchemy import case, select, update
from sqlalchemy.orm import Session

from ..models.book import Book
from .exceptions import InvalidInputError, NotFoundError, OutOfStockError
from .schema import Book as BookDB
from .session import safe_query

logger = logging.getLogger(__name__)


class InventoryLedger:
    """Conditional copy-count updates for catalog books."""

    def __init__(self, session: Session):
        self.session = session

    def _execute_update(self, statement, error_msg: str) -> int:
        result = safe_query(
            self.session,
            lambda s: s.execute(statement.execution_options(synchronize_session=False)),
            error_msg,
        )
        return result.rowcount

    def _require_book(self, book_id: int) -> None:
        exists = safe_query(
            self.session,
            lambda s: s.execute(select(BookDB.id).where(BookDB.id == book_id)).scalar_one_or_none(),
            "Failed to look up book",
        )
        if exists is None:
            raise NotFoundError(f"Book {book_id} not found")

    def decrement_available(self, book_id: int) -> None:
        """
        Take one copy off the shelf.

        Raises:
            NotFoundError: If the book does not exist
            OutOfStockError: If no copy is available
        """
        statement = (
            update(BookDB)
            .where(BookDB.id == book_id, BookDB.available_copies > 0)
            .values(available_copies=BookDB.available_copies - 1)
        )
        if self._execute_update(statement, "Failed to decrement available copies") == 0:
            self._require_book(book_id)
            raise OutOfStockError(f"No copy of book {book_id} is available")

        logger.debug("Decremented available copies of book %s", book_id)

    def increment_available(self, book_id: int) -> bool:
        """
        Put one copy back on the shelf, never exceeding total_copies.

        Returns:
            False if the count was already at total_copies and nothing changed

        Raises:
            NotFoundError: If the book does not exist
        """
        statement = (
            update(BookDB)
            .where(BookDB.id == book_id, BookDB.available_copies < BookDB.total_copies)
            .values(available_copies=BookDB.available_copies + 1)
        )
        if self._execute_update(statement, "Failed to increment available copies") == 0:
            self._require_book(book_id)
            logger.warning(
                "Available copies of book %s already at total; increment skipped", book_id
            )
            return False

        logger.debug("Incremented available copies of book %s", book_id)
        return True

    def resize(self, book_id: int, new_total: int) -> Book:
        """
        Change a book's total copies, keeping the copies on loan out.

        ``available_copies`` becomes ``max(0, available + (new_total - total))``.
        Both columns are set in one statement, so the right-hand sides read the
        values from before the update.

        Raises:
            InvalidInputError: If new_total is negative
            NotFoundError: If the book does not exist
        """
        if new_total < 0:
            raise InvalidInputError("Total copies cannot be negative")

        adjusted = BookDB.available_copies + (new_total - BookDB.total_copies)
        statement = (
            update(BookDB)
            .where(BookDB.id == book_id)
            .values(
                total_copies=new_total,
                available_copies=case((adjusted < 0, 0), else_=adjusted),
            )
        )
        if self._execute_update(statement, "Failed to resize book copies") == 0:
            raise NotFoundError(f"Book {book_id} not found")

        logger.info("Book %s resized to %s total copies", book_id, new_total)
        return self.snapshot(book_id)

    def snapshot(self, book_id: int) -> Book:
        """
        Current copy counts of a book, read fresh from the database.

        Raises:
            NotFoundError: If the book does not exist
        """
        book = safe_query(
            self.session,
            lambda s: s.get(BookDB, book_id, populate_existing=True),
            "Failed to read book copy counts",
        )
        if book is None:
            raise NotFoundError(f"Book {book_id} not found")
        return Book.model_validate(book, from_attributes=True)
