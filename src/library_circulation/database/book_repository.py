"""
Book repository: the catalog collaborator of the circulation server.

Circulation needs three things from the catalog: does a book exist, how many
copies are on the shelf, and (for administrators) a way to change how many
copies the library owns. Copy-count writes are delegated to the inventory
ledger so there is exactly one code path that touches them.

Note: this project uses local time for all timestamps, matching the opening
hours and due dates a library desk works with.
"""

from pydantic import BaseModel, Field
from sqlalchemy import select

from ..models.book import Book as BookModel
from .inventory_ledger import InventoryLedger
from .repository import BaseRepository
from .schema import Book as BookDB
from .session import safe_commit, safe_query


class BookCreateSchema(BaseModel):
    """Schema for adding a book to the catalog. All copies start on the shelf."""

    title: str = Field(..., min_length=1, max_length=500)
    author: str = Field(..., min_length=1, max_length=200)
    isbn: str | None = Field(default=None, pattern=r"^\d{13}$")
    total_copies: int = Field(default=1, ge=1)


class BookRepository(BaseRepository[BookDB, BookCreateSchema, BookModel]):
    """Catalog lookups plus the administrator's copy-count edit."""

    @property
    def model_class(self) -> type[BookDB]:
        return BookDB

    @property
    def response_schema(self) -> type[BookModel]:
        return BookModel

    def _create_values(self, data: BookCreateSchema) -> dict:
        values = data.model_dump()
        values["available_copies"] = data.total_copies
        return values

    def get_by_isbn(self, isbn: str) -> BookModel | None:
        """Get a book by ISBN."""
        query = (
            select(BookDB).where(BookDB.isbn == isbn).execution_options(populate_existing=True)
        )
        book = safe_query(
            self.session,
            lambda s: s.execute(query).scalar_one_or_none(),
            "Failed to get book by ISBN",
        )
        return self._to_response_model(book) if book else None

    def update_total_copies(self, book_id: int, new_total: int) -> BookModel:
        """
        Change how many copies the library owns, in its own transaction.

        Copies currently on loan stay on loan: the available count moves by
        the same amount as the total, floored at zero.

        Raises:
            InvalidInputError: If new_total is negative
            NotFoundError: If the book does not exist
        """
        try:
            book = InventoryLedger(self.session).resize(book_id, new_total)
            safe_commit(self.session, "update book copies")
        except Exception:
            self.session.rollback()
            raise
        return book
