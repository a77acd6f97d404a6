"""
Book model for the Library Circulation MCP Server.

The catalog owns books; circulation only reads them and changes
``available_copies`` through the inventory ledger.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Book(BaseModel):
    """A catalog entry with its copy counts."""

    id: int = Field(..., description="Book identifier", examples=[1, 7])

    title: str = Field(
        ...,
        description="Title of the book",
        min_length=1,
        max_length=500,
        examples=["Les Misérables", "Le Petit Prince"],
    )

    author: str = Field(
        ...,
        description="Author name as printed on the book",
        min_length=1,
        max_length=200,
        examples=["Victor Hugo", "Antoine de Saint-Exupéry"],
    )

    isbn: str | None = Field(
        default=None,
        description="ISBN-13 of the edition held by the library",
        pattern=r"^\d{13}$",
    )

    total_copies: int = Field(..., description="Copies owned by the library", ge=0)

    available_copies: int = Field(..., description="Copies on the shelf right now", ge=0)

    created_at: datetime | None = Field(default=None, description="Creation timestamp")

    updated_at: datetime | None = Field(default=None, description="Last update timestamp")

    @model_validator(mode="after")
    def validate_copies(self) -> "Book":
        """Ensure available copies don't exceed total copies."""
        if self.available_copies > self.total_copies:
            raise ValueError(
                f"Available copies ({self.available_copies}) cannot exceed "
                f"total copies ({self.total_copies})"
            )
        return self

    @property
    def is_available(self) -> bool:
        return self.available_copies > 0

    @property
    def copies_on_loan(self) -> int:
        return self.total_copies - self.available_copies

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": 7,
                "title": "Les Misérables",
                "author": "Victor Hugo",
                "isbn": "9782070409228",
                "total_copies": 3,
                "available_copies": 2,
            }
        }
    )
