"""User model for the Library Circulation MCP Server."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class UserRole(str, Enum):
    """Role of a library user."""

    STUDENT = "student"
    ADMIN = "admin"


class User(BaseModel):
    """A library member. Students borrow books, administrators run the desk."""

    id: int = Field(..., description="User identifier")

    name: str = Field(..., description="Full name", min_length=1, max_length=200)

    email: str = Field(
        ...,
        description="Contact email, unique per user",
        pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$",
        examples=["marie.curie@univ.example"],
    )

    role: UserRole = Field(default=UserRole.STUDENT, description="Access role")

    student_number: str | None = Field(
        default=None,
        description="Student card number",
        max_length=50,
    )

    created_at: datetime | None = Field(default=None, description="Creation timestamp")

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
