"""
SQLAlchemy database schema for the Library Circulation MCP Server.

Three tables back the server:
1. users - borrowers and administrators
2. books - the catalog with its copy counts (the inventory ledger's rows)
3. loans - one row per loan, carrying its lifecycle status

Copy-count bounds and the one-open-loan-per-book rule are enforced here as
well as in the repositories, so a bug above the storage layer cannot leave the
tables inconsistent.
"""

from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    text,
)
from sqlalchemy.orm import declarative_base, relationship

from ..models.loan import OPEN_STATUSES, LoanStatus
from ..models.user import UserRole

Base = declarative_base()


def _enum_values(enum_cls) -> list[str]:
    """Persist enum values ("return_requested") rather than member names."""
    return [member.value for member in enum_cls]


_OPEN_STATUS_SQL = ", ".join(f"'{status.value}'" for status in sorted(OPEN_STATUSES))
OPEN_LOAN_PREDICATE = text(f"status IN ({_OPEN_STATUS_SQL})")


class User(Base):
    """
    Users table - students and administrators.

    MCP Usage:
    - Resource: library://users/{user_id}/loans
    - Tools: every tool takes the caller's id as ``actor_id``
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    student_number = Column(String(50), nullable=True)
    role = Column(
        Enum(UserRole, values_callable=_enum_values, name="user_role"),
        nullable=False,
        default=UserRole.STUDENT,
    )

    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)

    loans = relationship("Loan", back_populates="user")

    __table_args__ = (Index("idx_user_role", "role"),)


class Book(Base):
    """
    Books table - the catalog and its copy counts.

    ``available_copies`` is only ever written by the inventory ledger with
    conditional updates; the check constraints are the last line of defence.
    """

    __tablename__ = "books"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(500), nullable=False, index=True)
    author = Column(String(200), nullable=False)
    isbn = Column(String(13), nullable=True, unique=True)
    total_copies = Column(Integer, nullable=False, default=1)
    available_copies = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)

    loans = relationship("Loan", back_populates="book")

    __table_args__ = (
        Index("idx_book_availability", "available_copies"),
        CheckConstraint("available_copies >= 0", name="check_available_copies_non_negative"),
        CheckConstraint(
            "available_copies <= total_copies", name="check_available_not_exceed_total"
        ),
        CheckConstraint("total_copies >= 0", name="check_total_copies_non_negative"),
    )


class Loan(Base):
    """
    Loans table - one row per loan request.

    Rows are deleted only when a pending request is rejected; returned loans
    stay forever as history.
    """

    __tablename__ = "loans"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    book_id = Column(Integer, ForeignKey("books.id"), nullable=False)
    status = Column(
        Enum(LoanStatus, values_callable=_enum_values, name="loan_status"),
        nullable=False,
        default=LoanStatus.PENDING,
    )
    requested_at = Column(DateTime, nullable=False, default=datetime.now)
    due_at = Column(DateTime, nullable=False)
    returned_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)

    user = relationship("User", back_populates="loans")
    book = relationship("Book", back_populates="loans")

    __table_args__ = (
        Index("idx_loan_user_status", "user_id", "status"),
        Index("idx_loan_book", "book_id"),
        Index("idx_loan_status_due", "status", "due_at"),
        # At most one open loan per (user, book)
        Index(
            "uq_loan_open_user_book",
            "user_id",
            "book_id",
            unique=True,
            sqlite_where=OPEN_LOAN_PREDICATE,
            postgresql_where=OPEN_LOAN_PREDICATE,
        ),
        CheckConstraint("due_at >= requested_at", name="check_due_after_request"),
    )
