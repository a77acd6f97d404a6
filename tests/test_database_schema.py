"""
Tests for database schema and session management.

These tests verify:
1. Database tables are created correctly
2. Relationships work as expected
3. Constraints are enforced
4. Session management works properly
"""

from datetime import datetime, timedelta

import pytest
from sqlalchemy import inspect, text
from sqlalchemy.exc import IntegrityError

from library_circulation.database import Book, DatabaseManager, Loan, User
from library_circulation.models.loan import LoanStatus
from library_circulation.models.user import UserRole


@pytest.fixture
def db_manager():
    """Create a test database manager with in-memory SQLite."""
    manager = DatabaseManager("sqlite:///:memory:")
    manager.init_database()
    yield manager
    manager.close()


@pytest.fixture
def session(db_manager):
    """Provide a database session for tests."""
    with db_manager.session_scope() as session:
        yield session


@pytest.fixture
def borrower_and_book(session):
    user = User(name="Test Student", email="student@example.com")
    book = Book(title="Germinal", author="Émile Zola", total_copies=2, available_copies=2)
    session.add_all([user, book])
    session.flush()
    return user, book


def make_loan(user, book, status=LoanStatus.PENDING, **overrides):
    now = datetime.now()
    values = {
        "user_id": user.id,
        "book_id": book.id,
        "status": status,
        "requested_at": now,
        "due_at": now + timedelta(days=14),
    }
    values.update(overrides)
    return Loan(**values)


class TestDatabaseSchema:
    """Test database schema creation and basic operations."""

    def test_tables_created(self, session):
        tables = set(inspect(session.bind).get_table_names())

        assert {"users", "books", "loans"} <= tables

    def test_open_loan_index_created(self, session):
        indexes = {index["name"]: index for index in inspect(session.bind).get_indexes("loans")}

        assert indexes["uq_loan_open_user_book"]["unique"]

    def test_defaults(self, session, borrower_and_book):
        user, book = borrower_and_book
        loan = make_loan(user, book)
        session.add(loan)
        session.flush()

        assert user.role == UserRole.STUDENT
        assert loan.status == LoanStatus.PENDING
        assert loan.created_at is not None
        assert loan.returned_at is None

    def test_relationships(self, session, borrower_and_book):
        user, book = borrower_and_book
        loan = make_loan(user, book)
        session.add(loan)
        session.flush()

        assert loan.user is user
        assert loan.book is book
        assert book.loans == [loan]
        assert user.loans == [loan]

    def test_enum_values_are_persisted(self, session, borrower_and_book):
        user, book = borrower_and_book
        session.add(make_loan(user, book, status=LoanStatus.RETURN_REQUESTED))
        session.flush()

        stored = session.execute(text("SELECT status FROM loans")).scalar_one()

        assert stored == "return_requested"

    def test_admin_role(self, session):
        session.add(User(name="Admin", email="admin@example.com", role=UserRole.ADMIN))
        session.flush()

        stored = session.execute(text("SELECT role FROM users")).scalar_one()

        assert stored == "admin"


class TestConstraints:
    def test_available_cannot_exceed_total(self, db_manager):
        with pytest.raises(IntegrityError):
            with db_manager.session_scope() as session:
                session.add(Book(title="Nana", author="Émile Zola", total_copies=1, available_copies=2))

    def test_available_cannot_be_negative(self, db_manager):
        with pytest.raises(IntegrityError):
            with db_manager.session_scope() as session:
                session.add(Book(title="Nana", author="Émile Zola", total_copies=1, available_copies=-1))

    def test_duplicate_email(self, db_manager):
        with pytest.raises(IntegrityError):
            with db_manager.session_scope() as session:
                session.add(User(name="One", email="same@example.com"))
                session.add(User(name="Two", email="same@example.com"))

    def test_one_open_loan_per_user_and_book(self, db_manager):
        with pytest.raises(IntegrityError):
            with db_manager.session_scope() as session:
                user = User(name="Test Student", email="student@example.com")
                book = Book(title="Germinal", author="Émile Zola", total_copies=2, available_copies=2)
                session.add_all([user, book])
                session.flush()
                session.add(make_loan(user, book))
                session.flush()
                session.add(make_loan(user, book, status=LoanStatus.ACTIVE))

    def test_returned_loans_do_not_block_new_ones(self, session, borrower_and_book):
        user, book = borrower_and_book
        session.add(make_loan(user, book, status=LoanStatus.RETURNED, returned_at=datetime.now()))
        session.add(make_loan(user, book, status=LoanStatus.RETURNED, returned_at=datetime.now()))
        session.add(make_loan(user, book))
        session.flush()

        assert session.execute(text("SELECT COUNT(*) FROM loans")).scalar_one() == 3

    def test_due_date_after_request(self, db_manager):
        with pytest.raises(IntegrityError):
            with db_manager.session_scope() as session:
                user = User(name="Test Student", email="student@example.com")
                book = Book(title="Germinal", author="Émile Zola", total_copies=2, available_copies=2)
                session.add_all([user, book])
                session.flush()
                now = datetime.now()
                session.add(make_loan(user, book, requested_at=now, due_at=now - timedelta(days=1)))

    def test_foreign_keys_enforced(self, db_manager):
        with pytest.raises(IntegrityError):
            with db_manager.session_scope() as session:
                now = datetime.now()
                session.add(
                    Loan(
                        user_id=999,
                        book_id=999,
                        requested_at=now,
                        due_at=now + timedelta(days=14),
                    )
                )


class TestSessionManagement:
    def test_session_scope_commit(self, db_manager):
        with db_manager.session_scope() as session:
            session.add(User(name="Kept", email="kept@example.com"))

        with db_manager.session_scope() as session:
            assert session.query(User).filter_by(email="kept@example.com").count() == 1

    def test_session_scope_rollback(self, db_manager):
        with pytest.raises(ValueError):
            with db_manager.session_scope() as session:
                session.add(User(name="Lost", email="lost@example.com"))
                session.flush()
                raise ValueError("abort")

        with db_manager.session_scope() as session:
            assert session.query(User).filter_by(email="lost@example.com").count() == 0

    def test_verify_connection(self, db_manager):
        assert db_manager.verify_connection() is True
