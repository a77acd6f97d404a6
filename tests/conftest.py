"""Test configuration and fixtures for the Library Circulation MCP Server.

1. Isolated test databases - each test gets its own SQLite file
2. Configuration isolation - the global config points at the test directory
3. Handler isolation - tool and resource handlers are pointed at the test session
4. Catalog fixtures - administrators, students and books
"""

from collections.abc import Generator
from contextlib import contextmanager
from datetime import datetime, timedelta
from pathlib import Path

import pytest
from sqlalchemy import create_engine, event, update
from sqlalchemy.orm import Session, sessionmaker

from library_circulation.config import ServerConfig, reset_config
from library_circulation.database.book_repository import BookCreateSchema, BookRepository
from library_circulation.database.circulation_repository import CirculationRepository
from library_circulation.database.schema import Base
from library_circulation.database.schema import Loan as LoanDB
from library_circulation.database.user_repository import UserCreateSchema, UserRepository
from library_circulation.models.user import UserRole

# === Test Database Fixtures ===


@pytest.fixture
def test_db_path(tmp_path: Path) -> Path:
    """Provide a temporary database path for each test."""
    return tmp_path / "test_library.db"


@pytest.fixture
def test_database_url(test_db_path: Path) -> str:
    """Provide a SQLAlchemy database URL for testing."""
    return f"sqlite:///{test_db_path}"


@pytest.fixture
def test_engine(test_database_url: str):
    """Engine with foreign keys enabled and the schema created."""
    engine = create_engine(
        test_database_url,
        echo=False,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):  # noqa: ARG001
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=test_engine)


@pytest.fixture
def test_db_session(session_factory: sessionmaker) -> Generator[Session, None, None]:
    """Provide a SQLAlchemy session for database tests."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


# === Configuration Fixtures ===


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path, monkeypatch) -> Generator[None, None, None]:
    """Keep the global configuration away from the developer's environment."""
    for key in ("MAX_ACTIVE_LOANS", "LOAN_PERIOD_DAYS", "DATABASE_URL"):
        monkeypatch.delenv(f"LIBRARY_CIRCULATION_{key}", raising=False)
    monkeypatch.setenv("LIBRARY_CIRCULATION_DATABASE_PATH", str(tmp_path / "config.db"))
    monkeypatch.setenv("LOGFIRE_ENABLED", "false")
    reset_config()
    yield
    reset_config()


@pytest.fixture
def test_config(test_db_path: Path) -> ServerConfig:
    """Provide a test-specific server configuration."""
    return ServerConfig(
        server_name="test-library-circulation",
        server_version="0.0.1-test",
        database_path=test_db_path,
        debug=True,
        log_level="DEBUG",
    )


# === Handler Isolation ===


@pytest.fixture
def mock_get_session(monkeypatch, test_db_session: Session) -> Session:
    """Point tool handlers at the test session instead of the global manager."""

    @contextmanager
    def _get_session():
        yield test_db_session

    monkeypatch.setattr("library_circulation.tools.circulation.get_session", _get_session)
    return test_db_session


@pytest.fixture
def mock_session_scope(monkeypatch, test_db_session: Session) -> Session:
    """Point resource handlers at the test session."""

    @contextmanager
    def _session_scope():
        try:
            yield test_db_session
            test_db_session.commit()
        except Exception:
            test_db_session.rollback()
            raise

    monkeypatch.setattr("library_circulation.resources.loans.session_scope", _session_scope)
    monkeypatch.setattr("library_circulation.resources.books.session_scope", _session_scope)
    return test_db_session


# === Library Data Fixtures ===


@pytest.fixture
def admin(test_db_session):
    return UserRepository(test_db_session).create(
        UserCreateSchema(name="Alice Admin", email="alice@library.example", role=UserRole.ADMIN)
    )


@pytest.fixture
def student(test_db_session):
    return UserRepository(test_db_session).create(
        UserCreateSchema(name="Sam Student", email="sam@univ.example", student_number="20240001")
    )


@pytest.fixture
def other_student(test_db_session):
    return UserRepository(test_db_session).create(
        UserCreateSchema(name="Olive Other", email="olive@univ.example", student_number="20240002")
    )


@pytest.fixture
def book(test_db_session):
    """A book with three copies, all on the shelf."""
    return BookRepository(test_db_session).create(
        BookCreateSchema(title="Les Misérables", author="Victor Hugo", total_copies=3)
    )


@pytest.fixture
def single_copy_book(test_db_session):
    return BookRepository(test_db_session).create(
        BookCreateSchema(title="Le Petit Prince", author="Antoine de Saint-Exupéry", total_copies=1)
    )


@pytest.fixture
def make_books(test_db_session):
    """Factory creating ``count`` single-copy books."""

    def _make(count: int):
        repo = BookRepository(test_db_session)
        return [
            repo.create(BookCreateSchema(title=f"Volume {i + 1}", author="Honoré de Balzac"))
            for i in range(count)
        ]

    return _make


@pytest.fixture
def circulation(test_db_session) -> CirculationRepository:
    return CirculationRepository(test_db_session, max_active_loans=5, loan_period_days=14)


@pytest.fixture
def backdate(test_db_session):
    """Move a loan's request and due dates into the past."""

    def _backdate(loan_id: int, days: int = 30):
        requested = datetime.now() - timedelta(days=days)
        test_db_session.execute(
            update(LoanDB)
            .where(LoanDB.id == loan_id)
            .values(requested_at=requested, due_at=requested + timedelta(days=14))
        )
        test_db_session.commit()

    return _backdate
