"""
Demo data for the Library Circulation MCP Server.

Users and books are generated with Faker. Loans are not inserted directly:
they are driven through CirculationRepository (request, approve, request
return, validate) so the seeded copy counts obey the same rules as live
traffic.
"""

import logging
import random

from faker import Faker
from sqlalchemy.orm import Session

from ..models.user import UserRole
from .book_repository import BookCreateSchema, BookRepository
from .circulation_repository import CirculationRepository
from .exceptions import ConflictError
from .user_repository import UserCreateSchema, UserRepository

logger = logging.getLogger(__name__)

fake = Faker("fr_FR")


def generate_isbn13() -> str:
    """Generate a valid ISBN-13 number."""
    body = f"978{random.randint(0, 9)}{random.randint(1000, 9999)}{random.randint(1000, 9999)}"
    total = sum(int(digit) * (3 if i % 2 else 1) for i, digit in enumerate(body))
    return f"{body}{(10 - (total % 10)) % 10}"


def seed_users(session: Session, num_students: int = 20, num_admins: int = 2) -> list[int]:
    """Create administrators and students; returns student ids."""
    repo = UserRepository(session)

    for i in range(num_admins):
        repo.create(
            UserCreateSchema(
                name=fake.name(),
                email=f"admin{i + 1}@library.example",
                role=UserRole.ADMIN,
            )
        )

    student_ids = []
    for i in range(num_students):
        student = repo.create(
            UserCreateSchema(
                name=fake.name(),
                email=f"student{i + 1}@univ.example",
                student_number=f"{20240000 + i + 1}",
            )
        )
        student_ids.append(student.id)
    return student_ids


def seed_books(session: Session, num_books: int = 40) -> list[int]:
    """Create catalog books with one to five copies each; returns book ids."""
    repo = BookRepository(session)
    book_ids = []
    for _ in range(num_books):
        isbn = generate_isbn13()
        while repo.get_by_isbn(isbn) is not None:
            isbn = generate_isbn13()
        book = repo.create(
            BookCreateSchema(
                title=fake.catch_phrase(),
                author=fake.name(),
                isbn=isbn,
                total_copies=random.randint(1, 5),
            )
        )
        book_ids.append(book.id)
    return book_ids


def seed_loans(
    session: Session,
    admin_id: int,
    student_ids: list[int],
    book_ids: list[int],
    num_requests: int = 60,
) -> dict[str, int]:
    """
    Drive loans through their lifecycle to a realistic mix of statuses.

    Requests refused by the circulation rules are skipped.
    """
    repo = CirculationRepository(session)
    outcomes = {"pending": 0, "active": 0, "return_requested": 0, "returned": 0, "rejected": 0}

    for _ in range(num_requests):
        student_id = random.choice(student_ids)
        try:
            loan = repo.request_loan(student_id, random.choice(book_ids))
            roll = random.random()
            if roll < 0.2:
                outcomes["pending"] += 1
                continue
            if roll < 0.3:
                repo.reject_loan(loan.id, admin_id)
                outcomes["rejected"] += 1
                continue

            repo.approve_loan(loan.id, admin_id)
            roll = random.random()
            if roll < 0.4:
                outcomes["active"] += 1
                continue

            repo.request_return(loan.id, student_id)
            if roll < 0.6:
                outcomes["return_requested"] += 1
                continue

            repo.validate_return(loan.id, admin_id)
            outcomes["returned"] += 1
        except ConflictError as e:
            logger.debug("Skipped seeded loan: %s", e)

    return outcomes


def seed_database(session: Session, seed: int = 42) -> dict[str, int]:
    """Seed users, books and loans. Returns the loan outcome counts."""
    Faker.seed(seed)
    random.seed(seed)

    student_ids = seed_users(session)
    book_ids = seed_books(session)
    admin_id = UserRepository(session).get_all(order_by="id")[0].id

    outcomes = seed_loans(session, admin_id, student_ids, book_ids)
    logger.info(
        "Seeded %d students, %d books and loans %s", len(student_ids), len(book_ids), outcomes
    )
    return outcomes
