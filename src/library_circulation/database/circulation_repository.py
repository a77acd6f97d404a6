"""
Circulation repository: the loan service of the Library Circulation MCP Server.

Every public write method is one database transaction. It commits when the
whole operation succeeded and rolls back everything otherwise, so a loan can
never be ``active`` without its copy having left the shelf, or ``returned``
without the copy coming back.

Status changes are conditional UPDATEs scoped by loan id *and* the statuses
the action is legal from (see ``models.loan.source_statuses``). If another
request changed the loan first, the update matches no row and the caller gets
InvalidStateError instead of overwriting the newer state.

Note: this project uses local time for all timestamps.
"""

import logging
from collections.abc import Generator
from contextlib import contextmanager
from datetime import datetime, timedelta

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from ..config import get_config
from ..models.book import Book as BookModel
from ..models.loan import (
    LIMIT_STATUSES,
    OPEN_STATUSES,
    LoanAction,
    LoanStatus,
    next_status,
    source_statuses,
)
from ..models.loan import Loan as LoanModel
from .book_repository import BookRepository
from .exceptions import (
    BookUnavailableError,
    DuplicateLoanError,
    ForbiddenError,
    InvalidStateError,
    LoanLimitExceededError,
)
from .inventory_ledger import InventoryLedger
from .schema import Loan as LoanDB
from .session import safe_commit, safe_query
from .user_repository import UserRepository

logger = logging.getLogger(__name__)


def _target_status(action: LoanAction) -> LoanStatus | None:
    """Status every legal source moves to; each action has a single target."""
    targets = {next_status(source, action) for source in source_statuses(action)}
    (target,) = targets
    return target


class CirculationRepository:
    """
    Loan lifecycle operations.

    Students request loans and returns; administrators approve, reject,
    validate and mark overdue. Role and ownership are checked against the
    ``actor_id`` passed by the caller.
    """

    def __init__(
        self,
        session: Session,
        max_active_loans: int | None = None,
        loan_period_days: int | None = None,
    ):
        self.session = session
        if max_active_loans is None:
            max_active_loans = get_config().max_active_loans
        if loan_period_days is None:
            loan_period_days = get_config().loan_period_days
        self.max_active_loans = max_active_loans
        self.loan_period = timedelta(days=loan_period_days)

        self.users = UserRepository(session)
        self.books = BookRepository(session)
        self.ledger = InventoryLedger(session)

    @contextmanager
    def _transaction(self, operation: str) -> Generator[None, None, None]:
        try:
            yield
            safe_commit(self.session, operation)
        except Exception:
            self.session.rollback()
            raise

    # =========================================================================
    # STUDENT OPERATIONS
    # =========================================================================

    def request_loan(self, user_id: int, book_id: int) -> LoanModel:
        """
        Create a pending loan request.

        No copy leaves the shelf yet; that happens on approval.

        Raises:
            NotFoundError: If the user or the book does not exist
            BookUnavailableError: If no copy is on the shelf right now
            DuplicateLoanError: If the user already has an open loan for the book
            LoanLimitExceededError: If the user already holds the maximum of loans
        """
        try:
            with self._transaction("request loan"):
                self.users.require(user_id)
                book = self.books.require(book_id)

                if book.available_copies <= 0:
                    raise BookUnavailableError(f"No copy of '{book.title}' is available")

                if self._has_open_loan(user_id, book_id):
                    raise DuplicateLoanError(
                        f"User {user_id} already has an open loan for '{book.title}'"
                    )

                if self.count_limit_loans(user_id) >= self.max_active_loans:
                    raise LoanLimitExceededError(
                        f"User {user_id} has reached the limit of {self.max_active_loans} loans"
                    )

                now = datetime.now()
                loan = LoanDB(
                    user_id=user_id,
                    book_id=book_id,
                    status=LoanStatus.PENDING,
                    requested_at=now,
                    due_at=now + self.loan_period,
                    created_at=now,
                    updated_at=now,
                )
                self.session.add(loan)
        except IntegrityError as e:
            # Lost a race with a concurrent request for the same book
            raise DuplicateLoanError(
                f"User {user_id} already has an open loan for book {book_id}"
            ) from e

        self.session.refresh(loan)
        logger.info("Loan %s requested by user %s for book %s", loan.id, user_id, book_id)
        return self._to_model(loan)

    def request_return(self, loan_id: int, actor_id: int) -> LoanModel:
        """
        Ask for a loan to be checked back in. Only the borrower may do this.

        Raises:
            NotFoundError: If the actor does not exist
            ForbiddenError: If the loan belongs to another user
            InvalidStateError: If the loan does not exist or is not active/overdue
        """
        with self._transaction("request return"):
            self.users.require(actor_id)
            if not self._apply(loan_id, LoanAction.REQUEST_RETURN, LoanDB.user_id == actor_id):
                existing = self.get_loan(loan_id)
                if existing is not None and existing.user_id != actor_id:
                    raise ForbiddenError(f"Loan {loan_id} belongs to another user")
                raise InvalidStateError(f"Loan {loan_id} not found or not currently borrowed")
            loan = self._reload(loan_id)

        logger.info("Return requested for loan %s", loan_id)
        return self._to_model(loan)

    # =========================================================================
    # ADMINISTRATOR OPERATIONS
    # =========================================================================

    def approve_loan(self, loan_id: int, actor_id: int) -> LoanModel:
        """
        Approve a pending loan and take its copy off the shelf, atomically.

        The borrower's limit is checked again here: several pending requests
        may have been accepted while the user was under the limit. The
        borrower's row is locked before counting, so two approvals for the
        same user run one after the other and the second one sees the first
        one's active loan.

        Raises:
            ForbiddenError: If the actor is not an administrator
            InvalidStateError: If the loan does not exist or is not pending
            LoanLimitExceededError: If approving would exceed the borrower's limit
            OutOfStockError: If no copy is left
        """
        with self._transaction("approve loan"):
            self.users.require_admin(actor_id)
            if not self._apply(loan_id, LoanAction.APPROVE):
                raise InvalidStateError(f"Loan {loan_id} not found or not pending")

            loan = self._reload(loan_id)
            self.users.lock(loan.user_id)
            if self.count_limit_loans(loan.user_id) > self.max_active_loans:
                raise LoanLimitExceededError(
                    f"User {loan.user_id} has reached the limit of {self.max_active_loans} loans"
                )
            self.ledger.decrement_available(loan.book_id)

        logger.info("Loan %s approved by admin %s", loan_id, actor_id)
        return self._to_model(loan)

    def reject_loan(self, loan_id: int, actor_id: int) -> LoanModel:
        """
        Reject a pending loan. The request is deleted; inventory is untouched.

        Returns:
            The loan as it was just before deletion

        Raises:
            ForbiddenError: If the actor is not an administrator
            InvalidStateError: If the loan does not exist or is not pending
        """
        with self._transaction("reject loan"):
            self.users.require_admin(actor_id)
            existing = self._get_loan(loan_id)
            if existing is None:
                raise InvalidStateError(f"Loan {loan_id} not found or not pending")
            snapshot = self._to_model(existing)

            sources = list(source_statuses(LoanAction.REJECT))
            statement = delete(LoanDB).where(LoanDB.id == loan_id, LoanDB.status.in_(sources))
            if self._execute(statement, "Failed to reject loan") == 0:
                raise InvalidStateError(f"Loan {loan_id} not found or not pending")
            self.session.expunge(existing)

        logger.info("Loan %s rejected by admin %s", loan_id, actor_id)
        return snapshot

    def validate_return(self, loan_id: int, actor_id: int) -> LoanModel:
        """
        Confirm a returned copy and put it back on the shelf, atomically.

        Raises:
            ForbiddenError: If the actor is not an administrator
            InvalidStateError: If the loan does not exist or no return was requested
        """
        with self._transaction("validate return"):
            self.users.require_admin(actor_id)
            now = datetime.now()
            if not self._apply(loan_id, LoanAction.VALIDATE_RETURN, returned_at=now):
                raise InvalidStateError(f"Loan {loan_id} not found or no return requested")

            loan = self._reload(loan_id)
            self.ledger.increment_available(loan.book_id)

        logger.info("Return of loan %s validated by admin %s", loan_id, actor_id)
        return self._to_model(loan)

    def reject_return(self, loan_id: int, actor_id: int) -> LoanModel:
        """
        Refuse a return request; the loan goes back to active.

        Raises:
            ForbiddenError: If the actor is not an administrator
            InvalidStateError: If the loan does not exist or no return was requested
        """
        with self._transaction("reject return"):
            self.users.require_admin(actor_id)
            if not self._apply(loan_id, LoanAction.REJECT_RETURN):
                raise InvalidStateError(f"Loan {loan_id} not found or no return requested")
            loan = self._reload(loan_id)

        logger.info("Return of loan %s rejected by admin %s", loan_id, actor_id)
        return self._to_model(loan)

    def mark_overdue(self, loan_id: int, actor_id: int) -> LoanModel:
        """
        Flag an active loan whose due date has passed.

        Raises:
            ForbiddenError: If the actor is not an administrator
            InvalidStateError: If the loan does not exist, is not active or is not yet due
        """
        with self._transaction("mark overdue"):
            self.users.require_admin(actor_id)
            if not self._apply(loan_id, LoanAction.MARK_OVERDUE, LoanDB.due_at < datetime.now()):
                raise InvalidStateError(f"Loan {loan_id} not found, not active or not yet due")
            loan = self._reload(loan_id)

        logger.info("Loan %s marked overdue by admin %s", loan_id, actor_id)
        return self._to_model(loan)

    def mark_overdue_loans(self) -> int:
        """
        Mark every active loan past its due date as overdue.

        Meant for an external periodic trigger (see scripts/mark_overdue_loans.py).

        Returns:
            Number of loans marked
        """
        now = datetime.now()
        statement = (
            update(LoanDB)
            .where(
                LoanDB.status.in_(list(source_statuses(LoanAction.MARK_OVERDUE))),
                LoanDB.due_at < now,
            )
            .values(status=_target_status(LoanAction.MARK_OVERDUE), updated_at=now)
        )
        with self._transaction("mark overdue loans"):
            count = self._execute(statement, "Failed to mark overdue loans")

        logger.info("Marked %d loans overdue", count)
        return count

    def update_book_copies(self, book_id: int, total_copies: int, actor_id: int) -> BookModel:
        """
        Change how many copies of a book the library owns.

        Raises:
            ForbiddenError: If the actor is not an administrator
            NotFoundError: If the book does not exist
            InvalidInputError: If total_copies is negative
        """
        self.users.require_admin(actor_id)
        return self.books.update_total_copies(book_id, total_copies)

    # =========================================================================
    # READ OPERATIONS
    # =========================================================================

    def get_loan(self, loan_id: int) -> LoanModel | None:
        loan = self._get_loan(loan_id)
        return self._to_model(loan) if loan else None

    def list_pending(self, actor_id: int) -> list[LoanModel]:
        """Pending requests awaiting a decision, newest first (administrators only)."""
        self.users.require_admin(actor_id)
        return self._list(
            LoanDB.status == LoanStatus.PENDING,
            order_by=(LoanDB.created_at.desc(), LoanDB.id.desc()),
        )

    def list_return_requests(self, actor_id: int) -> list[LoanModel]:
        """Return requests awaiting validation, most recently requested first."""
        self.users.require_admin(actor_id)
        return self._list(
            LoanDB.status == LoanStatus.RETURN_REQUESTED,
            order_by=(LoanDB.updated_at.desc(), LoanDB.id.desc()),
        )

    def list_loans(self, actor_id: int, status: LoanStatus | None = None) -> list[LoanModel]:
        """Every loan, optionally filtered by status, newest first (administrators only)."""
        self.users.require_admin(actor_id)
        conditions = [LoanDB.status == status] if status is not None else []
        return self._list(*conditions, order_by=(LoanDB.created_at.desc(), LoanDB.id.desc()))

    def list_user_loans(self, user_id: int) -> list[LoanModel]:
        """All loans of a user in every status, newest first."""
        self.users.require(user_id)
        return self._list(
            LoanDB.user_id == user_id,
            order_by=(LoanDB.created_at.desc(), LoanDB.id.desc()),
        )

    def count_limit_loans(self, user_id: int) -> int:
        """Loans of the user that count against the borrowing limit."""
        query = (
            select(func.count())
            .select_from(LoanDB)
            .where(LoanDB.user_id == user_id, LoanDB.status.in_(list(LIMIT_STATUSES)))
        )
        return safe_query(self.session, lambda s: s.execute(query).scalar(), "Failed to count loans")

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _has_open_loan(self, user_id: int, book_id: int) -> bool:
        query = (
            select(func.count())
            .select_from(LoanDB)
            .where(
                LoanDB.user_id == user_id,
                LoanDB.book_id == book_id,
                LoanDB.status.in_(list(OPEN_STATUSES)),
            )
        )
        count = safe_query(self.session, lambda s: s.execute(query).scalar(), "Failed to check open loans")
        return count > 0

    def _apply(self, loan_id: int, action: LoanAction, *conditions, **values) -> bool:
        """
        Conditionally move a loan to the status ``action`` leads to.

        Returns:
            False if the loan does not exist or is not in a legal source status
        """
        statement = (
            update(LoanDB)
            .where(
                LoanDB.id == loan_id,
                LoanDB.status.in_(list(source_statuses(action))),
                *conditions,
            )
            .values(status=_target_status(action), updated_at=datetime.now(), **values)
        )
        return self._execute(statement, f"Failed to {action.value} loan") == 1

    def _execute(self, statement, error_msg: str) -> int:
        result = safe_query(
            self.session,
            lambda s: s.execute(statement.execution_options(synchronize_session=False)),
            error_msg,
        )
        return result.rowcount

    def _get_loan(self, loan_id: int) -> LoanDB | None:
        return safe_query(
            self.session,
            lambda s: s.get(LoanDB, loan_id, populate_existing=True),
            "Failed to get loan",
        )

    def _reload(self, loan_id: int) -> LoanDB:
        loan = self._get_loan(loan_id)
        if loan is None:
            raise InvalidStateError(f"Loan {loan_id} not found")
        return loan

    def _list(self, *conditions, order_by) -> list[LoanModel]:
        query = (
            select(LoanDB)
            .options(joinedload(LoanDB.book))
            .where(*conditions)
            .order_by(*order_by)
            .execution_options(populate_existing=True)
        )
        loans = safe_query(
            self.session,
            lambda s: s.execute(query).scalars().all(),
            "Failed to list loans",
        )
        return [self._to_model(loan) for loan in loans]

    def _to_model(self, loan: LoanDB) -> LoanModel:
        model = LoanModel.model_validate(loan, from_attributes=True)
        if loan.book is not None:
            model = model.model_copy(
                update={"book_title": loan.book.title, "book_author": loan.book.author}
            )
        return model
