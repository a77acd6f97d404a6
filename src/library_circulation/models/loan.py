"""
Loan models and the loan lifecycle state machine.

A loan moves through a closed set of statuses:

    pending --approve--> active --request_return--> return_requested
    pending --reject---> (deleted)
    return_requested --validate_return--> returned
    return_requested --reject_return----> active
    active --mark_overdue--> overdue --request_return--> return_requested

``next_status`` is the single definition of which transitions are legal.
The repository layer derives the source statuses of its conditional updates
from it, so the state machine and the SQL guards cannot drift apart.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class LoanStatus(str, Enum):
    """Status of a loan."""

    PENDING = "pending"
    ACTIVE = "active"
    RETURN_REQUESTED = "return_requested"
    RETURNED = "returned"
    OVERDUE = "overdue"


class LoanAction(str, Enum):
    """Actions that move an existing loan between statuses."""

    APPROVE = "approve"
    REJECT = "reject"
    REQUEST_RETURN = "request_return"
    VALIDATE_RETURN = "validate_return"
    REJECT_RETURN = "reject_return"
    MARK_OVERDUE = "mark_overdue"


# A user may hold at most one loan per book in these statuses.
OPEN_STATUSES: frozenset[LoanStatus] = frozenset(
    {LoanStatus.PENDING, LoanStatus.ACTIVE, LoanStatus.RETURN_REQUESTED, LoanStatus.OVERDUE}
)

# Loans holding a physical copy count against the per-user limit.
LIMIT_STATUSES: frozenset[LoanStatus] = frozenset({LoanStatus.ACTIVE, LoanStatus.OVERDUE})


class IllegalTransitionError(ValueError):
    """Raised when an action is not allowed from the loan's current status."""

    def __init__(self, current: LoanStatus, action: LoanAction):
        self.current = current
        self.action = action
        super().__init__(f"Cannot {action.value} a loan that is {current.value}")


def next_status(current: LoanStatus, action: LoanAction) -> LoanStatus | None:
    """
    Return the status a loan moves to when ``action`` is applied.

    ``None`` means the loan is removed (a rejected request leaves no record).

    Raises:
        IllegalTransitionError: If the action is not allowed from ``current``
    """
    match (current, action):
        case (LoanStatus.PENDING, LoanAction.APPROVE):
            return LoanStatus.ACTIVE
        case (LoanStatus.PENDING, LoanAction.REJECT):
            return None
        case (LoanStatus.ACTIVE | LoanStatus.OVERDUE, LoanAction.REQUEST_RETURN):
            return LoanStatus.RETURN_REQUESTED
        case (LoanStatus.RETURN_REQUESTED, LoanAction.VALIDATE_RETURN):
            return LoanStatus.RETURNED
        case (LoanStatus.RETURN_REQUESTED, LoanAction.REJECT_RETURN):
            return LoanStatus.ACTIVE
        case (LoanStatus.ACTIVE, LoanAction.MARK_OVERDUE):
            return LoanStatus.OVERDUE
        case _:
            raise IllegalTransitionError(current, action)


def can_apply(current: LoanStatus, action: LoanAction) -> bool:
    """Check whether ``action`` is legal from ``current`` without raising."""
    try:
        next_status(current, action)
    except IllegalTransitionError:
        return False
    return True


def source_statuses(action: LoanAction) -> frozenset[LoanStatus]:
    """All statuses from which ``action`` is legal."""
    return frozenset(status for status in LoanStatus if can_apply(status, action))


class Loan(BaseModel):
    """
    A loan of one copy of a book to one user.

    Returned by every circulation tool and resource. ``book_title`` and
    ``book_author`` are filled in from the catalog for listings.
    """

    id: int = Field(..., description="Loan identifier", examples=[1, 42])

    user_id: int = Field(..., description="ID of the borrowing user")

    book_id: int = Field(..., description="ID of the borrowed book")

    status: LoanStatus = Field(..., description="Current lifecycle status")

    requested_at: datetime = Field(..., description="When the loan was requested")

    due_at: datetime = Field(..., description="When the book is due back")

    returned_at: datetime | None = Field(
        default=None,
        description="When the return was validated by an administrator",
    )

    created_at: datetime | None = Field(default=None, description="Creation timestamp")

    updated_at: datetime | None = Field(default=None, description="Last status change")

    book_title: str | None = Field(default=None, description="Title of the borrowed book")

    book_author: str | None = Field(default=None, description="Author of the borrowed book")

    model_config = ConfigDict(
        use_enum_values=False,
        json_schema_extra={
            "example": {
                "id": 1,
                "user_id": 3,
                "book_id": 7,
                "status": "pending",
                "requested_at": "2024-03-01T10:00:00",
                "due_at": "2024-03-15T10:00:00",
                "returned_at": None,
                "book_title": "Les Misérables",
                "book_author": "Victor Hugo",
            }
        },
    )
