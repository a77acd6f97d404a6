"""
Repository pattern implementation for the Library Circulation MCP Server.

Tool and resource handlers never touch SQLAlchemy directly. They call
repositories, which:

1. Return Pydantic models that serialize cleanly into MCP responses
2. Raise the exceptions from ``exceptions`` with a status class attached
3. Own transaction boundaries, so each public write method is atomic

The base repository provides the lookups and creation shared by the catalog
and user collaborators; the circulation repository builds the loan lifecycle
on top of them.
"""

from abc import ABC, abstractmethod
from typing import Generic, TypeVar

from pydantic import BaseModel
from sqlalchemy import asc, desc, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .exceptions import (
    BookUnavailableError,
    ConflictError,
    DuplicateError,
    DuplicateLoanError,
    ForbiddenError,
    InvalidInputError,
    InvalidStateError,
    LoanLimitExceededError,
    NotFoundError,
    OutOfStockError,
    RepositoryException,
)
from .schema import Base
from .session import safe_commit, safe_query

ModelType = TypeVar("ModelType", bound=Base)
CreateSchemaType = TypeVar("CreateSchemaType", bound=BaseModel)
ResponseSchemaType = TypeVar("ResponseSchemaType", bound=BaseModel)


class BaseRepository(ABC, Generic[ModelType, CreateSchemaType, ResponseSchemaType]):
    """
    Abstract base repository providing lookups and creation.

    All queries go through ``safe_query`` and all commits through
    ``safe_commit`` so database failures surface as RepositoryException.
    """

    def __init__(self, session: Session):
        """Initialize repository with database session."""
        self.session = session

    @property
    @abstractmethod
    def model_class(self) -> type[ModelType]:
        """Return the SQLAlchemy model class."""

    @property
    @abstractmethod
    def response_schema(self) -> type[ResponseSchemaType]:
        """Return the Pydantic response schema."""

    @property
    def entity_name(self) -> str:
        return self.model_class.__name__

    def _to_response_model(self, db_obj: ModelType) -> ResponseSchemaType:
        """Convert database model to Pydantic response model."""
        return self.response_schema.model_validate(db_obj, from_attributes=True)

    def _get_db_object(self, id: int) -> ModelType | None:
        # The ledger writes with Core UPDATEs that bypass the identity map,
        # and sessions keep objects across commits, so always re-read the row.
        return safe_query(
            self.session,
            lambda s: s.get(self.model_class, id, populate_existing=True),
            f"Failed to get {self.entity_name} by ID",
        )

    def get_by_id(self, id: int) -> ResponseSchemaType | None:
        """
        Get entity by ID.

        Returns:
            Pydantic model or None if not found

        Raises:
            RepositoryException: On database errors
        """
        db_obj = self._get_db_object(id)
        if db_obj is None:
            return None
        return self._to_response_model(db_obj)

    def require(self, id: int) -> ResponseSchemaType:
        """
        Get entity by ID or fail.

        Raises:
            NotFoundError: If no entity has this ID
        """
        entity = self.get_by_id(id)
        if entity is None:
            raise NotFoundError(f"{self.entity_name} {id} not found")
        return entity

    def get_all(self, order_by: str | None = None, order_desc: bool = False) -> list[ResponseSchemaType]:
        """
        Get all entities with optional sorting.

        Args:
            order_by: Field name to order by
            order_desc: Whether to order descending
        """
        query = select(self.model_class).execution_options(populate_existing=True)

        if order_by and hasattr(self.model_class, order_by):
            order_field = getattr(self.model_class, order_by)
            query = query.order_by(desc(order_field) if order_desc else asc(order_field))

        results = safe_query(
            self.session, lambda s: s.execute(query).scalars().all(), "Failed to get all results"
        )
        return [self._to_response_model(item) for item in results]

    def create(self, data: CreateSchemaType) -> ResponseSchemaType:
        """
        Create new entity.

        Raises:
            DuplicateError: If a unique column already holds this value
            RepositoryException: On other database errors
        """
        db_obj = self.model_class(**self._create_values(data))
        self.session.add(db_obj)
        try:
            safe_commit(self.session, f"create {self.entity_name}")
        except IntegrityError as e:
            raise DuplicateError(f"{self.entity_name} already exists: {e.orig}") from e
        self.session.refresh(db_obj)
        return self._to_response_model(db_obj)

    def _create_values(self, data: CreateSchemaType) -> dict:
        """Column values for a new row; subclasses derive extra columns here."""
        return data.model_dump()


__all__ = [
    "BaseRepository",
    "BookUnavailableError",
    "ConflictError",
    "DuplicateError",
    "DuplicateLoanError",
    "ForbiddenError",
    "InvalidInputError",
    "InvalidStateError",
    "LoanLimitExceededError",
    "NotFoundError",
    "OutOfStockError",
    "RepositoryException",
]
