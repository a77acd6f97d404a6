"""User repository: identity and role lookups for authorization checks."""

from pydantic import BaseModel, Field
from sqlalchemy import select

from ..models.user import User as UserModel
from ..models.user import UserRole
from .exceptions import ForbiddenError, NotFoundError
from .repository import BaseRepository
from .schema import User as UserDB
from .session import safe_query


class UserCreateSchema(BaseModel):
    """Schema for registering a user."""

    name: str = Field(..., min_length=1, max_length=200)
    email: str = Field(..., pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    role: UserRole = UserRole.STUDENT
    student_number: str | None = Field(default=None, max_length=50)


class UserRepository(BaseRepository[UserDB, UserCreateSchema, UserModel]):
    """Users and their roles."""

    @property
    def model_class(self) -> type[UserDB]:
        return UserDB

    @property
    def response_schema(self) -> type[UserModel]:
        return UserModel

    def require_admin(self, user_id: int) -> UserModel:
        """
        Get a user that must be an administrator.

        Raises:
            NotFoundError: If the user does not exist
            ForbiddenError: If the user is not an administrator
        """
        user = self.require(user_id)
        if not user.is_admin:
            raise ForbiddenError(f"User {user_id} is not an administrator")
        return user

    def lock(self, user_id: int) -> UserModel:
        """
        Lock the user's row until the current transaction ends.

        Backends with row locks (PostgreSQL, MySQL) serialize concurrent
        transactions that lock the same user. SQLite ignores FOR UPDATE and
        relies on its database-wide write lock instead.

        Raises:
            NotFoundError: If the user does not exist
        """
        query = (
            select(UserDB)
            .where(UserDB.id == user_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        user = safe_query(
            self.session,
            lambda s: s.execute(query).scalar_one_or_none(),
            "Failed to lock user",
        )
        if user is None:
            raise NotFoundError(f"User {user_id} not found")
        return self._to_response_model(user)
