"""
User service.

Caller intents behind the interactive user manager: list, add, update,
remove and search users. Input is validated with pydantic before it is
turned into a change set, so a bad e-mail or a negative age never reaches
the store.
"""

from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field, ValidationError, field_validator

from querylab.core.constants import ENTITY_USER
from querylab.core.errors import ConfigurationError
from querylab.core.logging import get_logger
from querylab.repositories.base import Record
from querylab.repositories.predicates import Predicates, and_
from querylab.repositories.queries import asc
from querylab.services.data_access import DataAccessService

logger = get_logger(__name__)


# ========================================
# Input Models
# ========================================

def _check_username(v: str) -> str:
    if not v.strip():
        raise ValueError("username cannot be blank")
    if not v.isascii():
        raise ValueError("username must be ASCII")
    return v


class NewUser(BaseModel):
    """Validated input for a new user."""

    email: EmailStr
    username: str = Field(min_length=1, max_length=255)
    age: int = Field(default=0, ge=0)

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str) -> str:
        """Usernames are non-blank ASCII."""
        return _check_username(v)


class UserChanges(BaseModel):
    """Validated partial update; None means "leave unchanged"."""

    email: Optional[EmailStr] = None
    username: Optional[str] = Field(default=None, min_length=1, max_length=255)
    age: Optional[int] = Field(default=None, ge=0)

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: Optional[str]) -> Optional[str]:
        return v if v is None else _check_username(v)


def _validated(model: type, **data) -> BaseModel:
    try:
        return model(**data)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        raise ConfigurationError(f"Invalid user input: {problems}") from exc


# ========================================
# Service
# ========================================

class UserService:
    """
    User management on top of the data-access facade.

    Args:
        data: DataAccessService bound to a store
    """

    def __init__(self, data: DataAccessService):
        self.data = data
        self.where = Predicates(ENTITY_USER, data.registry)

    def list_users(self) -> List[Record]:
        """All users ordered by id."""
        return self.data.find(ENTITY_USER, order_by=asc("id"))

    def get_user(self, user_id: int) -> Optional[Record]:
        """User by id, or None."""
        return self.data.find_one(ENTITY_USER, self.where.equals("id", user_id))

    def add_user(self, email: str, username: str, age: int = 0) -> Record:
        """
        Create a user.

        Raises:
            ConfigurationError: Invalid e-mail, username or age
            IntegrityViolation: E-mail or username already taken
        """
        new_user = _validated(NewUser, email=email, username=username, age=age)
        [created] = self.data.insert(ENTITY_USER, [new_user.model_dump()])
        logger.info("Created user %s (id=%s)", created["username"], created["id"])
        return created

    def update_user(
        self,
        user_id: int,
        username: Optional[str] = None,
        email: Optional[str] = None,
        age: Optional[int] = None,
    ) -> Optional[Record]:
        """
        Update the given fields of one user.

        Returns:
            The updated user, or None if no user has that id
        """
        changes = _validated(UserChanges, username=username, email=email, age=age)
        payload = changes.model_dump(exclude_none=True)
        if not payload:
            return self.get_user(user_id)

        updated = self.data.update(ENTITY_USER, payload, self.where.equals("id", user_id))
        return updated[0] if updated else None

    def remove_user(self, user_id: int) -> Optional[Record]:
        """Delete one user; returns the removed record or None."""
        deleted = self.data.delete(ENTITY_USER, self.where.equals("id", user_id))
        return deleted[0] if deleted else None

    def search_users(self, name: str = "", min_age: int = 0, max_age: int = 100) -> List[Record]:
        """
        Users whose username contains ``name`` and whose age lies in
        ``[min_age, max_age]``.

        Raises:
            ConfigurationError: ``max_age`` is smaller than ``min_age``
        """
        if min_age < 0:
            raise ConfigurationError("Minimum age must be non-negative")
        if max_age < min_age:
            raise ConfigurationError("Maximum age must be greater than or equal to the minimum age")

        predicate = and_(
            self.where.contains("username", name),
            self.where.between("age", min_age, max_age),
        )
        return self.data.find(ENTITY_USER, predicate, order_by=asc("id"))
