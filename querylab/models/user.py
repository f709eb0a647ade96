"""
User model.

A User is identified by a store-assigned integer id. Both username and
email are unique; age is optional and defaults to 0.
"""

from typing import Optional

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from querylab.models.base import Base, SerializationMixin


class User(SerializationMixin, Base):
    """
    Application user.

    Attributes:
        id: Auto-incrementing primary key
        username: Unique login name (max 255 chars)
        email: Unique e-mail address
        age: Optional age in years (default 0)

    Example:
        user = User(email="alice@example.com", username="alice", age=45)
    """

    __tablename__ = "users"

    # ========================================
    # Primary Key
    # ========================================

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
        comment="Auto-incrementing primary key"
    )

    # ========================================
    # Identity
    # ========================================

    username: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        comment="Unique login name"
    )

    email: Mapped[str] = mapped_column(
        Text,
        unique=True,
        nullable=False,
        comment="Unique e-mail address"
    )

    # ========================================
    # Profile
    # ========================================

    age: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        default=0,
        comment="Age in years"
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username='{self.username}', email='{self.email}', age={self.age})>"
