"""
Category model.

Categories group tasks. Deleting a category leaves its tasks in place with
``category_id`` set to NULL.
"""

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from querylab.models.base import Base, SerializationMixin


class Category(SerializationMixin, Base):
    """
    Task category.

    Attributes:
        id: Auto-incrementing primary key
        name: Unique category name (max 100 chars)
    """

    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
        comment="Auto-incrementing primary key"
    )

    name: Mapped[str] = mapped_column(
        String(100),
        unique=True,
        nullable=False,
        comment="Unique category name"
    )

    def __repr__(self) -> str:
        return f"<Category(id={self.id}, name='{self.name}')>"
