"""
Task model.

A Task optionally belongs to a Category. The foreign key uses
ON DELETE SET NULL: removing the category orphans the task instead of
deleting it.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from querylab.models.base import Base, SerializationMixin


class Task(SerializationMixin, Base):
    """
    To-do item.

    Attributes:
        id: Auto-incrementing primary key
        title: Task description (required)
        done: Completion flag (default False)
        created_at: Creation time, UTC, stamped on insert
        category_id: Optional reference to categories.id

    Example:
        task = Task(title="Write docs", category_id=1)
    """

    __tablename__ = "tasks"

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
    # Task Details
    # ========================================

    title: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="Task description"
    )

    done: Mapped[Optional[bool]] = mapped_column(
        Boolean,
        nullable=True,
        default=False,
        comment="Completion flag"
    )

    created_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        default=lambda: datetime.now(timezone.utc),
        comment="Creation time (UTC)"
    )

    # ========================================
    # Relationships
    # ========================================

    category_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("categories.id", ondelete="SET NULL", name="tasks_category_id_fkey"),
        nullable=True,
        comment="Owning category (NULL when uncategorized)"
    )

    __table_args__ = (
        Index("ix_tasks_category_id", "category_id"),
    )

    def __repr__(self) -> str:
        status = "done" if self.done else "open"
        return f"<Task(id={self.id}, title='{self.title}', {status}, category_id={self.category_id})>"
