"""
Database models package.

Contains all SQLAlchemy ORM models and the schema registry derived from them.
"""

from querylab.models.base import Base, SerializationMixin
from querylab.models.user import User
from querylab.models.task import Task
from querylab.models.category import Category
from querylab.models.registry import (
    EntityRef,
    EntitySchema,
    FieldSpec,
    SchemaRegistry,
    describe_model,
    schema_registry,
)

__all__ = [
    "Base",
    "SerializationMixin",
    "User",
    "Task",
    "Category",
    "EntityRef",
    "EntitySchema",
    "FieldSpec",
    "SchemaRegistry",
    "describe_model",
    "schema_registry",
]
