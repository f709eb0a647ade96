"""
Schema Registry.

Static, read-only description of every entity the data-access layer knows:
field order, semantic type, nullability, uniqueness and defaults. The
description is derived from the SQLAlchemy mapped classes, so the ORM model
stays the single source of truth.

Usage:
    from querylab.models.registry import schema_registry

    users = schema_registry.get("User")
    users.field("age").type        # FieldType.INTEGER
    users.field("nickname")        # raises UnknownFieldError
"""

from dataclasses import dataclass
from datetime import date, datetime, timezone
from types import MappingProxyType
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple, Type, Union

from sqlalchemy import Boolean, Column, Date, DateTime, Integer, String, Table, UniqueConstraint

from querylab.core.constants import FieldType
from querylab.core.errors import ConfigurationError, UnknownEntityError, UnknownFieldError
from querylab.models.base import Base
from querylab.models.category import Category
from querylab.models.task import Task
from querylab.models.user import User


@dataclass(frozen=True)
class FieldSpec:
    """
    Description of a single entity field.

    Attributes:
        name: Attribute / column key
        type: Semantic type
        nullable: Whether the field may be absent (NULL)
        unique: Whether values must be unique across the entity
        primary_key: Whether this is the store-assigned identity
        default: Client-side scalar default, if any
        has_default: True when the client or the store fills the field in
        references: "Entity.field" this field points at (foreign key)
    """

    name: str
    type: FieldType
    nullable: bool
    unique: bool = False
    primary_key: bool = False
    default: Any = None
    has_default: bool = False
    references: Optional[str] = None

    @property
    def is_ordered(self) -> bool:
        return self.type.is_ordered

    @property
    def is_required(self) -> bool:
        """Must be supplied on insert."""
        return not (self.nullable or self.has_default or self.primary_key)

    def accepts(self, value: Any) -> bool:
        """True when ``value`` is a valid Python value for this field."""
        if value is None:
            return self.nullable
        if self.type is FieldType.INTEGER:
            return isinstance(value, int) and not isinstance(value, bool)
        if self.type is FieldType.STRING:
            return isinstance(value, str)
        if self.type is FieldType.BOOLEAN:
            return isinstance(value, bool)
        return isinstance(value, (datetime, date))

    def normalize(self, value: Any) -> Any:
        """Aware timestamps are converted to UTC; everything else is returned as is."""
        if self.type is FieldType.TIMESTAMP and isinstance(value, datetime) and value.tzinfo is not None:
            return value.astimezone(timezone.utc)
        return value


@dataclass(frozen=True)
class EntitySchema:
    """Ordered field list of one entity plus its mapped class and table."""

    name: str
    model: Type[Base]
    table: Table
    fields: Tuple[FieldSpec, ...]

    @property
    def field_names(self) -> Tuple[str, ...]:
        return tuple(f.name for f in self.fields)

    @property
    def primary_key(self) -> FieldSpec:
        for f in self.fields:
            if f.primary_key:
                return f
        raise ConfigurationError(f"Entity {self.name!r} has no primary key")

    def has_field(self, name: str) -> bool:
        return any(f.name == name for f in self.fields)

    def field(self, name: str) -> FieldSpec:
        """
        Look up a field by name.

        Raises:
            UnknownFieldError: If the entity has no such field
        """
        for f in self.fields:
            if f.name == name:
                return f
        raise UnknownFieldError(self.name, name)

    def column(self, name: str) -> Column:
        return self.table.c[self.field(name).name]


# ========================================
# Introspection
# ========================================

def _field_type(column: Column) -> FieldType:
    column_type = column.type
    if isinstance(column_type, Boolean):
        return FieldType.BOOLEAN
    if isinstance(column_type, (DateTime, Date)):
        return FieldType.TIMESTAMP
    if isinstance(column_type, Integer):
        return FieldType.INTEGER
    if isinstance(column_type, String):
        return FieldType.STRING
    raise ConfigurationError(
        f"Unsupported column type {column_type!r} for {column.table.name}.{column.key}"
    )


def _is_unique(column: Column, table: Table) -> bool:
    if column.unique:
        return True
    for constraint in table.constraints:
        if isinstance(constraint, UniqueConstraint):
            keys = [c.key for c in constraint.columns]
            if keys == [column.key]:
                return True
    return False


def _field_spec(column: Column, table: Table, table_to_entity: Mapping[str, str]) -> FieldSpec:
    default = None
    has_default = column.server_default is not None
    if column.default is not None:
        has_default = True
        if column.default.is_scalar:
            default = column.default.arg

    references = None
    for fk in column.foreign_keys:
        target = fk.column
        entity = table_to_entity.get(target.table.name, target.table.name)
        references = f"{entity}.{target.key}"

    return FieldSpec(
        name=column.key,
        type=_field_type(column),
        nullable=bool(column.nullable) and not column.primary_key,
        unique=_is_unique(column, table) or column.primary_key,
        primary_key=column.primary_key,
        default=default,
        has_default=has_default,
        references=references,
    )


def describe_model(model: Type[Base], table_to_entity: Optional[Mapping[str, str]] = None) -> EntitySchema:
    """Build the EntitySchema of one mapped class."""
    table = model.__table__
    table_to_entity = table_to_entity or {table.name: model.__name__}
    fields = tuple(_field_spec(column, table, table_to_entity) for column in table.columns)
    return EntitySchema(name=model.__name__, model=model, table=table, fields=fields)


# ========================================
# Registry
# ========================================

class SchemaRegistry:
    """
    Read-only lookup of entity schemas by name or mapped class.

    Example:
        registry = SchemaRegistry.from_models(User, Task, Category)
        registry.get(Task).field("category_id").references   # "Category.id"
    """

    def __init__(self, schemas: Iterable[EntitySchema]):
        entries: Dict[str, EntitySchema] = {}
        for schema in schemas:
            if schema.name in entries:
                raise ConfigurationError(f"Entity {schema.name!r} registered twice")
            entries[schema.name] = schema
        self._schemas = MappingProxyType(entries)

    @classmethod
    def from_models(cls, *models: Type[Base]) -> "SchemaRegistry":
        table_to_entity = {model.__table__.name: model.__name__ for model in models}
        return cls(describe_model(model, table_to_entity) for model in models)

    @property
    def entities(self) -> Tuple[str, ...]:
        return tuple(self._schemas)

    def get(self, entity: Union[str, Type[Base], EntitySchema]) -> EntitySchema:
        """
        Resolve an entity reference.

        Args:
            entity: Entity name ("User"), mapped class (User) or EntitySchema

        Raises:
            UnknownEntityError: If the entity is not registered
        """
        if isinstance(entity, EntitySchema):
            name = entity.name
        elif isinstance(entity, type):
            name = entity.__name__
        else:
            name = entity
        try:
            return self._schemas[name]
        except (KeyError, TypeError):
            raise UnknownEntityError(str(name), self._schemas) from None

    def __contains__(self, entity: object) -> bool:
        name = entity.__name__ if isinstance(entity, type) else entity
        return name in self._schemas

    def __iter__(self):
        return iter(self._schemas.values())

    def __len__(self) -> int:
        return len(self._schemas)


EntityRef = Union[str, Type[Base], EntitySchema]

schema_registry = SchemaRegistry.from_models(User, Task, Category)
