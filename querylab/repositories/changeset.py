"""
Schema-validated change sets.

A ChangeSet is the only way field values reach the Mutation Executor.
Unknown fields, values of the wrong type and attempts to set the identity
are rejected when the change set is built, never at the store boundary.

Example:
    changes = ChangeSet.for_update("User", {"age": 25})
    changes.values        # {"age": 25}

    ChangeSet.for_update("User", {"nickname": "x"})   # UnknownFieldError
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, Iterator, Mapping, Tuple

from querylab.core.errors import ConfigurationError
from querylab.models.registry import EntityRef, EntitySchema, SchemaRegistry, schema_registry


@dataclass(frozen=True)
class ChangeSet:
    """
    Immutable field map for one entity.

    Attributes:
        schema: Entity the changes apply to
        changes: Read-only mapping of field name to new value
    """

    schema: EntitySchema
    changes: Mapping[str, Any]

    # ========================================
    # Construction
    # ========================================

    @classmethod
    def build(
        cls,
        entity: EntityRef,
        changes: Mapping[str, Any],
        registry: SchemaRegistry = schema_registry,
    ) -> "ChangeSet":
        """
        Validate ``changes`` against the entity schema.

        Raises:
            UnknownEntityError: Entity not registered
            UnknownFieldError: A key is not a field of the entity
            ConfigurationError: A value has the wrong type, or identity is set
        """
        schema = registry.get(entity)
        if not isinstance(changes, Mapping):
            raise ConfigurationError(f"Changes for {schema.name} must be a mapping, got {type(changes).__name__}")

        validated: Dict[str, Any] = {}
        for name, value in changes.items():
            spec = schema.field(name)
            if spec.primary_key:
                raise ConfigurationError(f"{schema.name}.{name} is assigned by the store and cannot be set")
            if not spec.accepts(value):
                expected = spec.type.value if value is not None else "a value (field is required)"
                raise ConfigurationError(
                    f"{schema.name}.{name} expects {expected}; got {type(value).__name__} {value!r}"
                )
            validated[name] = spec.normalize(value)
        return cls(schema=schema, changes=MappingProxyType(validated))

    @classmethod
    def for_insert(
        cls,
        entity: EntityRef,
        record: Mapping[str, Any],
        registry: SchemaRegistry = schema_registry,
    ) -> "ChangeSet":
        """Validate a new record: every required field must be present."""
        change_set = cls.build(entity, record, registry)
        missing = [f.name for f in change_set.schema.fields if f.is_required and f.name not in change_set.changes]
        if missing:
            raise ConfigurationError(
                f"Missing required field(s) for {change_set.schema.name}: {', '.join(missing)}"
            )
        return change_set

    @classmethod
    def for_update(
        cls,
        entity: EntityRef,
        changes: Mapping[str, Any],
        registry: SchemaRegistry = schema_registry,
    ) -> "ChangeSet":
        """Validate an update payload: at least one field must change."""
        change_set = cls.build(entity, changes, registry)
        if not change_set.changes:
            raise ConfigurationError(f"Update of {change_set.schema.name} has no field changes")
        return change_set

    # ========================================
    # Accessors
    # ========================================

    @property
    def entity(self) -> str:
        return self.schema.name

    @property
    def values(self) -> Dict[str, Any]:
        """Plain dict copy, ready to pass to a SQLAlchemy statement."""
        return dict(self.changes)

    @property
    def fields(self) -> Tuple[str, ...]:
        return tuple(self.changes)

    def __iter__(self) -> Iterator[str]:
        return iter(self.changes)

    def __len__(self) -> int:
        return len(self.changes)

    def __repr__(self) -> str:
        return f"<ChangeSet({self.schema.name}, {dict(self.changes)!r})>"
