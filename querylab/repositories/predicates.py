"""
Predicate Builder.

Composes immutable boolean expressions over one entity's fields without
executing them. Every reference and value is checked against the schema
registry when the predicate is built, so a bad filter fails before any
statement reaches the database.

Usage:
    from querylab.repositories.predicates import Predicates, and_

    p = Predicates("User")
    adults_named_eve = and_(
        p.contains("username", "eve"),
        p.greater_than("age", 18),
        p.less_than("age", 30),
    )

    # Operators work too
    same = p.contains("username", "eve") & p.greater_than("age", 18) & p.less_than("age", 30)

Predicates are frozen dataclasses: composing never mutates an operand and
two predicates built the same way compare equal.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping, Optional, Tuple

from sqlalchemy import Table, and_ as sa_and, or_ as sa_or, true as sa_true
from sqlalchemy.sql.elements import ColumnElement

from querylab.core.constants import ComparisonOperator, FieldType, LogicalOperator
from querylab.core.errors import ConfigurationError, PredicateTypeError
from querylab.models.registry import EntityRef, EntitySchema, FieldSpec, SchemaRegistry, schema_registry


class Predicate:
    """Base class of all predicates. Subclasses are frozen dataclasses."""

    entity: Optional[str]

    def matches(self, record: Mapping[str, Any]) -> bool:
        """Evaluate against a record mapping (field name -> value)."""
        raise NotImplementedError

    def to_clause(self, table: Table) -> ColumnElement:
        """Compile into a SQLAlchemy boolean expression over ``table``."""
        raise NotImplementedError

    def __and__(self, other: "Predicate") -> "Predicate":
        return and_(self, other)

    def __or__(self, other: "Predicate") -> "Predicate":
        return or_(self, other)


# ========================================
# Atomic comparisons
# ========================================

def _comparable(actual: Any, expected: Any) -> Tuple[Any, Any]:
    """Naive timestamps read back from the store are UTC."""
    if isinstance(actual, datetime) and isinstance(expected, datetime):
        if actual.tzinfo is None and expected.tzinfo is not None:
            actual = actual.replace(tzinfo=timezone.utc)
        elif expected.tzinfo is None and actual.tzinfo is not None:
            expected = expected.replace(tzinfo=timezone.utc)
    return actual, expected


_ORDERED_OPERATORS = {
    ComparisonOperator.GREATER_THAN: lambda left, right: left > right,
    ComparisonOperator.LESS_THAN: lambda left, right: left < right,
    ComparisonOperator.GREATER_OR_EQUAL: lambda left, right: left >= right,
    ComparisonOperator.LESS_OR_EQUAL: lambda left, right: left <= right,
}


@dataclass(frozen=True)
class Comparison(Predicate):
    """``field <op> value`` on a single entity."""

    entity: str
    field: str
    operator: ComparisonOperator
    value: Any

    def matches(self, record: Mapping[str, Any]) -> bool:
        actual = record.get(self.field)

        if self.operator is ComparisonOperator.EQUALS:
            if self.value is None:
                return actual is None
            if actual is None:
                return False
            actual, expected = _comparable(actual, self.value)
            return actual == expected

        # SQL semantics: comparing against NULL is never true
        if actual is None:
            return False
        if self.operator is ComparisonOperator.CONTAINS:
            return self.value in actual
        actual, expected = _comparable(actual, self.value)
        return _ORDERED_OPERATORS[self.operator](actual, expected)

    def to_clause(self, table: Table) -> ColumnElement:
        column = table.c[self.field]
        if self.operator is ComparisonOperator.EQUALS:
            return column.is_(None) if self.value is None else column == self.value
        if self.operator is ComparisonOperator.CONTAINS:
            return column.contains(self.value, autoescape=True)
        return _ORDERED_OPERATORS[self.operator](column, self.value)

    def __str__(self) -> str:
        return f"{self.entity}.{self.field} {self.operator.value} {self.value!r}"


# ========================================
# Compound predicates
# ========================================

@dataclass(frozen=True)
class Compound(Predicate):
    """Conjunction or disjunction of two or more predicates."""

    entity: Optional[str]
    operator: LogicalOperator
    operands: Tuple[Predicate, ...]

    def matches(self, record: Mapping[str, Any]) -> bool:
        if self.operator is LogicalOperator.AND:
            return all(p.matches(record) for p in self.operands)
        return any(p.matches(record) for p in self.operands)

    def to_clause(self, table: Table) -> ColumnElement:
        clauses = [p.to_clause(table) for p in self.operands]
        if self.operator is LogicalOperator.AND:
            return sa_and(*clauses)
        return sa_or(*clauses)

    def __str__(self) -> str:
        joiner = f" {self.operator.value.upper()} "
        return "(" + joiner.join(str(p) for p in self.operands) + ")"


@dataclass(frozen=True)
class AllRecords(Predicate):
    """Matches every record of any entity. Required for broad updates/deletes."""

    entity: Optional[str] = None

    def matches(self, record: Mapping[str, Any]) -> bool:
        return True

    def to_clause(self, table: Table) -> ColumnElement:
        return sa_true()

    def __str__(self) -> str:
        return "ALL RECORDS"


ALL_RECORDS = AllRecords()


def _combine(operator: LogicalOperator, predicates: Tuple[Predicate, ...]) -> Predicate:
    if not predicates:
        raise ConfigurationError(f"{operator.value}_() needs at least one predicate")

    entities = set()
    flattened = []
    for predicate in predicates:
        if not isinstance(predicate, Predicate):
            raise ConfigurationError(f"Not a predicate: {predicate!r}")
        if predicate.entity is not None:
            entities.add(predicate.entity)
        if isinstance(predicate, Compound) and predicate.operator is operator:
            flattened.extend(predicate.operands)
        else:
            flattened.append(predicate)

    if len(entities) > 1:
        raise ConfigurationError(
            f"Cannot combine predicates over different entities: {', '.join(sorted(entities))}"
        )
    if len(flattened) == 1:
        return flattened[0]
    return Compound(entity=entities.pop() if entities else None, operator=operator, operands=tuple(flattened))


def and_(*predicates: Predicate) -> Predicate:
    """Conjunction: matches records matched by every operand."""
    return _combine(LogicalOperator.AND, predicates)


def or_(*predicates: Predicate) -> Predicate:
    """Disjunction: matches records matched by at least one operand."""
    return _combine(LogicalOperator.OR, predicates)


# ========================================
# Builder
# ========================================

def _check_value(schema: EntitySchema, spec: FieldSpec, value: Any) -> None:
    where = f"{schema.name}.{spec.name}"
    if value is None and not spec.nullable:
        raise PredicateTypeError(f"{where} is required and can never be absent")
    if not spec.accepts(value):
        raise PredicateTypeError(
            f"{where} is {spec.type.value}; got {type(value).__name__} {value!r}"
        )


class Predicates:
    """
    Predicate factory bound to one entity.

    Args:
        entity: Entity name or mapped class
        registry: Schema registry to validate against

    Raises:
        UnknownEntityError: If the entity is not registered
    """

    def __init__(self, entity: EntityRef, registry: SchemaRegistry = schema_registry):
        self.schema = registry.get(entity)

    @property
    def entity(self) -> str:
        return self.schema.name

    def _comparison(self, field: str, operator: ComparisonOperator, value: Any) -> Comparison:
        value = self.schema.field(field).normalize(value)
        return Comparison(entity=self.schema.name, field=field, operator=operator, value=value)

    def equals(self, field: str, value: Any) -> Comparison:
        """``field == value``; ``None`` means the field is absent."""
        spec = self.schema.field(field)
        _check_value(self.schema, spec, value)
        return self._comparison(field, ComparisonOperator.EQUALS, value)

    def contains(self, field: str, substring: str) -> Comparison:
        """Case-sensitive substring match on a string field."""
        spec = self.schema.field(field)
        if spec.type is not FieldType.STRING:
            raise PredicateTypeError(
                f"contains() needs a string field; {self.schema.name}.{field} is {spec.type.value}"
            )
        if not isinstance(substring, str):
            raise PredicateTypeError(f"contains() needs a string, got {type(substring).__name__}")
        return self._comparison(field, ComparisonOperator.CONTAINS, substring)

    def _ordered(self, field: str, operator: ComparisonOperator, value: Any) -> Comparison:
        spec = self.schema.field(field)
        if not spec.is_ordered:
            raise PredicateTypeError(
                f"{operator.value} needs an integer or timestamp field; "
                f"{self.schema.name}.{field} is {spec.type.value}"
            )
        if value is None:
            raise PredicateTypeError(f"{operator.value} cannot compare {self.schema.name}.{field} with None")
        _check_value(self.schema, spec, value)
        return self._comparison(field, operator, value)

    def greater_than(self, field: str, value: Any) -> Comparison:
        return self._ordered(field, ComparisonOperator.GREATER_THAN, value)

    def less_than(self, field: str, value: Any) -> Comparison:
        return self._ordered(field, ComparisonOperator.LESS_THAN, value)

    def greater_or_equal(self, field: str, value: Any) -> Comparison:
        return self._ordered(field, ComparisonOperator.GREATER_OR_EQUAL, value)

    def less_or_equal(self, field: str, value: Any) -> Comparison:
        return self._ordered(field, ComparisonOperator.LESS_OR_EQUAL, value)

    def between(self, field: str, low: Any, high: Any) -> Predicate:
        """Inclusive range: ``low <= field <= high``."""
        return and_(self.greater_or_equal(field, low), self.less_or_equal(field, high))
